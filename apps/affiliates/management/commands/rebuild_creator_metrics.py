"""
Rebuild cached creator metrics from clicks and the commission ledger.

Usage:
    python manage.py rebuild_creator_metrics
    python manage.py rebuild_creator_metrics --creator <uuid>
    python manage.py rebuild_creator_metrics --async
"""

from __future__ import annotations

from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from apps.affiliates.tasks import rebuild_all_metrics, rebuild_all_metrics_async


class Command(BaseCommand):
    help = "Recompute creator metrics from the ledger"

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--creator",
            action="append",
            dest="creators",
            help="Creator UUID to rebuild (repeatable); defaults to all creators",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue the rebuild on the task cluster",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        if options["run_async"]:
            task_id = rebuild_all_metrics_async()
            self.stdout.write(self.style.SUCCESS(f"Metrics rebuild queued: {task_id}"))
            return

        outcome = rebuild_all_metrics(creator_ids=options["creators"])
        if "results" not in outcome:
            self.stdout.write(self.style.WARNING(outcome.get("message", "Nothing to do")))
            return

        results = outcome["results"]
        for error in results["errors"]:
            self.stderr.write(self.style.ERROR(f"  {error}"))
        self.stdout.write(self.style.SUCCESS(f"Rebuilt metrics for {results['rebuilt']} creators"))
