"""
Recompute creator commission tiers from trailing sales volume.

Usage:
    python manage.py recompute_creator_tiers
    python manage.py recompute_creator_tiers --creator <uuid> --dry-run
    python manage.py recompute_creator_tiers --async
    python manage.py recompute_creator_tiers --schedule  # Register daily jobs
"""

from __future__ import annotations

from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from apps.affiliates.tasks import recompute_all_tiers, recompute_all_tiers_async, setup_affiliate_scheduled_tasks


class Command(BaseCommand):
    """Run the tier sweep on demand."""

    help = "Recompute commission tiers for approved creators"

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--creator",
            action="append",
            dest="creators",
            help="Creator UUID to recompute (repeatable); defaults to all approved creators",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show rate changes without writing them",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue the sweep on the task cluster instead of running it here",
        )
        parser.add_argument(
            "--schedule",
            action="store_true",
            help="Register the daily tier sweep and metrics rebuild schedules",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        if options["schedule"]:
            created = setup_affiliate_scheduled_tasks()
            for name, state in created.items():
                self.stdout.write(f"  {name}: {state}")
            self.stdout.write(self.style.SUCCESS("Affiliate schedules configured"))
            return

        if options["run_async"]:
            task_id = recompute_all_tiers_async()
            self.stdout.write(self.style.SUCCESS(f"Tier sweep queued: {task_id}"))
            return

        outcome = recompute_all_tiers(creator_ids=options["creators"], dry_run=options["dry_run"])
        if "results" not in outcome:
            self.stdout.write(self.style.WARNING(outcome.get("message", "Nothing to do")))
            return

        results = outcome["results"]
        prefix = "[dry run] " if options["dry_run"] else ""
        for change in results["changes"]:
            self.stdout.write(f"  {prefix}{change}")
        for error in results["errors"]:
            self.stderr.write(self.style.ERROR(f"  {error}"))

        self.stdout.write(
            self.style.SUCCESS(
                f"{prefix}Checked {results['checked']} creators: "
                f"{results['changed']} changed, {results['unchanged']} unchanged"
            )
        )
