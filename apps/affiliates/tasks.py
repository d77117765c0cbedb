"""
Affiliate background tasks.

Django-Q2 tasks for the periodic tier sweep and the creator metrics rebuild,
plus their queue wrappers and schedule registration.
"""

from __future__ import annotations

import logging
from typing import Any

from django.core.cache import cache
from django_q.models import Schedule
from django_q.tasks import async_task, schedule

from .ledger_service import LedgerService
from .models import Creator
from .tier_service import TierService, tier_for_volume

logger = logging.getLogger(__name__)

TASK_TIME_LIMIT = 600
TIER_SWEEP_LOCK_KEY = "affiliates_tier_sweep_lock"
METRICS_REBUILD_LOCK_KEY = "affiliates_metrics_rebuild_lock"
LOCK_TIMEOUT = 1800


def recompute_all_tiers(creator_ids: list[str] | None = None, dry_run: bool = False) -> dict[str, Any]:
    """
    Recompute commission tiers for approved creators.

    Trailing volume drops as old sales leave the window, so rates also need
    to be recomputed when no new transaction arrives. Runs daily.

    Returns:
        Dictionary with sweep counts and per-creator errors
    """
    logger.info("🔄 [TierSweep] Starting tier recompute sweep")
    results: dict[str, Any] = {"checked": 0, "changed": 0, "unchanged": 0, "errors": [], "changes": []}

    if not cache.add(TIER_SWEEP_LOCK_KEY, True, LOCK_TIMEOUT):
        logger.info("⏭️ [TierSweep] Tier sweep already running, skipping")
        return {"success": True, "message": "Already running"}

    try:
        creators = Creator.objects.filter(status="approved")
        if creator_ids:
            creators = Creator.objects.filter(pk__in=creator_ids)

        for creator in creators.only("pk", "creator_code", "commission_rate").iterator():
            results["checked"] += 1

            if dry_run:
                volume = TierService.monthly_volume(creator.pk)
                tier = tier_for_volume(volume)
                if tier.rate != creator.commission_rate:
                    results["changed"] += 1
                    results["changes"].append(
                        f"{creator.creator_code}: {creator.commission_rate}% -> {tier.rate}% ({tier.name})"
                    )
                else:
                    results["unchanged"] += 1
                continue

            outcome = TierService.recompute_tier(creator.pk)
            if outcome.is_err():
                results["errors"].append(f"{creator.creator_code}: {outcome.unwrap_err().message}")
                continue

            tier_result = outcome.unwrap()
            if tier_result.changed:
                results["changed"] += 1
                results["changes"].append(
                    f"{creator.creator_code}: {tier_result.previous_rate}% -> {tier_result.rate}% ({tier_result.tier})"
                )
                LedgerService.record_metrics(creator.pk)
            else:
                results["unchanged"] += 1

        logger.info(
            f"✅ [TierSweep] Tier sweep completed: {results['checked']} checked, "
            f"{results['changed']} changed, {len(results['errors'])} errors"
        )
        return {"success": True, "results": results}

    finally:
        cache.delete(TIER_SWEEP_LOCK_KEY)


def rebuild_all_metrics(creator_ids: list[str] | None = None) -> dict[str, Any]:
    """Rebuild the cached metrics block of every creator (or the given ones)."""
    logger.info("🔄 [MetricsRebuild] Starting creator metrics rebuild")
    results: dict[str, Any] = {"rebuilt": 0, "errors": []}

    if not cache.add(METRICS_REBUILD_LOCK_KEY, True, LOCK_TIMEOUT):
        logger.info("⏭️ [MetricsRebuild] Metrics rebuild already running, skipping")
        return {"success": True, "message": "Already running"}

    try:
        creators = Creator.objects.all()
        if creator_ids:
            creators = creators.filter(pk__in=creator_ids)

        for creator_id in creators.values_list("pk", flat=True).iterator():
            outcome = LedgerService.record_metrics(creator_id)
            if outcome.is_err():
                results["errors"].append(f"{creator_id}: {outcome.unwrap_err().message}")
            else:
                results["rebuilt"] += 1

        logger.info(f"✅ [MetricsRebuild] Rebuilt metrics for {results['rebuilt']} creators")
        return {"success": True, "results": results}

    finally:
        cache.delete(METRICS_REBUILD_LOCK_KEY)


# ===============================================================================
# TASK QUEUE WRAPPER FUNCTIONS
# ===============================================================================


def recompute_all_tiers_async() -> str:
    """Queue the tier sweep."""
    return async_task("apps.affiliates.tasks.recompute_all_tiers", timeout=TASK_TIME_LIMIT)


def rebuild_all_metrics_async() -> str:
    """Queue the metrics rebuild."""
    return async_task("apps.affiliates.tasks.rebuild_all_metrics", timeout=TASK_TIME_LIMIT)


# ===============================================================================
# SCHEDULED TASKS SETUP
# ===============================================================================


def setup_affiliate_scheduled_tasks() -> dict[str, str]:
    """Set up the affiliate scheduled tasks."""
    tasks_created = {}

    existing_tasks = list(
        Schedule.objects.filter(name__in=["affiliate-tier-sweep", "affiliate-metrics-rebuild"]).values_list(
            "name", flat=True
        )
    )

    # Tier sweep daily at 2 AM
    if "affiliate-tier-sweep" not in existing_tasks:
        schedule(
            "apps.affiliates.tasks.recompute_all_tiers",
            schedule_type=Schedule.CRON,
            cron="0 2 * * *",
            name="affiliate-tier-sweep",
        )
        tasks_created["tier_sweep"] = "created"
    else:
        tasks_created["tier_sweep"] = "already_exists"

    # Metrics rebuild daily at 3 AM
    if "affiliate-metrics-rebuild" not in existing_tasks:
        schedule(
            "apps.affiliates.tasks.rebuild_all_metrics",
            schedule_type=Schedule.CRON,
            cron="0 3 * * *",
            name="affiliate-metrics-rebuild",
        )
        tasks_created["metrics_rebuild"] = "created"
    else:
        tasks_created["metrics_rebuild"] = "already_exists"

    logger.info(f"✅ [AffiliateTasks] Scheduled tasks setup: {tasks_created}")
    return tasks_created
