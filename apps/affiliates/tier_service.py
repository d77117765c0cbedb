"""
Volume-based commission tiers.

A creator's rate is looked up from trailing approved sales volume. The tier
table is ordered by threshold; lower bounds are inclusive.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from . import config
from .models import CommissionTransaction, Creator, TierChangeLog
from .types import CREATOR_NOT_FOUND, AffiliateError, CommissionTier, TierResult

logger = logging.getLogger(__name__)

TIERS: tuple[CommissionTier, ...] = (
    CommissionTier(name="Bronze", min_volume=Decimal("0"), rate=Decimal("10.00")),
    CommissionTier(name="Silver", min_volume=Decimal("1000"), rate=Decimal("12.00")),
    CommissionTier(name="Gold", min_volume=Decimal("5000"), rate=Decimal("15.00")),
    CommissionTier(name="Platinum", min_volume=Decimal("10000"), rate=Decimal("18.00")),
)


def tier_for_volume(volume: Decimal) -> CommissionTier:
    """Highest tier whose threshold the volume reaches; negative volume counts as zero."""
    volume = max(volume, Decimal("0"))
    matched = TIERS[0]
    for tier in TIERS:
        if volume >= tier.min_volume:
            matched = tier
    return matched


class TierService:
    """Tier engine: trailing volume in, commission rate out."""

    @staticmethod
    def monthly_volume(creator_id: Any, now=None) -> Decimal:
        """
        Signed approved volume in the trailing window.

        Return rows carry negative order amounts, so sales and returns sum
        directly; adjustments are ignored. Only approved and paid transactions
        count.
        """
        now = now or timezone.now()
        since = now - config.get_tier_volume_window()
        totals = CommissionTransaction.objects.filter(
            creator_id=creator_id,
            status__in=CommissionTransaction.QUALIFYING_STATUSES,
            created_at__gte=since,
            type__in=("sale", "return"),
        ).aggregate(volume=Sum("order_amount"))
        return totals["volume"] or Decimal("0.00")

    @classmethod
    def recompute_tier(cls, creator_id: Any) -> Result[TierResult, AffiliateError]:
        """
        Recompute and persist the creator's rate.

        The creator row is locked while the current rate is compared and
        written. Calling this again with an unchanged ledger returns
        ``changed=False``.
        """
        with transaction.atomic():
            try:
                creator = Creator.objects.select_for_update().get(pk=creator_id)
            except (Creator.DoesNotExist, ValidationError, ValueError):
                return Err(AffiliateError(code=CREATOR_NOT_FOUND, message="Creator not found"))

            volume = cls.monthly_volume(creator.pk)
            tier = tier_for_volume(volume)
            previous_rate = creator.commission_rate

            if previous_rate == tier.rate:
                return Ok(
                    TierResult(
                        tier=tier.name,
                        rate=tier.rate,
                        changed=False,
                        monthly_volume=volume,
                        previous_rate=previous_rate,
                    )
                )

            replaced_override = creator.rate_overridden
            Creator.objects.filter(pk=creator.pk).update(
                commission_rate=tier.rate,
                rate_overridden=False,
                updated_at=timezone.now(),
            )
            TierChangeLog.objects.create(
                creator=creator,
                previous_rate=previous_rate,
                new_rate=tier.rate,
                tier=tier.name,
                monthly_volume=volume,
                source="automatic",
                replaced_override=replaced_override,
                reason=f"Trailing volume {volume} reached {tier.name}",
            )

        if replaced_override:
            logger.warning(
                f"⚠️ [Tiers] Admin rate {previous_rate}% for creator {creator.creator_code} "
                f"replaced by {tier.name} rate {tier.rate}%"
            )
        logger.info(
            f"📈 [Tiers] Creator {creator.creator_code} moved to {tier.name}: {previous_rate}% -> {tier.rate}%",
            extra={"creator_id": str(creator.pk), "new_tier": tier.name},
        )
        return Ok(
            TierResult(
                tier=tier.name,
                rate=tier.rate,
                changed=True,
                monthly_volume=volume,
                previous_rate=previous_rate,
            )
        )
