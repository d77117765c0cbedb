"""
Commission ledger reads, creator metrics and program reporting.

Creator metrics are a cache over clicks and transactions. ``record_metrics``
rebuilds them from a fresh aggregation and overwrites the stored block in one
UPDATE, so repeated rebuilds converge instead of drifting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.core.exceptions import ValidationError
from django.db.models import Count, Max, Q, QuerySet, Sum
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from .models import CommissionTransaction, Creator, ReferralClick
from .types import (
    CREATOR_NOT_FOUND,
    AffiliateError,
    CreatorMetrics,
    PayoutEligibility,
    ProgramSummary,
    TopCreator,
    validation_error,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

SUMMARY_DEFAULT_DAYS = 30
TOP_CREATORS_LIMIT = 10
CREATOR_ORDERINGS = frozenset(
    f"{prefix}{name}"
    for name in ("created_at", "display_name", "total_clicks", "total_sales", "total_commission")
    for prefix in ("", "-")
)


def _get_creator(creator_id: Any) -> Result[Creator, AffiliateError]:
    try:
        return Ok(Creator.objects.get(pk=creator_id))
    except (Creator.DoesNotExist, ValidationError, ValueError):
        return Err(AffiliateError(code=CREATOR_NOT_FOUND, message="Creator not found"))


class LedgerService:
    """Ledger queries and the metrics rebuild."""

    @staticmethod
    def compute_metrics(creator_id: Any) -> CreatorMetrics:
        """
        Aggregate metrics straight from clicks and qualifying transactions.

        Sales count and last sale date come from sale rows only; the commission
        total is net of return clawbacks.
        """
        total_clicks = ReferralClick.objects.filter(creator_id=creator_id).count()
        sales = CommissionTransaction.objects.filter(
            creator_id=creator_id,
            status__in=CommissionTransaction.QUALIFYING_STATUSES,
        ).aggregate(
            count=Count("id", filter=Q(type="sale")),
            commission=Sum("commission_amount"),
            last_sale=Max("created_at", filter=Q(type="sale")),
        )

        total_sales = sales["count"] or 0
        conversion_rate = ZERO
        if total_clicks:
            conversion_rate = (Decimal(total_sales) / Decimal(total_clicks) * Decimal("100")).quantize(
                CENT, rounding=ROUND_HALF_UP
            )

        return CreatorMetrics(
            total_clicks=total_clicks,
            total_sales=total_sales,
            total_commission=(sales["commission"] or ZERO).quantize(CENT),
            conversion_rate=conversion_rate,
            last_sale_date=sales["last_sale"],
        )

    @classmethod
    def record_metrics(cls, creator_id: Any) -> Result[CreatorMetrics, AffiliateError]:
        """Rebuild and store the creator's metrics block."""
        creator_result = _get_creator(creator_id)
        if creator_result.is_err():
            return creator_result

        metrics = cls.compute_metrics(creator_id)
        Creator.objects.filter(pk=creator_id).update(
            metrics_updated_at=timezone.now(),
            **metrics.as_dict(),
        )
        logger.debug(
            f"📊 [Ledger] Metrics rebuilt for creator {creator_id}: "
            f"{metrics.total_sales} sales / {metrics.total_clicks} clicks"
        )
        return Ok(metrics)

    @staticmethod
    def get_metrics(creator_id: Any) -> Result[CreatorMetrics, AffiliateError]:
        """Cached metrics block, as last written by ``record_metrics``."""
        return _get_creator(creator_id).map(lambda creator: creator.metrics)

    @staticmethod
    def list_transactions(
        creator_id: Any,
        status: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> Result[QuerySet[CommissionTransaction], AffiliateError]:
        """Creator's transactions, newest first, optionally filtered."""
        creator_result = _get_creator(creator_id)
        if creator_result.is_err():
            return creator_result

        if status and status not in dict(CommissionTransaction.STATUS_CHOICES):
            return Err(validation_error("status", f"Unknown commission status: {status}"))

        queryset = CommissionTransaction.objects.filter(creator_id=creator_id).select_related("link")
        if status:
            queryset = queryset.filter(status=status)
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)
        return Ok(queryset.order_by("-created_at"))

    @staticmethod
    def check_payout_eligibility(creator_id: Any) -> Result[PayoutEligibility, AffiliateError]:
        """Approved-but-unpaid commission compared with the creator's payout minimum."""
        creator_result = _get_creator(creator_id)
        if creator_result.is_err():
            return creator_result
        creator = creator_result.unwrap()

        approved = CommissionTransaction.objects.filter(creator=creator, status="approved")
        available = approved.aggregate(total=Sum("commission_amount"))["total"] or ZERO
        earned = (
            CommissionTransaction.objects.filter(
                creator=creator,
                status__in=CommissionTransaction.QUALIFYING_STATUSES,
            ).aggregate(total=Sum("commission_amount"))["total"]
            or ZERO
        )

        return Ok(
            PayoutEligibility(
                creator_id=str(creator.pk),
                total_earnings=earned.quantize(CENT),
                available_for_payout=available.quantize(CENT),
                minimum_payout=creator.minimum_payout,
                is_eligible=available >= creator.minimum_payout,
                transaction_ids=[str(pk) for pk in approved.values_list("pk", flat=True)],
            )
        )

    @staticmethod
    def commission_breakdown(creator_id: Any) -> Result[dict[str, dict[str, Any]], AffiliateError]:
        """Count and commission sum per status, every status present."""
        creator_result = _get_creator(creator_id)
        if creator_result.is_err():
            return creator_result

        breakdown: dict[str, dict[str, Any]] = {
            status: {"count": 0, "amount": ZERO} for status, _label in CommissionTransaction.STATUS_CHOICES
        }
        rows = (
            CommissionTransaction.objects.filter(creator_id=creator_id)
            .values("status")
            .annotate(count=Count("id"), amount=Sum("commission_amount"))
            .order_by()
        )
        for row in rows:
            breakdown[row["status"]] = {"count": row["count"], "amount": (row["amount"] or ZERO).quantize(CENT)}
        return Ok(breakdown)

    @staticmethod
    def list_creators(
        status: str | None = None,
        search: str | None = None,
        ordering: str = "-created_at",
    ) -> Result[QuerySet[Creator], AffiliateError]:
        """Creators for the staff console, optionally filtered by status and a search term."""
        if status and status not in dict(Creator.STATUS_CHOICES):
            return Err(validation_error("status", f"Unknown creator status: {status}"))
        if ordering not in CREATOR_ORDERINGS:
            return Err(validation_error("ordering", f"Unsupported ordering: {ordering}"))

        queryset = Creator.objects.all()
        if status:
            queryset = queryset.filter(status=status)
        if search:
            queryset = queryset.filter(
                Q(display_name__icontains=search) | Q(email__icontains=search) | Q(creator_code__icontains=search)
            )
        return Ok(queryset.order_by(ordering, "pk"))

    @staticmethod
    def program_summary(
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> Result[ProgramSummary, AffiliateError]:
        """
        Program-wide commission report.

        Window totals count approved and paid rows created in the window, returns
        included. The window defaults to the last 30 days.
        """
        date_to = date_to or timezone.now()
        date_from = date_from or date_to - timedelta(days=SUMMARY_DEFAULT_DAYS)
        if date_from > date_to:
            return Err(validation_error("date_from", "date_from must not be after date_to"))

        in_window = CommissionTransaction.objects.filter(
            created_at__gte=date_from,
            created_at__lte=date_to,
            status__in=CommissionTransaction.QUALIFYING_STATUSES,
        )
        totals = in_window.aggregate(
            commission=Sum("commission_amount"),
            paid=Sum("commission_amount", filter=Q(status="paid")),
        )
        pending = CommissionTransaction.objects.filter(status="pending").aggregate(total=Sum("commission_amount"))

        leaders = (
            in_window.values("creator_id", "creator__creator_code", "creator__display_name")
            .annotate(commission=Sum("commission_amount"), sales=Count("id", filter=Q(type="sale")))
            .order_by("-commission", "creator__creator_code")[:TOP_CREATORS_LIMIT]
        )
        top_creators = [
            TopCreator(
                creator_id=str(row["creator_id"]),
                creator_code=row["creator__creator_code"],
                display_name=row["creator__display_name"],
                total_commission=(row["commission"] or ZERO).quantize(CENT),
                total_sales=row["sales"],
            )
            for row in leaders
        ]

        return Ok(
            ProgramSummary(
                date_from=date_from,
                date_to=date_to,
                total_commission=(totals["commission"] or ZERO).quantize(CENT),
                total_paid=(totals["paid"] or ZERO).quantize(CENT),
                pending_commission=(pending["total"] or ZERO).quantize(CENT),
                active_creators=Creator.objects.filter(status="approved").count(),
                top_creators=top_creators,
            )
        )
