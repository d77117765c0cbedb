"""
Commission calculation and settlement transitions.

The calculator is pure decimal arithmetic. Settlement moves a transaction
forward through pending -> approved -> paid, or cancels it. Returns write a
negative ledger row against an approved or paid sale. Both schedule the tier
recompute and metrics refresh once they have committed.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, ClassVar

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from .ledger_service import LedgerService
from .models import MONEY_MAX_DIGITS, CommissionTransaction
from .tier_service import TierService
from .types import (
    INTEGRITY_CONFLICT,
    INVALID_TRANSITION,
    TRANSACTION_NOT_FOUND,
    AffiliateError,
    BulkTransitionResult,
    ReturnOutcome,
    validation_error,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_MONEY_AMOUNT = Decimal(10) ** (MONEY_MAX_DIGITS - 2)


def to_decimal(value: Any) -> Decimal:
    """Convert a number to Decimal without passing through binary floats."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e


def parse_money(value: Any) -> Decimal | None:
    """Non-negative amount with at most 2 decimals that fits a money column, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite() or amount < 0 or amount >= MAX_MONEY_AMOUNT:
        return None
    if amount != amount.quantize(CENT):
        return None
    return amount.quantize(CENT)


# ===============================================================================
# CALCULATOR
# ===============================================================================


class CommissionCalculator:
    """Pure commission arithmetic."""

    @staticmethod
    def calculate(order_amount: Any, rate: Any) -> Decimal:
        """
        Commission owed for an order at the given percentage rate.

        ``round_half_up(order_amount * rate / 100, 2)``. Inputs may be Decimal,
        int, str or float; floats are converted through their string form.
        """
        amount = to_decimal(order_amount)
        percentage = to_decimal(rate)
        return (amount * percentage / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)


# ===============================================================================
# SETTLEMENT
# ===============================================================================


class CommissionService:
    """Status transitions on the commission ledger."""

    ALLOWED_TRANSITIONS: ClassVar[dict[str, tuple[str, ...]]] = {
        "pending": ("approved", "cancelled"),
        "approved": ("paid", "cancelled"),
        "paid": (),
        "cancelled": (),
    }

    TIMESTAMP_FIELDS: ClassVar[dict[str, str]] = {
        "approved": "processed_at",
        "paid": "paid_at",
        "cancelled": "cancelled_at",
    }

    @classmethod
    def update_status(
        cls, transaction_id: Any, new_status: str, notes: str = ""
    ) -> Result[CommissionTransaction, AffiliateError]:
        """
        Move a commission transaction to ``new_status``.

        The write is conditioned on the status that was read, so two
        concurrent transitions of the same row cannot both succeed.
        """
        if new_status not in cls.ALLOWED_TRANSITIONS:
            return Err(validation_error("status", f"Unknown commission status: {new_status}"))

        try:
            txn = CommissionTransaction.objects.get(pk=transaction_id)
        except (CommissionTransaction.DoesNotExist, ValidationError, ValueError):
            return Err(AffiliateError(code=TRANSACTION_NOT_FOUND, message="Commission transaction not found"))

        old_status = txn.status
        if new_status not in cls.ALLOWED_TRANSITIONS[old_status]:
            return Err(
                AffiliateError(
                    code=INVALID_TRANSITION,
                    message=f"Invalid status transition from {old_status} to {new_status}",
                )
            )
        if new_status == "cancelled" and txn.returns.exclude(status="cancelled").exists():
            return Err(
                AffiliateError(
                    code=INVALID_TRANSITION,
                    message="Cancel the return recorded against this sale first",
                )
            )

        now = timezone.now()
        updates: dict[str, Any] = {"status": new_status, cls.TIMESTAMP_FIELDS[new_status]: now}
        if notes:
            updates["notes"] = f"{txn.notes}\n{notes}".strip()

        with transaction.atomic():
            claimed = CommissionTransaction.objects.filter(pk=txn.pk, status=old_status).update(**updates)
            if not claimed:
                txn.refresh_from_db(fields=["status"])
                return Err(
                    AffiliateError(
                        code=INVALID_TRANSITION,
                        message=f"Transaction changed concurrently (now {txn.status})",
                        retryable=True,
                    )
                )

            creator_id = str(txn.creator_id)
            affects_tier = new_status in CommissionTransaction.QUALIFYING_STATUSES or old_status == "approved"
            transaction.on_commit(lambda: _after_settlement(creator_id, affects_tier))

        txn.refresh_from_db()
        logger.info(f"💰 [Commission] Transaction {txn.order_id} moved {old_status} -> {new_status}")
        return Ok(txn)

    @classmethod
    def approve_many(cls, transaction_ids: list[Any]) -> BulkTransitionResult:
        """Approve a batch of pending transactions, one atomic transition each."""
        succeeded = 0
        errors: list[str] = []
        for transaction_id in transaction_ids:
            result = cls.update_status(transaction_id, "approved")
            if result.is_ok():
                succeeded += 1
            else:
                errors.append(f"{transaction_id}: {result.unwrap_err().message}")

        if errors:
            logger.warning(f"⚠️ [Commission] Bulk approval: {succeeded} approved, {len(errors)} failed")
        return BulkTransitionResult(succeeded=succeeded, failed=len(errors), errors=errors)

    @staticmethod
    def _find_return(order_id: str) -> CommissionTransaction | None:
        return CommissionTransaction.objects.filter(order_id=order_id, type="return").first()

    @classmethod
    def record_return(
        cls, order_id: Any, return_amount: Any, reason: str = ""
    ) -> Result[ReturnOutcome, AffiliateError]:
        """
        Claw back commission for a returned order.

        Writes an approved ``return`` row linked to the sale, with the returned
        amount and a prorated share of the sale's commission, both negative.
        One return is recorded per order; a replay hands back the existing row.
        """
        if not isinstance(order_id, str) or not order_id.strip():
            return Err(validation_error("order_id", "Order id is required"))
        amount = parse_money(return_amount)
        if amount is None or amount == 0:
            return Err(validation_error("return_amount", "Return amount must be a positive amount with 2 decimals"))

        existing = cls._find_return(order_id)
        if existing is not None:
            logger.info(f"🔁 [Commission] Return for order {order_id} already recorded as {existing.pk}")
            return Ok(ReturnOutcome(status="already_tracked", transaction=existing))

        try:
            with transaction.atomic():
                sale = CommissionTransaction.objects.select_for_update().filter(order_id=order_id, type="sale").first()
                if sale is None:
                    return Err(
                        AffiliateError(code=TRANSACTION_NOT_FOUND, message="No commission recorded for this order")
                    )
                if sale.status not in CommissionTransaction.QUALIFYING_STATUSES:
                    return Err(
                        AffiliateError(
                            code=INVALID_TRANSITION,
                            message=f"Cannot return a {sale.status} sale; only approved or paid sales are returned",
                        )
                    )
                if amount > sale.order_amount:
                    return Err(validation_error("return_amount", "Return amount exceeds the order amount"))

                clawback = (sale.commission_amount * amount / sale.order_amount).quantize(CENT, rounding=ROUND_HALF_UP)
                now = timezone.now()
                txn = CommissionTransaction.objects.create(
                    creator_id=sale.creator_id,
                    link_id=sale.link_id,
                    parent=sale,
                    order_id=order_id,
                    commission_rate=sale.commission_rate,
                    order_amount=-amount,
                    commission_amount=-clawback,
                    status="approved",
                    type="return",
                    notes=reason or "",
                    created_at=now,
                    processed_at=now,
                )
                creator_id = str(sale.creator_id)
                transaction.on_commit(lambda: _after_settlement(creator_id, True))
        except IntegrityError:
            winner = cls._find_return(order_id)
            if winner is None:
                logger.error(f"🔥 [Commission] Unexplained integrity conflict recording return for {order_id}")
                return Err(
                    AffiliateError(
                        code=INTEGRITY_CONFLICT,
                        message="Conflicting write while recording the return",
                        retryable=True,
                    )
                )
            logger.info(f"🔁 [Commission] Concurrent return for order {order_id}, returning {winner.pk}")
            return Ok(ReturnOutcome(status="already_tracked", transaction=winner))

        logger.info(f"↩️ [Commission] Return on order {order_id}: {amount} returned, {clawback} clawed back")
        return Ok(ReturnOutcome(status="recorded", transaction=txn))


def _after_settlement(creator_id: str, affects_tier: bool) -> None:
    """Post-commit follow-up: tier recompute first, then the metrics rebuild."""
    try:
        if affects_tier:
            TierService.recompute_tier(creator_id)
        LedgerService.record_metrics(creator_id)
    except Exception:
        logger.exception(f"🔥 [Commission] Post-settlement refresh failed for creator {creator_id}")
