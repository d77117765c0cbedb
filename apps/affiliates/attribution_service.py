"""
Conversion attribution.

Turns an "order completed" event into at most one commission transaction.
The external order id is the idempotency key: the unique constraint on
CommissionTransaction (order_id, type) settles concurrent deliveries of the
same order, the existence check before it is only a fast path.

Within one atomic unit the resolver inserts the transaction, claims the click
with a conditional UPDATE (``converted=False`` filter, affected row count is
the signal) and bumps the link's conversion counter. If the click was claimed
by someone else in the meantime the whole unit rolls back.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from . import config
from .commission_service import CommissionCalculator, parse_money
from .ledger_service import LedgerService
from .models import CommissionTransaction, ReferralClick, ReferralLink
from .types import INTEGRITY_CONFLICT, AffiliateError, AttributionOutcome, validation_error

logger = logging.getLogger(__name__)

ORDER_ID_MAX_LENGTH = 100


class ClickAlreadyClaimed(Exception):
    """Raised inside the attribution unit to roll it back when the click claim fails."""


# ===============================================================================
# CLICK LOOKUP STRATEGIES
# ===============================================================================

ClickLookup = Callable[[str, datetime], ReferralClick | None]


def _click_by_session(session_id: str, now: datetime) -> ReferralClick | None:
    return ReferralClick.objects.select_related("creator").filter(session_id=session_id, converted=False).first()


def _latest_click_on_link(link_id: str, now: datetime) -> ReferralClick | None:
    return (
        ReferralClick.objects.select_related("creator")
        .filter(link_id=link_id, converted=False, clicked_at__gte=now - config.get_attribution_window())
        .order_by("-clicked_at")
        .first()
    )


# Priority order; only the first identifier the caller supplied is consulted
CLICK_LOOKUP_STRATEGIES: tuple[tuple[str, ClickLookup], ...] = (
    ("session_id", _click_by_session),
    ("link_id", _latest_click_on_link),
)


# ===============================================================================
# VALIDATION
# ===============================================================================


def _validate_request(
    order_id: Any, order_amount: Any, link_id: Any
) -> Result[tuple[str, Decimal], AffiliateError]:
    if not isinstance(order_id, str) or not order_id.strip():
        return Err(validation_error("order_id", "Order id is required"))
    if len(order_id) > ORDER_ID_MAX_LENGTH:
        return Err(validation_error("order_id", f"Order id must be at most {ORDER_ID_MAX_LENGTH} characters"))

    amount = parse_money(order_amount)
    if amount is None:
        return Err(validation_error("order_amount", "Order amount must be a non-negative amount with 2 decimals"))

    if link_id:
        try:
            uuid.UUID(str(link_id))
        except ValueError:
            return Err(validation_error("link_id", "Link id is not a valid UUID"))

    return Ok((order_id, amount))


# ===============================================================================
# ATTRIBUTION RESOLVER
# ===============================================================================


class AttributionService:
    """Idempotent conversion attribution."""

    @staticmethod
    def _find_existing_transaction(order_id: str) -> CommissionTransaction | None:
        return CommissionTransaction.objects.filter(order_id=order_id, type="sale").first()

    @staticmethod
    def _find_click(identifiers: dict[str, str | None], now: datetime) -> ReferralClick | None:
        for name, lookup in CLICK_LOOKUP_STRATEGIES:
            identifier = identifiers.get(name)
            if not identifier:
                continue
            # A supplied token that yields nothing never falls through to a weaker hint
            click = lookup(identifier, now)
            if click is None:
                logger.debug(f"🛈 [Attribution] No open click for {name}")
                return None
            if not click.is_within_attribution_window(now):
                logger.debug(f"⏳ [Attribution] Click {click.pk} found by {name} is outside the window")
                return None
            logger.debug(f"🎯 [Attribution] Click {click.pk} matched by {name}")
            return click
        return None

    @classmethod
    def attribute_conversion(
        cls,
        order_id: str,
        order_amount: Any,
        session_id: str | None = None,
        link_id: str | None = None,
    ) -> Result[AttributionOutcome, AffiliateError]:
        """
        Attribute a completed order to the click that led to it.

        Returns ``attributed`` with the new pending transaction,
        ``already_tracked`` with the existing one when the order was seen
        before, or ``no_attribution`` when no eligible click exists.
        """
        validated = _validate_request(order_id, order_amount, link_id)
        if validated.is_err():
            return validated
        order_id, amount = validated.unwrap()

        existing = cls._find_existing_transaction(order_id)
        if existing is not None:
            logger.info(f"🔁 [Attribution] Order {order_id} already tracked as {existing.pk}")
            return Ok(AttributionOutcome(status="already_tracked", transaction=existing))

        now = timezone.now()
        click = cls._find_click({"session_id": session_id, "link_id": str(link_id) if link_id else None}, now)
        if click is None:
            logger.debug(f"🛈 [Attribution] No eligible click for order {order_id}")
            return Ok(AttributionOutcome(status="no_attribution", reason="no_eligible_click"))

        creator = click.creator
        rate = creator.commission_rate
        commission = CommissionCalculator.calculate(amount, rate)

        try:
            with transaction.atomic():
                txn = CommissionTransaction.objects.create(
                    creator=creator,
                    link_id=click.link_id,
                    click=click,
                    order_id=order_id,
                    commission_rate=rate,
                    order_amount=amount,
                    commission_amount=commission,
                    status="pending",
                    type="sale",
                    created_at=now,
                )
                claimed = ReferralClick.objects.filter(pk=click.pk, converted=False).update(
                    converted=True,
                    order_id=order_id,
                    conversion_value=amount,
                    converted_at=now,
                )
                if not claimed:
                    raise ClickAlreadyClaimed(str(click.pk))
                ReferralLink.objects.filter(pk=click.link_id).update(conversion_count=F("conversion_count") + 1)
        except ClickAlreadyClaimed:
            logger.debug(f"🛈 [Attribution] Click {click.pk} was claimed concurrently, order {order_id} unattributed")
            return Ok(AttributionOutcome(status="no_attribution", reason="click_already_converted"))
        except IntegrityError:
            return cls._resolve_conflict(order_id, click)

        creator_id = str(creator.pk)
        transaction.on_commit(lambda: _refresh_metrics(creator_id))

        logger.info(
            f"✅ [Attribution] Order {order_id} attributed to creator {creator.creator_code}: "
            f"{commission} at {rate}%"
        )
        return Ok(AttributionOutcome(status="attributed", transaction=txn))

    @classmethod
    def _resolve_conflict(cls, order_id: str, click: ReferralClick) -> Result[AttributionOutcome, AffiliateError]:
        """A unique constraint rejected the insert: another delivery won the order or the click."""
        winner = cls._find_existing_transaction(order_id)
        if winner is not None:
            logger.info(f"🔁 [Attribution] Concurrent delivery of order {order_id}, returning {winner.pk}")
            return Ok(AttributionOutcome(status="already_tracked", transaction=winner))

        if CommissionTransaction.objects.filter(click_id=click.pk).exists():
            logger.debug(f"🛈 [Attribution] Click {click.pk} already converted, order {order_id} unattributed")
            return Ok(AttributionOutcome(status="no_attribution", reason="click_already_converted"))

        logger.error(f"🔥 [Attribution] Unexplained integrity conflict for order {order_id}")
        return Err(
            AffiliateError(
                code=INTEGRITY_CONFLICT,
                message="Conflicting write while recording the conversion",
                retryable=True,
            )
        )


def _refresh_metrics(creator_id: str) -> None:
    try:
        LedgerService.record_metrics(creator_id)
    except Exception:
        logger.exception(f"🔥 [Attribution] Metrics refresh failed for creator {creator_id}")
