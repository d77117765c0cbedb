"""
Result payloads and error taxonomy for the affiliate engine.

Services never raise across their boundary: every operation returns
``Ok(payload)`` or ``Err(AffiliateError)``. Attribution misses and idempotent
replays are successful outcomes, not errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from .models import CommissionTransaction

# ===============================================================================
# ERROR CODES
# ===============================================================================

VALIDATION_ERROR = "VALIDATION_ERROR"
CREATOR_NOT_FOUND = "CREATOR_NOT_FOUND"
CREATOR_NOT_ELIGIBLE = "CREATOR_NOT_ELIGIBLE"
ALIAS_TAKEN = "ALIAS_TAKEN"
CODE_GENERATION_EXHAUSTED = "CODE_GENERATION_EXHAUSTED"
LINK_UNAVAILABLE = "LINK_UNAVAILABLE"
LINK_NOT_FOUND = "LINK_NOT_FOUND"
TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
INVALID_TRANSITION = "INVALID_TRANSITION"
INTEGRITY_CONFLICT = "INTEGRITY_CONFLICT"


@dataclass(frozen=True)
class AffiliateError:
    """
    Typed failure returned by affiliate services.

    Attributes:
        code: Machine-readable error code (one of the constants above).
        message: Human-readable explanation.
        field: Input field that failed validation, if any.
        retryable: Whether the caller may retry the same request later.
    """

    code: str
    message: str
    field: str = ""
    retryable: bool = False

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


def validation_error(field_name: str, message: str) -> AffiliateError:
    return AffiliateError(code=VALIDATION_ERROR, message=message, field=field_name)


# ===============================================================================
# SUCCESS PAYLOADS
# ===============================================================================


@dataclass(frozen=True)
class ClickResult:
    """Outcome of recording a click; session_id goes into the client token."""

    session_id: str
    target_url: str
    is_unique: bool
    link_id: str
    expires_at: datetime


AttributionStatus = Literal["attributed", "already_tracked", "no_attribution"]


@dataclass(frozen=True)
class AttributionOutcome:
    """
    Outcome of an attribution attempt.

    ``no_attribution`` is the expected result for organic orders and carries a
    reason for diagnostics; ``already_tracked`` returns the pre-existing
    transaction untouched.
    """

    status: AttributionStatus
    transaction: CommissionTransaction | None = None
    reason: str = ""

    @property
    def is_attributed(self) -> bool:
        return self.status == "attributed"


ReturnStatus = Literal["recorded", "already_tracked"]


@dataclass(frozen=True)
class ReturnOutcome:
    """Outcome of recording an order return; replays hand back the first return row."""

    status: ReturnStatus
    transaction: CommissionTransaction


@dataclass(frozen=True)
class CommissionTier:
    """One bracket of the tier table."""

    name: str
    min_volume: Decimal
    rate: Decimal


@dataclass(frozen=True)
class TierResult:
    """Result of a tier recomputation."""

    tier: str
    rate: Decimal
    changed: bool
    monthly_volume: Decimal
    previous_rate: Decimal


@dataclass(frozen=True)
class CreatorMetrics:
    """Cached aggregate block stored on the creator record."""

    total_clicks: int = 0
    total_sales: int = 0
    total_commission: Decimal = Decimal("0.00")
    conversion_rate: Decimal = Decimal("0.00")
    last_sale_date: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_clicks": self.total_clicks,
            "total_sales": self.total_sales,
            "total_commission": self.total_commission,
            "conversion_rate": self.conversion_rate,
            "last_sale_date": self.last_sale_date,
        }


@dataclass(frozen=True)
class PayoutEligibility:
    """Read-only view of what a creator could be paid out."""

    creator_id: str
    total_earnings: Decimal
    available_for_payout: Decimal
    minimum_payout: Decimal
    is_eligible: bool
    transaction_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BulkTransitionResult:
    """Counts for a batch status transition."""

    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TopCreator:
    """One row of the program leaderboard."""

    creator_id: str
    creator_code: str
    display_name: str
    total_commission: Decimal
    total_sales: int


@dataclass(frozen=True)
class ProgramSummary:
    """
    Program-wide commission totals for a reporting window.

    ``total_commission`` and ``total_paid`` are net of returns inside the
    window; ``pending_commission`` and ``active_creators`` are current values.
    """

    date_from: datetime
    date_to: datetime
    total_commission: Decimal
    total_paid: Decimal
    pending_commission: Decimal
    active_creators: int
    top_creators: list[TopCreator] = field(default_factory=list)
