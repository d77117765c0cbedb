"""
Creator onboarding, status lifecycle and manual rate overrides.
"""

from __future__ import annotations

import logging
import secrets
import string
from decimal import Decimal
from typing import Any, ClassVar

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from . import config
from .commission_service import to_decimal
from .models import (
    DEFAULT_MINIMUM_PAYOUT,
    MAX_COMMISSION_RATE,
    MIN_COMMISSION_RATE,
    Creator,
    TierChangeLog,
)
from .types import (
    CODE_GENERATION_EXHAUSTED,
    CREATOR_NOT_FOUND,
    INVALID_TRANSITION,
    AffiliateError,
    validation_error,
)

logger = logging.getLogger(__name__)

CREATOR_CODE_ALPHABET = string.ascii_uppercase + string.digits
CREATOR_CODE_LENGTH = 8


def generate_creator_code() -> str:
    return "".join(secrets.choice(CREATOR_CODE_ALPHABET) for _ in range(CREATOR_CODE_LENGTH))


class CreatorService:
    """Creator lifecycle operations."""

    ALLOWED_TRANSITIONS: ClassVar[dict[str, tuple[str, ...]]] = {
        "pending": ("approved", "inactive"),
        "approved": ("suspended", "inactive"),
        "suspended": ("approved", "inactive"),
        "inactive": ("approved",),
    }

    @classmethod
    def apply(
        cls,
        display_name: str,
        email: str,
        minimum_payout: Any = DEFAULT_MINIMUM_PAYOUT,
        notes: str = "",
    ) -> Result[Creator, AffiliateError]:
        """Enroll a new creator in pending state with a generated creator code."""
        if not display_name or not display_name.strip():
            return Err(validation_error("display_name", "Display name is required"))
        try:
            validate_email(email)
        except ValidationError:
            return Err(validation_error("email", "Enter a valid email address"))
        try:
            payout = to_decimal(minimum_payout)
        except ValueError:
            return Err(validation_error("minimum_payout", "Minimum payout must be a number"))
        if not payout.is_finite() or payout < 0:
            return Err(validation_error("minimum_payout", "Minimum payout cannot be negative"))

        max_attempts = config.get_code_generation_max_attempts()
        for _attempt in range(max_attempts):
            code = generate_creator_code()
            if Creator.objects.filter(creator_code=code).exists():
                continue
            try:
                with transaction.atomic():
                    creator = Creator.objects.create(
                        creator_code=code,
                        display_name=display_name.strip(),
                        email=email,
                        minimum_payout=payout,
                        notes=notes,
                    )
            except IntegrityError:
                continue

            logger.info(f"✅ [Creators] New creator application {creator.creator_code} ({creator.email})")
            return Ok(creator)

        logger.error(f"🔥 [Creators] Creator code generation exhausted after {max_attempts} attempts")
        return Err(
            AffiliateError(
                code=CODE_GENERATION_EXHAUSTED,
                message="Could not generate a unique creator code",
                retryable=True,
            )
        )

    @classmethod
    @transaction.atomic
    def change_status(cls, creator_id: Any, new_status: str, notes: str = "") -> Result[Creator, AffiliateError]:
        """Move a creator through the onboarding lifecycle."""
        try:
            creator = Creator.objects.select_for_update().get(pk=creator_id)
        except (Creator.DoesNotExist, ValidationError, ValueError):
            return Err(AffiliateError(code=CREATOR_NOT_FOUND, message="Creator not found"))

        old_status = creator.status
        if new_status not in cls.ALLOWED_TRANSITIONS.get(old_status, ()):
            return Err(
                AffiliateError(
                    code=INVALID_TRANSITION,
                    message=f"Invalid status transition from {old_status} to {new_status}",
                )
            )

        now = timezone.now()
        creator.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == "approved":
            creator.approved_at = now
            update_fields.append("approved_at")
        elif new_status == "suspended":
            creator.suspended_at = now
            update_fields.append("suspended_at")
        if notes:
            creator.notes = f"{creator.notes}\n{notes}".strip()
            update_fields.append("notes")
        creator.save(update_fields=update_fields)

        logger.info(f"👤 [Creators] Creator {creator.creator_code} moved {old_status} -> {new_status}")
        return Ok(creator)

    @staticmethod
    @transaction.atomic
    def override_commission_rate(creator_id: Any, rate: Any, reason: str = "") -> Result[Creator, AffiliateError]:
        """Set a manual rate; the tier engine replaces it on its next rate change."""
        try:
            new_rate = to_decimal(rate)
        except ValueError:
            return Err(validation_error("rate", "Rate must be a number"))
        if not new_rate.is_finite() or not MIN_COMMISSION_RATE <= new_rate <= MAX_COMMISSION_RATE:
            return Err(
                validation_error("rate", f"Rate must be between {MIN_COMMISSION_RATE} and {MAX_COMMISSION_RATE}")
            )
        new_rate = new_rate.quantize(Decimal("0.01"))

        try:
            creator = Creator.objects.select_for_update().get(pk=creator_id)
        except (Creator.DoesNotExist, ValidationError, ValueError):
            return Err(AffiliateError(code=CREATOR_NOT_FOUND, message="Creator not found"))

        previous_rate = creator.commission_rate
        creator.commission_rate = new_rate
        creator.rate_overridden = True
        creator.save(update_fields=["commission_rate", "rate_overridden", "updated_at"])

        TierChangeLog.objects.create(
            creator=creator,
            previous_rate=previous_rate,
            new_rate=new_rate,
            source="admin",
            reason=reason,
        )
        logger.info(f"🛠️ [Creators] Rate for {creator.creator_code} overridden: {previous_rate}% -> {new_rate}%")
        return Ok(creator)
