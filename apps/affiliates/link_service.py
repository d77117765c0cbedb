"""
Referral link registry.

Generated link codes and custom aliases share one case-insensitive lookup
namespace. Code generation rejects any candidate that collides with an
existing code or alias, retries on a lost insert race, and gives up after a
bounded number of attempts instead of ever returning a colliding code.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from datetime import datetime
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from . import config
from .models import Creator, ReferralLink
from .types import (
    ALIAS_TAKEN,
    CODE_GENERATION_EXHAUSTED,
    CREATOR_NOT_ELIGIBLE,
    CREATOR_NOT_FOUND,
    LINK_NOT_FOUND,
    AffiliateError,
    validation_error,
)

logger = logging.getLogger(__name__)

LINK_CODE_ALPHABET = string.ascii_letters + string.digits
ALIAS_PATTERN = re.compile(r"[A-Za-z0-9_-]{3,20}")

_url_validator = URLValidator(schemes=["http", "https"])


def generate_link_code(length: int | None = None) -> str:
    """Random code from the 62-character alphabet."""
    length = length or config.get_link_code_length()
    return "".join(secrets.choice(LINK_CODE_ALPHABET) for _ in range(length))


def key_in_use(key: str) -> bool:
    """True if ``key`` matches any link code or alias, ignoring case."""
    return ReferralLink.objects.filter(Q(link_code__iexact=key) | Q(custom_alias__iexact=key)).exists()


class LinkService:
    """Create, resolve and disable referral links."""

    @classmethod
    def create_link(  # noqa: PLR0913
        cls,
        creator_id: Any,
        original_url: str,
        custom_alias: str | None = None,
        title: str = "",
        expires_at: datetime | None = None,
        description: str = "",
    ) -> Result[ReferralLink, AffiliateError]:
        """Create a link for an approved creator."""
        if not creator_id:
            return Err(validation_error("creator_id", "Creator id is required"))
        try:
            creator = Creator.objects.get(pk=creator_id)
        except (ValidationError, ValueError):
            return Err(validation_error("creator_id", "Creator id is not a valid UUID"))
        except Creator.DoesNotExist:
            return Err(AffiliateError(code=CREATOR_NOT_FOUND, message="Creator not found", field="creator_id"))

        if not creator.is_approved:
            return Err(
                AffiliateError(
                    code=CREATOR_NOT_ELIGIBLE,
                    message=f"Creator is {creator.status}; only approved creators can create links",
                )
            )

        invalid = cls._validate_link_fields(original_url, custom_alias, expires_at)
        if invalid is not None:
            return Err(invalid)

        alias = custom_alias or None
        if alias is not None and key_in_use(alias):
            return Err(AffiliateError(code=ALIAS_TAKEN, message=f"'{alias}' is already in use", field="custom_alias"))

        max_attempts = config.get_code_generation_max_attempts()
        for attempt in range(1, max_attempts + 1):
            code = generate_link_code()
            if key_in_use(code):
                logger.debug(f"🔗 [Links] Code candidate collided on attempt {attempt}")
                continue

            try:
                with transaction.atomic():
                    link = ReferralLink.objects.create(
                        creator=creator,
                        link_code=code,
                        custom_alias=alias,
                        original_url=original_url,
                        title=title,
                        description=description,
                        expires_at=expires_at,
                    )
            except IntegrityError:
                # The alias can only lose its race once; the code is retried
                if alias is not None and key_in_use(alias):
                    return Err(
                        AffiliateError(code=ALIAS_TAKEN, message=f"'{alias}' is already in use", field="custom_alias")
                    )
                logger.debug(f"🔗 [Links] Code insert lost a race on attempt {attempt}")
                continue

            logger.info(f"✅ [Links] Created link {link.link_code} for creator {creator.creator_code}")
            return Ok(link)

        logger.error(f"🔥 [Links] Code generation exhausted after {max_attempts} attempts")
        return Err(
            AffiliateError(
                code=CODE_GENERATION_EXHAUSTED,
                message="Could not generate a unique link code",
                retryable=True,
            )
        )

    @staticmethod
    def _validate_link_fields(
        original_url: str, custom_alias: str | None, expires_at: datetime | None
    ) -> AffiliateError | None:
        if not original_url:
            return validation_error("original_url", "Target URL is required")
        try:
            _url_validator(original_url)
        except ValidationError:
            return validation_error("original_url", "Target URL must be a valid http(s) URL")

        if custom_alias and not ALIAS_PATTERN.fullmatch(custom_alias):
            return validation_error(
                "custom_alias", "Alias must be 3-20 characters: letters, digits, hyphen or underscore"
            )

        if expires_at is not None and expires_at <= timezone.now():
            return validation_error("expires_at", "Expiry must be in the future")
        return None

    @staticmethod
    def resolve(code_or_alias: str) -> ReferralLink | None:
        """Exact link code first, then case-insensitive alias."""
        if not code_or_alias:
            return None
        link = ReferralLink.objects.select_related("creator").filter(link_code=code_or_alias).first()
        if link is None:
            link = ReferralLink.objects.select_related("creator").filter(custom_alias__iexact=code_or_alias).first()
        return link

    @staticmethod
    def deactivate_link(link_id: Any) -> Result[ReferralLink, AffiliateError]:
        """Soft-disable a link; existing clicks stay attributable."""
        try:
            link = ReferralLink.objects.get(pk=link_id)
        except (ReferralLink.DoesNotExist, ValidationError, ValueError):
            return Err(AffiliateError(code=LINK_NOT_FOUND, message="Referral link not found"))

        if link.is_active:
            ReferralLink.objects.filter(pk=link.pk).update(is_active=False, updated_at=timezone.now())
            link.refresh_from_db()
            logger.info(f"🔗 [Links] Deactivated link {link.link_code}")
        return Ok(link)
