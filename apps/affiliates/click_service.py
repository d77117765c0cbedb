"""
Click recording and duplicate suppression.

A click on an available link either creates a new ReferralClick with a fresh
attribution token, or, when the same visitor clicked the same link within the
duplicate window and that click has not converted yet, reuses that click's
token. Link counters only ever move through F() expressions. Creator metrics
are left to the ledger, which recounts clicks on its next rebuild.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import re
import secrets
from typing import Any

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from . import config
from .link_service import LinkService
from .models import ReferralClick, ReferralLink
from .types import LINK_UNAVAILABLE, AffiliateError, ClickResult, validation_error

logger = logging.getLogger(__name__)

UTM_FIELDS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")
UTM_MAX_LENGTH = 100

# ===============================================================================
# VISITOR CLASSIFICATION
# ===============================================================================

_TABLET_RE = re.compile(r"ipad|tablet|kindle|playbook|silk|(android(?!.*mobile))", re.IGNORECASE)
_MOBILE_RE = re.compile(r"mobi|iphone|ipod|android|blackberry|opera mini|iemobile|windows phone", re.IGNORECASE)

# Order matters: Edge and Opera also announce Chrome, Chrome also announces Safari
_BROWSERS: tuple[tuple[str, str], ...] = (
    ("edg", "Edge"),
    ("opr", "Opera"),
    ("opera", "Opera"),
    ("firefox", "Firefox"),
    ("chrome", "Chrome"),
    ("crios", "Chrome"),
    ("safari", "Safari"),
    ("msie", "Internet Explorer"),
    ("trident", "Internet Explorer"),
)

_OPERATING_SYSTEMS: tuple[tuple[str, str], ...] = (
    ("windows", "Windows"),
    ("iphone", "iOS"),
    ("ipad", "iOS"),
    ("android", "Android"),
    ("mac os", "macOS"),
    ("cros", "ChromeOS"),
    ("linux", "Linux"),
)


def detect_device_type(user_agent: str) -> str:
    if _TABLET_RE.search(user_agent or ""):
        return "tablet"
    if _MOBILE_RE.search(user_agent or ""):
        return "mobile"
    return "desktop"


def _first_match(user_agent: str, table: tuple[tuple[str, str], ...]) -> str:
    lowered = (user_agent or "").lower()
    for needle, name in table:
        if needle in lowered:
            return name
    return "Unknown"


def detect_browser(user_agent: str) -> str:
    return _first_match(user_agent, _BROWSERS)


def detect_os(user_agent: str) -> str:
    return _first_match(user_agent, _OPERATING_SYSTEMS)


def visitor_fingerprint(ip_address: str, user_agent: str) -> str:
    """sha256 of ``ip|user_agent``; used only for duplicate suppression."""
    return hashlib.sha256(f"{ip_address}|{user_agent}".encode()).hexdigest()


def _clean_utm(utm: dict[str, Any] | None) -> dict[str, str]:
    utm = utm or {}
    return {name: str(utm.get(name) or "")[:UTM_MAX_LENGTH] for name in UTM_FIELDS}


# ===============================================================================
# CLICK RECORDER
# ===============================================================================


class ClickService:
    """Records clicks and hands out attribution tokens."""

    @classmethod
    def record_click(
        cls,
        code_or_alias: str,
        ip_address: str,
        user_agent: str = "",
        referrer: str = "",
        utm: dict[str, Any] | None = None,
    ) -> Result[ClickResult, AffiliateError]:
        """Record a click through ``code_or_alias`` and return its attribution token."""
        try:
            ipaddress.ip_address(ip_address)
        except ValueError:
            return Err(validation_error("ip_address", "Invalid IP address"))

        link = LinkService.resolve(code_or_alias)
        now = timezone.now()
        if link is None or not link.is_available(now) or not link.creator.is_approved:
            logger.debug(f"🔗 [Clicks] Link '{code_or_alias}' unavailable for new clicks")
            return Err(AffiliateError(code=LINK_UNAVAILABLE, message="Referral link is unavailable"))

        user_agent = user_agent or ""
        fingerprint = visitor_fingerprint(ip_address, user_agent)

        with transaction.atomic():
            duplicate = (
                ReferralClick.objects.filter(
                    link=link,
                    fingerprint=fingerprint,
                    converted=False,
                    clicked_at__gte=now - config.get_duplicate_click_window(),
                )
                .order_by("-clicked_at")
                .first()
            )

            if duplicate is not None:
                ReferralLink.objects.filter(pk=link.pk).update(
                    click_count=F("click_count") + 1,
                    last_clicked_at=now,
                )
                click = duplicate
                is_unique = False
            else:
                click = ReferralClick.objects.create(
                    link=link,
                    creator_id=link.creator_id,
                    session_id=secrets.token_urlsafe(32),
                    ip_address=ip_address,
                    user_agent=user_agent,
                    fingerprint=fingerprint,
                    referrer=(referrer or "")[:2048],
                    device_type=detect_device_type(user_agent),
                    browser=detect_browser(user_agent),
                    os=detect_os(user_agent),
                    clicked_at=now,
                    **_clean_utm(utm),
                )
                ReferralLink.objects.filter(pk=link.pk).update(
                    click_count=F("click_count") + 1,
                    unique_click_count=F("unique_click_count") + 1,
                    last_clicked_at=now,
                )
                is_unique = True

        logger.debug(f"👆 [Clicks] {'Unique' if is_unique else 'Repeat'} click on {link.link_code}")
        return Ok(
            ClickResult(
                session_id=click.session_id,
                target_url=link.original_url,
                is_unique=is_unique,
                link_id=str(link.pk),
                expires_at=click.clicked_at + config.get_attribution_window(),
            )
        )
