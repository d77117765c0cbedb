"""
Centralized affiliate engine configuration.

Every tunable lives in the ``AFFILIATES`` settings dict and is read at call
time, so ``override_settings`` in tests and per-environment settings files
both take effect without a restart.
"""

import logging
import os
from datetime import timedelta
from typing import Any

from django.conf import settings

logger = logging.getLogger(__name__)

# ===============================================================================
# DEFAULTS
# ===============================================================================

DEFAULTS: dict[str, Any] = {
    "ATTRIBUTION_WINDOW_DAYS": 30,
    "DUPLICATE_CLICK_WINDOW_MINUTES": 60,
    "TIER_VOLUME_WINDOW_DAYS": 30,
    "LINK_CODE_LENGTH": 12,
    "CODE_GENERATION_MAX_ATTEMPTS": 10,
    "SHORT_LINK_BASE_URL": "https://example.com/r",
    "ATTRIBUTION_COOKIE_NAME": "aff_session",
    "FALLBACK_REDIRECT_URL": "/",
    "SERVICE_TOKEN": os.environ.get("AFFILIATE_SERVICE_TOKEN", ""),
}

# ===============================================================================
# HELPER: SAFE VALUE PARSING
# ===============================================================================


def _get_setting(key: str) -> Any:
    """Read one key from settings.AFFILIATES, falling back to DEFAULTS."""
    overrides = getattr(settings, "AFFILIATES", None) or {}
    return overrides.get(key, DEFAULTS[key])


def _get_positive_int(key: str) -> int:
    """Get a positive integer from settings with validation."""
    value = _get_setting(key)
    try:
        result = int(value)
    except (TypeError, ValueError):
        logger.warning(f"⚠️ [AffiliatesConfig] Invalid value for {key}: {value!r}, using default")
        result = int(DEFAULTS[key])
    return max(1, result)  # Ensure at least 1


# ===============================================================================
# WINDOWS
# ===============================================================================


def get_attribution_window() -> timedelta:
    """Maximum age of a click that can still be credited with a conversion."""
    return timedelta(days=_get_positive_int("ATTRIBUTION_WINDOW_DAYS"))


def get_duplicate_click_window() -> timedelta:
    """Window in which an identical (ip, user agent) click is not unique."""
    return timedelta(minutes=_get_positive_int("DUPLICATE_CLICK_WINDOW_MINUTES"))


def get_tier_volume_window() -> timedelta:
    """Trailing window summed by the tier engine (rolling, not calendar month)."""
    return timedelta(days=_get_positive_int("TIER_VOLUME_WINDOW_DAYS"))


# ===============================================================================
# CODE GENERATION
# ===============================================================================


def get_link_code_length() -> int:
    return _get_positive_int("LINK_CODE_LENGTH")


def get_code_generation_max_attempts() -> int:
    return _get_positive_int("CODE_GENERATION_MAX_ATTEMPTS")


# ===============================================================================
# EDGE INTEGRATION
# ===============================================================================


def get_short_link_base_url() -> str:
    return str(_get_setting("SHORT_LINK_BASE_URL")).rstrip("/")


def get_attribution_cookie_name() -> str:
    return str(_get_setting("ATTRIBUTION_COOKIE_NAME"))


def get_fallback_redirect_url() -> str:
    return str(_get_setting("FALLBACK_REDIRECT_URL"))


def get_service_token() -> str:
    """Shared secret presented by the HTTP edge; empty disables token auth."""
    return str(_get_setting("SERVICE_TOKEN") or "")
