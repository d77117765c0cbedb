"""
Reference redirect edge for short links.

Records the click, hands the attribution token to the browser as a cookie and
redirects to the link target. Unavailable links fall back silently.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponseRedirect
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_GET

from apps.common.request_ip import get_safe_client_ip

from . import config
from .click_service import UTM_FIELDS, ClickService

logger = logging.getLogger(__name__)


@never_cache
@require_GET
def referral_redirect(request: HttpRequest, code: str) -> HttpResponseRedirect:
    """GET /r/<code>/ - record the click and redirect to the target URL."""
    result = ClickService.record_click(
        code,
        ip_address=get_safe_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer", ""),
        utm={name: request.GET.get(name, "") for name in UTM_FIELDS},
    )

    if result.is_err():
        logger.debug(f"🔗 [Redirect] {result.unwrap_err().code} for '{code}', using fallback")
        return HttpResponseRedirect(config.get_fallback_redirect_url())

    click = result.unwrap()
    response = HttpResponseRedirect(click.target_url)
    response.set_cookie(
        config.get_attribution_cookie_name(),
        click.session_id,
        max_age=int(config.get_attribution_window().total_seconds()),
        httponly=True,
        samesite="Lax",
        secure=request.is_secure(),
    )
    return response
