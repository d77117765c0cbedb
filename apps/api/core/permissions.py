# ===============================================================================
# API PERMISSIONS CLASSES 🔐
# ===============================================================================

import hmac
from typing import Any

from rest_framework import permissions
from rest_framework.request import Request

from apps.affiliates import config

SERVICE_TOKEN_HEADER = 'X-Affiliate-Service-Token'


def has_valid_service_token(request: Request) -> bool:
    """Constant-time check of the shared edge token; an unset token never matches."""
    expected = config.get_service_token()
    presented = request.headers.get(SERVICE_TOKEN_HEADER, '')
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


class IsStaffUser(permissions.BasePermission):
    """Authenticated staff members only (admin dashboards, reporting)."""

    def has_permission(self, request: Request, view: Any) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_staff)


class IsAffiliateServiceOrStaff(permissions.BasePermission):
    """
    Internal callers (HTTP edge, checkout flow) presenting the service token,
    or authenticated staff members.
    """

    def has_permission(self, request: Request, view: Any) -> bool:
        if has_valid_service_token(request):
            return True
        return IsStaffUser().has_permission(request, view)
