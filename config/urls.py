"""
URL configuration for the creator affiliate platform.
"""

from django.contrib import admin
from django.urls import include, path

# ===============================================================================
# MAIN URL PATTERNS
# ===============================================================================

urlpatterns = [
    # Staff admin (creators, links, ledger)
    path("admin/", admin.site.urls),
    # API endpoints
    path("api/", include("apps.api.urls")),
    # Short link redirect edge
    path("r/", include("apps.affiliates.urls")),
]
