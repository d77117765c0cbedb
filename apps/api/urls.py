# ===============================================================================
# AFFILIATE API MAIN URLS 🚀
# ===============================================================================
#
# Central API routing. This file is the single entry point for all API endpoints.
#
# URL Structure:
#   /api/affiliates/  → Links, clicks, conversions, creator ledgers
#

from django.urls import include, path

from .affiliates import urls as affiliate_urls

app_name = 'api'

# ===============================================================================
# API ROUTING 📍
# ===============================================================================

urlpatterns = [
    path('affiliates/', include((affiliate_urls, 'affiliates'))),
]
