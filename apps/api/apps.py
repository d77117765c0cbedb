# ===============================================================================
# AFFILIATE API APP CONFIGURATION 🛠️
# ===============================================================================

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """
    Configuration for the centralized API app.

    Endpoints are thin: they validate input, call the affiliate services and
    map service error codes to HTTP statuses.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.api"
    label = "affiliate_api"
    verbose_name = "Affiliate Platform API"
