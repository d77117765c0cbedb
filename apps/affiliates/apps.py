"""
Affiliates app configuration.
"""

from django.apps import AppConfig


class AffiliatesConfig(AppConfig):
    """Configuration for the creator affiliate engine."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.affiliates"
    verbose_name = "Creator Affiliates"
