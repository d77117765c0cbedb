"""
Django settings for the creator affiliate platform - Base Configuration.
"""

import os
from pathlib import Path
from typing import Any

# ===============================================================================
# CORE DJANGO SETTINGS
# ===============================================================================

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Application definition
DJANGO_APPS: list[str] = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS: list[str] = [
    "rest_framework",
    "django_q",  # Async task processing
]

LOCAL_APPS: list[str] = [
    "apps.common",
    "apps.affiliates",  # 🔗 Referral links, attribution & commissions
    "apps.api",  # 🚀 Centralized API endpoints
]

INSTALLED_APPS: list[str] = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE: list[str] = [
    "apps.common.middleware.RequestIDMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ===============================================================================
# DATABASE CONFIGURATION
# ===============================================================================

DATABASES: dict[str, dict[str, Any]] = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "affiliates"),
        "USER": os.environ.get("DB_USER", "affiliates"),
        "PASSWORD": os.environ.get("DB_PASSWORD", "development_password"),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "CONN_MAX_AGE": 60,  # Database connection pooling
        "OPTIONS": {
            "application_name": "affiliate_platform",
        },
    }
}

# ===============================================================================
# INTERNATIONALIZATION & LOCALIZATION
# ===============================================================================

LANGUAGE_CODE = "en"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ===============================================================================
# STATIC FILES
# ===============================================================================

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ===============================================================================
# CACHE CONFIGURATION (Database-backed cache - no Redis needed) 💾
# ===============================================================================

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "django_cache_table",
        "KEY_PREFIX": "affiliates",
        "OPTIONS": {
            "MAX_ENTRIES": 10000,
            "CULL_FREQUENCY": 3,  # Delete 1/3 of cache when MAX_ENTRIES reached
        },
        "TIMEOUT": 300,
        "VERSION": 1,
    }
}

# ===============================================================================
# SESSION & COOKIE SETTINGS
# ===============================================================================

SESSION_ENGINE = "django.contrib.sessions.backends.db"
SESSION_COOKIE_AGE = 86400  # 24 hours
SESSION_COOKIE_HTTPONLY = True

CSRF_COOKIE_HTTPONLY = True
CSRF_TRUSTED_ORIGINS: list[str] = []

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = "DENY"

# ===============================================================================
# REST FRAMEWORK
# ===============================================================================

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        # Session auth for staff dashboards
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_THROTTLE_RATES": {
        "anon": "100/hour",
        "user": "1000/hour",
        # 🔒 SECURITY: Affiliate endpoint throttling
        "affiliate_click": "6000/min",  # Edge traffic, one call per redirect
        "affiliate_conversion": "600/min",  # Checkout order-completed events
        "affiliate_write": "60/min",  # Link creation, settlement
        "affiliate_read": "300/min",  # Dashboards
    },
}

# ===============================================================================
# CLIENT IP DETECTION
# ===============================================================================

# Only forwarding headers from these peers are trusted (single IPs or CIDRs)
IPWARE_TRUSTED_PROXY_LIST: list[str] = [
    proxy.strip() for proxy in os.environ.get("IPWARE_TRUSTED_PROXY_LIST", "").split(",") if proxy.strip()
]

# ===============================================================================
# AFFILIATE ENGINE CONFIGURATION 🔗
# ===============================================================================

AFFILIATES: dict[str, Any] = {
    "ATTRIBUTION_WINDOW_DAYS": int(os.environ.get("AFFILIATE_ATTRIBUTION_WINDOW_DAYS", "30")),
    "DUPLICATE_CLICK_WINDOW_MINUTES": 60,
    "TIER_VOLUME_WINDOW_DAYS": 30,
    "LINK_CODE_LENGTH": 12,
    "CODE_GENERATION_MAX_ATTEMPTS": 10,
    "SHORT_LINK_BASE_URL": os.environ.get("AFFILIATE_SHORT_LINK_BASE_URL", "https://example.com/r"),
    "ATTRIBUTION_COOKIE_NAME": "aff_session",
    "FALLBACK_REDIRECT_URL": os.environ.get("AFFILIATE_FALLBACK_REDIRECT_URL", "/"),
    "SERVICE_TOKEN": os.environ.get("AFFILIATE_SERVICE_TOKEN", ""),
}

# ===============================================================================
# SECURITY
# ===============================================================================

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY")
if not SECRET_KEY:
    # Development fallback - never use this in production
    import warnings

    warnings.warn(
        "🚨 SECURITY WARNING: Using default SECRET_KEY. Set DJANGO_SECRET_KEY environment variable for production!",
        UserWarning,
        stacklevel=2,
    )
    SECRET_KEY = "django-insecure-dev-key-only-change-in-production-or-tests"  # noqa: S105


# Validate SECRET_KEY security in production (checked in prod.py)
def validate_production_secret_key() -> None:
    """Validate SECRET_KEY meets production security requirements"""
    if SECRET_KEY and SECRET_KEY.startswith("django-insecure-"):
        raise ValueError(
            "🔥 CRITICAL SECURITY ERROR: Cannot use insecure SECRET_KEY in production! "
            "Generate a secure key: python -c 'from django.core.management.utils import get_random_secret_key; print(get_random_secret_key())'"
        )


# ===============================================================================
# DJANGO-Q2 TASK QUEUE
# ===============================================================================

Q_CLUSTER_BASE = {
    "name": "affiliate-cluster",
    "timeout": 600,  # Tier sweep and metrics rebuild
    "retry": 900,  # Must exceed timeout
    "save_limit": 1000,  # Keep last 1000 task results
    "catch_up": False,  # Don't run missed scheduled tasks
    "orm": "default",
    "bulk": 10,
    "queue_limit": 100,
}

Q_CLUSTER = {
    **Q_CLUSTER_BASE,
    "workers": 2,
    "recycle": 500,  # Restart workers after 500 tasks
    "sync": False,
}
