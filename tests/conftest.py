# ===============================================================================
# PYTEST CONFIGURATION FOR THE AFFILIATE PLATFORM
# ===============================================================================
"""
Global test configuration.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- Naming convention: test_{app}_{feature}.py

Run all tests: pytest tests/
"""

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from apps.api.core.permissions import SERVICE_TOKEN_HEADER
from tests.factories import create_creator, create_link, create_staff_user

TEST_SERVICE_TOKEN = 'test-affiliate-service-token'


@pytest.fixture(autouse=True)
def _clear_cache():
    """Task locks and throttle counters live in the cache"""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def staff_user(db):
    return create_staff_user()


@pytest.fixture
def creator(db):
    """Approved Bronze creator"""
    return create_creator()


@pytest.fixture
def link(creator):
    return create_link(creator)


@pytest.fixture
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def service_client():
    """Client authenticated as the internal HTTP edge"""
    client = APIClient()
    client.credentials(**{f"HTTP_{SERVICE_TOKEN_HEADER.upper().replace('-', '_')}": TEST_SERVICE_TOKEN})
    return client
