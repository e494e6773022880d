"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings_test")


def pytest_configure():
    """Configure Django settings before tests run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_webhook_views.py, test_orchestrator.py, etc. → integration
    - test_models.py, test_catalog.py, test_signatures.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_api_views.py",
        "test_callbacks.py",
        "test_disbursement_initiator.py",
        "test_orchestrator.py",
        "test_payment_service.py",
        "test_store.py",
        "test_subscription_service.py",
        "test_tasks.py",
        "test_webhook_views.py",
    ]

    unit_patterns = [
        "test_paystack_adapter.py",
        "test_catalog.py",
        "test_commission.py",
        "test_models.py",
        "test_normalizer.py",
        "test_services.py",
        "test_signatures.py",
        "test_stitch_adapter.py",
        "test_transitions.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def clear_cache():
    """Provider tokens are cached; start every test with an empty cache."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()
