"""
Pytest fixtures for reconciliation tests.

Provides merchants, payments and subscriptions in the states the
orchestrator cares about.

Usage:
    def test_completion(pending_payment):
        outcome = orchestrator.apply(event_for(pending_payment.external_id))
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from accounts.tests.factories import MerchantFactory, UserFactory
from reconciliation.state_machines import PaymentStatus, SubscriptionStatus
from reconciliation.tests.factories import PaymentFactory, SubscriptionFactory


# =============================================================================
# Merchants and Users
# =============================================================================


@pytest.fixture
def merchant(db):
    """Merchant with verified payout details."""
    return MerchantFactory()


@pytest.fixture
def merchant_without_payout_details(db):
    return MerchantFactory(payout_details__bank_details_verified=False)


@pytest.fixture
def user(db):
    return UserFactory()


# =============================================================================
# Payments
# =============================================================================


@pytest.fixture
def pending_payment(merchant):
    """Pending R100.00 customer payment, 5% commission."""
    return PaymentFactory(merchant=merchant)


@pytest.fixture
def completed_payment(merchant):
    return PaymentFactory(merchant=merchant, status=PaymentStatus.COMPLETED)


# =============================================================================
# Subscriptions
# =============================================================================


@pytest.fixture
def pending_subscription(user):
    """Pending Growth bundle checkout."""
    return SubscriptionFactory(user=user)


@pytest.fixture
def active_subscription(user):
    """Active Growth bundle linked to its recurring billing code."""
    from reconciliation.services import SubscriptionService

    now = timezone.now()
    subscription = SubscriptionFactory(
        user=user,
        status=SubscriptionStatus.ACTIVE,
        subscription_code="SUB_active",
        billing_customer_code="CUS_active",
        billing_email_token="tok_active",
        plan_code="PLN_growth",
        started_at=now,
        expires_at=now + timedelta(days=30),
    )
    SubscriptionService.recompute_entitlements(subscription)
    return subscription
