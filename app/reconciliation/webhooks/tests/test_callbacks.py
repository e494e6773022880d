"""
Tests for the payer redirect callbacks.
"""

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from django.urls import reverse

from reconciliation.adapters.base import ProviderStatus
from reconciliation.adapters.stitch_adapter import DisbursementResult
from reconciliation.exceptions import ProviderVerificationFailure
from reconciliation.state_machines import PaymentStatus, SubscriptionStatus


@pytest.fixture
def mock_stitch():
    with patch("reconciliation.services.reconciliation_orchestrator.StitchAdapter") as mock:
        mock.create_disbursement.return_value = DisbursementResult(
            id="disb_cb", status="DisbursementPending"
        )
        yield mock


@pytest.fixture
def mock_paystack():
    with patch(
        "reconciliation.services.reconciliation_orchestrator.PaystackAdapter"
    ) as mock:
        yield mock


def redirect_params(response):
    location = urlparse(response["Location"])
    return location, {k: v[0] for k, v in parse_qs(location.query).items()}


@pytest.mark.django_db
class TestPaymentCallback:
    """Tests for GET /api/v1/payments/callback/."""

    def test_verified_success(self, client, mock_stitch, pending_payment):
        """Should complete the payment and send the payer to the success page."""
        mock_stitch.get_status.return_value = ProviderStatus(
            external_id=pending_payment.external_id, status=PaymentStatus.COMPLETED
        )

        response = client.get(
            reverse("reconciliation:payment_callback"),
            {"id": pending_payment.external_id, "status": "complete"},
        )

        assert response.status_code == 302
        location, params = redirect_params(response)
        assert f"{location.scheme}://{location.netloc}" == "https://app.example.com"
        assert location.path == "/payments"
        assert params == {
            "status": "success",
            "reference": pending_payment.short_reference,
        }
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.COMPLETED

    def test_forged_success_claim(self, client, mock_stitch, pending_payment):
        """Should not trust status=complete when the provider disagrees."""
        mock_stitch.get_status.return_value = ProviderStatus(
            external_id=pending_payment.external_id, status=PaymentStatus.PENDING
        )

        response = client.get(
            reverse("reconciliation:payment_callback"),
            {"id": pending_payment.external_id, "status": "complete"},
        )

        _, params = redirect_params(response)
        assert params["status"] == "pending"
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.PENDING

    def test_cancelled(self, client, mock_stitch, pending_payment):
        """Should send the payer to the failure page."""
        mock_stitch.get_status.return_value = ProviderStatus(
            external_id=pending_payment.external_id,
            status=PaymentStatus.CANCELLED,
            reason="user_cancelled",
        )

        response = client.get(
            reverse("reconciliation:payment_callback"),
            {"externalId": pending_payment.external_id},
        )

        _, params = redirect_params(response)
        assert params["status"] == "failed"

    def test_verification_failure(self, client, mock_stitch, pending_payment):
        """Should show an error and leave the payment pending."""
        mock_stitch.get_status.side_effect = ProviderVerificationFailure(
            "timed out", provider="stitch", is_retryable=True
        )

        response = client.get(
            reverse("reconciliation:payment_callback"),
            {"id": pending_payment.external_id},
        )

        _, params = redirect_params(response)
        assert params["status"] == "error"
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.PENDING

    def test_missing_id(self, client):
        """Should redirect with an error when no payment id is given."""
        response = client.get(reverse("reconciliation:payment_callback"))

        assert response.status_code == 302
        _, params = redirect_params(response)
        assert params == {"status": "error"}

    def test_unknown_payment(self, client, mock_stitch, db):
        """Should redirect with an error for an unknown payment."""
        response = client.get(
            reverse("reconciliation:payment_callback"), {"id": "pir_unknown_123"}
        )

        _, params = redirect_params(response)
        assert params == {"status": "error", "reference": "pir_unkn"}


@pytest.mark.django_db
class TestSubscriptionCallback:
    """Tests for GET /api/v1/subscriptions/callback/."""

    def test_verified_activation(self, client, mock_paystack, pending_subscription):
        """Should activate the checkout and redirect to settings."""
        reference = pending_subscription.external_reference
        mock_paystack.get_status.return_value = ProviderStatus(
            external_id=reference,
            status=PaymentStatus.COMPLETED,
            raw={"customer": {"customer_code": "CUS_cb"}},
        )

        response = client.get(
            reverse("reconciliation:subscription_callback"),
            {"reference": reference, "trxref": reference},
        )

        location, params = redirect_params(response)
        assert location.path == "/settings"
        assert params == {"subscription": "success", "reference": reference[:8]}
        pending_subscription.refresh_from_db()
        assert pending_subscription.status == SubscriptionStatus.ACTIVE

    def test_declined(self, client, mock_paystack, pending_subscription):
        """Should report failure for a declined charge."""
        reference = pending_subscription.external_reference
        mock_paystack.get_status.return_value = ProviderStatus(
            external_id=reference, status=PaymentStatus.FAILED, reason="Declined"
        )

        response = client.get(
            reverse("reconciliation:subscription_callback"), {"trxref": reference}
        )

        _, params = redirect_params(response)
        assert params["subscription"] == "failed"

    def test_missing_reference(self, client):
        """Should redirect with an error."""
        response = client.get(reverse("reconciliation:subscription_callback"))

        _, params = redirect_params(response)
        assert params == {"subscription": "error"}
