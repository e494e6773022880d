"""
Tests for the Stitch and Paystack webhook endpoints.

Bodies are signed with the test secrets from config.settings_test.
"""

from unittest.mock import patch

import pytest
from django.test import override_settings
from django.urls import reverse

from reconciliation.adapters.stitch_adapter import DisbursementResult
from reconciliation.models import Disbursement, WebhookReceipt
from reconciliation.state_machines import (
    PaymentStatus,
    SubscriptionStatus,
    WebhookReceiptStatus,
)
from reconciliation.tests.helpers import (
    paystack_body,
    sign_paystack,
    sign_stitch,
    stitch_body,
)


@pytest.fixture
def mock_stitch():
    with patch("reconciliation.services.reconciliation_orchestrator.StitchAdapter") as mock:
        mock.create_disbursement.return_value = DisbursementResult(
            id="disb_webhook", status="DisbursementPending"
        )
        yield mock


def post_stitch(client, body, signature=None):
    return client.post(
        reverse("reconciliation:stitch_webhook"),
        body,
        content_type="application/json",
        HTTP_X_STITCH_SIGNATURE=sign_stitch(body) if signature is None else signature,
    )


def post_paystack(client, body, signature=None):
    return client.post(
        reverse("reconciliation:paystack_webhook"),
        body,
        content_type="application/json",
        HTTP_X_PAYSTACK_SIGNATURE=(
            sign_paystack(body) if signature is None else signature
        ),
    )


# =============================================================================
# Stitch
# =============================================================================


@pytest.mark.django_db
class TestStitchWebhook:
    """Tests for POST /api/v1/webhooks/stitch/."""

    def test_liveness_probe(self, client):
        """Should answer GET without touching anything."""
        response = client.get(reverse("reconciliation:stitch_webhook"))

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_completion(self, client, mock_stitch, pending_payment):
        """Should complete the payment and start the payout."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)

        response = post_stitch(client, body)

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.COMPLETED
        assert Disbursement.objects.get(payment=pending_payment).external_id == (
            "disb_webhook"
        )

    def test_alternate_signature_header(self, client, mock_stitch, pending_payment):
        """Should accept the Stitch-Signature header too."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)

        response = client.post(
            reverse("reconciliation:stitch_webhook"),
            body,
            content_type="application/json",
            HTTP_STITCH_SIGNATURE=sign_stitch(body),
        )

        assert response.status_code == 200

    def test_invalid_signature(self, client, pending_payment):
        """Should reject a forged body without changing state."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)

        response = post_stitch(client, body, signature=sign_stitch(body, "wrong-secret"))

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.PENDING
        assert not WebhookReceipt.objects.exists()

    def test_missing_signature(self, client, pending_payment):
        """Should reject an unsigned body."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)

        response = post_stitch(client, body, signature="")

        assert response.status_code == 401

    @override_settings(STITCH_WEBHOOK_SECRET="", WEBHOOK_ALLOW_UNSIGNED=True)
    def test_unsigned_allowed_without_secret(self, client, mock_stitch, pending_payment):
        """Should accept unsigned bodies only when explicitly allowed."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)

        response = post_stitch(client, body, signature="")

        assert response.status_code == 200

    @override_settings(STITCH_WEBHOOK_SECRET="")
    def test_missing_secret_rejects(self, client, pending_payment):
        """Should fail closed when no secret is configured."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)

        response = post_stitch(client, body, signature="")

        assert response.status_code == 401

    def test_malformed_body(self, client):
        """Should answer 400 for a body that is not JSON."""
        body = b"not json"

        response = post_stitch(client, body)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid payload"}

    def test_unknown_payment_acknowledged(self, client):
        """Should acknowledge events for unknown payments so they are not retried."""
        body = stitch_body("PaymentInitiationRequestCompleted", "pir_unknown")

        response = post_stitch(client, body)

        assert response.status_code == 200
        assert response.json()["outcome"] == "not_found"

    def test_duplicate_body(self, client, mock_stitch, pending_payment):
        """Should return the stored outcome for an exact redelivery."""
        body = stitch_body("PaymentInitiationRequestCompleted", pending_payment.external_id)
        post_stitch(client, body)

        response = post_stitch(client, body)

        assert response.status_code == 200
        assert response.json() == {
            "received": True,
            "outcome": "applied",
            "duplicate": True,
        }
        assert mock_stitch.create_disbursement.call_count == 1
        receipt = WebhookReceipt.objects.get()
        assert receipt.attempts == 1

    def test_stale_event(self, client, completed_payment):
        """Should acknowledge a failure for a completed payment as stale."""
        body = stitch_body("PaymentInitiationRequestExpired", completed_payment.external_id)

        response = post_stitch(client, body)

        assert response.status_code == 200
        assert response.json()["outcome"] == "stale"
        completed_payment.refresh_from_db()
        assert completed_payment.status == PaymentStatus.COMPLETED

    def test_processing_error_recorded(self, client, pending_payment):
        """Should answer 500 and record the failure so a retry can succeed."""
        body = stitch_body("PaymentInitiationRequestCancelled", pending_payment.external_id)

        with patch("reconciliation.webhooks.views.get_orchestrator") as mock_get:
            mock_get.return_value.apply.side_effect = RuntimeError("database went away")
            response = post_stitch(client, body)

        assert response.status_code == 500
        receipt = WebhookReceipt.objects.get()
        assert receipt.status == WebhookReceiptStatus.FAILED
        assert "database went away" in receipt.error_message

        retry = post_stitch(client, body)

        assert retry.status_code == 200
        receipt.refresh_from_db()
        assert receipt.status == WebhookReceiptStatus.PROCESSED
        assert receipt.attempts == 2

    def test_method_not_allowed(self, client):
        """Should refuse methods other than GET and POST."""
        response = client.put(reverse("reconciliation:stitch_webhook"))

        assert response.status_code == 405


# =============================================================================
# Paystack
# =============================================================================


@pytest.mark.django_db
class TestPaystackWebhook:
    """Tests for POST /api/v1/webhooks/paystack/."""

    def test_checkout_charge(self, client, pending_subscription):
        """Should activate the checkout paid by the charge."""
        body = paystack_body(
            "charge.success",
            {
                "reference": pending_subscription.external_reference,
                "status": "success",
                "customer": {"customer_code": "CUS_hook", "email": "x@example.com"},
                "plan": {"plan_code": "PLN_growth"},
            },
        )

        response = post_paystack(client, body)

        assert response.status_code == 200
        assert response.json()["outcome"] == "applied"
        pending_subscription.refresh_from_db()
        assert pending_subscription.status == SubscriptionStatus.ACTIVE
        assert pending_subscription.billing_customer_code == "CUS_hook"

    def test_subscription_disable(self, client, active_subscription):
        """Should cancel the subscription named by its code."""
        body = paystack_body(
            "subscription.disable",
            {"subscription_code": "SUB_active", "status": "complete"},
        )

        response = post_paystack(client, body)

        assert response.status_code == 200
        active_subscription.refresh_from_db()
        assert active_subscription.status == SubscriptionStatus.CANCELLED

    def test_irrelevant_event(self, client, db):
        """Should acknowledge events it does not handle."""
        body = paystack_body("transfer.success", {"reference": "TRF_1"})

        response = post_paystack(client, body)

        assert response.status_code == 200
        assert response.json()["outcome"] == "noop"

    def test_stitch_signature_rejected(self, client, pending_subscription):
        """Should not accept a body signed with the wrong scheme."""
        body = paystack_body(
            "charge.success", {"reference": pending_subscription.external_reference}
        )

        response = post_paystack(client, body, signature=sign_stitch(body))

        assert response.status_code == 401

    def test_missing_subject(self, client, db):
        """Should answer 400 for a recognised event without its reference."""
        body = paystack_body("charge.success", {"status": "success"})

        response = post_paystack(client, body)

        assert response.status_code == 400

    def test_get_not_allowed(self, client):
        """Should only accept POST."""
        response = client.get(reverse("reconciliation:paystack_webhook"))

        assert response.status_code == 405
