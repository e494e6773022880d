"""
Tests for webhook normalization into canonical events.
"""

import json

import pytest

from reconciliation.events import normalize, payload_hash
from reconciliation.exceptions import MalformedPayload
from reconciliation.state_machines import (
    DisbursementStatus,
    EventCategory,
    PaymentStatus,
    Provider,
    SubscriptionStatus,
)
from reconciliation.tests.helpers import paystack_body, stitch_body


class TestStitchEvents:
    """Tests for the Stitch event table."""

    @pytest.mark.parametrize(
        "typename,target,reason",
        [
            ("PaymentInitiationRequestCompleted", PaymentStatus.COMPLETED, ""),
            (
                "PaymentInitiationRequestCancelled",
                PaymentStatus.CANCELLED,
                "Payment cancelled by user",
            ),
            ("PaymentInitiationRequestExpired", PaymentStatus.FAILED, "Payment link expired"),
        ],
    )
    def test_payment_statuses(self, typename, target, reason):
        """Should map payment request statuses onto payment transitions."""
        event = normalize(Provider.STITCH, stitch_body(typename, "pir_1"))

        assert event.category == EventCategory.PAYMENT
        assert event.subject_id == "pir_1"
        assert event.target_status == target
        assert event.reason == reason
        assert event.attributes == {"external_reference": "ref-1"}

    def test_provider_reason_wins(self):
        """Should prefer the reason Stitch sends over the default."""
        body = stitch_body(
            "PaymentInitiationRequestCancelled", "pir_1", reason="user_aborted"
        )

        assert normalize(Provider.STITCH, body).reason == "user_aborted"

    @pytest.mark.parametrize(
        "typename,target",
        [
            ("DisbursementSubmitted", DisbursementStatus.SUBMITTED),
            ("DisbursementCompleted", DisbursementStatus.COMPLETED),
            ("DisbursementError", DisbursementStatus.ERROR),
            ("DisbursementPaused", DisbursementStatus.PAUSED),
            ("DisbursementCancelled", DisbursementStatus.CANCELLED),
            ("DisbursementReversed", DisbursementStatus.REVERSED),
        ],
    )
    def test_disbursement_statuses(self, typename, target):
        """Should map disbursement statuses onto disbursement transitions."""
        event = normalize(
            Provider.STITCH, stitch_body(typename, "disb_1", event_type="disbursement")
        )

        assert event.category == EventCategory.DISBURSEMENT
        assert event.target_status == target
        assert event.event_type == f"disbursement:{typename}"

    def test_pending_status_is_noop(self):
        """Should treat a pending status as irrelevant."""
        event = normalize(
            Provider.STITCH, stitch_body("PaymentInitiationRequestPending", "pir_1")
        )

        assert event.is_noop
        assert event.subject_id == "pir_1"

    def test_unknown_type_is_noop(self):
        """Should never fail on event types it does not know."""
        body = json.dumps({"type": "refund", "data": {"id": "rf_1"}}).encode()

        assert normalize(Provider.STITCH, body).is_noop

    def test_mapped_event_without_id(self):
        """Should reject a relevant event that has no subject."""
        body = json.dumps(
            {
                "type": "payment_initiation_request",
                "data": {"status": {"__typename": "PaymentInitiationRequestCompleted"}},
            }
        ).encode()

        with pytest.raises(MalformedPayload):
            normalize(Provider.STITCH, body)

    def test_missing_type(self):
        """Should reject a body without a type."""
        with pytest.raises(MalformedPayload):
            normalize(Provider.STITCH, b'{"data": {"id": "pir_1"}}')


class TestPaystackEvents:
    """Tests for the Paystack event table."""

    def test_charge_success(self):
        """Should key charges on the transaction reference."""
        body = paystack_body(
            "charge.success",
            {
                "reference": "SUB-ABC",
                "customer": {"customer_code": "CUS_1", "email": "shop@example.com"},
                "plan": {"plan_code": "PLN_growth"},
            },
        )

        event = normalize(Provider.PAYSTACK, body)

        assert event.category == EventCategory.CHARGE
        assert event.subject_id == "SUB-ABC"
        assert event.target_status == PaymentStatus.COMPLETED
        assert event.attributes["customer_code"] == "CUS_1"
        assert event.attributes["customer_email"] == "shop@example.com"
        assert event.attributes["plan_code"] == "PLN_growth"

    def test_charge_failed_reason(self):
        """Should carry the gateway response as the reason."""
        body = paystack_body(
            "charge.failed", {"reference": "PAY-1", "gateway_response": "Declined"}
        )

        event = normalize(Provider.PAYSTACK, body)

        assert event.target_status == PaymentStatus.FAILED
        assert event.reason == "Declined"

    @pytest.mark.parametrize(
        "name,target",
        [
            ("subscription.create", SubscriptionStatus.ACTIVE),
            ("subscription.disable", SubscriptionStatus.CANCELLED),
            ("subscription.not_renew", SubscriptionStatus.CANCELLED),
        ],
    )
    def test_subscription_events(self, name, target):
        """Should key subscription events on the subscription code."""
        body = paystack_body(
            name,
            {
                "subscription_code": "SUB_xyz",
                "email_token": "tok_1",
                "next_payment_date": "2026-11-18T00:00:00.000Z",
            },
        )

        event = normalize(Provider.PAYSTACK, body)

        assert event.category == EventCategory.SUBSCRIPTION
        assert event.subject_id == "SUB_xyz"
        assert event.target_status == target
        assert event.attributes["email_token"] == "tok_1"
        assert event.attributes["period_end"].isoformat().startswith("2026-11-18")

    def test_invoice_failure_nested_code(self):
        """Should read the code from the nested subscription object."""
        body = paystack_body(
            "invoice.payment_failed", {"subscription": {"subscription_code": "SUB_n"}}
        )

        event = normalize(Provider.PAYSTACK, body)

        assert event.subject_id == "SUB_n"
        assert event.target_status == SubscriptionStatus.PAST_DUE

    def test_unknown_event_is_noop(self):
        """Should acknowledge events it does not handle."""
        body = paystack_body("transfer.success", {"reference": "TRF_1"})

        assert normalize(Provider.PAYSTACK, body).is_noop

    def test_subject_missing(self):
        """Should reject a charge without a reference."""
        with pytest.raises(MalformedPayload):
            normalize(Provider.PAYSTACK, paystack_body("charge.success", {}))


class TestNormalize:
    """Tests for body decoding."""

    @pytest.mark.parametrize("body", [b"not json", b"", b"[1, 2]", b"\xff\xfe"])
    def test_malformed_bodies(self, body):
        """Should reject bodies that are not a JSON object."""
        with pytest.raises(MalformedPayload):
            normalize(Provider.PAYSTACK, body)

    def test_payload_hash_is_sha256_of_raw_body(self):
        """Should hash the bytes as received."""
        body = paystack_body("charge.success", {"reference": "R"})

        event = normalize(Provider.PAYSTACK, body)

        assert event.payload_hash == payload_hash(body)
        assert len(event.payload_hash) == 64
