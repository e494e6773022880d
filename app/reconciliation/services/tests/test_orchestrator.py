"""
Tests for ReconciliationOrchestrator.

Provider clients are Mocks injected through the constructor; events are
built directly as WebhookEvent instances.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from django.utils import timezone
from freezegun import freeze_time

from reconciliation.adapters.base import ProviderStatus
from reconciliation.adapters.stitch_adapter import DisbursementResult
from reconciliation.events import WebhookEvent
from reconciliation.exceptions import (
    ProviderVerificationFailure,
    ReconciliationOutcome,
)
from reconciliation.models import Disbursement, Subscription
from reconciliation.services import ReconciliationOrchestrator, SubscriptionService
from reconciliation.state_machines import (
    DisbursementStatus,
    EventCategory,
    PaymentStatus,
    PlanType,
    Provider,
    SubscriptionStatus,
)
from reconciliation.tests.factories import (
    DisbursementFactory,
    SubscriptionFactory,
)


def make_event(category, subject_id, target_status, **kwargs):
    kwargs.setdefault("provider", Provider.STITCH)
    kwargs.setdefault("event_type", f"{category}:{target_status}")
    return WebhookEvent(
        category=category,
        subject_id=subject_id,
        target_status=target_status,
        payload_hash="0" * 64,
        **kwargs,
    )


def paystack_event(category, subject_id, target_status, **kwargs):
    return make_event(
        category, subject_id, target_status, provider=Provider.PAYSTACK, **kwargs
    )


@pytest.fixture
def stitch():
    client = Mock()
    client.create_disbursement.return_value = DisbursementResult(
        id="disb_auto", status="DisbursementPending"
    )
    return client


@pytest.fixture
def paystack():
    return Mock()


@pytest.fixture
def orchestrator(stitch, paystack):
    return ReconciliationOrchestrator(stitch=stitch, paystack=paystack)


# =============================================================================
# Payment events
# =============================================================================


@pytest.mark.django_db
class TestPaymentEvents:
    """Tests for Stitch payment events."""

    def test_completion_applies_and_pays_out(self, orchestrator, stitch, pending_payment):
        """Should complete the payment and initiate exactly one payout."""
        event = make_event(
            EventCategory.PAYMENT, pending_payment.external_id, PaymentStatus.COMPLETED
        )

        outcome = orchestrator.apply(event)

        assert outcome == ReconciliationOutcome.APPLIED
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.COMPLETED
        assert pending_payment.completed_at is not None
        disbursement = Disbursement.objects.get(payment=pending_payment)
        assert disbursement.status == DisbursementStatus.SUBMITTED
        assert disbursement.amount_cents == 9500
        stitch.create_disbursement.assert_called_once()

    def test_duplicate_completion_is_stale(self, orchestrator, stitch, pending_payment):
        """Should not pay out twice for a redelivered completion."""
        event = make_event(
            EventCategory.PAYMENT, pending_payment.external_id, PaymentStatus.COMPLETED
        )
        orchestrator.apply(event)

        outcome = orchestrator.apply(event)

        assert outcome == ReconciliationOutcome.STALE
        assert stitch.create_disbursement.call_count == 1
        assert Disbursement.objects.count() == 1

    def test_late_failure_is_stale(self, orchestrator, completed_payment):
        """Should keep a completed payment completed."""
        event = make_event(
            EventCategory.PAYMENT,
            completed_payment.external_id,
            PaymentStatus.FAILED,
            reason="Payment link expired",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.STALE
        completed_payment.refresh_from_db()
        assert completed_payment.status == PaymentStatus.COMPLETED

    def test_cancellation_records_reason(self, orchestrator, stitch, pending_payment):
        """Should store the reason and never pay out."""
        event = make_event(
            EventCategory.PAYMENT,
            pending_payment.external_id,
            PaymentStatus.CANCELLED,
            reason="user_cancelled",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        pending_payment.refresh_from_db()
        assert pending_payment.status_reason == "user_cancelled"
        stitch.create_disbursement.assert_not_called()

    def test_unknown_payment(self, orchestrator, db):
        """Should report not found for an unknown external id."""
        event = make_event(EventCategory.PAYMENT, "pir_unknown", PaymentStatus.COMPLETED)

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND

    def test_noop_event(self, orchestrator):
        """Should ignore irrelevant events."""
        event = WebhookEvent(
            provider=Provider.PAYSTACK,
            category=EventCategory.NOOP,
            event_type="transfer.success",
            payload_hash="0" * 64,
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.NOOP



# =============================================================================
# Disbursement events
# =============================================================================


@pytest.mark.django_db
class TestDisbursementEvents:
    """Tests for Stitch disbursement events."""

    def test_completion(self, orchestrator):
        """Should complete a submitted payout."""
        disbursement = DisbursementFactory()
        event = make_event(
            EventCategory.DISBURSEMENT,
            disbursement.external_id,
            DisbursementStatus.COMPLETED,
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        disbursement.refresh_from_db()
        assert disbursement.status == DisbursementStatus.COMPLETED
        assert disbursement.completed_at is not None

    def test_error_keeps_payment_completed(self, orchestrator):
        """Should record the payout error without touching the payment."""
        disbursement = DisbursementFactory()
        event = make_event(
            EventCategory.DISBURSEMENT,
            disbursement.external_id,
            DisbursementStatus.ERROR,
            reason="Account closed",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        disbursement.refresh_from_db()
        assert disbursement.failure_reason == "Account closed"
        disbursement.payment.refresh_from_db()
        assert disbursement.payment.status == PaymentStatus.COMPLETED

    def test_completion_before_submission_recorded(
        self, orchestrator, completed_payment
    ):
        """Should adopt the pending payout by payment id and store the Stitch id."""
        disbursement = DisbursementFactory(
            payment=completed_payment,
            external_id=None,
            status=DisbursementStatus.PENDING,
        )
        event = make_event(
            EventCategory.DISBURSEMENT,
            "disb_early",
            DisbursementStatus.COMPLETED,
            attributes={"external_reference": str(completed_payment.id)},
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED

        disbursement.refresh_from_db()
        assert disbursement.status == DisbursementStatus.COMPLETED
        assert disbursement.external_id == "disb_early"
        assert disbursement.completed_at is not None
        assert orchestrator.apply(event) == ReconciliationOutcome.STALE

    def test_early_event_never_claims_a_recorded_payout(self, orchestrator):
        """Should not match a payout that already carries another Stitch id."""
        disbursement = DisbursementFactory()
        event = make_event(
            EventCategory.DISBURSEMENT,
            "disb_other",
            DisbursementStatus.REVERSED,
            attributes={"external_reference": str(disbursement.payment_id)},
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND
        disbursement.refresh_from_db()
        assert disbursement.status == DisbursementStatus.SUBMITTED

    def test_unparseable_external_reference(self, orchestrator, db):
        """Should report not found for a reference that is not a payment id."""
        event = make_event(
            EventCategory.DISBURSEMENT,
            "disb_unknown",
            DisbursementStatus.COMPLETED,
            attributes={"external_reference": "PAY-abc"},
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND

    def test_unknown_disbursement(self, orchestrator, db):
        """Should report not found."""
        event = make_event(
            EventCategory.DISBURSEMENT, "disb_unknown", DisbursementStatus.COMPLETED
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND


# =============================================================================
# Paystack subscription and charge events
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionEvents:
    """Tests for Paystack recurring billing events."""

    def test_create_activates_pending_checkout(self, orchestrator, pending_subscription):
        """Should link the code by email and activate the checkout."""
        period_end = timezone.now() + timedelta(days=30)
        event = paystack_event(
            EventCategory.SUBSCRIPTION,
            "SUB_new",
            SubscriptionStatus.ACTIVE,
            attributes={
                "customer_code": "CUS_new",
                "customer_email": pending_subscription.user.email,
                "plan_code": "PLN_growth",
                "email_token": "tok_new",
                "period_end": period_end,
            },
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        pending_subscription.refresh_from_db()
        assert pending_subscription.status == SubscriptionStatus.ACTIVE
        assert pending_subscription.subscription_code == "SUB_new"
        assert pending_subscription.billing_email_token == "tok_new"
        assert pending_subscription.expires_at == period_end
        assert "bookings" in pending_subscription.capabilities

    def test_create_after_charge_links_code(self, orchestrator, user):
        """Should link the code to a subscription the charge already activated."""
        subscription = SubscriptionFactory(
            user=user,
            status=SubscriptionStatus.ACTIVE,
            billing_customer_code="CUS_9",
            expires_at=timezone.now() + timedelta(days=30),
        )
        event = paystack_event(
            EventCategory.SUBSCRIPTION,
            "SUB_9",
            SubscriptionStatus.ACTIVE,
            attributes={"customer_code": "CUS_9", "email_token": "tok_9"},
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        subscription.refresh_from_db()
        assert subscription.subscription_code == "SUB_9"
        assert subscription.status == SubscriptionStatus.ACTIVE

    def test_redelivered_create_is_stale(self, orchestrator, active_subscription):
        """Should not reactivate an already linked subscription."""
        event = paystack_event(
            EventCategory.SUBSCRIPTION,
            "SUB_active",
            SubscriptionStatus.ACTIVE,
            attributes={"customer_code": "CUS_active"},
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.STALE

    def test_disable_keeps_paid_period(self, orchestrator, active_subscription):
        """Should cancel but keep access until the known period end."""
        expires_at = active_subscription.expires_at
        event = paystack_event(
            EventCategory.SUBSCRIPTION,
            "SUB_active",
            SubscriptionStatus.CANCELLED,
            event_type="subscription.disable",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        active_subscription.refresh_from_db()
        assert active_subscription.status == SubscriptionStatus.CANCELLED
        assert active_subscription.expires_at == expires_at
        assert active_subscription.status_reason == "subscription.disable"
        assert active_subscription.provides_access()

    @freeze_time("2026-10-18 12:00:00")
    def test_not_renew_grants_one_more_period(self, orchestrator, user):
        """Should cancel with thirty more days of the same entitlements."""
        subscription = SubscriptionFactory(
            user=user,
            status=SubscriptionStatus.ACTIVE,
            subscription_code="SUB_norenew",
            started_at=timezone.now(),
        )
        SubscriptionService.recompute_entitlements(subscription)
        event = paystack_event(
            EventCategory.SUBSCRIPTION,
            "SUB_norenew",
            SubscriptionStatus.CANCELLED,
            event_type="subscription.not_renew",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED

        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.expires_at == timezone.now() + timedelta(days=30)
        day_29 = timezone.now() + timedelta(days=29)
        day_31 = timezone.now() + timedelta(days=31)
        assert SubscriptionService.has_entitlement(user, "invoices", at=day_29)
        assert not SubscriptionService.has_entitlement(user, "invoices", at=day_31)

    def test_payment_failed_marks_past_due(self, orchestrator, active_subscription):
        """Should move an active subscription to past due."""
        event = paystack_event(
            EventCategory.SUBSCRIPTION,
            "SUB_active",
            SubscriptionStatus.PAST_DUE,
            event_type="invoice.payment_failed",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        active_subscription.refresh_from_db()
        assert active_subscription.status == SubscriptionStatus.PAST_DUE

    def test_unknown_code(self, orchestrator, db):
        """Should report not found for a code that matches nothing."""
        event = paystack_event(
            EventCategory.SUBSCRIPTION, "SUB_nobody", SubscriptionStatus.CANCELLED
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND


@pytest.mark.django_db
class TestChargeEvents:
    """Tests for Paystack charge events."""

    def test_checkout_charge_activates(self, orchestrator, pending_subscription):
        """Should activate the checkout and record the customer code."""
        event = paystack_event(
            EventCategory.CHARGE,
            pending_subscription.external_reference,
            PaymentStatus.COMPLETED,
            attributes={"customer_code": "CUS_1", "plan_code": "PLN_growth"},
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        pending_subscription.refresh_from_db()
        assert pending_subscription.status == SubscriptionStatus.ACTIVE
        assert pending_subscription.billing_customer_code == "CUS_1"
        assert pending_subscription.started_at is not None

    def test_checkout_charge_supersedes_old_plan(self, orchestrator, active_subscription):
        """Should cancel the previous subscription when an upgrade is paid."""
        upgrade = SubscriptionFactory(user=active_subscription.user, bundle_id="pro")
        event = paystack_event(
            EventCategory.CHARGE, upgrade.external_reference, PaymentStatus.COMPLETED
        )

        orchestrator.apply(event)

        active_subscription.refresh_from_db()
        upgrade.refresh_from_db()
        assert active_subscription.status == SubscriptionStatus.CANCELLED
        assert upgrade.status == SubscriptionStatus.ACTIVE
        assert Subscription.objects.filter(
            user=upgrade.user, status=SubscriptionStatus.ACTIVE
        ).count() == 1

    def test_failed_checkout_charge_expires(self, orchestrator, pending_subscription):
        """Should expire a checkout whose charge failed."""
        event = paystack_event(
            EventCategory.CHARGE,
            pending_subscription.external_reference,
            PaymentStatus.FAILED,
            reason="Declined",
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        pending_subscription.refresh_from_db()
        assert pending_subscription.status == SubscriptionStatus.EXPIRED
        assert pending_subscription.status_reason == "Declined"

    def test_failed_charge_never_expires_active(self, orchestrator, active_subscription):
        """Should leave an active subscription alone on a late failure."""
        event = paystack_event(
            EventCategory.CHARGE,
            active_subscription.external_reference,
            PaymentStatus.FAILED,
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.STALE

    def test_renewal_extends_period(self, orchestrator, active_subscription):
        """Should push out expires_at for a renewal charge."""
        period_end = active_subscription.expires_at + timedelta(days=30)
        event = paystack_event(
            EventCategory.CHARGE,
            "T_renewal_1",
            PaymentStatus.COMPLETED,
            attributes={
                "customer_code": "CUS_active",
                "plan_code": "PLN_growth",
                "period_end": period_end,
            },
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.APPLIED
        active_subscription.refresh_from_db()
        assert active_subscription.expires_at == period_end

    def test_charge_never_settles_a_stitch_payment(
        self, orchestrator, stitch, pending_payment
    ):
        """Should leave a Stitch payment alone when a charge reuses its id."""
        event = paystack_event(
            EventCategory.CHARGE, pending_payment.external_id, PaymentStatus.COMPLETED
        )

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.PENDING
        stitch.create_disbursement.assert_not_called()

    def test_unknown_reference(self, orchestrator, db):
        """Should report not found for a charge nobody started."""
        event = paystack_event(EventCategory.CHARGE, "T_unknown", PaymentStatus.FAILED)

        assert orchestrator.apply(event) == ReconciliationOutcome.NOT_FOUND


# =============================================================================
# Callback path
# =============================================================================


@pytest.mark.django_db
class TestPaymentCallback:
    """Tests for reconcile_payment_callback."""

    def test_verified_completion(self, orchestrator, stitch, pending_payment):
        """Should apply the provider's answer, not the query string."""
        stitch.get_status.return_value = ProviderStatus(
            external_id=pending_payment.external_id, status=PaymentStatus.COMPLETED
        )

        result = orchestrator.reconcile_payment_callback(
            pending_payment.external_id, claimed_status="failed"
        )

        assert result.outcome == ReconciliationOutcome.APPLIED
        assert result.status == PaymentStatus.COMPLETED
        assert result.reference == pending_payment.short_reference
        stitch.create_disbursement.assert_called_once()

    def test_claim_without_confirmation(self, orchestrator, stitch, pending_payment):
        """Should leave the payment pending when the provider says pending."""
        stitch.get_status.return_value = ProviderStatus(
            external_id=pending_payment.external_id, status=PaymentStatus.PENDING
        )

        result = orchestrator.reconcile_payment_callback(
            pending_payment.external_id, claimed_status="complete"
        )

        assert result.outcome == ReconciliationOutcome.PENDING
        assert result.status == PaymentStatus.PENDING

    def test_verification_failure(self, orchestrator, stitch, pending_payment):
        """Should change nothing when the provider cannot answer."""
        stitch.get_status.side_effect = ProviderVerificationFailure(
            "timed out", provider="stitch"
        )

        result = orchestrator.reconcile_payment_callback(pending_payment.external_id)

        assert result.outcome == ReconciliationOutcome.VERIFICATION_FAILED
        assert result.status == PaymentStatus.PENDING
        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.PENDING

    def test_callback_after_webhook(self, orchestrator, stitch, completed_payment):
        """Should report stale when the webhook already completed it."""
        stitch.get_status.return_value = ProviderStatus(
            external_id=completed_payment.external_id, status=PaymentStatus.COMPLETED
        )

        result = orchestrator.reconcile_payment_callback(completed_payment.external_id)

        assert result.outcome == ReconciliationOutcome.STALE
        assert result.status == PaymentStatus.COMPLETED
        stitch.create_disbursement.assert_not_called()

    def test_webhook_and_callback_pay_out_once(
        self, orchestrator, stitch, pending_payment
    ):
        """Should create one payout when both entry points report completion."""
        stitch.get_status.return_value = ProviderStatus(
            external_id=pending_payment.external_id, status=PaymentStatus.COMPLETED
        )
        event = make_event(
            EventCategory.PAYMENT, pending_payment.external_id, PaymentStatus.COMPLETED
        )

        webhook_outcome = orchestrator.apply(event)
        callback = orchestrator.reconcile_payment_callback(pending_payment.external_id)

        assert {webhook_outcome, callback.outcome} == {
            ReconciliationOutcome.APPLIED,
            ReconciliationOutcome.STALE,
        }
        assert Disbursement.objects.filter(payment=pending_payment).count() == 1
        stitch.create_disbursement.assert_called_once()

    def test_unknown_payment(self, orchestrator, stitch, db):
        """Should not query the provider for an unknown payment."""
        result = orchestrator.reconcile_payment_callback("pir_unknown")

        assert result.outcome == ReconciliationOutcome.NOT_FOUND
        assert result.status is None
        stitch.get_status.assert_not_called()


@pytest.mark.django_db
class TestSubscriptionCallback:
    """Tests for reconcile_subscription_callback."""

    def test_verified_charge_activates(self, orchestrator, paystack, pending_subscription):
        """Should activate with the verified customer and plan codes."""
        paystack.get_status.return_value = ProviderStatus(
            external_id=pending_subscription.external_reference,
            status=PaymentStatus.COMPLETED,
            raw={"customer": {"customer_code": "CUS_cb"}, "plan": "PLN_growth"},
        )

        result = orchestrator.reconcile_subscription_callback(
            pending_subscription.external_reference
        )

        assert result.outcome == ReconciliationOutcome.APPLIED
        assert result.status == SubscriptionStatus.ACTIVE
        pending_subscription.refresh_from_db()
        assert pending_subscription.billing_customer_code == "CUS_cb"

    def test_custom_plan_callback(self, orchestrator, paystack, user):
        """Should grant the capabilities chosen for a custom plan."""
        subscription = SubscriptionFactory(
            user=user,
            plan_type=PlanType.CUSTOM,
            bundle_id="",
            requested_capabilities=["reports"],
            external_reference="PAY-CUSTOM1",
        )
        paystack.get_status.return_value = ProviderStatus(
            external_id="PAY-CUSTOM1", status=PaymentStatus.COMPLETED
        )

        orchestrator.reconcile_subscription_callback("PAY-CUSTOM1")

        subscription.refresh_from_db()
        assert subscription.capabilities == ["reports"]

    def test_verification_failure(self, orchestrator, paystack, pending_subscription):
        """Should leave the checkout pending."""
        paystack.get_status.side_effect = ProviderVerificationFailure(
            "HTTP 503", provider="paystack", is_retryable=True
        )

        result = orchestrator.reconcile_subscription_callback(
            pending_subscription.external_reference
        )

        assert result.outcome == ReconciliationOutcome.VERIFICATION_FAILED
        assert result.status == SubscriptionStatus.PENDING

    def test_unknown_reference(self, orchestrator, paystack, db):
        """Should not query Paystack for an unknown reference."""
        result = orchestrator.reconcile_subscription_callback("SUB-UNKNOWN")

        assert result.outcome == ReconciliationOutcome.NOT_FOUND
        paystack.get_status.assert_not_called()
