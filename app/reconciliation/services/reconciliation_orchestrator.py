"""
Reconciliation orchestrator: applies provider events to local state.

Two entry points feed the same state machines:

- apply(event): push webhooks. The signature was verified by the view, so
  the event is trusted as-is.
- reconcile_*_callback(): browser redirects. Query parameters are never
  trusted; the provider is asked for the authoritative status and only
  that status is applied.

Each status change goes through the IdempotentStateStore's conditional
update. Side effects (payout initiation, entitlement rewrite, superseding
an older subscription) run only on the call that reported applied=True,
so duplicate and racing deliveries cannot repeat them.

Usage:
    from reconciliation.services import ReconciliationOrchestrator

    orchestrator = ReconciliationOrchestrator()
    outcome = orchestrator.apply(normalize(Provider.STITCH, request.body))

    result = orchestrator.reconcile_payment_callback(external_id, "complete")
    result.outcome, result.status
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db.models import DateTimeField, F, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.services import BaseService
from reconciliation.adapters import PaystackAdapter, StitchAdapter
from reconciliation.exceptions import (
    ProviderVerificationFailure,
    ReconciliationOutcome,
)
from reconciliation.models import Subscription
from reconciliation.services.disbursement_initiator import DisbursementInitiator
from reconciliation.services.subscription_service import (
    SubscriptionService,
    billing_period,
)
from reconciliation.state_machines import (
    DisbursementStatus,
    EventCategory,
    PaymentStatus,
    SubscriptionStatus,
)
from reconciliation.store import IdempotentStateStore

if TYPE_CHECKING:
    from typing import Any

    from reconciliation.events import WebhookEvent
    from reconciliation.models import Payment
    from reconciliation.store import TransitionResult


# Checkout charges may only expire a subscription that never went live
CHECKOUT_FAILURE_SOURCES = (SubscriptionStatus.PENDING, SubscriptionStatus.TRIALING)


@dataclass(frozen=True)
class CallbackResult:
    """
    Result of reconciling a browser redirect.

    Attributes:
        outcome: ReconciliationOutcome value
        status: Entity status after reconciliation (None if unknown entity)
        reference: Short reference safe to echo back to the browser
    """

    outcome: str
    status: str | None
    reference: str = ""


class ReconciliationOrchestrator(BaseService):
    """
    Dispatches canonical events and verified callback statuses to the
    state store.

    Collaborators are injected so tests can pass fakes; providers default
    to the real adapters.
    """

    def __init__(self, store=None, stitch=None, paystack=None, initiator=None):
        self.store = store or IdempotentStateStore()
        self.stitch = stitch or StitchAdapter
        self.paystack = paystack or PaystackAdapter
        self.initiator = initiator or DisbursementInitiator(
            store=self.store, stitch=self.stitch
        )
        self.logger = self.get_logger()

    # =========================================================================
    # Webhook path
    # =========================================================================

    def apply(self, event: WebhookEvent) -> str:
        """
        Apply a signature-verified webhook event.

        Returns:
            ReconciliationOutcome value: applied, noop, stale or not_found
        """
        if event.is_noop:
            self.logger.info(
                "Ignoring irrelevant webhook event", extra=event.log_context()
            )
            return ReconciliationOutcome.NOOP

        handlers = {
            EventCategory.PAYMENT: self._apply_payment_event,
            EventCategory.DISBURSEMENT: self._apply_disbursement_event,
            EventCategory.SUBSCRIPTION: self._apply_subscription_event,
            EventCategory.CHARGE: self._apply_charge_event,
        }
        handler = handlers.get(event.category)
        if handler is None:
            self.logger.warning("Unhandled event category", extra=event.log_context())
            return ReconciliationOutcome.NOOP
        return handler(event)

    def _apply_payment_event(self, event: WebhookEvent) -> str:
        return self._transition_payment(
            event.subject_id, event.target_status, event.reason, source=event.event_type
        )

    def _apply_disbursement_event(self, event: WebhookEvent) -> str:
        changes: dict[str, Any] = {}
        if event.target_status == DisbursementStatus.COMPLETED:
            changes["completed_at"] = timezone.now()
        elif event.target_status != DisbursementStatus.SUBMITTED:
            changes["failure_reason"] = event.reason

        result = self.store.transition_disbursement(
            event.subject_id, event.target_status, changes
        )
        payment_id = payout_payment_id(event.attributes)
        if not result.found and payment_id is not None:
            # create_disbursement has not returned yet
            result = self.store.adopt_disbursement(
                payment_id,
                event.subject_id,
                event.target_status,
                {**changes, "submitted_at": timezone.now()},
            )
        outcome = self._outcome(result, event.log_context())
        if outcome == ReconciliationOutcome.APPLIED and event.target_status in (
            DisbursementStatus.ERROR,
            DisbursementStatus.REVERSED,
        ):
            # Operational alert: merchant money did not arrive
            self.logger.error(
                "Disbursement failed at provider",
                extra={**event.log_context(), "reason": event.reason},
            )
        return outcome

    def _apply_subscription_event(self, event: WebhookEvent) -> str:
        code = event.subject_id
        attributes = event.attributes

        if event.target_status == SubscriptionStatus.ACTIVE:
            linked = self.store.link_subscription_code(
                code,
                customer_code=attributes.get("customer_code", ""),
                customer_email=attributes.get("customer_email", ""),
                plan_code=attributes.get("plan_code", ""),
                email_token=attributes.get("email_token", ""),
            )
            changes = {
                "started_at": timezone.now(),
                "expires_at": attributes.get("period_end") or period_end_or_default(),
            }
            result = self._activate({"subscription_code": code}, changes)
            if linked and not result.applied:
                self.logger.info(
                    "Linked recurring subscription code",
                    extra=event.log_context(),
                )
                return ReconciliationOutcome.APPLIED
            return self._outcome(result, event.log_context())

        changes = {"status_reason": event.reason or event.event_type}
        if event.target_status == SubscriptionStatus.CANCELLED:
            # access runs to the end of the paid period
            changes["expires_at"] = (
                attributes.get("period_end") or period_end_or_default()
            )
        result = self.store.transition_subscription(
            {"subscription_code": code}, event.target_status, changes
        )
        return self._outcome(result, event.log_context())

    def _apply_charge_event(self, event: WebhookEvent) -> str:
        reference = event.subject_id

        if self.store.get_subscription_by_reference(reference) is not None:
            return self._apply_checkout_charge(
                reference, event.target_status, event.reason, event.attributes
            )

        customer_code = event.attributes.get("customer_code")
        if event.target_status == PaymentStatus.COMPLETED and customer_code:
            return self._apply_renewal(event)

        self.logger.warning(
            "Charge for unknown reference", extra=event.log_context()
        )
        return ReconciliationOutcome.NOT_FOUND

    def _apply_renewal(self, event: WebhookEvent) -> str:
        """Push out expires_at of the customer's active recurring subscription."""
        lookup = {"billing_customer_code": event.attributes["customer_code"]}
        if event.attributes.get("plan_code"):
            lookup["plan_code"] = event.attributes["plan_code"]
        expires_at = event.attributes.get("period_end") or (
            timezone.now() + billing_period()
        )
        result = self.store.extend_subscription_period(lookup, expires_at)
        return self._outcome(result, event.log_context())

    # =========================================================================
    # Callback path
    # =========================================================================

    def reconcile_payment_callback(
        self, external_id: str, claimed_status: str | None = None
    ) -> CallbackResult:
        """
        Reconcile a payment after the payer is redirected back.

        ``claimed_status`` comes from the query string and is only logged;
        the provider's answer decides.
        """
        log_context = {"external_id": external_id, "claimed_status": claimed_status}
        payment = self.store.get_payment_by_external_id(external_id)
        if payment is None:
            self.logger.warning("Callback for unknown payment", extra=log_context)
            return CallbackResult(ReconciliationOutcome.NOT_FOUND, None)

        try:
            verified = self.stitch.get_status(external_id)
        except ProviderVerificationFailure as e:
            self.logger.warning(
                "Payment verification failed, leaving status unchanged",
                extra={**log_context, "error": e.message, "retryable": e.is_retryable},
            )
            return CallbackResult(
                ReconciliationOutcome.VERIFICATION_FAILED,
                payment.status,
                payment.short_reference,
            )

        if verified.status == PaymentStatus.PENDING:
            return CallbackResult(
                ReconciliationOutcome.PENDING, payment.status, payment.short_reference
            )

        outcome = self._transition_payment(
            external_id, verified.status, verified.reason, source="callback"
        )
        payment.refresh_from_db(fields=["status"])
        return CallbackResult(outcome, payment.status, payment.short_reference)

    def reconcile_subscription_callback(self, reference: str) -> CallbackResult:
        """Reconcile a subscription checkout after the Paystack redirect."""
        log_context = {"reference": reference}
        subscription = self.store.get_subscription_by_reference(reference)
        if subscription is None:
            self.logger.warning("Callback for unknown subscription", extra=log_context)
            return CallbackResult(ReconciliationOutcome.NOT_FOUND, None)

        short_reference = reference[:8]
        try:
            verified = self.paystack.get_status(reference)
        except ProviderVerificationFailure as e:
            self.logger.warning(
                "Subscription verification failed, leaving status unchanged",
                extra={**log_context, "error": e.message, "retryable": e.is_retryable},
            )
            return CallbackResult(
                ReconciliationOutcome.VERIFICATION_FAILED,
                subscription.status,
                short_reference,
            )

        if verified.status == PaymentStatus.PENDING:
            return CallbackResult(
                ReconciliationOutcome.PENDING, subscription.status, short_reference
            )

        outcome = self._apply_checkout_charge(
            reference,
            verified.status,
            verified.reason,
            verified_attributes(verified.raw),
        )
        subscription.refresh_from_db(fields=["status"])
        return CallbackResult(outcome, subscription.status, short_reference)

    # =========================================================================
    # Transitions and their side effects
    # =========================================================================

    def _transition_payment(
        self, external_id: str, target: str, reason: str = "", source: str = ""
    ) -> str:
        changes: dict[str, Any] = {}
        if target == PaymentStatus.COMPLETED:
            changes["completed_at"] = timezone.now()
        else:
            changes["status_reason"] = (reason or "")[:255]

        result = self.store.transition_payment(external_id, target, changes)
        outcome = self._outcome(
            result,
            {"external_id": external_id, "target_status": target, "source": source},
        )
        if outcome == ReconciliationOutcome.APPLIED:
            payment = self.store.get_payment_by_external_id(external_id)
            self._after_payment_transition(payment, target)
        return outcome

    def _after_payment_transition(self, payment: Payment, target: str) -> None:
        """Side effects owned by the caller that applied the transition."""
        if target == PaymentStatus.COMPLETED:
            self.initiator.initiate(payment)

    def _apply_checkout_charge(
        self,
        reference: str,
        target: str,
        reason: str,
        attributes: dict[str, Any],
    ) -> str:
        lookup = {"external_reference": reference}
        log_context = {"external_reference": reference, "target_status": target}

        if target == PaymentStatus.COMPLETED:
            result = self._activate(lookup, self._activation_changes(attributes))
            return self._outcome(result, log_context)

        result = self.store.conditional_transition(
            Subscription,
            lookup,
            CHECKOUT_FAILURE_SOURCES,
            SubscriptionStatus.EXPIRED,
            {"status_reason": (reason or "charge_failed")[:255]},
        )
        return self._outcome(result, log_context)

    def _activation_changes(self, attributes: dict[str, Any]) -> dict[str, Any]:
        now = timezone.now()
        changes: dict[str, Any] = {
            "started_at": now,
            "expires_at": attributes.get("period_end")
            or now + billing_period(),
        }
        if attributes.get("customer_code"):
            changes["billing_customer_code"] = attributes["customer_code"]
        if attributes.get("plan_code"):
            changes["plan_code"] = attributes["plan_code"]
        return changes

    def _activate(
        self, lookup: dict[str, Any], changes: dict[str, Any]
    ) -> TransitionResult:
        result = self.store.activate_subscription(lookup, changes)
        if result.applied:
            subscription = Subscription.objects.get(**lookup)
            SubscriptionService.recompute_entitlements(subscription)
            self.logger.info(
                "Subscription activated",
                extra={
                    "subscription_id": str(subscription.id),
                    "user_id": str(subscription.user_id),
                },
            )
        return result

    def _outcome(self, result: TransitionResult, log_context: dict[str, Any]) -> str:
        if result.applied:
            return ReconciliationOutcome.APPLIED
        if not result.found:
            self.logger.warning("No entity for external id", extra=log_context)
            return ReconciliationOutcome.NOT_FOUND
        self.logger.info(
            "Stale transition rejected",
            extra={**log_context, "current_status": result.current_status},
        )
        return ReconciliationOutcome.STALE


def verified_attributes(raw: dict[str, Any]) -> dict[str, Any]:
    """Customer and plan codes from a Paystack verify response."""
    attributes: dict[str, Any] = {}
    customer = raw.get("customer")
    if isinstance(customer, dict) and customer.get("customer_code"):
        attributes["customer_code"] = customer["customer_code"]
    plan = raw.get("plan")
    if isinstance(plan, dict):
        plan = plan.get("plan_code")
    if isinstance(plan, str) and plan:
        attributes["plan_code"] = plan
    return attributes


def payout_payment_id(attributes: dict[str, Any]) -> uuid.UUID | None:
    """Payment id the initiator sent to Stitch as the payout's externalReference."""
    try:
        return uuid.UUID(str(attributes.get("external_reference") or ""))
    except ValueError:
        return None


def period_end_or_default() -> Coalesce:
    """Keep a known expires_at, otherwise one billing period from now."""
    return Coalesce(
        F("expires_at"),
        Value(timezone.now() + billing_period(), output_field=DateTimeField()),
    )
