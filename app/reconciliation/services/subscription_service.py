"""
Subscription service: checkout, entitlements and cancellation.

Status changes never happen here directly except where noted; checkouts
are activated by the reconciliation orchestrator once Paystack confirms
the charge (webhook or verified redirect).

Usage:
    from reconciliation.services import SubscriptionService

    result = SubscriptionService.start_checkout(
        user, PlanType.BUNDLE, bundle_id="growth", callback_url=url
    )
    if result.success:
        return redirect(result.data.authorization_url)

    SubscriptionService.has_entitlement(user, "bookings")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService, ServiceResult
from reconciliation.adapters import PaystackAdapter
from reconciliation.catalog import (
    FREE_CAPABILITIES,
    custom_plan_price_cents,
    get_bundle,
    unknown_capabilities,
)
from reconciliation.exceptions import DownstreamSideEffectFailure, ProviderError
from reconciliation.models import Subscription, SubscriptionEntitlement
from reconciliation.models.subscription import ACCESS_STATUSES
from reconciliation.state_machines import PlanType, SubscriptionStatus
from reconciliation.store import LIVE_STATUSES, IdempotentStateStore

if TYPE_CHECKING:
    from datetime import datetime

    from accounts.models import User


@dataclass(frozen=True)
class CheckoutSession:
    """A started subscription checkout."""

    subscription: Subscription
    authorization_url: str
    reference: str
    amount_cents: int


def billing_period() -> timedelta:
    return timedelta(days=settings.SUBSCRIPTION_BILLING_PERIOD_DAYS)


class SubscriptionService(BaseService):
    """
    Service for platform subscriptions.

    All methods are classmethods. Provider calls go through PaystackAdapter
    and never run inside a database transaction.
    """

    # =========================================================================
    # Checkout
    # =========================================================================

    @classmethod
    def start_checkout(
        cls,
        user: User,
        plan_type: str,
        bundle_id: str | None = None,
        capabilities: list[str] | None = None,
        callback_url: str | None = None,
    ) -> ServiceResult[CheckoutSession]:
        """
        Start a Paystack checkout for a bundle or a custom selection.

        A pending subscription is written under a fresh reference before
        Paystack is called; any other pending checkout of the user is
        expired first so only the newest one can be activated.

        Returns:
            ServiceResult with a CheckoutSession, or a failure with
            INVALID_PLAN, INVALID_CAPABILITIES, NOTHING_TO_CHARGE,
            PLAN_NOT_CONFIGURED or the provider's error code
        """
        logger = cls.get_logger()
        capabilities = list(dict.fromkeys(capabilities or []))
        plan_code = ""

        if plan_type == PlanType.BUNDLE:
            bundle = get_bundle(bundle_id or "")
            if bundle is None:
                return ServiceResult.failure(
                    "Unknown bundle",
                    error_code="INVALID_PLAN",
                    errors={"bundle_id": [f"Unknown bundle: {bundle_id}"]},
                )
            plan_code = bundle.plan_code
            if not plan_code:
                logger.error(
                    "Billing plan code not configured",
                    extra={"bundle_id": bundle.id, "setting": bundle.plan_code_setting},
                )
                return ServiceResult.failure(
                    "This plan is not available right now",
                    error_code="PLAN_NOT_CONFIGURED",
                )
            amount_cents = bundle.price_cents
            reference = f"SUB-{uuid.uuid4().hex[:16].upper()}"
            capabilities = []
        elif plan_type == PlanType.CUSTOM:
            if not capabilities:
                return ServiceResult.failure(
                    "Select at least one capability",
                    error_code="INVALID_CAPABILITIES",
                    errors={"capabilities": ["This list may not be empty."]},
                )
            unknown = unknown_capabilities(capabilities)
            if unknown:
                return ServiceResult.failure(
                    "Unknown capabilities",
                    error_code="INVALID_CAPABILITIES",
                    errors={
                        "capabilities": [f"Unknown capability: {c}" for c in unknown]
                    },
                )
            amount_cents = custom_plan_price_cents(capabilities)
            if amount_cents <= 0:
                return ServiceResult.failure(
                    "The selected capabilities are free",
                    error_code="NOTHING_TO_CHARGE",
                )
            reference = f"PAY-{uuid.uuid4().hex[:16].upper()}"
            bundle_id = ""
        else:
            return ServiceResult.failure(
                "Invalid plan type",
                error_code="INVALID_PLAN",
                errors={"plan_type": [f"Unknown plan type: {plan_type}"]},
            )

        store = IdempotentStateStore()
        store.conditional_transition(
            Subscription,
            {"user": user},
            [SubscriptionStatus.PENDING],
            SubscriptionStatus.EXPIRED,
            {"status_reason": "superseded_checkout"},
        )

        subscription, _ = Subscription.objects.get_or_create(
            external_reference=reference,
            defaults={
                "user": user,
                "plan_type": plan_type,
                "bundle_id": bundle_id or "",
                "requested_capabilities": capabilities,
                "plan_code": plan_code,
                "amount_cents": amount_cents,
            },
        )

        callback_url = callback_url or (
            f"{settings.APP_BASE_URL.rstrip('/')}/api/v1/subscriptions/callback/"
        )
        metadata = {
            "user_id": str(user.pk),
            "subscription_id": str(subscription.id),
            "plan_type": plan_type,
        }
        if bundle_id:
            metadata["bundle_id"] = bundle_id
        if capabilities:
            metadata["capabilities"] = capabilities

        try:
            checkout = PaystackAdapter.initialize_transaction(
                email=user.email,
                reference=reference,
                callback_url=callback_url,
                amount_cents=None if plan_code else amount_cents,
                plan_code=plan_code or None,
                metadata=metadata,
            )
        except ProviderError as e:
            store.conditional_transition(
                Subscription,
                {"pk": subscription.pk},
                [SubscriptionStatus.PENDING],
                SubscriptionStatus.EXPIRED,
                {"status_reason": f"checkout_failed: {e.message}"[:255]},
            )
            return cls.handle_exception(e, "Subscription checkout failed")

        logger.info(
            "Subscription checkout started",
            extra={
                "subscription_id": str(subscription.id),
                "user_id": str(user.pk),
                "plan_type": plan_type,
                "amount_cents": amount_cents,
            },
        )
        return ServiceResult.success(
            CheckoutSession(
                subscription=subscription,
                authorization_url=checkout.authorization_url,
                reference=reference,
                amount_cents=amount_cents,
            )
        )

    # =========================================================================
    # Entitlements
    # =========================================================================

    @classmethod
    def plan_capabilities(cls, subscription: Subscription) -> set[str]:
        """Capability ids the subscription's plan grants."""
        if subscription.plan_type == PlanType.BUNDLE:
            bundle = get_bundle(subscription.bundle_id)
            return set(bundle.capabilities) if bundle else set()
        return set(subscription.requested_capabilities or [])

    @classmethod
    def recompute_entitlements(cls, subscription: Subscription) -> list[str]:
        """Make the entitlement rows match the plan; returns the capabilities."""
        wanted = cls.plan_capabilities(subscription)
        with cls.atomic():
            subscription.entitlements.exclude(capability__in=wanted).delete()
            existing = set(
                subscription.entitlements.values_list("capability", flat=True)
            )
            SubscriptionEntitlement.objects.bulk_create(
                [
                    SubscriptionEntitlement(subscription=subscription, capability=c)
                    for c in sorted(wanted - existing)
                ],
                ignore_conflicts=True,
            )
        return sorted(wanted)

    @classmethod
    def current_subscription(cls, user: User) -> Subscription | None:
        """
        Latest subscription that has left checkout and may still grant
        access. Pending checkouts and expired rows never shadow it.
        """
        return (
            Subscription.objects.filter(user=user, status__in=ACCESS_STATUSES)
            .order_by("-created_at")
            .first()
        )

    @classmethod
    def has_entitlement(
        cls, user: User, capability: str, at: datetime | None = None
    ) -> bool:
        if capability in FREE_CAPABILITIES:
            return True
        subscription = cls.current_subscription(user)
        if subscription is None or not subscription.provides_access(at):
            return False
        return subscription.entitlements.filter(capability=capability).exists()

    @classmethod
    def entitled_capabilities(
        cls, user: User, at: datetime | None = None
    ) -> list[str]:
        subscription = cls.current_subscription(user)
        granted = set(FREE_CAPABILITIES)
        if subscription is not None and subscription.provides_access(at):
            granted.update(
                subscription.entitlements.values_list("capability", flat=True)
            )
        return sorted(granted)

    # =========================================================================
    # Cancellation
    # =========================================================================

    @classmethod
    def request_cancellation(cls, user: User) -> ServiceResult[Subscription]:
        """
        Cancel the user's live subscription.

        Recurring subscriptions are disabled at Paystack and become
        cancelled when the subscription.disable webhook arrives. One-off
        custom plans have nothing to disable and are cancelled locally,
        keeping access until the end of the paid period.
        """
        logger = cls.get_logger()
        subscription = (
            Subscription.objects.filter(user=user, status__in=LIVE_STATUSES)
            .order_by("-created_at")
            .first()
        )
        if subscription is None:
            return ServiceResult.failure(
                "No active subscription", error_code="NOT_FOUND"
            )

        if subscription.subscription_code and subscription.billing_email_token:
            try:
                PaystackAdapter.disable_subscription(
                    subscription.subscription_code,
                    subscription.billing_email_token,
                )
            except DownstreamSideEffectFailure as e:
                return cls.handle_exception(e, "Subscription cancellation failed")

            logger.info(
                "Requested subscription disable at provider",
                extra={"subscription_id": str(subscription.id)},
            )
            return ServiceResult.success(subscription)

        if subscription.plan_type == PlanType.BUNDLE:
            # Recurring code not linked yet; nothing to disable remotely
            logger.warning(
                "Cancelling bundle subscription without a billing code",
                extra={"subscription_id": str(subscription.id)},
            )

        expires_at = subscription.expires_at or timezone.now() + billing_period()
        result = IdempotentStateStore().transition_subscription(
            {"pk": subscription.pk},
            SubscriptionStatus.CANCELLED,
            {"expires_at": expires_at, "status_reason": "cancelled_by_user"},
        )
        if not result.applied:
            return ServiceResult.failure(
                "Subscription can no longer be cancelled",
                error_code="INVALID_STATE",
            )

        subscription.refresh_from_db()
        return ServiceResult.success(subscription)
