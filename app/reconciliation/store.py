"""
Idempotent state store for payments, subscriptions and disbursements.

Every status change is a single conditional UPDATE:

    UPDATE ... SET status = <target>, ... WHERE <lookup> AND status IN (<sources>)

The row count tells the caller whether *this* call performed the change.
Two concurrent callers racing to apply the same transition both issue the
statement; the database serializes them and exactly one sees a row count of
one. That caller alone owns the side effects of the transition (for example
initiating a disbursement).

No transaction or row lock is held beyond the single statement, so callers
are free to talk to providers once it returns.

Usage:
    store = IdempotentStateStore()

    result = store.transition_payment("pir_123", PaymentStatus.COMPLETED)
    if result.applied:
        initiator.initiate(store.get_payment_by_external_id("pir_123"))
    elif result.current_status is None:
        ...  # unknown payment
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from reconciliation.models import Disbursement, Payment, Subscription
from reconciliation.state_machines import (
    DisbursementStatus,
    PlanType,
    SubscriptionStatus,
    allowed_sources,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from typing import Any

    from django.db import models

logger = logging.getLogger(__name__)

LIVE_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PAST_DUE,
)

ENTITY_MODELS: dict[str, type[models.Model]] = {
    "payment": Payment,
    "subscription": Subscription,
    "disbursement": Disbursement,
}


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one conditional transition.

    Attributes:
        applied: True only for the caller whose UPDATE changed a row
        current_status: Status after the call; None when no row matched
            the lookup at all
        rows: Number of rows the UPDATE changed
    """

    applied: bool
    current_status: str | None
    rows: int = 0

    @property
    def found(self) -> bool:
        return self.current_status is not None


class IdempotentStateStore:
    """
    Conditional status updates keyed by external provider ids.

    Instances hold no state; one is created per orchestrator so tests can
    substitute their own.
    """

    def conditional_transition(
        self,
        model: type[models.Model],
        lookup: dict[str, Any],
        from_statuses: Iterable[str],
        to_status: str,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """
        Move rows matching ``lookup`` to ``to_status`` if currently in
        ``from_statuses``.

        ``changes`` are written in the same statement. QuerySet.update()
        bypasses auto_now, so updated_at is set here.
        """
        sources = list(from_statuses)
        values = {**(changes or {}), "status": to_status, "updated_at": timezone.now()}

        rows = 0
        if sources:
            rows = model.objects.filter(**lookup, status__in=sources).update(**values)

        if rows:
            logger.info(
                "Applied transition",
                extra={
                    "model": model.__name__,
                    "lookup": {k: str(v) for k, v in lookup.items()},
                    "to_status": to_status,
                    "rows": rows,
                },
            )
            return TransitionResult(applied=True, current_status=to_status, rows=rows)

        current = (
            model.objects.filter(**lookup)
            .order_by("-created_at")
            .values_list("status", flat=True)
            .first()
        )
        return TransitionResult(applied=False, current_status=current)

    def transition(
        self,
        entity: str,
        lookup: dict[str, Any],
        to_status: str,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Apply a transition allowed by the transition table for ``entity``."""
        return self.conditional_transition(
            ENTITY_MODELS[entity],
            lookup,
            allowed_sources(entity, to_status),
            to_status,
            changes,
        )

    # =========================================================================
    # Convenience wrappers
    # =========================================================================

    def transition_payment(
        self,
        external_id: str,
        to_status: str,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        return self.transition(
            "payment", {"external_id": external_id}, to_status, changes
        )

    def transition_subscription(
        self,
        lookup: dict[str, Any],
        to_status: str,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """
        Transition a subscription found by ``lookup``.

        Recurring billing events look up by ``subscription_code``, checkout
        charges by ``external_reference``.
        """
        return self.transition("subscription", lookup, to_status, changes)

    def transition_disbursement(
        self,
        external_id: str,
        to_status: str,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        return self.transition(
            "disbursement", {"external_id": external_id}, to_status, changes
        )

    def adopt_disbursement(
        self,
        payment_id: Any,
        external_id: str,
        to_status: str,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """
        Transition the payout of ``payment_id`` that has no provider id yet.

        Stitch may report on a payout before create_disbursement returns,
        while the row is still pending without an external_id. The provider
        id is written in the same UPDATE, so later events find the row by
        external_id.
        """
        sources = set(allowed_sources("disbursement", to_status))
        sources.add(DisbursementStatus.PENDING)
        return self.conditional_transition(
            Disbursement,
            {"payment_id": payment_id, "external_id__isnull": True},
            sources,
            to_status,
            {**(changes or {}), "external_id": external_id},
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_payment_by_external_id(self, external_id: str) -> Payment | None:
        return (
            Payment.objects.select_related("merchant", "subscription")
            .filter(external_id=external_id)
            .first()
        )

    def get_subscription_by_code(self, subscription_code: str) -> Subscription | None:
        return Subscription.objects.filter(subscription_code=subscription_code).first()

    def get_subscription_by_reference(self, reference: str) -> Subscription | None:
        return Subscription.objects.filter(external_reference=reference).first()

    def get_disbursement_by_external_id(self, external_id: str) -> Disbursement | None:
        return Disbursement.objects.filter(external_id=external_id).first()

    # =========================================================================
    # Subscription bookkeeping
    # =========================================================================

    def link_subscription_code(
        self,
        subscription_code: str,
        customer_code: str = "",
        customer_email: str = "",
        plan_code: str = "",
        email_token: str = "",
    ) -> bool:
        """
        Attach a recurring subscription code to the customer's bundle
        subscription that does not have one yet.

        The customer code is recorded when the checkout charge activates the
        subscription; if the code arrives first, the subscriber's email is
        used instead. Returns True when this call linked the code.
        """
        if Subscription.objects.filter(subscription_code=subscription_code).exists():
            return False

        match = Q(pk__in=[])
        if customer_code:
            match |= Q(billing_customer_code=customer_code)
        if customer_email:
            match |= Q(user__email__iexact=customer_email)

        candidate = (
            Subscription.objects.filter(
                match,
                plan_type=PlanType.BUNDLE,
                subscription_code__isnull=True,
                status__in=[
                    SubscriptionStatus.PENDING,
                    SubscriptionStatus.TRIALING,
                    SubscriptionStatus.ACTIVE,
                ],
            )
            .order_by("-created_at")
            .values_list("pk", flat=True)
            .first()
        )
        if candidate is None:
            return False

        changes: dict[str, Any] = {"subscription_code": subscription_code}
        if customer_code:
            changes["billing_customer_code"] = customer_code
        if plan_code:
            changes["plan_code"] = plan_code
        if email_token:
            changes["billing_email_token"] = email_token

        rows = Subscription.objects.filter(
            pk=candidate, subscription_code__isnull=True
        ).update(updated_at=timezone.now(), **changes)
        return rows == 1

    def activate_subscription(
        self,
        lookup: dict[str, Any],
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """
        Activate the subscription found by ``lookup``, superseding the
        user's other live subscription in the same transaction.

        The target row is locked first so the older subscription is only
        cancelled when this call actually performs the activation.
        """
        sources = allowed_sources("subscription", SubscriptionStatus.ACTIVE)
        with transaction.atomic():
            row = (
                Subscription.objects.select_for_update()
                .filter(**lookup)
                .values("pk", "user_id", "status")
                .first()
            )
            if row is None:
                return TransitionResult(applied=False, current_status=None)
            if row["status"] not in sources:
                return TransitionResult(applied=False, current_status=row["status"])

            now = timezone.now()
            superseded = (
                Subscription.objects.filter(
                    user_id=row["user_id"],
                    status__in=LIVE_STATUSES,
                )
                .exclude(pk=row["pk"])
                .update(
                    status=SubscriptionStatus.CANCELLED,
                    status_reason="superseded",
                    expires_at=now,
                    updated_at=now,
                )
            )
            if superseded:
                logger.info(
                    "Superseded previous subscription",
                    extra={"user_id": str(row["user_id"]), "rows": superseded},
                )

            return self.conditional_transition(
                Subscription,
                {"pk": row["pk"]},
                sources,
                SubscriptionStatus.ACTIVE,
                changes,
            )

    def extend_subscription_period(
        self,
        lookup: dict[str, Any],
        expires_at: datetime,
    ) -> TransitionResult:
        """
        Push out expires_at of an active subscription after a renewal
        charge. Never moves expires_at backwards.
        """
        rows = (
            Subscription.objects.filter(
                Q(expires_at__isnull=True) | Q(expires_at__lt=expires_at),
                **lookup,
                status=SubscriptionStatus.ACTIVE,
            ).update(expires_at=expires_at, updated_at=timezone.now())
        )
        if rows:
            logger.info(
                "Extended subscription period",
                extra={
                    "lookup": {k: str(v) for k, v in lookup.items()},
                    "expires_at": expires_at.isoformat(),
                },
            )
            return TransitionResult(
                applied=True, current_status=SubscriptionStatus.ACTIVE, rows=rows
            )

        current = (
            Subscription.objects.filter(**lookup)
            .order_by("-created_at")
            .values_list("status", flat=True)
            .first()
        )
        return TransitionResult(applied=False, current_status=current)

    def expire_lapsed(self, now: datetime) -> int:
        """Move active subscriptions whose paid period has ended to expired."""
        result = self.conditional_transition(
            Subscription,
            {"expires_at__lte": now},
            [SubscriptionStatus.ACTIVE],
            SubscriptionStatus.EXPIRED,
            {"status_reason": "lapsed"},
        )
        return result.rows

    def expire_abandoned_checkouts(self, created_before: datetime) -> int:
        """Move pending checkouts older than ``created_before`` to expired."""
        result = self.conditional_transition(
            Subscription,
            {"created_at__lt": created_before},
            [SubscriptionStatus.PENDING],
            SubscriptionStatus.EXPIRED,
            {"status_reason": "checkout_abandoned"},
        )
        return result.rows
