"""
Subscription and entitlement models.

A Subscription is a merchant's platform-fee billing relationship, either a
recurring bundle billed by Paystack or a one-off custom selection of
capabilities. Entitlements (capability ids) are derived from the plan by
the subscription service and are never edited directly.

Invariant: at most one active/trialing subscription per user, enforced by a
partial unique constraint. Activating a new subscription cancels the
previous one inside the same transaction.

Usage:
    from reconciliation.models import Subscription

    subscription = Subscription.objects.create(
        user=merchant,
        plan_type=PlanType.BUNDLE,
        bundle_id="growth",
        external_reference="sub_3f0c...",
    )
    subscription.provides_access()  # False until activated
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from reconciliation.state_machines import PlanType, SubscriptionStatus

# Statuses that grant access while expires_at has not passed
ACCESS_STATUSES = frozenset(
    {
        SubscriptionStatus.TRIALING,
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.PAST_DUE,
        SubscriptionStatus.CANCELLED,
    }
)


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A merchant's platform subscription.

    Fields:
        user: Subscribing merchant
        plan_type: bundle (recurring) or custom (one-off)
        bundle_id: Catalogue bundle for bundle plans
        requested_capabilities: Capability ids chosen for custom plans
        external_reference: Checkout reference sent to the billing provider
        subscription_code: Paystack recurring subscription code (SUB_xxx)
        billing_customer_code: Paystack customer code (CUS_xxx)
        billing_email_token: Paystack token required to disable a subscription
        plan_code: Paystack plan code (PLN_xxx)
        amount_cents: Price charged per period
        status: Current lifecycle status
        started_at: When the subscription became active
        expires_at: End of the paid period; access ends here
    """

    # ==========================================================================
    # Plan
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="subscriptions",
        help_text="Subscribing merchant",
    )

    plan_type = models.CharField(
        max_length=10,
        choices=PlanType.choices,
        default=PlanType.BUNDLE,
        help_text="Recurring bundle or one-off custom plan",
    )

    bundle_id = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Catalogue bundle id (bundle plans)",
    )

    requested_capabilities = models.JSONField(
        default=list,
        blank=True,
        help_text="Capability ids selected for custom plans",
    )

    # ==========================================================================
    # Billing Provider References
    # ==========================================================================

    external_reference = models.CharField(
        max_length=100,
        unique=True,
        help_text="Checkout reference sent to the billing provider",
    )

    subscription_code = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        help_text="Recurring billing subscription code",
    )

    billing_customer_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
        help_text="Billing provider customer code",
    )

    billing_email_token = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Token the billing provider requires to disable the subscription",
    )

    plan_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Billing provider plan code",
    )

    amount_cents = models.PositiveBigIntegerField(
        default=0,
        help_text="Price per billing period in cents",
    )

    currency = models.CharField(
        max_length=3,
        default="ZAR",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.PENDING,
        db_index=True,
        help_text="Current subscription status",
    )

    status_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Why the subscription left its previous status",
    )

    started_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the subscription became active",
    )

    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="End of the paid period",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(
                fields=["user", "status"],
                name="subscription_user_status_idx",
            ),
            models.Index(
                fields=["status", "expires_at"],
                name="subscription_status_exp_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(
                    status__in=[SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING]
                ),
                name="one_live_subscription_per_user",
            ),
        ]

    def __str__(self) -> str:
        plan = self.bundle_id or self.plan_type
        return f"Subscription({self.id}, {plan}, {self.status})"

    def provides_access(self, at=None) -> bool:
        """
        Whether the subscription grants its entitlements at ``at``.

        Cancelled and past-due subscriptions keep access until expires_at.
        A cancelled subscription without expires_at grants nothing.
        """
        at = at or timezone.now()
        if self.status not in ACCESS_STATUSES:
            return False
        if self.expires_at is None:
            return self.status != SubscriptionStatus.CANCELLED
        return self.expires_at > at

    @property
    def capabilities(self) -> list[str]:
        return sorted(self.entitlements.values_list("capability", flat=True))


class SubscriptionEntitlement(BaseModel):
    """
    Capability granted by a subscription (join table).

    Rows are rewritten by SubscriptionService.recompute_entitlements.
    """

    subscription = models.ForeignKey(
        Subscription,
        on_delete=models.CASCADE,
        related_name="entitlements",
        help_text="Granting subscription",
    )

    capability = models.CharField(
        max_length=50,
        help_text="Capability identifier (e.g. 'inventory', 'bookings')",
    )

    class Meta:
        ordering = ["capability"]
        verbose_name = "Subscription Entitlement"
        verbose_name_plural = "Subscription Entitlements"
        constraints = [
            models.UniqueConstraint(
                fields=["subscription", "capability"],
                name="unique_subscription_capability",
            ),
        ]

    def __str__(self) -> str:
        return f"SubscriptionEntitlement({self.subscription_id}, {self.capability})"
