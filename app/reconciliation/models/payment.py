"""
Payment model: one customer-to-merchant (or merchant-to-platform) charge.

The commission split is computed once when the payment is created and never
recomputed: ``amount_cents == platform_fee_cents + merchant_amount_cents``
holds at every point of the lifecycle, enforced both by a database check
constraint and by a save() guard that refuses to change a stored split.

Status only moves through the conditional updates of the state store, never
through ``payment.status = ...; payment.save()``.

Usage:
    from reconciliation.models import Payment
    from reconciliation.commission import calculate_split

    split = calculate_split(10000, Decimal("5"))
    payment = Payment.objects.create(
        merchant=merchant,
        provider=Provider.STITCH,
        amount_cents=10000,
        commission_percent=split.percent,
        platform_fee_cents=split.platform_fee_cents,
        merchant_amount_cents=split.merchant_amount_cents,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from reconciliation.exceptions import SplitImmutableError
from reconciliation.state_machines import PaymentKind, PaymentStatus, Provider

SPLIT_FIELDS = ("amount_cents", "platform_fee_cents", "merchant_amount_cents")


class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A single charge collected through a payment provider.

    Fields:
        external_id: Provider payment id (Stitch payment request id or
            Paystack transaction reference); set once the provider accepts
        provider: Which provider collects the money
        kind: Customer payment (paid out to merchant) or subscription fee
        merchant: Merchant receiving the payout
        subscription: Subscription this payment pays for (kind=subscription)
        amount_cents: Gross amount in minor units
        commission_percent: Commission rate applied at creation
        platform_fee_cents: Platform share of the gross amount
        merchant_amount_cents: Merchant share of the gross amount
        status: Current lifecycle status
        status_reason: Provider reason for cancellation/failure
        order_reference: Merchant's own order reference
        completed_at: When the payment reached completed
    """

    # ==========================================================================
    # Provider Identification
    # ==========================================================================

    external_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Provider payment id (unique); lookups from webhooks use this",
    )

    provider = models.CharField(
        max_length=20,
        choices=Provider.choices,
        default=Provider.STITCH,
        help_text="Payment provider collecting the funds",
    )

    kind = models.CharField(
        max_length=20,
        choices=PaymentKind.choices,
        default=PaymentKind.CUSTOMER_PAYMENT,
        help_text="What this payment pays for",
    )

    # ==========================================================================
    # Parties
    # ==========================================================================

    merchant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Merchant the payment belongs to",
    )

    subscription = models.ForeignKey(
        "reconciliation.Subscription",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Subscription paid for by this payment, if any",
    )

    # ==========================================================================
    # Amounts (integer minor units)
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Gross amount in cents",
    )

    commission_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Commission rate applied when the payment was created",
    )

    platform_fee_cents = models.PositiveBigIntegerField(
        help_text="Platform commission in cents",
    )

    merchant_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount owed to the merchant in cents",
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
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
        help_text="Current payment status",
    )

    status_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Reason reported for cancellation or failure",
    )

    order_reference = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Merchant order reference",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment completed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(
                fields=["merchant", "status"],
                name="payment_merchant_status_idx",
            ),
            models.Index(
                fields=["status", "created_at"],
                name="payment_status_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    amount_cents=models.F("platform_fee_cents")
                    + models.F("merchant_amount_cents")
                ),
                name="payment_split_sums_to_gross",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount_cents} {self.currency})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        if all(name in field_names for name in SPLIT_FIELDS):
            instance._stored_split = tuple(getattr(instance, n) for n in SPLIT_FIELDS)
        return instance

    def save(self, *args, **kwargs) -> None:
        """Refuse to persist an inconsistent or altered commission split."""
        split = tuple(getattr(self, n) for n in SPLIT_FIELDS)
        if self.amount_cents != self.platform_fee_cents + self.merchant_amount_cents:
            raise SplitImmutableError(
                "Payment split does not add up to the gross amount",
                details={"split": list(split)},
            )
        stored = getattr(self, "_stored_split", None)
        if stored is not None and stored != split:
            raise SplitImmutableError(
                "Payment split cannot change after creation",
                details={"stored": list(stored), "attempted": list(split)},
            )
        super().save(*args, **kwargs)
        self._stored_split = split

    @property
    def short_reference(self) -> str:
        """First 8 characters of the id, safe to show to the payer."""
        return str(self.id)[:8]

    @property
    def is_terminal(self) -> bool:
        return self.status != PaymentStatus.PENDING
