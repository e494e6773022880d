"""
Disbursement model: the payout instruction for a completed payment.

There is at most one disbursement per payment (one-to-one). The row is
created by the DisbursementInitiator before the provider is called, so a
second concurrent attempt for the same payment finds the existing row
instead of instructing a second payout.

Usage:
    from reconciliation.models import Disbursement

    disbursement = payment.disbursement          # reverse one-to-one
    Disbursement.objects.filter(external_id="disb_123").first()
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from reconciliation.state_machines import DisbursementStatus


class Disbursement(UUIDPrimaryKeyMixin, BaseModel):
    """
    Payout of a payment's merchant share to the merchant's bank account.

    Beneficiary details are copied from the merchant profile at initiation,
    so later profile edits do not rewrite payout history.

    Fields:
        payment: The payment being paid out (one-to-one)
        external_id: Stitch disbursement id once accepted
        reference: Idempotency nonce sent to the provider
        bank_code / account_number / account_name / account_type: Beneficiary
        amount_cents: Merchant amount paid out (the payment's merchant share)
        status: Current payout status
        failure_reason: Provider reason for error/pause/cancel/reversal
        submitted_at / completed_at: Lifecycle timestamps
    """

    payment = models.OneToOneField(
        "reconciliation.Payment",
        on_delete=models.PROTECT,
        related_name="disbursement",
        help_text="Payment being paid out",
    )

    external_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Provider disbursement id",
    )

    reference = models.CharField(
        max_length=64,
        unique=True,
        help_text="Idempotency nonce sent with the payout instruction",
    )

    # ==========================================================================
    # Beneficiary
    # ==========================================================================

    bank_code = models.CharField(max_length=50, help_text="Beneficiary bank id")
    account_number = models.CharField(
        max_length=20, help_text="Beneficiary account number"
    )
    account_name = models.CharField(max_length=120, help_text="Account holder name")
    account_type = models.CharField(
        max_length=10, default="current", help_text="current or savings"
    )

    # ==========================================================================
    # Amount & Status
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Payout amount in cents",
    )

    currency = models.CharField(max_length=3, default="ZAR")

    status = models.CharField(
        max_length=20,
        choices=DisbursementStatus.choices,
        default=DisbursementStatus.PENDING,
        db_index=True,
        help_text="Current payout status",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Reason given for error, pause, cancellation or reversal",
    )

    submitted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Disbursement"
        verbose_name_plural = "Disbursements"
        indexes = [
            models.Index(
                fields=["status", "created_at"],
                name="disbursement_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Disbursement({self.id}, {self.status}, "
            f"{self.amount_cents} {self.currency})"
        )
