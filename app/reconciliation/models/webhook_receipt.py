"""
WebhookReceipt model: short-lived idempotency ledger of webhook bodies.

Each received body is recorded under its SHA-256 hash. An exact redelivery
of a body that was already processed is acknowledged without touching the
state store again. Correctness does not depend on the ledger (the state
store's conditional transitions already make reprocessing a no-op); it saves
provider round-trips and gives ops an audit trail. Rows are purged after
WEBHOOK_LEDGER_RETENTION_DAYS.

Usage:
    receipt, created = WebhookReceipt.objects.get_or_create(
        provider=event.provider,
        payload_hash=event.payload_hash,
        defaults={"event_type": event.event_type},
    )
    if not created and receipt.is_processed:
        return JsonResponse({"received": True, "outcome": "duplicate"})
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from reconciliation.state_machines import Provider, WebhookReceiptStatus


class WebhookReceipt(UUIDPrimaryKeyMixin, BaseModel):
    """
    One received webhook body per provider and payload hash.

    Fields:
        provider: Sending provider
        payload_hash: SHA-256 of the raw body
        event_type: Provider event name (for filtering in the admin)
        subject_id: External id the event refers to
        status: Processing status
        outcome: Reconciliation outcome of the last processing attempt
        attempts: Number of processing attempts
        processed_at: When processing succeeded
        error_message: Last processing error
    """

    provider = models.CharField(
        max_length=20,
        choices=Provider.choices,
        help_text="Sending provider",
    )

    payload_hash = models.CharField(
        max_length=64,
        help_text="SHA-256 hex digest of the raw body",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Provider event type",
    )

    subject_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="External id of the entity the event refers to",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookReceiptStatus.choices,
        default=WebhookReceiptStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    outcome = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Reconciliation outcome of the last attempt",
    )

    attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the body was successfully processed",
    )

    error_message = models.TextField(
        blank=True,
        default="",
        help_text="Error message if processing failed",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Receipt"
        verbose_name_plural = "Webhook Receipts"
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "payload_hash"],
                name="unique_webhook_body_per_provider",
            ),
        ]
        indexes = [
            models.Index(
                fields=["status", "created_at"],
                name="webhook_receipt_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookReceipt({self.provider}, {self.event_type}, {self.status})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookReceiptStatus.PROCESSED

    # Helpers below do not save - caller must save after calling.

    def mark_processing(self) -> None:
        self.status = WebhookReceiptStatus.PROCESSING
        self.attempts += 1

    def mark_processed(self, outcome: str) -> None:
        self.status = WebhookReceiptStatus.PROCESSED
        self.outcome = outcome
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookReceiptStatus.FAILED
        self.error_message = error_message
