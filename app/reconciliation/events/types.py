"""
Canonical webhook event shared by both providers.

Provider payloads are translated into a WebhookEvent by the normalizer.
The orchestrator only ever sees this type, never a provider's raw JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from django.utils import timezone

from reconciliation.state_machines import EventCategory


@dataclass(frozen=True)
class WebhookEvent:
    """
    A provider notification reduced to what reconciliation needs.

    Attributes:
        provider: "stitch" or "paystack"
        category: Which entity the event moves (payment, disbursement,
            subscription, charge) or noop
        event_type: Raw provider event name, e.g. "charge.success" or
            "payment_initiation_request:PaymentInitiationRequestCompleted"
        subject_id: External id of the entity (empty for noop events)
        target_status: Status the event asks for (empty for noop events)
        reason: Provider-supplied reason, if any
        attributes: Provider extras (customer code, plan code, period end)
        payload_hash: SHA-256 hex digest of the raw body
        received_at: When the body was normalized
        payload: Parsed body, kept for logging and the ledger
    """

    provider: str
    category: str
    event_type: str
    payload_hash: str
    subject_id: str = ""
    target_status: str = ""
    reason: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    received_at: datetime = field(default_factory=timezone.now)
    payload: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_noop(self) -> bool:
        return self.category == EventCategory.NOOP

    def log_context(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "event_type": self.event_type,
            "subject_id": self.subject_id,
            "target_status": self.target_status,
            "payload_hash": self.payload_hash,
        }
