"""
Stitch event table.

Stitch sends ``{"id", "type", "data": {"id", "status": {"__typename",
"reason"}}}``. The pair (type, status typename) decides the transition;
the subject is always ``data.id``.
"""

from __future__ import annotations

from typing import Any

from reconciliation.events.types import WebhookEvent
from reconciliation.exceptions import MalformedPayload
from reconciliation.state_machines import (
    DisbursementStatus,
    EventCategory,
    PaymentStatus,
    Provider,
)

PAYMENT_REQUEST = "payment_initiation_request"
DISBURSEMENT = "disbursement"

# (type, status typename) -> (category, target status, default reason)
EVENT_MAP: dict[tuple[str, str], tuple[str, str, str]] = {
    (PAYMENT_REQUEST, "PaymentInitiationRequestCompleted"): (
        EventCategory.PAYMENT,
        PaymentStatus.COMPLETED,
        "",
    ),
    (PAYMENT_REQUEST, "PaymentInitiationRequestCancelled"): (
        EventCategory.PAYMENT,
        PaymentStatus.CANCELLED,
        "Payment cancelled by user",
    ),
    (PAYMENT_REQUEST, "PaymentInitiationRequestExpired"): (
        EventCategory.PAYMENT,
        PaymentStatus.FAILED,
        "Payment link expired",
    ),
    (DISBURSEMENT, "DisbursementSubmitted"): (
        EventCategory.DISBURSEMENT,
        DisbursementStatus.SUBMITTED,
        "",
    ),
    (DISBURSEMENT, "DisbursementCompleted"): (
        EventCategory.DISBURSEMENT,
        DisbursementStatus.COMPLETED,
        "",
    ),
    (DISBURSEMENT, "DisbursementError"): (
        EventCategory.DISBURSEMENT,
        DisbursementStatus.ERROR,
        "Payout failed",
    ),
    (DISBURSEMENT, "DisbursementPaused"): (
        EventCategory.DISBURSEMENT,
        DisbursementStatus.PAUSED,
        "Payout paused",
    ),
    (DISBURSEMENT, "DisbursementCancelled"): (
        EventCategory.DISBURSEMENT,
        DisbursementStatus.CANCELLED,
        "Payout cancelled",
    ),
    (DISBURSEMENT, "DisbursementReversed"): (
        EventCategory.DISBURSEMENT,
        DisbursementStatus.REVERSED,
        "Payout reversed",
    ),
}


def parse(body: dict[str, Any], payload_hash: str) -> WebhookEvent:
    """Translate a Stitch webhook body into a WebhookEvent."""
    event_kind = body.get("type")
    if not isinstance(event_kind, str) or not event_kind:
        raise MalformedPayload("Stitch webhook missing 'type'")

    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    status = data.get("status") if isinstance(data.get("status"), dict) else {}
    typename = status.get("__typename") or ""
    event_type = f"{event_kind}:{typename}" if typename else event_kind

    mapping = EVENT_MAP.get((event_kind, typename))
    if mapping is None:
        # pending states and unknown types
        return WebhookEvent(
            provider=Provider.STITCH,
            category=EventCategory.NOOP,
            event_type=event_type,
            payload_hash=payload_hash,
            subject_id=str(data.get("id") or ""),
            payload=body,
        )

    subject_id = data.get("id")
    if not subject_id:
        raise MalformedPayload(
            f"Stitch {event_type} event has no data.id",
            details={"event_type": event_type},
        )

    category, target_status, default_reason = mapping
    reason = status.get("reason") or default_reason
    attributes: dict[str, Any] = {}
    if data.get("externalReference"):
        attributes["external_reference"] = data["externalReference"]

    return WebhookEvent(
        provider=Provider.STITCH,
        category=category,
        event_type=event_type,
        payload_hash=payload_hash,
        subject_id=str(subject_id),
        target_status=target_status,
        reason=str(reason),
        attributes=attributes,
        payload=body,
    )
