"""
Paystack event table.

Paystack sends ``{"event": "<name>", "data": {...}}``. Card charges are
matched by ``data.reference``; recurring billing events by the
subscription code.

    event                    category:status           subject
    charge.success           charge:completed          data.reference
    charge.failed            charge:failed             data.reference
    subscription.create      subscription:active       data.subscription_code
    subscription.disable     subscription:cancelled    data.subscription_code
    subscription.not_renew   subscription:cancelled    data.subscription_code
    invoice.payment_failed   subscription:past_due     data.subscription.subscription_code
    anything else            noop
"""

from __future__ import annotations

from typing import Any

from django.utils.dateparse import parse_datetime

from reconciliation.events.types import WebhookEvent
from reconciliation.exceptions import MalformedPayload
from reconciliation.state_machines import (
    EventCategory,
    PaymentStatus,
    Provider,
    SubscriptionStatus,
)

EVENT_MAP: dict[str, tuple[str, str]] = {
    "charge.success": (EventCategory.CHARGE, PaymentStatus.COMPLETED),
    "charge.failed": (EventCategory.CHARGE, PaymentStatus.FAILED),
    "subscription.create": (EventCategory.SUBSCRIPTION, SubscriptionStatus.ACTIVE),
    "subscription.disable": (EventCategory.SUBSCRIPTION, SubscriptionStatus.CANCELLED),
    "subscription.not_renew": (
        EventCategory.SUBSCRIPTION,
        SubscriptionStatus.CANCELLED,
    ),
    "invoice.payment_failed": (EventCategory.SUBSCRIPTION, SubscriptionStatus.PAST_DUE),
}


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _subject_id(event_name: str, data: dict[str, Any]) -> str:
    if event_name.startswith("charge."):
        return str(data.get("reference") or "")
    if event_name == "invoice.payment_failed":
        nested = _as_dict(data.get("subscription")).get("subscription_code")
        return str(nested or data.get("subscription_code") or "")
    return str(data.get("subscription_code") or "")


def _attributes(data: dict[str, Any]) -> dict[str, Any]:
    attributes: dict[str, Any] = {}

    customer = _as_dict(data.get("customer"))
    if customer.get("customer_code"):
        attributes["customer_code"] = customer["customer_code"]
    if customer.get("email"):
        attributes["customer_email"] = customer["email"]

    plan_code = _as_dict(data.get("plan")).get("plan_code")
    if plan_code:
        attributes["plan_code"] = plan_code

    if data.get("email_token"):
        attributes["email_token"] = data["email_token"]

    next_payment_date = data.get("next_payment_date")
    if isinstance(next_payment_date, str):
        try:
            period_end = parse_datetime(next_payment_date)
        except ValueError:
            period_end = None
        if period_end is not None:
            attributes["period_end"] = period_end

    if data.get("gateway_response"):
        attributes["gateway_response"] = data["gateway_response"]

    return attributes


def parse(body: dict[str, Any], payload_hash: str) -> WebhookEvent:
    """Translate a Paystack webhook body into a WebhookEvent."""
    event_name = body.get("event")
    if not isinstance(event_name, str) or not event_name:
        raise MalformedPayload("Paystack webhook missing 'event'")

    mapping = EVENT_MAP.get(event_name)
    if mapping is None:
        return WebhookEvent(
            provider=Provider.PAYSTACK,
            category=EventCategory.NOOP,
            event_type=event_name,
            payload_hash=payload_hash,
            payload=body,
        )

    data = _as_dict(body.get("data"))
    subject_id = _subject_id(event_name, data)
    if not subject_id:
        raise MalformedPayload(
            f"Paystack {event_name} event has no subject id",
            details={"event_type": event_name},
        )

    category, target_status = mapping
    attributes = _attributes(data)
    return WebhookEvent(
        provider=Provider.PAYSTACK,
        category=category,
        event_type=event_name,
        payload_hash=payload_hash,
        subject_id=subject_id,
        target_status=target_status,
        reason=str(attributes.get("gateway_response", "")),
        attributes=attributes,
        payload=body,
    )
