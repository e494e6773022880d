"""
State machine enums and the transition table for reconciliation models.
"""

from reconciliation.state_machines.states import (
    DisbursementStatus,
    EventCategory,
    PaymentKind,
    PaymentStatus,
    PlanType,
    Provider,
    SubscriptionStatus,
    WebhookReceiptStatus,
)
from reconciliation.state_machines.transitions import (
    TRANSITIONS,
    allowed_sources,
    can_transition,
    is_terminal,
)

__all__ = [
    "DisbursementStatus",
    "EventCategory",
    "PaymentKind",
    "PaymentStatus",
    "PlanType",
    "Provider",
    "SubscriptionStatus",
    "TRANSITIONS",
    "WebhookReceiptStatus",
    "allowed_sources",
    "can_transition",
    "is_terminal",
]
