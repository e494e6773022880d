"""
Transition table for payments, subscriptions and disbursements.

Every status change in the reconciliation engine is an atomic conditional
update "set status = target where status in sources". This module is the
single place that defines the sources for each target; the state store and
orchestrator only ever read from it.

Usage:
    from reconciliation.state_machines.transitions import allowed_sources

    sources = allowed_sources("payment", PaymentStatus.COMPLETED)  # {"pending"}
"""

from __future__ import annotations

from reconciliation.state_machines.states import (
    DisbursementStatus,
    PaymentStatus,
    SubscriptionStatus,
)

# target status -> statuses it may be entered from

PAYMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.CANCELLED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
}

SUBSCRIPTION_TRANSITIONS: dict[str, frozenset[str]] = {
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.PENDING, SubscriptionStatus.TRIALING}
    ),
    SubscriptionStatus.PAST_DUE: frozenset({SubscriptionStatus.ACTIVE}),
    SubscriptionStatus.CANCELLED: frozenset(
        {
            SubscriptionStatus.PENDING,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
        }
    ),
    SubscriptionStatus.EXPIRED: frozenset(
        {
            SubscriptionStatus.PENDING,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
        }
    ),
}

DISBURSEMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    DisbursementStatus.SUBMITTED: frozenset({DisbursementStatus.PENDING}),
    DisbursementStatus.COMPLETED: frozenset(
        {DisbursementStatus.SUBMITTED, DisbursementStatus.PAUSED}
    ),
    DisbursementStatus.ERROR: frozenset(
        {DisbursementStatus.PENDING, DisbursementStatus.SUBMITTED}
    ),
    DisbursementStatus.PAUSED: frozenset({DisbursementStatus.SUBMITTED}),
    DisbursementStatus.CANCELLED: frozenset(
        {DisbursementStatus.SUBMITTED, DisbursementStatus.PAUSED}
    ),
    DisbursementStatus.REVERSED: frozenset({DisbursementStatus.SUBMITTED}),
}

TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    "payment": PAYMENT_TRANSITIONS,
    "subscription": SUBSCRIPTION_TRANSITIONS,
    "disbursement": DISBURSEMENT_TRANSITIONS,
}

TERMINAL_STATES: dict[str, frozenset[str]] = {
    "payment": frozenset(
        {PaymentStatus.COMPLETED, PaymentStatus.CANCELLED, PaymentStatus.FAILED}
    ),
    "subscription": frozenset(
        {SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED}
    ),
    "disbursement": frozenset(
        {
            DisbursementStatus.COMPLETED,
            DisbursementStatus.ERROR,
            DisbursementStatus.CANCELLED,
            DisbursementStatus.REVERSED,
        }
    ),
}


def allowed_sources(entity: str, target: str) -> frozenset[str]:
    """
    Return the statuses ``target`` may be entered from.

    An unknown target yields an empty set, so a conditional update built
    from it can never match a row.
    """
    return TRANSITIONS[entity].get(target, frozenset())


def can_transition(entity: str, current: str, target: str) -> bool:
    return current in allowed_sources(entity, target)


def is_terminal(entity: str, status: str) -> bool:
    return status in TERMINAL_STATES[entity]
