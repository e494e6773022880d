"""
Reconciliation services.

This module provides:
- ReconciliationOrchestrator: Applies webhooks and verified callbacks
- DisbursementInitiator: Pays out a completed payment's merchant share
- PaymentService: Creates customer payments through Stitch
- SubscriptionService: Checkout, entitlements and cancellation

Usage:
    from reconciliation.services import ReconciliationOrchestrator

    outcome = ReconciliationOrchestrator().apply(event)

    from reconciliation.services import SubscriptionService

    SubscriptionService.has_entitlement(user, "inventory")
"""

from reconciliation.services.disbursement_initiator import DisbursementInitiator
from reconciliation.services.payment_service import PaymentService
from reconciliation.services.reconciliation_orchestrator import (
    CallbackResult,
    ReconciliationOrchestrator,
)
from reconciliation.services.subscription_service import (
    CheckoutSession,
    SubscriptionService,
)

__all__ = [
    "CallbackResult",
    "CheckoutSession",
    "DisbursementInitiator",
    "PaymentService",
    "ReconciliationOrchestrator",
    "SubscriptionService",
]
