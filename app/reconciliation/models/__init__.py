"""
Reconciliation domain models.

- Payment: A charge with its immutable commission split
- Subscription: Platform billing relationship of a merchant
- SubscriptionEntitlement: Capabilities granted by a subscription
- Disbursement: Payout of a payment's merchant share
- WebhookReceipt: Short-lived idempotency ledger of webhook bodies
"""

from reconciliation.models.disbursement import Disbursement
from reconciliation.models.payment import Payment
from reconciliation.models.subscription import Subscription, SubscriptionEntitlement
from reconciliation.models.webhook_receipt import WebhookReceipt

__all__ = [
    "Disbursement",
    "Payment",
    "Subscription",
    "SubscriptionEntitlement",
    "WebhookReceipt",
]
