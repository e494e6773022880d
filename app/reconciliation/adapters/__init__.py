"""
Provider adapters for Stitch and Paystack.

All outbound provider calls go through these adapters so that timeouts,
retries, error translation and logging are handled in one place.

Usage:
    from reconciliation.adapters import PaystackAdapter, StitchAdapter

    status = StitchAdapter.get_status("pir_123")
    if status.status == PaymentStatus.COMPLETED:
        ...
"""

from reconciliation.adapters.base import ProviderAdapter, ProviderStatus
from reconciliation.adapters.paystack_adapter import CheckoutResult, PaystackAdapter
from reconciliation.adapters.stitch_adapter import (
    DisbursementResult,
    PaymentRequestResult,
    StitchAdapter,
)

__all__ = [
    "CheckoutResult",
    "DisbursementResult",
    "PaymentRequestResult",
    "PaystackAdapter",
    "ProviderAdapter",
    "ProviderStatus",
    "StitchAdapter",
]
