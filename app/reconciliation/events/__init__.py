"""
Provider webhook bodies translated into canonical events.
"""

from reconciliation.events.normalizer import normalize, payload_hash
from reconciliation.events.types import WebhookEvent

__all__ = [
    "WebhookEvent",
    "normalize",
    "payload_hash",
]
