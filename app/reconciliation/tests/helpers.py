"""
Helpers for building raw, signed webhook bodies in tests.

Usage:
    body = stitch_body("PaymentInitiationRequestCompleted", payment.external_id)
    client.post(url, body, content_type="application/json",
                HTTP_X_STITCH_SIGNATURE=sign_stitch(body))
"""

import hashlib
import hmac
import json

from django.conf import settings


def sign_stitch(body: bytes, secret: str | None = None) -> str:
    secret = secret or settings.STITCH_WEBHOOK_SECRET
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def sign_paystack(body: bytes, secret: str | None = None) -> str:
    secret = secret or settings.PAYSTACK_SECRET_KEY
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def stitch_body(
    typename: str,
    external_id: str,
    event_type: str = "payment_initiation_request",
    **status,
) -> bytes:
    """Raw Stitch webhook body for a payment or disbursement status."""
    payload = {
        "type": event_type,
        "data": {
            "id": external_id,
            "externalReference": "ref-1",
            "status": {"__typename": typename, **status},
        },
    }
    return json.dumps(payload).encode()


def paystack_body(event: str, data: dict) -> bytes:
    """Raw Paystack webhook body."""
    return json.dumps({"event": event, "data": data}).encode()
