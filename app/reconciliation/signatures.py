"""
Webhook signature verification for Stitch and Paystack.

Both providers sign the raw request body with an HMAC and send the hex
digest in a header:

    Provider   Header(s)                              Digest   Secret
    Stitch     Stitch-Signature / X-Stitch-Signature  SHA-256  STITCH_WEBHOOK_SECRET
    Paystack   X-Paystack-Signature                   SHA-512  PAYSTACK_SECRET_KEY

The digest is always computed over the exact bytes received; bodies are
never re-serialized before verification.

Usage:
    from reconciliation.signatures import verify_webhook_request

    try:
        verify_webhook_request(Provider.PAYSTACK, request.body, request.headers)
    except AuthFailure:
        return JsonResponse({"error": "Invalid signature"}, status=401)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from django.conf import settings

from reconciliation.exceptions import AuthFailure
from reconciliation.state_machines import Provider

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureScheme:
    """How one provider signs its webhooks."""

    headers: tuple[str, ...]
    digestmod: Callable
    secret_setting: str


SIGNATURE_SCHEMES: dict[str, SignatureScheme] = {
    Provider.STITCH: SignatureScheme(
        headers=("Stitch-Signature", "X-Stitch-Signature"),
        digestmod=hashlib.sha256,
        secret_setting="STITCH_WEBHOOK_SECRET",
    ),
    Provider.PAYSTACK: SignatureScheme(
        headers=("X-Paystack-Signature",),
        digestmod=hashlib.sha512,
        secret_setting="PAYSTACK_SECRET_KEY",
    ),
}


def verify_signature(
    body: bytes,
    signature: str,
    secret: str,
    digestmod: Callable = hashlib.sha256,
) -> bool:
    """
    Check a hex HMAC signature of ``body`` in constant time.

    Returns False (never raises) for an empty or non-ASCII signature.
    """
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()
    try:
        return hmac.compare_digest(expected, signature.strip().lower())
    except TypeError:
        # compare_digest rejects non-ASCII str input
        return False


def verify_webhook_request(
    provider: str, body: bytes, headers: Mapping[str, str]
) -> None:
    """
    Verify an inbound webhook request for ``provider``.

    Args:
        provider: Provider value ("stitch" or "paystack")
        body: Raw request body
        headers: Request headers (case-insensitive mapping)

    Raises:
        AuthFailure: Signature missing or wrong, or no secret configured
            while unsigned webhooks are not allowed
    """
    scheme = SIGNATURE_SCHEMES.get(provider)
    if scheme is None:
        raise AuthFailure(f"Unknown webhook provider: {provider}")

    secret = getattr(settings, scheme.secret_setting, "") or ""
    if not secret:
        if getattr(settings, "WEBHOOK_ALLOW_UNSIGNED", False):
            logger.warning(
                "Accepting unsigned webhook, no secret configured",
                extra={"provider": provider, "secret_setting": scheme.secret_setting},
            )
            return
        logger.error(
            "Rejecting webhook, signing secret not configured",
            extra={"provider": provider, "secret_setting": scheme.secret_setting},
        )
        raise AuthFailure(
            "Webhook signing secret not configured",
            details={"provider": provider},
        )

    signature = ""
    for header in scheme.headers:
        signature = headers.get(header) or ""
        if signature:
            break

    if not signature:
        logger.warning(
            "Webhook received without signature", extra={"provider": provider}
        )
        raise AuthFailure("Missing webhook signature", details={"provider": provider})

    if not verify_signature(body, signature, secret, scheme.digestmod):
        logger.warning(
            "Webhook signature verification failed",
            extra={"provider": provider},
        )
        raise AuthFailure("Invalid webhook signature", details={"provider": provider})
