"""
Event normalizer: raw provider webhook body to canonical WebhookEvent.

Usage:
    from reconciliation.events import normalize

    event = normalize(Provider.STITCH, request.body)
    if event.is_noop:
        ...
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Callable

from reconciliation.events import paystack, stitch
from reconciliation.events.types import WebhookEvent
from reconciliation.exceptions import MalformedPayload
from reconciliation.state_machines import Provider

logger = logging.getLogger(__name__)

PARSERS: dict[str, Callable[[dict[str, Any], str], WebhookEvent]] = {
    Provider.STITCH: stitch.parse,
    Provider.PAYSTACK: paystack.parse,
}


def payload_hash(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


def normalize(provider: str, body: bytes) -> WebhookEvent:
    """
    Parse ``body`` and map it onto a WebhookEvent.

    Unknown event types become noop events; they are never errors.

    Raises:
        MalformedPayload: Invalid JSON, a non-object body, a missing event
            name, or a recognised event without its subject id
    """
    parser = PARSERS.get(provider)
    if parser is None:
        raise MalformedPayload(f"Unknown webhook provider: {provider}")

    try:
        decoded = json.loads(body)
    except ValueError as e:
        raise MalformedPayload(
            "Webhook body is not valid JSON",
            details={"provider": provider, "error": str(e)},
        ) from e

    if not isinstance(decoded, dict):
        raise MalformedPayload(
            "Webhook body must be a JSON object",
            details={"provider": provider},
        )

    event = parser(decoded, payload_hash(body))
    logger.debug("Normalized webhook", extra=event.log_context())
    return event
