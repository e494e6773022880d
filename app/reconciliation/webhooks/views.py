"""
Webhook endpoint views for Stitch and Paystack.

Each view:
1. Verifies the HMAC signature over the raw body
2. Normalizes the body into a canonical WebhookEvent
3. Records the body in the WebhookReceipt ledger (idempotent)
4. Applies the event synchronously through the orchestrator
5. Answers with a deterministic status code

Providers retry non-2xx responses, so 5xx is reserved for unexpected
failures that a retry may fix. Stale, duplicate and unknown-subject events
are acknowledged with 200.

Usage:
    # In urls.py
    from reconciliation.webhooks.views import paystack_webhook, stitch_webhook

    urlpatterns = [
        path("webhooks/stitch/", stitch_webhook, name="stitch_webhook"),
        path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from reconciliation.events import normalize
from reconciliation.exceptions import AuthFailure, MalformedPayload
from reconciliation.models import WebhookReceipt
from reconciliation.services import ReconciliationOrchestrator
from reconciliation.signatures import verify_webhook_request
from reconciliation.state_machines import Provider

logger = logging.getLogger(__name__)


def get_orchestrator() -> ReconciliationOrchestrator:
    return ReconciliationOrchestrator()


def process_webhook(request: HttpRequest, provider: str) -> JsonResponse:
    """
    Verify, record and apply one webhook delivery.

    Returns:
        JsonResponse with status:
        - 200: Event handled (applied, noop, stale, not_found, duplicate)
        - 400: Body could not be parsed into an event
        - 401: Signature missing or invalid
        - 500: Unexpected failure; the provider will retry
    """
    body = request.body

    # Step 1: Verify signature
    try:
        verify_webhook_request(provider, body, request.headers)
    except AuthFailure:
        return JsonResponse({"error": "Invalid signature"}, status=401)

    # Step 2: Normalize
    try:
        event = normalize(provider, body)
    except MalformedPayload as e:
        logger.warning(
            "Malformed webhook payload",
            extra={"provider": provider, "error": e.message, **e.details},
        )
        return JsonResponse({"error": "Invalid payload"}, status=400)

    logger.info(
        f"Received {provider} webhook: {event.event_type}", extra=event.log_context()
    )

    # Step 3: Ledger
    receipt, created = WebhookReceipt.objects.get_or_create(
        provider=provider,
        payload_hash=event.payload_hash,
        defaults={
            "event_type": event.event_type[:100],
            "subject_id": event.subject_id[:255],
        },
    )
    if not created and receipt.is_processed:
        logger.info(
            "Webhook body already processed, returning success",
            extra={**event.log_context(), "receipt_id": str(receipt.id)},
        )
        return JsonResponse(
            {"received": True, "outcome": receipt.outcome, "duplicate": True}
        )

    receipt.mark_processing()
    receipt.save(update_fields=["status", "attempts", "updated_at"])

    # Step 4: Apply
    try:
        outcome = get_orchestrator().apply(event)
    except Exception as e:
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra={**event.log_context(), "receipt_id": str(receipt.id)},
            exc_info=True,
        )
        receipt.mark_failed(f"{type(e).__name__}: {e}"[:2000])
        receipt.save(update_fields=["status", "error_message", "updated_at"])
        return JsonResponse({"error": "Webhook processing failed"}, status=500)

    receipt.mark_processed(outcome)
    receipt.save(
        update_fields=[
            "status", "outcome", "processed_at", "error_message", "updated_at"
        ]
    )

    logger.info(
        "Webhook processed",
        extra={
            **event.log_context(),
            "outcome": str(outcome),
            "latency_ms": int(
                (timezone.now() - event.received_at).total_seconds() * 1000
            ),
        },
    )
    return JsonResponse({"received": True, "outcome": outcome})


@csrf_exempt
@require_http_methods(["GET", "POST"])
def stitch_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive Stitch payment and disbursement webhooks.

    GET answers a liveness probe so the endpoint can be checked when it is
    registered in the Stitch dashboard.
    """
    if request.method == "GET":
        return JsonResponse(
            {"status": "ok", "message": "Stitch webhook endpoint is active"}
        )
    return process_webhook(request, Provider.STITCH)


@csrf_exempt
@require_POST
def paystack_webhook(request: HttpRequest) -> JsonResponse:
    """Receive Paystack charge and subscription webhooks."""
    return process_webhook(request, Provider.PAYSTACK)
