"""
Browser redirect callbacks from Stitch and Paystack.

The payer lands here after leaving the provider's hosted page. Query
parameters are unauthenticated and only identify the payment; the status
shown to the payer comes from the provider's own answer, fetched by the
orchestrator. These views always redirect to the frontend, never error.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpRequest, HttpResponseRedirect
from django.views.decorators.http import require_GET

from reconciliation.exceptions import ReconciliationOutcome
from reconciliation.services import CallbackResult, ReconciliationOrchestrator
from reconciliation.state_machines import PaymentStatus, SubscriptionStatus

logger = logging.getLogger(__name__)

PAYMENT_REDIRECT_STATUS = {
    PaymentStatus.COMPLETED: "success",
    PaymentStatus.CANCELLED: "failed",
    PaymentStatus.FAILED: "failed",
    PaymentStatus.PENDING: "pending",
}

SUBSCRIPTION_REDIRECT_STATUS = {
    SubscriptionStatus.ACTIVE: "success",
    SubscriptionStatus.TRIALING: "success",
    SubscriptionStatus.PENDING: "pending",
    SubscriptionStatus.EXPIRED: "failed",
    SubscriptionStatus.CANCELLED: "failed",
    SubscriptionStatus.PAST_DUE: "failed",
}


def _frontend_redirect(path: str, params: dict[str, str]) -> HttpResponseRedirect:
    base = settings.APP_BASE_URL.rstrip("/")
    return HttpResponseRedirect(f"{base}{path}?{urlencode(params)}")


def _redirect_status(result: CallbackResult, mapping: dict[str, str]) -> str:
    if result.outcome in (
        ReconciliationOutcome.NOT_FOUND,
        ReconciliationOutcome.VERIFICATION_FAILED,
    ):
        return "error"
    return mapping.get(result.status or "", "error")


@require_GET
def payment_callback(request: HttpRequest) -> HttpResponseRedirect:
    """
    Stitch redirect after a pay-by-bank attempt.

    Query params: ``id`` (or ``externalId``), ``status`` (claimed, not
    trusted), ``externalReference``.
    """
    external_id = request.GET.get("id") or request.GET.get("externalId") or ""
    claimed_status = request.GET.get("status")

    if not external_id:
        logger.warning("Payment callback without payment id")
        return _frontend_redirect("/payments", {"status": "error"})

    result = ReconciliationOrchestrator().reconcile_payment_callback(
        external_id, claimed_status
    )
    redirect_status = _redirect_status(result, PAYMENT_REDIRECT_STATUS)
    logger.info(
        "Payment callback reconciled",
        extra={
            "external_id": external_id,
            "claimed_status": claimed_status,
            "outcome": str(result.outcome),
            "redirect_status": redirect_status,
        },
    )
    return _frontend_redirect(
        "/payments",
        {"status": redirect_status, "reference": result.reference or external_id[:8]},
    )


@require_GET
def subscription_callback(request: HttpRequest) -> HttpResponseRedirect:
    """Paystack redirect after a subscription checkout (``reference``/``trxref``)."""
    reference = request.GET.get("reference") or request.GET.get("trxref") or ""

    if not reference:
        logger.warning("Subscription callback without reference")
        return _frontend_redirect("/settings", {"subscription": "error"})

    result = ReconciliationOrchestrator().reconcile_subscription_callback(reference)
    redirect_status = _redirect_status(result, SUBSCRIPTION_REDIRECT_STATUS)
    logger.info(
        "Subscription callback reconciled",
        extra={
            "reference": reference,
            "outcome": str(result.outcome),
            "redirect_status": redirect_status,
        },
    )
    return _frontend_redirect(
        "/settings",
        {"subscription": redirect_status, "reference": reference[:8]},
    )
