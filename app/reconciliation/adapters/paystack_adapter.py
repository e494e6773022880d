"""
Paystack API adapter: card checkouts and recurring subscription billing.

Paystack wraps every response as ``{"status": bool, "message": str,
"data": {...}}``. A ``status`` of false is treated like an HTTP error.

Configuration (via settings):
- PAYSTACK_SECRET_KEY: API secret key (also signs webhooks)
- PAYSTACK_API_URL: API base URL

Usage:
    from reconciliation.adapters import PaystackAdapter

    checkout = PaystackAdapter.initialize_transaction(
        email=user.email,
        reference=subscription.external_reference,
        callback_url=callback_url,
        plan_code="PLN_growth",
    )
    redirect(checkout.authorization_url)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from django.conf import settings

from reconciliation.adapters.base import ProviderAdapter, ProviderStatus
from reconciliation.exceptions import (
    DownstreamSideEffectFailure,
    ProviderError,
    ProviderVerificationFailure,
)
from reconciliation.state_machines import PaymentStatus, Provider

TRANSACTION_STATUS_MAP: dict[str, str] = {
    "success": PaymentStatus.COMPLETED,
    "failed": PaymentStatus.FAILED,
    "reversed": PaymentStatus.FAILED,
    "abandoned": PaymentStatus.PENDING,
    "ongoing": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    "processing": PaymentStatus.PENDING,
    "queued": PaymentStatus.PENDING,
}


@dataclass(frozen=True)
class CheckoutResult:
    """
    An initialised Paystack checkout.

    Attributes:
        authorization_url: Hosted page the customer is redirected to
        access_code: Paystack access code
        reference: Transaction reference (ours, echoed back)
    """

    authorization_url: str
    access_code: str
    reference: str


class PaystackAdapter(ProviderAdapter):
    """
    Adapter for the Paystack REST API.

    All methods are classmethods - no instance state is maintained.
    """

    provider = Provider.PAYSTACK

    @classmethod
    def _call(
        cls,
        method: str,
        path: str,
        *,
        operation: str,
        error_class: type[ProviderError],
        log_context: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Call the API and return the unwrapped ``data`` member."""
        secret = settings.PAYSTACK_SECRET_KEY
        if not secret:
            cls.get_logger().error("Paystack secret key not configured")
            raise error_class(
                "Paystack secret key not configured",
                error_code="PROVIDER_NOT_CONFIGURED",
                provider=cls.provider,
                is_retryable=False,
            )

        body = cls._request(
            method,
            f"{settings.PAYSTACK_API_URL.rstrip('/')}{path}",
            operation=operation,
            error_class=error_class,
            log_context=log_context,
            json=payload,
            headers={"Authorization": f"Bearer {secret}"},
        )

        if body.get("status") is not True:
            message = body.get("message") or "Paystack request failed"
            cls.get_logger().warning(
                "Paystack reported failure",
                extra={"operation": operation, "provider_message": message},
            )
            raise error_class(message, provider=cls.provider, is_retryable=False)

        return body.get("data")

    # =========================================================================
    # Transactions
    # =========================================================================

    @classmethod
    def initialize_transaction(
        cls,
        email: str,
        reference: str,
        callback_url: str,
        amount_cents: int | None = None,
        plan_code: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CheckoutResult:
        """
        Start a checkout. Pass ``plan_code`` for a recurring bundle or
        ``amount_cents`` for a one-off charge.

        Raises:
            ProviderError: Paystack rejected or did not answer the request
        """
        payload: dict[str, Any] = {
            "email": email,
            "reference": reference,
            "callback_url": callback_url,
            "currency": "ZAR",
            "metadata": metadata or {},
        }
        if plan_code:
            payload["plan"] = plan_code
        if amount_cents is not None:
            payload["amount"] = amount_cents

        data = cls._call(
            "POST",
            "/transaction/initialize",
            operation="initialize_transaction",
            error_class=ProviderError,
            log_context={"reference": reference, "plan_code": plan_code},
            payload=payload,
        )
        data = data if isinstance(data, dict) else {}
        if not data.get("authorization_url"):
            raise ProviderError(
                "Paystack checkout response missing authorization_url",
                provider=cls.provider,
                is_retryable=False,
            )
        return CheckoutResult(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code", ""),
            reference=data.get("reference") or reference,
        )

    @classmethod
    def verify_transaction(cls, reference: str) -> ProviderStatus:
        """
        Fetch the authoritative status of a transaction.

        Raises:
            ProviderVerificationFailure: Paystack could not give an answer
        """
        data = cls._call(
            "GET",
            f"/transaction/verify/{quote(reference, safe='')}",
            operation="verify_transaction",
            error_class=ProviderVerificationFailure,
            log_context={"reference": reference},
        )
        if not isinstance(data, dict):
            raise ProviderVerificationFailure(
                "Paystack verify response missing data",
                provider=cls.provider,
                is_retryable=True,
            )

        raw_status = data.get("status") or ""
        canonical = TRANSACTION_STATUS_MAP.get(raw_status)
        if canonical is None:
            raise ProviderVerificationFailure(
                f"Unrecognised Paystack transaction status: {raw_status or 'missing'}",
                provider=cls.provider,
                is_retryable=False,
                details={"reference": reference},
            )

        return ProviderStatus(
            external_id=reference,
            status=canonical,
            reason=data.get("gateway_response") or "",
            raw=data,
        )

    # Verification client interface
    get_status = verify_transaction

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def disable_subscription(cls, subscription_code: str, email_token: str) -> None:
        """
        Stop a recurring subscription from renewing.

        Raises:
            DownstreamSideEffectFailure: Paystack rejected or did not answer
        """
        cls._call(
            "POST",
            "/subscription/disable",
            operation="disable_subscription",
            error_class=DownstreamSideEffectFailure,
            log_context={"subscription_code": subscription_code},
            payload={"code": subscription_code, "token": email_token},
        )
