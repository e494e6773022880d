"""
Reconciliation-specific exceptions and outcomes.

Every failure in the reconciliation engine resolves to one of the types
below, and each maps to a deterministic HTTP response.

Exception Hierarchy:
    ReconciliationError (base, inherits BaseApplicationError)
    ├── AuthFailure - Bad or missing webhook signature (401)
    ├── MalformedPayload - Unparseable webhook body (400)
    └── SplitImmutableError - Attempt to alter a payment's commission split
    ProviderError (inherits ExternalServiceError)
    ├── ProviderVerificationFailure - Status check failed (transient, retry)
    └── DownstreamSideEffectFailure - Payout instruction failed after the
        payment completed (caught, disbursement marked error)

Outcomes (not exceptions):
    ReconciliationOutcome.NOOP - Recognised but irrelevant event (200)
    ReconciliationOutcome.STALE - Transition rejected by current status (200)
    ReconciliationOutcome.NOT_FOUND - No entity with that external id (200)

Usage:
    from reconciliation.exceptions import AuthFailure, MalformedPayload

    try:
        verify_webhook_request(provider, request.body, request.headers)
        event = normalize(provider, request.body)
    except AuthFailure:
        return JsonResponse({"error": "Invalid signature"}, status=401)
    except MalformedPayload:
        return JsonResponse({"error": "Invalid payload"}, status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Outcomes
# =============================================================================


class ReconciliationOutcome(models.TextChoices):
    """Result of applying one event or callback to the state store."""

    APPLIED = "applied", "Applied"
    NOOP = "noop", "No-op"
    STALE = "stale", "Stale transition"
    NOT_FOUND = "not_found", "Unknown subject"
    PENDING = "pending", "Still pending at provider"
    VERIFICATION_FAILED = "verification_failed", "Provider verification failed"


# =============================================================================
# Inbound Request Errors
# =============================================================================


class ReconciliationError(BaseApplicationError):
    """Base exception for reconciliation operations."""

    default_error_code: str = "RECONCILIATION_ERROR"


class AuthFailure(ReconciliationError):
    """
    Webhook signature missing or wrong.

    The caller is untrusted, so no retry guidance is given.
    """

    default_error_code: str = "INVALID_SIGNATURE"


class MalformedPayload(ReconciliationError):
    """
    Webhook body cannot be parsed into a canonical event.

    Raised for invalid JSON, a non-object body, or a recognised event that
    is missing its subject id.
    """

    default_error_code: str = "MALFORMED_PAYLOAD"


class SplitImmutableError(ConflictError):
    """A payment's gross/fee/merchant split was changed after creation."""

    default_error_code: str = "SPLIT_IMMUTABLE"


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(ExternalServiceError):
    """
    Base exception for Stitch and Paystack API failures.

    Attributes:
        provider: "stitch" or "paystack"
        status_code: HTTP status returned by the provider, if any
        is_retryable: True for transient failures (timeouts, 5xx)

    Example:
        try:
            StitchAdapter.get_payment_status(external_id)
        except ProviderError as e:
            if e.is_retryable:
                # let the provider's webhook retries finish the job
                ...
    """

    default_error_code: str = "PROVIDER_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider: str | None = None,
        status_code: int | None = None,
        is_retryable: bool | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.provider = provider
        self.status_code = status_code
        if is_retryable is not None:
            self.is_retryable = is_retryable


class ProviderVerificationFailure(ProviderError):
    """
    The provider status check could not give an authoritative answer.

    Never read as "not completed" nor as "completed": the entity stays
    pending and the webhook path completes reconciliation later.
    """

    default_error_code: str = "VERIFICATION_FAILED"
    is_retryable: bool = True


class DownstreamSideEffectFailure(ProviderError):
    """
    A provider call made after the primary transition committed failed.

    Used for payout instructions and outbound billing actions. The owning
    payment is unaffected.
    """

    default_error_code: str = "DOWNSTREAM_FAILURE"
