"""
Shared HTTP plumbing for provider adapters.

All provider calls carry a bounded timeout (PROVIDER_API_TIMEOUT_SECONDS)
and go through one of two ``requests`` sessions. Calls that are safe to
repeat (reads, and writes the provider deduplicates by nonce) retry
timeouts, connection errors and 502/503/504 up to PROVIDER_MAX_RETRIES
times. Every other write retries only when the connection was never
established, since a timed out request may already have been acted on. Failures are
translated into ProviderError subclasses; callers never see a requests
exception.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from django.conf import settings
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from reconciliation.exceptions import ProviderError, ProviderVerificationFailure

# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class ProviderStatus:
    """
    Authoritative status of a payment as reported by its provider.

    Attributes:
        external_id: Provider payment id that was queried
        status: Canonical payment status (pending, completed, cancelled, failed)
        reason: Provider reason for cancellation or failure
        raw: Provider response body (for debugging)
    """

    external_id: str
    status: str
    reason: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


# =============================================================================
# Session
# =============================================================================

_sessions: dict[bool, requests.Session] = {}
_session_lock = threading.Lock()

RETRY_STATUSES = (502, 503, 504)


def build_retry(retry_safe: bool) -> Retry:
    retries = getattr(settings, "PROVIDER_MAX_RETRIES", 1)
    if not retry_safe:
        # read=False re-raises the read timeout instead of resending
        return Retry(
            total=retries,
            connect=retries,
            read=False,
            status=0,
            backoff_factor=0.5,
            raise_on_status=False,
        )
    return Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=0.5,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
    )


def build_session(retry_safe: bool = True) -> requests.Session:
    retry = build_retry(retry_safe)
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def get_session(retry_safe: bool = True) -> requests.Session:
    session = _sessions.get(retry_safe)
    if session is None:
        with _session_lock:
            session = _sessions.get(retry_safe)
            if session is None:
                session = _sessions[retry_safe] = build_session(retry_safe)
    return session


# =============================================================================
# Base Adapter
# =============================================================================


class ProviderAdapter:
    """
    Base class for provider adapters.

    All methods are classmethods - no instance state is maintained.
    Subclasses set ``provider`` and call ``_request``.
    """

    provider: str = ""

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _timeout(cls) -> float:
        return getattr(settings, "PROVIDER_API_TIMEOUT_SECONDS", 10)

    @classmethod
    def _request(
        cls,
        method: str,
        url: str,
        *,
        operation: str,
        error_class: type[ProviderError] = ProviderVerificationFailure,
        log_context: dict[str, Any] | None = None,
        retry_safe: bool | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Perform one HTTP call and return the decoded JSON object.

        ``retry_safe`` marks a call the transport may resend after a
        timeout or gateway error; it defaults to True for GET only.

        Raises:
            error_class: Timeout, connection error, non-2xx status or a
                body that is not a JSON object. Timeouts, connection
                errors and 5xx are retryable; 4xx is not.
        """
        logger = cls.get_logger()
        log_context = {
            "operation": operation,
            "provider": cls.provider,
            **(log_context or {}),
        }

        start_time = time.time()
        logger.info("Starting provider operation", extra=log_context)

        if retry_safe is None:
            retry_safe = method.upper() == "GET"

        try:
            response = get_session(retry_safe).request(
                method, url, timeout=cls._timeout(), **kwargs
            )
        except requests.Timeout as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "Provider request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise error_class(
                f"{cls.provider} {operation} timed out",
                provider=cls.provider,
                is_retryable=True,
            ) from e
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Provider connection error: {type(e).__name__}",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise error_class(
                f"Could not reach {cls.provider} for {operation}",
                provider=cls.provider,
                is_retryable=True,
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        if response.status_code >= 400:
            retryable = response.status_code >= 500
            logger.error("Provider returned an error status", extra=log_context)
            raise error_class(
                f"{cls.provider} {operation} failed with HTTP {response.status_code}",
                provider=cls.provider,
                status_code=response.status_code,
                is_retryable=retryable,
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error("Provider returned a non-JSON body", extra=log_context)
            raise error_class(
                f"Malformed {cls.provider} response for {operation}",
                provider=cls.provider,
                status_code=response.status_code,
                is_retryable=True,
            ) from e

        if not isinstance(body, dict):
            logger.error("Provider returned a non-object body", extra=log_context)
            raise error_class(
                f"Malformed {cls.provider} response for {operation}",
                provider=cls.provider,
                status_code=response.status_code,
                is_retryable=True,
            )

        logger.info("Provider operation completed", extra=log_context)
        return body
