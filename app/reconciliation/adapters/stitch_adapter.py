"""
Stitch API adapter: pay-by-bank payment requests and merchant payouts.

Stitch exposes a GraphQL API authorised with client-credentials tokens.
Tokens are scoped (``client_paymentrequest``, ``client_disbursement``) and
cached in the Django cache until one minute before they expire.

Configuration (via settings):
- STITCH_CLIENT_ID / STITCH_CLIENT_SECRET: Client credentials
- STITCH_TOKEN_URL: OAuth token endpoint
- STITCH_API_URL: GraphQL endpoint
- STITCH_BENEFICIARY_NAME: Name shown to payers (max 20 chars)

Usage:
    from reconciliation.adapters import StitchAdapter

    request = StitchAdapter.create_payment_request(
        amount_cents=19900,
        payer_reference="ORD-1001",
        beneficiary_reference="TH-3f0c1a2b",
        external_reference=str(payment.id),
    )
    redirect(request.url)

    status = StitchAdapter.get_status(request.id)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.core.cache import cache

from reconciliation.adapters.base import ProviderAdapter, ProviderStatus
from reconciliation.exceptions import (
    DownstreamSideEffectFailure,
    ProviderError,
    ProviderVerificationFailure,
)
from reconciliation.state_machines import PaymentStatus, Provider

PAYMENT_REQUEST_SCOPE = "client_paymentrequest"
DISBURSEMENT_SCOPE = "client_disbursement"

TOKEN_CACHE_KEY = "stitch:access_token:{scope}"
TOKEN_EXPIRY_MARGIN_SECONDS = 60

PAYMENT_STATUS_MAP: dict[str, str] = {
    "PaymentInitiationRequestCompleted": PaymentStatus.COMPLETED,
    "PaymentInitiationRequestCancelled": PaymentStatus.CANCELLED,
    "PaymentInitiationRequestExpired": PaymentStatus.FAILED,
    "PaymentInitiationRequestPending": PaymentStatus.PENDING,
}


CREATE_PAYMENT_REQUEST_MUTATION = """
mutation CreatePaymentRequest(
  $amount: MoneyInput!,
  $payerReference: String!,
  $beneficiaryReference: String!,
  $beneficiaryName: String!,
  $externalReference: String
) {
  clientPaymentInitiationRequestCreate(input: {
    amount: $amount,
    payerReference: $payerReference,
    beneficiaryReference: $beneficiaryReference,
    beneficiaryName: $beneficiaryName,
    externalReference: $externalReference
  }) {
    paymentInitiationRequest {
      id
      url
    }
  }
}
"""

GET_PAYMENT_STATUS_QUERY = """
query GetPaymentStatus($paymentRequestId: ID!) {
  node(id: $paymentRequestId) {
    ... on PaymentInitiationRequest {
      id
      externalReference
      status {
        __typename
        ... on PaymentInitiationRequestCancelled {
          reason
        }
        ... on PaymentInitiationRequestExpired {
          reason
        }
      }
    }
  }
}
"""

CREATE_DISBURSEMENT_MUTATION = """
mutation CreateDisbursement(
  $amount: MoneyInput!,
  $type: DisbursementType!,
  $nonce: String!,
  $externalReference: String,
  $beneficiaryReference: String!,
  $name: String!,
  $accountNumber: String!,
  $accountType: AccountType!,
  $bankId: DisbursementBankBeneficiaryBankId!
) {
  clientDisbursementCreate(input: {
    amount: $amount,
    type: $type,
    nonce: $nonce,
    externalReference: $externalReference,
    beneficiaryReference: $beneficiaryReference,
    bankBeneficiary: {
      name: $name,
      accountNumber: $accountNumber,
      accountType: $accountType,
      bankId: $bankId
    }
  }) {
    disbursement {
      id
      nonce
      status {
        __typename
      }
    }
  }
}
"""


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class PaymentRequestResult:
    """
    A created pay-by-bank request.

    Attributes:
        id: Stitch payment request id
        url: Hosted page the payer is redirected to
    """

    id: str
    url: str


@dataclass(frozen=True)
class DisbursementResult:
    """
    An accepted payout instruction.

    Attributes:
        id: Stitch disbursement id
        status: Provider status typename (e.g. "DisbursementPending")
        nonce: Idempotency nonce echoed back
    """

    id: str
    status: str
    nonce: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


def format_amount(amount_cents: int) -> str:
    """Cents to the decimal string Stitch expects, e.g. 19900 -> "199.00"."""
    return str((Decimal(amount_cents) / 100).quantize(Decimal("0.01")))


# =============================================================================
# Stitch Adapter
# =============================================================================


class StitchAdapter(ProviderAdapter):
    """
    Adapter for the Stitch GraphQL API.

    All methods are classmethods - no instance state is maintained.
    """

    provider = Provider.STITCH

    # =========================================================================
    # Authentication
    # =========================================================================

    @classmethod
    def get_access_token(
        cls,
        scope: str,
        error_class: type[ProviderError] = ProviderVerificationFailure,
    ) -> str:
        """Return a cached client token for ``scope``, fetching one if needed."""
        cache_key = TOKEN_CACHE_KEY.format(scope=scope)
        token = cache.get(cache_key)
        if token:
            return token

        if not settings.STITCH_CLIENT_ID or not settings.STITCH_CLIENT_SECRET:
            cls.get_logger().error("Stitch client credentials not configured")
            raise error_class(
                "Stitch credentials not configured",
                error_code="PROVIDER_NOT_CONFIGURED",
                provider=cls.provider,
                is_retryable=False,
            )

        body = cls._request(
            "POST",
            settings.STITCH_TOKEN_URL,
            operation="get_access_token",
            error_class=error_class,
            log_context={"scope": scope},
            retry_safe=True,
            data={
                "grant_type": "client_credentials",
                "client_id": settings.STITCH_CLIENT_ID,
                "client_secret": settings.STITCH_CLIENT_SECRET,
                "scope": scope,
                "audience": settings.STITCH_TOKEN_URL,
            },
        )

        token = body.get("access_token")
        if not token:
            raise error_class(
                "Stitch token response missing access_token",
                provider=cls.provider,
                is_retryable=True,
            )

        try:
            expires_in = int(body.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        timeout = expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
        if timeout > 0:
            cache.set(cache_key, token, timeout)
        return token

    @classmethod
    def _graphql(
        cls,
        query: str,
        variables: dict[str, Any],
        *,
        scope: str,
        operation: str,
        error_class: type[ProviderError] = ProviderVerificationFailure,
        log_context: dict[str, Any] | None = None,
        retry_safe: bool = False,
    ) -> dict[str, Any]:
        """Run a GraphQL operation and return its ``data`` object."""
        token = cls.get_access_token(scope, error_class=error_class)
        body = cls._request(
            "POST",
            settings.STITCH_API_URL,
            operation=operation,
            error_class=error_class,
            log_context=log_context,
            retry_safe=retry_safe,
            json={"query": query, "variables": variables},
            headers={"Authorization": f"Bearer {token}"},
        )

        errors = body.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else {}
            message = first.get("message") if isinstance(first, dict) else None
            cls.get_logger().error(
                "Stitch GraphQL error",
                extra={"operation": operation, "error": message},
            )
            raise error_class(
                message or "Stitch GraphQL error",
                provider=cls.provider,
                is_retryable=False,
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise error_class(
                f"Stitch {operation} response missing data",
                provider=cls.provider,
                is_retryable=True,
            )
        return data

    # =========================================================================
    # Payment Requests
    # =========================================================================

    @classmethod
    def create_payment_request(
        cls,
        amount_cents: int,
        payer_reference: str,
        beneficiary_reference: str,
        external_reference: str,
        beneficiary_name: str | None = None,
    ) -> PaymentRequestResult:
        """
        Create a pay-by-bank request the payer completes on Stitch's page.

        Raises:
            ProviderError: Stitch rejected or did not answer the request
        """
        name = beneficiary_name or settings.STITCH_BENEFICIARY_NAME
        variables = {
            "amount": {"quantity": format_amount(amount_cents), "currency": "ZAR"},
            "payerReference": payer_reference[:12],
            "beneficiaryReference": beneficiary_reference[:20],
            "beneficiaryName": name[:20],
            "externalReference": external_reference,
        }
        data = cls._graphql(
            CREATE_PAYMENT_REQUEST_MUTATION,
            variables,
            scope=PAYMENT_REQUEST_SCOPE,
            operation="create_payment_request",
            error_class=ProviderError,
            log_context={
                "amount_cents": amount_cents,
                "external_reference": external_reference,
            },
        )

        created = (data.get("clientPaymentInitiationRequestCreate") or {}).get(
            "paymentInitiationRequest"
        ) or {}
        if not created.get("id") or not created.get("url"):
            raise ProviderError(
                "Stitch payment request response missing id or url",
                provider=cls.provider,
                is_retryable=False,
            )
        return PaymentRequestResult(id=created["id"], url=created["url"])

    @classmethod
    def get_payment_status(cls, external_id: str) -> ProviderStatus:
        """
        Fetch the authoritative status of a payment request.

        Raises:
            ProviderVerificationFailure: Stitch could not give an answer
                (timeout, error status, unknown request, unknown status)
        """
        data = cls._graphql(
            GET_PAYMENT_STATUS_QUERY,
            {"paymentRequestId": external_id},
            scope=PAYMENT_REQUEST_SCOPE,
            operation="get_payment_status",
            log_context={"external_id": external_id},
            retry_safe=True,
        )

        node = data.get("node")
        if not isinstance(node, dict):
            raise ProviderVerificationFailure(
                "Stitch has no payment request with that id",
                provider=cls.provider,
                is_retryable=False,
                details={"external_id": external_id},
            )

        status = node.get("status") if isinstance(node.get("status"), dict) else {}
        typename = status.get("__typename", "")
        canonical = PAYMENT_STATUS_MAP.get(typename)
        if canonical is None:
            raise ProviderVerificationFailure(
                f"Unrecognised Stitch payment status: {typename or 'missing'}",
                provider=cls.provider,
                is_retryable=False,
                details={"external_id": external_id},
            )

        return ProviderStatus(
            external_id=external_id,
            status=canonical,
            reason=status.get("reason") or "",
            raw=node,
        )

    # Verification client interface
    get_status = get_payment_status

    # =========================================================================
    # Disbursements
    # =========================================================================

    @classmethod
    def create_disbursement(
        cls,
        amount_cents: int,
        bank_id: str,
        account_number: str,
        account_name: str,
        account_type: str,
        beneficiary_reference: str,
        nonce: str,
        external_reference: str | None = None,
    ) -> DisbursementResult:
        """
        Instruct a same-day payout to a bank account.

        ``nonce`` makes the instruction idempotent at Stitch: resubmitting
        the same nonce never pays out twice.

        Raises:
            DownstreamSideEffectFailure: Stitch rejected or did not answer
        """
        variables = {
            "amount": {"quantity": format_amount(amount_cents), "currency": "ZAR"},
            "type": "DEFAULT",
            "nonce": nonce,
            "externalReference": external_reference,
            "beneficiaryReference": beneficiary_reference[:20],
            "name": account_name,
            "accountNumber": account_number,
            "accountType": account_type,
            "bankId": bank_id,
        }
        data = cls._graphql(
            CREATE_DISBURSEMENT_MUTATION,
            variables,
            scope=DISBURSEMENT_SCOPE,
            operation="create_disbursement",
            error_class=DownstreamSideEffectFailure,
            log_context={"amount_cents": amount_cents, "nonce": nonce},
            # Stitch rejects a repeated nonce
            retry_safe=True,
        )

        disbursement = (data.get("clientDisbursementCreate") or {}).get(
            "disbursement"
        ) or {}
        if not disbursement.get("id"):
            raise DownstreamSideEffectFailure(
                "Stitch disbursement response missing id",
                provider=cls.provider,
                is_retryable=False,
            )

        status = disbursement.get("status") or {}
        return DisbursementResult(
            id=disbursement["id"],
            status=status.get("__typename", "") if isinstance(status, dict) else "",
            nonce=disbursement.get("nonce") or nonce,
            raw=disbursement,
        )
