"""
Tests for the shared provider HTTP plumbing.
"""

from unittest.mock import Mock, call, patch

import pytest
from urllib3.exceptions import ConnectTimeoutError, ReadTimeoutError

from reconciliation.adapters.base import build_retry
from reconciliation.adapters.paystack_adapter import PaystackAdapter
from reconciliation.adapters.stitch_adapter import StitchAdapter


def make_response(body, status_code=200):
    response = Mock(status_code=status_code)
    response.json.return_value = body
    return response


TOKEN_RESPONSE = {"access_token": "stitch-token", "expires_in": 3600}


@pytest.fixture
def get_session():
    with patch("reconciliation.adapters.base.get_session") as mock_get_session:
        mock_get_session.return_value = Mock()
        yield mock_get_session


class TestBuildRetry:
    """Tests for build_retry."""

    def test_safe_calls_resend_after_timeout(self):
        """Should resend a repeatable POST after a read timeout or 503."""
        retry = build_retry(retry_safe=True)

        retry = retry.increment(
            method="POST", url="/graphql", error=ReadTimeoutError(None, "/graphql", "")
        )

        assert retry.read == 0
        assert build_retry(retry_safe=True).is_retry("POST", 503)

    def test_writes_never_resend_after_timeout(self):
        """Should surface a read timeout on a write instead of sending it again."""
        retry = build_retry(retry_safe=False)

        with pytest.raises(ReadTimeoutError):
            retry.increment(
                method="POST",
                url="/graphql",
                error=ReadTimeoutError(None, "/graphql", ""),
            )
        assert not retry.is_retry("POST", 503)

    def test_writes_resend_when_never_connected(self):
        """Should retry a write whose connection was never established."""
        retry = build_retry(retry_safe=False)

        retry = retry.increment(
            method="POST", url="/graphql", error=ConnectTimeoutError()
        )

        assert retry.connect == 0


class TestSessionChoice:
    """Tests for which calls may be resent by the transport."""

    def test_payment_request_not_resent(self, get_session):
        """Should send the payment request mutation without read retries."""
        get_session.return_value.request.side_effect = [
            make_response(TOKEN_RESPONSE),
            make_response(
                {
                    "data": {
                        "clientPaymentInitiationRequestCreate": {
                            "paymentInitiationRequest": {
                                "id": "pir_new",
                                "url": "https://secure.stitch.money/pay/pir_new",
                            }
                        }
                    }
                }
            ),
        ]

        StitchAdapter.create_payment_request(
            amount_cents=19900,
            payer_reference="ORDER-1",
            beneficiary_reference="PAY-1",
            external_reference="payment-uuid",
        )

        assert get_session.call_args_list == [call(True), call(False)]

    def test_disbursement_resent_under_nonce(self, get_session):
        """Should let the transport resend the nonce-protected payout."""
        get_session.return_value.request.side_effect = [
            make_response(TOKEN_RESPONSE),
            make_response(
                {
                    "data": {
                        "clientDisbursementCreate": {
                            "disbursement": {
                                "id": "disb_1",
                                "nonce": "nonce-1",
                                "status": {"__typename": "DisbursementPending"},
                            }
                        }
                    }
                }
            ),
        ]

        StitchAdapter.create_disbursement(
            amount_cents=9500,
            bank_id="fnb",
            account_number="62000000001",
            account_name="Corner Spaza (Pty) Ltd",
            account_type="current",
            beneficiary_reference="PAY-ORDER-1",
            nonce="nonce-1",
            external_reference="payment-uuid",
        )

        assert get_session.call_args_list == [call(True), call(True)]

    def test_paystack_checkout_not_resent(self, get_session):
        """Should initialize a Paystack transaction without read retries."""
        get_session.return_value.request.return_value = make_response(
            {
                "status": True,
                "data": {"authorization_url": "https://checkout.paystack.com/x"},
            }
        )

        PaystackAdapter.initialize_transaction(
            email="merchant@example.com",
            reference="SUB-1",
            callback_url="https://api.example.com/callback",
            plan_code="PLN_growth",
        )

        get_session.assert_called_once_with(False)

    def test_paystack_verify_resent(self, get_session):
        """Should let the transport resend a verify lookup."""
        get_session.return_value.request.return_value = make_response(
            {"status": True, "data": {"status": "success"}}
        )

        PaystackAdapter.verify_transaction("SUB-1")

        get_session.assert_called_once_with(True)
