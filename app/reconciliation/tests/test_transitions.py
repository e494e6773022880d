"""
Tests for the transition table.
"""

import pytest

from reconciliation.state_machines import (
    TRANSITIONS,
    DisbursementStatus,
    PaymentStatus,
    SubscriptionStatus,
    allowed_sources,
    can_transition,
    is_terminal,
)


class TestPaymentTransitions:
    """Tests for payment moves."""

    @pytest.mark.parametrize(
        "target", [PaymentStatus.COMPLETED, PaymentStatus.CANCELLED, PaymentStatus.FAILED]
    )
    def test_only_pending_moves(self, target):
        """Should allow every terminal status only from pending."""
        assert allowed_sources("payment", target) == {PaymentStatus.PENDING}

    def test_terminal_states_never_move(self):
        """Should never leave a terminal payment status."""
        for terminal in (PaymentStatus.COMPLETED, PaymentStatus.CANCELLED, PaymentStatus.FAILED):
            assert is_terminal("payment", terminal)
            for target in PaymentStatus.values:
                assert not can_transition("payment", terminal, target)

    def test_unknown_target_has_no_sources(self):
        """Should yield an empty set so a conditional update never matches."""
        assert allowed_sources("payment", PaymentStatus.PENDING) == frozenset()


class TestSubscriptionTransitions:
    """Tests for subscription moves."""

    def test_activation_sources(self):
        """Should activate from pending or trialing only."""
        assert allowed_sources("subscription", SubscriptionStatus.ACTIVE) == {
            SubscriptionStatus.PENDING,
            SubscriptionStatus.TRIALING,
        }

    def test_past_due_can_cancel_but_not_expire(self):
        """Should let past-due subscriptions be cancelled."""
        assert can_transition(
            "subscription", SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELLED
        )
        assert not can_transition(
            "subscription", SubscriptionStatus.PAST_DUE, SubscriptionStatus.EXPIRED
        )

    def test_cancelled_is_terminal(self):
        """Should not reactivate a cancelled subscription."""
        assert not can_transition(
            "subscription", SubscriptionStatus.CANCELLED, SubscriptionStatus.ACTIVE
        )


class TestDisbursementTransitions:
    """Tests for disbursement moves."""

    def test_paused_can_resume_to_completed(self):
        """Should complete a paused payout."""
        assert can_transition(
            "disbursement", DisbursementStatus.PAUSED, DisbursementStatus.COMPLETED
        )

    def test_completed_cannot_be_reversed(self):
        """Should not reverse a completed payout."""
        assert not can_transition(
            "disbursement", DisbursementStatus.COMPLETED, DisbursementStatus.REVERSED
        )

    def test_table_is_closed_over_statuses(self):
        """Should only reference statuses that exist."""
        known = {
            "payment": set(PaymentStatus.values),
            "subscription": set(SubscriptionStatus.values),
            "disbursement": set(DisbursementStatus.values),
        }
        for entity, table in TRANSITIONS.items():
            for target, sources in table.items():
                assert target in known[entity]
                assert sources <= known[entity]
