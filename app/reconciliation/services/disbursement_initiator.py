"""
Disbursement initiator: pays a completed payment's merchant share out.

Called only by the caller whose conditional update moved the payment to
completed, so at most one process ever reaches this code for a payment.
The payout row is still created before Stitch is called, and the row's id
is sent as the provider nonce:

1. get_or_create the Disbursement (one-to-one with the payment)
2. Call Stitch create_disbursement outside any transaction
3. pending → submitted (with the Stitch id) or pending → error

Stitch may report on the payout before step 2 returns. The orchestrator
then adopts the pending row by payment id, and step 3 leaves it alone.

A Stitch failure never touches the payment; it stays completed and the
disbursement is left in error for ops to retry.

Usage:
    from reconciliation.services import DisbursementInitiator

    disbursement = DisbursementInitiator().initiate(payment)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import MerchantProfile
from core.services import BaseService
from reconciliation.adapters import StitchAdapter
from reconciliation.exceptions import DownstreamSideEffectFailure
from reconciliation.models import Disbursement
from reconciliation.state_machines import (
    DisbursementStatus,
    PaymentKind,
    PaymentStatus,
    allowed_sources,
)
from reconciliation.store import IdempotentStateStore

if TYPE_CHECKING:
    from reconciliation.models import Payment


logger = logging.getLogger(__name__)


class DisbursementInitiator(BaseService):
    """
    Creates and submits the payout for a completed customer payment.

    Collaborators are injected so tests can pass fakes.
    """

    def __init__(self, store=None, stitch=None):
        self.store = store or IdempotentStateStore()
        self.stitch = stitch or StitchAdapter

    def initiate(self, payment: Payment) -> Disbursement | None:
        """
        Initiate the payout for ``payment``.

        Returns:
            The disbursement (existing or new), or None when the payment
            needs no payout: not a completed customer payment, nothing owed
            to the merchant, or no verified payout details on file.
        """
        log_context = {"payment_id": str(payment.id)}

        if (
            payment.kind != PaymentKind.CUSTOMER_PAYMENT
            or payment.status != PaymentStatus.COMPLETED
        ):
            logger.debug("Payment needs no disbursement", extra=log_context)
            return None

        if payment.merchant_amount_cents <= 0:
            logger.info("Nothing owed to merchant, skipping payout", extra=log_context)
            return None

        try:
            profile = payment.merchant.merchant_profile
        except MerchantProfile.DoesNotExist:
            profile = None

        if profile is None or not profile.has_payout_details:
            logger.warning(
                "Merchant has no verified payout details, payout not initiated",
                extra={**log_context, "merchant_id": str(payment.merchant_id)},
            )
            return None

        disbursement, created = self._get_or_create(payment, profile)
        if not created:
            logger.info(
                "Disbursement already exists for payment",
                extra={**log_context, "disbursement_id": str(disbursement.id)},
            )
            return disbursement

        return self._submit(payment, disbursement)

    def _get_or_create(
        self, payment: Payment, profile: MerchantProfile
    ) -> tuple[Disbursement, bool]:
        disbursement_id = uuid.uuid4()
        defaults = {
            "id": disbursement_id,
            "reference": str(disbursement_id),
            "bank_code": profile.bank_code,
            "account_number": profile.account_number,
            "account_name": profile.payout_account_name,
            "account_type": profile.payout_account_type,
            "amount_cents": payment.merchant_amount_cents,
            "currency": payment.currency,
            "status": DisbursementStatus.PENDING,
        }
        try:
            with transaction.atomic():
                return Disbursement.objects.get_or_create(
                    payment=payment, defaults=defaults
                )
        except IntegrityError:
            # lost a race on the one-to-one
            return Disbursement.objects.get(payment=payment), False

    def _submit(self, payment: Payment, disbursement: Disbursement) -> Disbursement:
        log_context = {
            "payment_id": str(payment.id),
            "disbursement_id": str(disbursement.id),
            "amount_cents": disbursement.amount_cents,
        }
        reference = payment.order_reference or payment.short_reference

        try:
            result = self.stitch.create_disbursement(
                amount_cents=disbursement.amount_cents,
                bank_id=disbursement.bank_code,
                account_number=disbursement.account_number,
                account_name=disbursement.account_name,
                account_type=disbursement.account_type,
                beneficiary_reference=f"PAY-{reference}",
                nonce=disbursement.reference,
                external_reference=str(payment.id),
            )
        except DownstreamSideEffectFailure as e:
            # Operational alert: the merchant has not been paid
            logger.error(
                "Disbursement initiation failed",
                extra={**log_context, "error": e.message, "retryable": e.is_retryable},
            )
            self.store.conditional_transition(
                Disbursement,
                {"pk": disbursement.pk},
                # only a row no provider event has claimed
                (DisbursementStatus.PENDING,),
                DisbursementStatus.ERROR,
                {"failure_reason": e.message[:255]},
            )
            disbursement.refresh_from_db()
            return disbursement

        submitted = self.store.conditional_transition(
            Disbursement,
            {"pk": disbursement.pk},
            allowed_sources("disbursement", DisbursementStatus.SUBMITTED),
            DisbursementStatus.SUBMITTED,
            {"external_id": result.id, "submitted_at": timezone.now()},
        )
        if submitted.applied:
            logger.info(
                "Disbursement submitted",
                extra={**log_context, "external_id": result.id},
            )
        else:
            # a Stitch webhook adopted the row while the call was in flight
            logger.info(
                "Disbursement already advanced by provider event",
                extra={
                    **log_context,
                    "external_id": result.id,
                    "current_status": submitted.current_status,
                },
            )
        disbursement.refresh_from_db()
        return disbursement
