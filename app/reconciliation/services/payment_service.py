"""
Payment service: customer payments collected through Stitch.

Usage:
    from reconciliation.services import PaymentService

    result = PaymentService.initiate_payment(merchant, 19900, order_reference="ORD-1")
    if result.success:
        redirect_url = result.data.get_meta("redirect_url")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import ValidationError
from core.services import BaseService, ServiceResult
from reconciliation.adapters import StitchAdapter
from reconciliation.commission import calculate_split
from reconciliation.exceptions import ProviderError
from reconciliation.models import Payment
from reconciliation.state_machines import PaymentKind, PaymentStatus, Provider
from reconciliation.store import IdempotentStateStore

if TYPE_CHECKING:
    from accounts.models import User


class PaymentService(BaseService):
    """
    Service for creating and reading customer payments.

    Status moves after creation belong to the reconciliation orchestrator;
    the only transition made here is pending → failed when Stitch refuses
    to create the payment request.
    """

    @classmethod
    def initiate_payment(
        cls,
        merchant: User,
        amount_cents: int,
        order_reference: str = "",
    ) -> ServiceResult[Payment]:
        """
        Create a pending payment and its Stitch payment request.

        The commission split is fixed here and stored on the payment.

        Returns:
            ServiceResult with the payment; on provider failure the result
            is a failure that still carries the (now failed) payment
        """
        logger = cls.get_logger()

        if amount_cents <= 0:
            return ServiceResult.failure(
                "Amount must be positive",
                error_code="INVALID_AMOUNT",
                errors={"amount_cents": ["Ensure this value is greater than 0."]},
            )

        try:
            split = calculate_split(amount_cents)
        except ValidationError as e:
            return ServiceResult.from_exception(e)

        payment = Payment.objects.create(
            merchant=merchant,
            provider=Provider.STITCH,
            kind=PaymentKind.CUSTOMER_PAYMENT,
            amount_cents=split.amount_cents,
            commission_percent=split.percent,
            platform_fee_cents=split.platform_fee_cents,
            merchant_amount_cents=split.merchant_amount_cents,
            order_reference=order_reference,
        )

        profile = getattr(merchant, "merchant_profile", None)
        try:
            request = StitchAdapter.create_payment_request(
                amount_cents=payment.amount_cents,
                payer_reference=order_reference or payment.short_reference,
                beneficiary_reference=f"PAY-{payment.short_reference}",
                external_reference=str(payment.id),
                beneficiary_name=getattr(profile, "business_name", "") or None,
            )
        except ProviderError as e:
            IdempotentStateStore().conditional_transition(
                Payment,
                {"pk": payment.pk},
                [PaymentStatus.PENDING],
                PaymentStatus.FAILED,
                {"status_reason": e.message[:255]},
            )
            payment.refresh_from_db()
            logger.error(
                "Payment request creation failed",
                extra={"payment_id": str(payment.id), "error": e.message},
            )
            return ServiceResult.failure(
                "Could not start the payment, please try again",
                error_code=e.error_code,
                data=payment,
            )

        payment.external_id = request.id
        payment.metadata["redirect_url"] = request.url
        payment.save(update_fields=["external_id", "metadata", "updated_at"])

        logger.info(
            "Payment initiated",
            extra={
                "payment_id": str(payment.id),
                "external_id": request.id,
                "amount_cents": payment.amount_cents,
                "platform_fee_cents": payment.platform_fee_cents,
            },
        )
        return ServiceResult.success(payment)

    @classmethod
    def get_payment(cls, merchant: User, payment_id) -> ServiceResult[Payment]:
        try:
            payment = Payment.objects.get(pk=payment_id, merchant=merchant)
        except (Payment.DoesNotExist, DjangoValidationError):
            return ServiceResult.failure("Payment not found", error_code="NOT_FOUND")
        return ServiceResult.success(payment)
