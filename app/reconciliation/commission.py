"""
Platform commission calculation.

The split is computed once, when a payment is created, and stored on the
payment. Nothing downstream (disbursement, reporting) recomputes it.

Usage:
    from reconciliation.commission import calculate_split

    split = calculate_split(10001, Decimal("5"))
    split.platform_fee_cents     # 500
    split.merchant_amount_cents  # 9501
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from core.exceptions import ValidationError


@dataclass(frozen=True)
class PaymentSplit:
    """Gross amount divided between platform and merchant, in cents."""

    amount_cents: int
    percent: Decimal
    platform_fee_cents: int
    merchant_amount_cents: int


def default_commission_percent() -> Decimal:
    return Decimal(str(settings.PLATFORM_COMMISSION_PERCENT))


def calculate_split(amount_cents: int, percent: Decimal | None = None) -> PaymentSplit:
    """
    Split ``amount_cents`` into platform fee and merchant share.

    The fee is rounded half-up to the nearest cent and the merchant gets
    the remainder, so the two parts always sum to the gross amount.

    Raises:
        ValidationError: Negative amount or percent outside 0-100
    """
    if percent is None:
        percent = default_commission_percent()
    percent = Decimal(str(percent))

    if amount_cents < 0:
        raise ValidationError(
            "Amount cannot be negative", details={"amount_cents": amount_cents}
        )
    if percent < 0 or percent > 100:
        raise ValidationError(
            "Commission percent must be between 0 and 100",
            details={"percent": str(percent)},
        )

    fee = (Decimal(amount_cents) * percent / Decimal(100)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    platform_fee_cents = int(fee)
    return PaymentSplit(
        amount_cents=amount_cents,
        percent=percent,
        platform_fee_cents=platform_fee_cents,
        merchant_amount_cents=amount_cents - platform_fee_cents,
    )
