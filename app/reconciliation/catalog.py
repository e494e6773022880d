"""
Capability catalogue: what each subscription plan grants and costs.

Prices are monthly, in cents. Bundles are billed as recurring Paystack
plans; custom selections are charged once per period at the sum of their
capability prices, with 10% off for four or more capabilities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

CAPABILITY_PRICES_CENTS: dict[str, int] = {
    "dashboard": 0,
    "inventory": 7900,
    "customers": 6900,
    "payments": 8900,
    "airtime": 4900,
    "bookings": 7900,
    "orders": 6900,
    "deliveries": 7900,
    "invoices": 5900,
    "reports": 9900,
    "cart": 8900,
}

CAPABILITIES = frozenset(CAPABILITY_PRICES_CENTS)

# Granted to every merchant, subscribed or not
FREE_CAPABILITIES = frozenset(
    capability for capability, price in CAPABILITY_PRICES_CENTS.items() if price == 0
)

CUSTOM_DISCOUNT_MIN_CAPABILITIES = 4
CUSTOM_DISCOUNT_PERCENT = 10


@dataclass(frozen=True)
class Bundle:
    id: str
    name: str
    price_cents: int
    capabilities: tuple[str, ...]
    plan_code_setting: str

    @property
    def plan_code(self) -> str:
        return getattr(settings, self.plan_code_setting, "")


BUNDLES: dict[str, Bundle] = {
    "starter": Bundle(
        id="starter",
        name="Starter",
        price_cents=14900,
        capabilities=("dashboard", "inventory", "customers", "payments"),
        plan_code_setting="PAYSTACK_PLAN_STARTER",
    ),
    "growth": Bundle(
        id="growth",
        name="Growth",
        price_cents=34900,
        capabilities=(
            "dashboard",
            "inventory",
            "customers",
            "payments",
            "airtime",
            "bookings",
            "invoices",
        ),
        plan_code_setting="PAYSTACK_PLAN_GROWTH",
    ),
    "pro": Bundle(
        id="pro",
        name="Pro",
        price_cents=54900,
        capabilities=tuple(CAPABILITY_PRICES_CENTS),
        plan_code_setting="PAYSTACK_PLAN_PRO",
    ),
}


def get_bundle(bundle_id: str) -> Bundle | None:
    return BUNDLES.get(bundle_id)


def unknown_capabilities(capabilities) -> list[str]:
    return sorted(set(capabilities) - CAPABILITIES)


def custom_plan_price_cents(capabilities) -> int:
    """Monthly price of a custom selection, in cents."""
    selected = set(capabilities)
    base = sum(CAPABILITY_PRICES_CENTS[c] for c in selected)
    if len(selected) < CUSTOM_DISCOUNT_MIN_CAPABILITIES:
        return base
    # discount is rounded to whole rand
    discount_rand = (Decimal(base) / 100 * CUSTOM_DISCOUNT_PERCENT / 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return base - int(discount_rand) * 100
