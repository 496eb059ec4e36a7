# storefront/domain/pricing.py
"""
Money math shared by the cart view, discount quotes and checkout totals.

All amounts are ``Decimal``. ``money()`` is the one rounding rule
(half-up to cents) and is applied to the discount, the tax and the total.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Tuple

from storefront.domain.errors import DiscountRejected, DiscountRejection
from storefront.utils.timeutil import as_utc

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 49.99 from turning into 49.98999...
    return Decimal(str(value))


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price, quantity: int) -> Decimal:
    return money(to_decimal(price) * quantity)


def subtotal_of(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    return money(sum((to_decimal(price) * qty for price, qty in lines), ZERO))


@dataclass(frozen=True)
class ShippingTaxConfig:
    flat_shipping_rate: Decimal = ZERO
    free_shipping_threshold: Decimal | None = None
    tax_rate_percent: Decimal = ZERO


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal


def calculate_discount(discount_type: DiscountType, value, subtotal) -> Decimal:
    value = to_decimal(value)
    subtotal = to_decimal(subtotal)

    if discount_type == DiscountType.PERCENTAGE:
        amount = subtotal * value / Decimal(100)
    elif discount_type == DiscountType.FIXED_AMOUNT:
        amount = min(value, subtotal)
    else:
        # free shipping is waived in compute_totals, not here
        amount = ZERO

    return min(money(amount), money(subtotal))


def validate_discount(discount, subtotal, now: datetime) -> None:
    """Raise DiscountRejected for the first failing rule.

    ``discount`` is a DiscountCodeModel or None. The order of the checks is
    part of the contract: existence, active flag, validity window, usage
    limit, minimum order amount.
    """
    if discount is None:
        raise DiscountRejected(DiscountRejection.INVALID_CODE)

    if not discount.active:
        raise DiscountRejected(DiscountRejection.CODE_INACTIVE, discount.code)

    starts_at = as_utc(discount.starts_at)
    ends_at = as_utc(discount.ends_at)
    if starts_at is not None and starts_at > now:
        raise DiscountRejected(DiscountRejection.NOT_YET_ACTIVE, discount.code)
    if ends_at is not None and ends_at < now:
        raise DiscountRejected(DiscountRejection.EXPIRED, discount.code)

    if discount.max_uses is not None and discount.used_count >= discount.max_uses:
        raise DiscountRejected(DiscountRejection.USAGE_LIMIT_REACHED, discount.code)

    if discount.min_order_amount is not None and to_decimal(subtotal) < to_decimal(discount.min_order_amount):
        raise DiscountRejected(
            DiscountRejection.MINIMUM_NOT_MET,
            discount.code,
            f"Minimum order amount of ${money(discount.min_order_amount)} required",
        )


def compute_totals(subtotal, discount, config: ShippingTaxConfig, free_shipping: bool = False) -> OrderTotals:
    subtotal = money(subtotal)
    discount = min(money(discount), subtotal)

    threshold = config.free_shipping_threshold
    meets_threshold = threshold is not None and subtotal >= to_decimal(threshold)
    shipping = ZERO if (free_shipping or meets_threshold) else money(config.flat_shipping_rate)

    tax = money((subtotal - discount) * to_decimal(config.tax_rate_percent) / Decimal(100))
    total = money(subtotal - discount + shipping + tax)

    return OrderTotals(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=total,
    )
