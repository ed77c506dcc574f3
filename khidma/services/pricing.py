# -*- coding: utf-8 -*-
"""
Order pricing.

The platform keeps a fixed percentage of every food order; the cook receives
the rest. Amounts are Decimals quantized to the currency subunit with
round-half-up, so fee + cook amount always equals the total exactly.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal('0.01')
DEFAULT_PLATFORM_FEE_PERCENT = Decimal('10')

# Largest amount a single Checkout line item accepts (99999999 minor units)
MAX_ORDER_TOTAL = Decimal('999999.99')
MAX_ORDER_QUANTITY = 1000

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Quantize a value to two decimal places, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Amount in the smallest currency unit, as Stripe expects."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PriceBreakdown:
    unit_price: Decimal
    quantity: int
    total_amount: Decimal
    platform_fee: Decimal
    cook_amount: Decimal

    def as_columns(self) -> dict:
        """Column values for a FoodOrder row."""
        return {
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total_amount': self.total_amount,
            'platform_fee': self.platform_fee,
            'cook_amount': self.cook_amount,
        }

    def as_metadata(self) -> dict:
        return {
            'platform_fee': str(self.platform_fee),
            'cook_amount': str(self.cook_amount),
        }


def calculate_breakdown(unit_price: Number, quantity: int,
                        fee_percent: Number = DEFAULT_PLATFORM_FEE_PERCENT) -> PriceBreakdown:
    """
    Compute the price breakdown for quantity units at unit_price.

    Raises:
        ValueError: quantity below 1, a negative price or a total above
            MAX_ORDER_TOTAL
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValueError("quantity must be a positive integer")

    price = to_money(unit_price)
    if price < 0:
        raise ValueError("price must not be negative")

    total = price * quantity
    if total > MAX_ORDER_TOTAL:
        raise ValueError(f"order total must not exceed {MAX_ORDER_TOTAL}")
    total = to_money(total)
    fee = to_money(total * Decimal(str(fee_percent)) / Decimal('100'))
    return PriceBreakdown(
        unit_price=price,
        quantity=quantity,
        total_amount=total,
        platform_fee=fee,
        cook_amount=total - fee,
    )
