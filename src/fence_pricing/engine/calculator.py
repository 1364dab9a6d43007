"""
Pricing Method Calculator - applies a rate sheet pricing method to a base price.

Percent inputs are whole numbers (40 means 40%). Every monetary output is
rounded to cents with ROUND_HALF_UP, matching the backend's DECIMAL(10,2)
price columns.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .errors import InvalidMargin, InvalidPriceResult
from .models import RateSheetItem


CENT = Decimal('0.01')
HUNDRED = Decimal('100')
DEFAULT_MARGIN_PERCENT = Decimal('33')


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class PriceCalculation:
    """Output of a single pricing method application."""
    method: str
    unit_price: Decimal
    material_price: Optional[Decimal] = None
    labor_price: Optional[Decimal] = None
    traces: list[str] = field(default_factory=list)


def _check_non_negative(value: Optional[Decimal], method: str) -> None:
    if value is not None and value < 0:
        raise InvalidPriceResult(value, method)


def average_markup(material_percent: Optional[Decimal], labor_percent: Optional[Decimal]) -> Decimal:
    """Average of the material and labor markups as a fraction."""
    material = (material_percent or Decimal('0')) / HUNDRED
    labor = (labor_percent or Decimal('0')) / HUNDRED
    return (material + labor) / 2


def margin_price(base_price: Decimal, margin_percent: Decimal) -> Decimal:
    """Price that yields ``margin_percent`` gross margin over ``base_price``."""
    if margin_percent >= HUNDRED:
        raise InvalidMargin(margin_percent)
    return base_price / (1 - margin_percent / HUNDRED)


def calculate(method: str, fields: RateSheetItem, base_price: Decimal) -> PriceCalculation:
    """
    Apply one pricing method.

    Args:
        method: fixed, markup, margin or cost_plus
        fields: the rate sheet item (or sheet defaults shaped as one)
        base_price: catalog sell price

    Returns:
        PriceCalculation with rounded prices and trace messages
    """
    traces = []
    material_price = None
    labor_price = None

    if method == 'fixed':
        price = fields.fixed_price if fields.fixed_price is not None else Decimal('0')
        material_price = fields.fixed_material_price
        labor_price = fields.fixed_labor_price
        traces.append(f"Fixed price ${price:.2f}")

    elif method == 'markup':
        avg = average_markup(fields.material_markup_percent, fields.labor_markup_percent)
        price = base_price * (1 + avg)
        traces.append(
            f"Average markup {avg * HUNDRED:.2f}% on ${base_price:.2f} → ${price:.2f}"
        )

    elif method == 'margin':
        margin = fields.margin_target_percent
        if margin is None:
            margin = DEFAULT_MARGIN_PERCENT
        price = margin_price(base_price, margin)
        traces.append(f"Target margin {margin}% on ${base_price:.2f} → ${price:.2f}")

    elif method == 'cost_plus':
        amount = fields.cost_plus_amount if fields.cost_plus_amount is not None else Decimal('0')
        price = base_price + amount
        traces.append(f"Cost plus ${amount:.2f} on ${base_price:.2f} → ${price:.2f}")

    else:
        raise ValueError(f"Unknown pricing method '{method}'")

    for value in (price, material_price, labor_price):
        _check_non_negative(value, method)

    return PriceCalculation(
        method=method,
        unit_price=round_money(price),
        material_price=round_money(material_price) if material_price is not None else None,
        labor_price=round_money(labor_price) if labor_price is not None else None,
        traces=traces,
    )
