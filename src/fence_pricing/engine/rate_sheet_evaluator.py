"""
Rate Sheet Item Evaluator - prices a SKU within one resolved rate sheet.

A SKU-specific item always wins. Without one, only ``formula`` sheets price
the SKU from their sheet-wide defaults; ``custom`` and ``hybrid`` sheets yield
nothing so the cascade moves on.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .calculator import PriceCalculation, calculate
from .models import RateSheet, RateSheetItem


@dataclass
class SheetEvaluation:
    calculation: PriceCalculation
    used_sheet_default: bool


def sheet_default_item(rate_sheet: RateSheet, sku_id: str) -> Optional[RateSheetItem]:
    """Shape a formula sheet's defaults as an item, or None for non-formula sheets."""
    if rate_sheet.pricing_type != 'formula':
        return None

    if rate_sheet.default_margin_target is not None:
        return RateSheetItem(
            rate_sheet_id=rate_sheet.id,
            sku_id=sku_id,
            pricing_method='margin',
            margin_target_percent=rate_sheet.default_margin_target,
        )

    return RateSheetItem(
        rate_sheet_id=rate_sheet.id,
        sku_id=sku_id,
        pricing_method='markup',
        labor_markup_percent=rate_sheet.default_labor_markup,
        material_markup_percent=rate_sheet.default_material_markup,
    )


def evaluate(
    rate_sheet: RateSheet,
    sku_id: str,
    item: Optional[RateSheetItem],
    base_price: Decimal,
) -> Optional[SheetEvaluation]:
    """Price ``sku_id`` under ``rate_sheet``; None when the sheet has no opinion."""
    if item is not None:
        return SheetEvaluation(
            calculation=calculate(item.pricing_method, item, base_price),
            used_sheet_default=False,
        )

    default = sheet_default_item(rate_sheet, sku_id)
    if default is None:
        return None

    return SheetEvaluation(
        calculation=calculate(default.pricing_method, default, base_price),
        used_sheet_default=True,
    )
