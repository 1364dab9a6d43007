"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation. Backend rows
arrive loosely typed (strings from CSV exports, JSON numbers from the REST API,
NaN from pandas), so every record is built through ``from_row`` which coerces
and validates at the store boundary.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .errors import RecordValidationError


PRICING_METHODS = ('fixed', 'markup', 'margin', 'cost_plus')
PRICING_TYPES = ('custom', 'formula', 'hybrid')


def clean_value(value: Any) -> Any:
    """Normalize empty strings and NaN to None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == '' or value.lower() in ('nan', 'none', 'null'):
            return None
    return value


def _text(value: Any) -> Optional[str]:
    value = clean_value(value)
    return None if value is None else str(value)


def _decimal(value: Any, table: str, column: str) -> Optional[Decimal]:
    value = clean_value(value)
    if value is None:
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RecordValidationError(table, f"column '{column}' is not a number: {value!r}")
    if not result.is_finite():
        raise RecordValidationError(table, f"column '{column}' is not finite: {value!r}")
    return result


def _bool(value: Any, default: bool) -> bool:
    value = clean_value(value)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', 't', '1', 'yes', 'y')


def _date(value: Any, table: str, column: str) -> Optional[date]:
    value = clean_value(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise RecordValidationError(table, f"column '{column}' is not a date: {value!r}")


def _required(row: dict, column: str, table: str) -> str:
    value = _text(row.get(column))
    if value is None:
        raise RecordValidationError(table, f"missing required column '{column}'")
    return value


def _in_window(as_of: date, effective: Optional[date], expires: Optional[date]) -> bool:
    if effective is not None and as_of < effective:
        return False
    if expires is not None and as_of > expires:
        return False
    return True


@dataclass(frozen=True)
class Sku:
    """A catalog entry (fence style/height/material combination)."""
    id: str
    sell_price: Decimal
    unit: str = "EA"
    is_active: bool = True
    name: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Sku':
        table = 'sku_catalog'
        price = _decimal(row.get('sell_price'), table, 'sell_price')
        if price is None:
            raise RecordValidationError(table, f"missing sell_price for SKU {row.get('id')}")
        if price < 0:
            raise RecordValidationError(table, f"negative sell_price {price} for SKU {row.get('id')}")
        return cls(
            id=_required(row, 'id', table),
            sell_price=price,
            unit=_text(row.get('unit')) or "EA",
            is_active=_bool(row.get('is_active'), True),
            name=_text(row.get('name')),
        )


@dataclass(frozen=True)
class RateSheet:
    """A named pricing policy with sheet-wide defaults."""
    id: str
    name: str
    pricing_type: str = 'custom'
    default_labor_markup: Decimal = Decimal('0')
    default_material_markup: Decimal = Decimal('0')
    default_margin_target: Optional[Decimal] = None
    is_active: bool = True
    effective_date: Optional[date] = None
    expires_at: Optional[date] = None

    @classmethod
    def from_row(cls, row: dict) -> 'RateSheet':
        table = 'rate_sheets'
        pricing_type = (_text(row.get('pricing_type')) or 'custom').lower()
        if pricing_type not in PRICING_TYPES:
            raise RecordValidationError(table, f"unknown pricing_type '{pricing_type}'")
        return cls(
            id=_required(row, 'id', table),
            name=_text(row.get('name')) or _required(row, 'id', table),
            pricing_type=pricing_type,
            default_labor_markup=_decimal(row.get('default_labor_markup'), table, 'default_labor_markup') or Decimal('0'),
            default_material_markup=_decimal(row.get('default_material_markup'), table, 'default_material_markup') or Decimal('0'),
            default_margin_target=_decimal(row.get('default_margin_target'), table, 'default_margin_target'),
            is_active=_bool(row.get('is_active'), True),
            effective_date=_date(row.get('effective_date'), table, 'effective_date'),
            expires_at=_date(row.get('expires_at'), table, 'expires_at'),
        )

    def applies_on(self, as_of: date) -> bool:
        """Active and within its effective window."""
        return self.is_active and _in_window(as_of, self.effective_date, self.expires_at)


@dataclass(frozen=True)
class RateSheetItem:
    """Pricing for one SKU within one rate sheet."""
    rate_sheet_id: str
    sku_id: str
    pricing_method: str = 'fixed'
    fixed_price: Optional[Decimal] = None
    fixed_labor_price: Optional[Decimal] = None
    fixed_material_price: Optional[Decimal] = None
    labor_markup_percent: Optional[Decimal] = None
    material_markup_percent: Optional[Decimal] = None
    margin_target_percent: Optional[Decimal] = None
    cost_plus_amount: Optional[Decimal] = None

    @classmethod
    def from_row(cls, row: dict) -> 'RateSheetItem':
        table = 'rate_sheet_items'
        method = (_text(row.get('pricing_method')) or 'fixed').lower()
        if method not in PRICING_METHODS:
            raise RecordValidationError(table, f"unknown pricing_method '{method}'")
        money = {
            column: _decimal(row.get(column), table, column)
            for column in (
                'fixed_price', 'fixed_labor_price', 'fixed_material_price',
                'labor_markup_percent', 'material_markup_percent',
                'margin_target_percent', 'cost_plus_amount',
            )
        }
        return cls(
            rate_sheet_id=_required(row, 'rate_sheet_id', table),
            sku_id=_required(row, 'sku_id', table),
            pricing_method=method,
            **money,
        )


@dataclass(frozen=True)
class CommunityOverride:
    """A per-(community, SKU) fixed price exception."""
    community_id: str
    sku_id: str
    price_override: Decimal
    reason: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> Optional['CommunityOverride']:
        """Build an override, or None when the row carries no price."""
        table = 'community_products'
        price = _decimal(row.get('price_override'), table, 'price_override')
        if price is None:
            return None
        return cls(
            community_id=_required(row, 'community_id', table),
            sku_id=_required(row, 'sku_id', table),
            price_override=price,
            reason=_text(row.get('price_override_reason')),
        )


@dataclass(frozen=True)
class Community:
    id: str
    rate_sheet_override_id: Optional[str] = None
    client_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Community':
        return cls(
            id=_required(row, 'id', 'communities'),
            rate_sheet_override_id=_text(row.get('rate_sheet_override_id')),
            client_id=_text(row.get('client_id')),
        )


@dataclass(frozen=True)
class PriceBookAssignment:
    """Links a client to a price book and optionally a governing rate sheet."""
    client_id: str
    price_book_id: str
    rate_sheet_id: Optional[str] = None
    price_book_items: tuple[str, ...] = ()
    is_default: bool = False
    effective_date: Optional[date] = None
    expires_at: Optional[date] = None

    @classmethod
    def from_row(cls, row: dict, price_book_items: Optional[list[str]] = None) -> 'PriceBookAssignment':
        table = 'client_price_book_assignments'
        return cls(
            client_id=_required(row, 'client_id', table),
            price_book_id=_required(row, 'price_book_id', table),
            rate_sheet_id=_text(row.get('rate_sheet_id')),
            price_book_items=tuple(str(s) for s in (price_book_items or [])),
            is_default=_bool(row.get('is_default'), False),
            effective_date=_date(row.get('effective_date'), table, 'effective_date'),
            expires_at=_date(row.get('expires_at'), table, 'expires_at'),
        )

    def contains(self, sku_id: str) -> bool:
        return sku_id in self.price_book_items

    def applies_on(self, as_of: date) -> bool:
        return _in_window(as_of, self.effective_date, self.expires_at)


@dataclass(frozen=True)
class BusinessUnit:
    """A business-unit classification (QBO class) and its default rate sheet."""
    id: str
    default_rate_sheet_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'BusinessUnit':
        return cls(
            id=_required(row, 'id', 'qbo_classes'),
            default_rate_sheet_id=_text(row.get('default_rate_sheet_id')),
        )


@dataclass
class PricingContext:
    """Who the price is for. Every identifier is optional."""
    client_id: Optional[str] = None
    community_id: Optional[str] = None
    business_unit_id: Optional[str] = None
    as_of: Optional[date] = None
    # Tie-break among client price-book assignments: store | default_first | latest_effective
    assignment_order: Optional[str] = None


@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class ResolvedPrice:
    """Result of resolving one SKU's price. Never persisted."""
    sku_id: str
    unit_price: Decimal
    pricing_method: str
    pricing_source: str
    tier: str
    catalog_price: Decimal
    unit: str
    material_price: Optional[Decimal] = None
    labor_price: Optional[Decimal] = None
    rate_sheet_id: Optional[str] = None
    rate_sheet_name: Optional[str] = None
    used_sheet_default: bool = False
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this price."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return asdict(self)
