"""
Table Record Store - serves the cascade from pandas DataFrames.

Tables are keyed by the hosted backend's table names so a CSV export of each
table can be dropped into the data directory and loaded as-is.
"""
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from ..engine.models import (
    BusinessUnit,
    Community,
    CommunityOverride,
    PriceBookAssignment,
    RateSheet,
    RateSheetItem,
    Sku,
    clean_value,
)

logger = logging.getLogger(__name__)


TABLE_COLUMNS = {
    'sku_catalog': ['id', 'name', 'sell_price', 'unit', 'is_active'],
    'community_products': ['community_id', 'sku_id', 'price_override', 'price_override_reason'],
    'communities': ['id', 'client_id', 'rate_sheet_override_id'],
    'client_price_book_assignments': [
        'client_id', 'price_book_id', 'rate_sheet_id', 'is_default', 'effective_date', 'expires_at',
    ],
    'price_book_items': ['price_book_id', 'sku_id'],
    'qbo_classes': ['id', 'default_rate_sheet_id'],
    'rate_sheets': [
        'id', 'name', 'pricing_type', 'default_labor_markup', 'default_material_markup',
        'default_margin_target', 'is_active', 'effective_date', 'expires_at',
    ],
    'rate_sheet_items': [
        'rate_sheet_id', 'sku_id', 'pricing_method', 'fixed_price', 'fixed_labor_price',
        'fixed_material_price', 'labor_markup_percent', 'material_markup_percent',
        'margin_target_percent', 'cost_plus_amount',
    ],
}


class TableRecordStore:
    """
    Record store over in-memory tables.

    Every cell is normalized to a stripped string on load; typed records are
    produced by the models' ``from_row`` coercion.
    """

    def __init__(self, tables: dict[str, pd.DataFrame]):
        unknown = set(tables) - set(TABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown tables: {', '.join(sorted(unknown))}")

        self.tables: dict[str, pd.DataFrame] = {}
        for name, columns in TABLE_COLUMNS.items():
            df = tables.get(name)
            if df is None:
                df = pd.DataFrame(columns=columns)
            df = df.copy()
            for col in df.columns:
                df[col] = df[col].astype(str).str.strip()
            self.tables[name] = df

    @classmethod
    def from_directory(cls, data_dir: Path) -> 'TableRecordStore':
        """Load ``<table>.csv`` files from ``data_dir``; missing files are empty tables."""
        if not data_dir.exists():
            raise FileNotFoundError(f"Pricing data directory not found at {data_dir}.")

        tables = {}
        for name in TABLE_COLUMNS:
            path = data_dir / f'{name}.csv'
            if path.exists():
                tables[name] = pd.read_csv(path, dtype=str)
            else:
                logger.info("No %s.csv in %s, using empty table", name, data_dir)
        return cls(tables)

    def _rows(self, table: str, **criteria: str) -> pd.DataFrame:
        df = self.tables[table]
        if df.empty:
            return df
        mask = pd.Series(True, index=df.index)
        for column, value in criteria.items():
            if column not in df.columns:
                return df.iloc[0:0]
            mask &= df[column] == str(value)
        return df[mask]

    def _first(self, table: str, **criteria: str) -> Optional[dict]:
        match = self._rows(table, **criteria)
        if match.empty:
            return None
        return match.iloc[0].to_dict()

    async def get_sku(self, sku_id: str) -> Optional[Sku]:
        row = self._first('sku_catalog', id=sku_id)
        return Sku.from_row(row) if row else None

    async def get_community_override(self, community_id: str, sku_id: str) -> Optional[CommunityOverride]:
        row = self._first('community_products', community_id=community_id, sku_id=sku_id)
        return CommunityOverride.from_row(row) if row else None

    async def get_community(self, community_id: str) -> Optional[Community]:
        row = self._first('communities', id=community_id)
        return Community.from_row(row) if row else None

    async def get_client_price_book_assignments(self, client_id: str) -> list[PriceBookAssignment]:
        assignments = []
        items = self.tables['price_book_items']
        for _, row in self._rows('client_price_book_assignments', client_id=client_id).iterrows():
            if clean_value(row.get('rate_sheet_id')) is None:
                continue
            skus = []
            if not items.empty:
                skus = items[items['price_book_id'] == row['price_book_id']]['sku_id'].tolist()
            assignments.append(PriceBookAssignment.from_row(row.to_dict(), skus))
        return assignments

    async def get_business_unit(self, business_unit_id: str) -> Optional[BusinessUnit]:
        row = self._first('qbo_classes', id=business_unit_id)
        return BusinessUnit.from_row(row) if row else None

    async def get_rate_sheet_item(self, rate_sheet_id: str, sku_id: str) -> Optional[RateSheetItem]:
        row = self._first('rate_sheet_items', rate_sheet_id=rate_sheet_id, sku_id=sku_id)
        return RateSheetItem.from_row(row) if row else None

    async def get_rate_sheet(self, rate_sheet_id: str) -> Optional[RateSheet]:
        row = self._first('rate_sheets', id=rate_sheet_id)
        return RateSheet.from_row(row) if row else None
