"""Builders shared by the test modules."""
import asyncio

import pandas as pd

from fence_pricing.store import TableRecordStore


CATALOG = [
    {"id": "S1", "name": "6ft Cedar Privacy", "sell_price": "10.00", "unit": "LF", "is_active": "true"},
    {"id": "S2", "name": "4ft Black Aluminum", "sell_price": "20.00", "unit": "LF", "is_active": "true"},
    {"id": "S3", "name": "Double Drive Gate", "sell_price": "450.00", "unit": "EA", "is_active": "true"},
    {"id": "S9", "name": "Retired Picket", "sell_price": "5.00", "unit": "LF", "is_active": "false"},
]


def make_store(**tables) -> TableRecordStore:
    """Build a store from ``table_name=[row, ...]``; the catalog defaults to CATALOG."""
    tables.setdefault('sku_catalog', CATALOG)
    return TableRecordStore({name: pd.DataFrame(rows) for name, rows in tables.items()})


def run(coro):
    return asyncio.run(coro)
