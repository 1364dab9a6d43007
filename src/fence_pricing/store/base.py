"""
Record store boundary consumed by the pricing engine.

Implementations return typed records built with ``from_row`` and raise
``UpstreamUnavailable`` when the backend cannot be read.
"""
from typing import Optional, Protocol

from ..engine.models import (
    BusinessUnit,
    Community,
    CommunityOverride,
    PriceBookAssignment,
    RateSheet,
    RateSheetItem,
    Sku,
)


class RecordStore(Protocol):
    """Read operations the price cascade needs."""

    async def get_sku(self, sku_id: str) -> Optional[Sku]: ...

    async def get_community_override(self, community_id: str, sku_id: str) -> Optional[CommunityOverride]: ...

    async def get_community(self, community_id: str) -> Optional[Community]: ...

    async def get_client_price_book_assignments(self, client_id: str) -> list[PriceBookAssignment]:
        """Assignments for the client that name a rate sheet, in store order."""
        ...

    async def get_business_unit(self, business_unit_id: str) -> Optional[BusinessUnit]: ...

    async def get_rate_sheet_item(self, rate_sheet_id: str, sku_id: str) -> Optional[RateSheetItem]: ...

    async def get_rate_sheet(self, rate_sheet_id: str) -> Optional[RateSheet]: ...
