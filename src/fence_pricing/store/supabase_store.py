"""
Supabase Record Store - reads the cascade's tables through the backend's
generated REST API (PostgREST).
"""
import logging
from typing import Any, Optional

import httpx

from ..engine.errors import UpstreamUnavailable
from ..engine.models import (
    BusinessUnit,
    Community,
    CommunityOverride,
    PriceBookAssignment,
    RateSheet,
    RateSheetItem,
    Sku,
)

logger = logging.getLogger(__name__)


class SupabaseRecordStore:
    """
    Record store backed by a hosted Supabase project.

    Each read is one GET against ``/rest/v1/<table>``. Transport errors and
    error statuses raise UpstreamUnavailable; the engine owns timeouts.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = url.rstrip('/') + '/rest/v1'
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        url = f"{self.base_url}/{table}"
        try:
            response = await self._client.get(url, params=params, headers=self.headers)
        except httpx.HTTPError as e:
            logger.warning("GET %s failed: %s", table, e)
            raise UpstreamUnavailable(table, str(e)) from e

        if response.status_code >= 400:
            logger.warning("GET %s status=%s body=%s", table, response.status_code, response.text[:200])
            raise UpstreamUnavailable(table, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(table, "response is not JSON") from e
        if not isinstance(data, list):
            raise UpstreamUnavailable(table, "expected a list of rows")
        return data

    async def _first(self, table: str, params: dict[str, str]) -> Optional[dict[str, Any]]:
        rows = await self._select(table, {**params, "limit": "1"})
        return rows[0] if rows else None

    async def get_sku(self, sku_id: str) -> Optional[Sku]:
        row = await self._first('sku_catalog', {
            "select": "id,name,sell_price,unit,is_active",
            "id": f"eq.{sku_id}",
        })
        return Sku.from_row(row) if row else None

    async def get_community_override(self, community_id: str, sku_id: str) -> Optional[CommunityOverride]:
        row = await self._first('community_products', {
            "select": "community_id,sku_id,price_override,price_override_reason",
            "community_id": f"eq.{community_id}",
            "sku_id": f"eq.{sku_id}",
        })
        return CommunityOverride.from_row(row) if row else None

    async def get_community(self, community_id: str) -> Optional[Community]:
        row = await self._first('communities', {
            "select": "id,client_id,rate_sheet_override_id",
            "id": f"eq.{community_id}",
        })
        return Community.from_row(row) if row else None

    async def get_client_price_book_assignments(self, client_id: str) -> list[PriceBookAssignment]:
        rows = await self._select('client_price_book_assignments', {
            "select": (
                "client_id,price_book_id,rate_sheet_id,is_default,effective_date,expires_at,"
                "price_books(price_book_items(sku_id))"
            ),
            "client_id": f"eq.{client_id}",
            "rate_sheet_id": "not.is.null",
            "order": "created_at.asc",
        })
        assignments = []
        for row in rows:
            book = row.get('price_books') or {}
            skus = [item['sku_id'] for item in book.get('price_book_items') or [] if item.get('sku_id')]
            assignments.append(PriceBookAssignment.from_row(row, skus))
        return assignments

    async def get_business_unit(self, business_unit_id: str) -> Optional[BusinessUnit]:
        row = await self._first('qbo_classes', {
            "select": "id,default_rate_sheet_id",
            "id": f"eq.{business_unit_id}",
        })
        return BusinessUnit.from_row(row) if row else None

    async def get_rate_sheet_item(self, rate_sheet_id: str, sku_id: str) -> Optional[RateSheetItem]:
        row = await self._first('rate_sheet_items', {
            "select": "*",
            "rate_sheet_id": f"eq.{rate_sheet_id}",
            "sku_id": f"eq.{sku_id}",
        })
        return RateSheetItem.from_row(row) if row else None

    async def get_rate_sheet(self, rate_sheet_id: str) -> Optional[RateSheet]:
        row = await self._first('rate_sheets', {
            "select": "*",
            "id": f"eq.{rate_sheet_id}",
        })
        return RateSheet.from_row(row) if row else None
