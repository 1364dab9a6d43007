"""
Tests for the PostgREST-backed store using httpx.MockTransport.
"""
from decimal import Decimal

import httpx
import pytest

from fence_pricing.engine import PricingContext, PricingEngine, UpstreamUnavailable
from fence_pricing.store import SupabaseRecordStore

from helpers import run


ROWS = {
    'sku_catalog': [{"id": "S2", "name": "4ft Black Aluminum", "sell_price": 20.0, "unit": "LF", "is_active": True}],
    'community_products': [],
    'communities': [{"id": "C2", "client_id": "CL1", "rate_sheet_override_id": None}],
    'client_price_book_assignments': [{
        "client_id": "CL1", "price_book_id": "PB-RES", "rate_sheet_id": "RS-B",
        "is_default": True, "effective_date": "2024-01-01", "expires_at": None,
        "price_books": {"price_book_items": [{"sku_id": "S2"}, {"sku_id": "S5"}]},
    }],
    'rate_sheets': [{"id": "RS-B", "name": "Builder Standard", "pricing_type": "custom", "is_active": True,
                     "default_labor_markup": 0, "default_material_markup": 0, "default_margin_target": None}],
    'rate_sheet_items': [{"rate_sheet_id": "RS-B", "sku_id": "S2", "pricing_method": "margin",
                          "margin_target_percent": 40}],
}


def backend(requests):
    """Mock PostgREST: serves ROWS per table and records each request."""
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        table = request.url.path.rsplit('/', 1)[-1]
        return httpx.Response(200, json=ROWS.get(table, []))
    return httpx.MockTransport(handler)


def with_store(transport, scenario):
    async def _run():
        async with httpx.AsyncClient(transport=transport) as client:
            store = SupabaseRecordStore("https://example.supabase.co/", "anon-key", client=client)
            return await scenario(store)
    return run(_run())


def test_reads_use_postgrest_filters_and_key_headers():
    requests = []

    async def scenario(store):
        return await store.get_sku("S2")

    sku = with_store(backend(requests), scenario)
    assert sku.sell_price == Decimal('20.0')

    request = requests[0]
    assert request.url.path == "/rest/v1/sku_catalog"
    assert request.url.params["id"] == "eq.S2"
    assert request.url.params["limit"] == "1"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer anon-key"


def test_assignments_embed_price_book_items():
    requests = []

    async def scenario(store):
        return await store.get_client_price_book_assignments("CL1")

    assignments = with_store(backend(requests), scenario)
    assert assignments[0].price_book_items == ("S2", "S5")
    assert requests[0].url.params["rate_sheet_id"] == "not.is.null"


def test_engine_over_supabase_store(settings):
    async def scenario(store):
        engine = PricingEngine(store, settings)
        return await engine.resolve_price("S2", PricingContext(community_id="C2"))

    result = with_store(backend([]), scenario)
    assert result.unit_price == Decimal('33.33')
    assert result.pricing_source == "Client Rate Sheet: Builder Standard"


def test_error_status_is_upstream_unavailable():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))

    async def scenario(store):
        return await store.get_rate_sheet("RS-B")

    with pytest.raises(UpstreamUnavailable) as exc:
        with_store(transport, scenario)
    assert exc.value.operation == 'rate_sheets'


def test_transport_error_is_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario(store):
        return await store.get_sku("S2")

    with pytest.raises(UpstreamUnavailable):
        with_store(httpx.MockTransport(handler), scenario)


def test_non_list_payload_is_upstream_unavailable():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "oops"}))

    async def scenario(store):
        return await store.get_community("C2")

    with pytest.raises(UpstreamUnavailable):
        with_store(transport, scenario)
