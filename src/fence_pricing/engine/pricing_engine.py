"""
Pricing Engine - resolves a SKU's unit price through the pricing cascade.

Resolution order:
1. Community product override (fixed price, terminal)
2. Community rate sheet override
3. Client price-book assignment's rate sheet
4. Business-unit default rate sheet
5. Catalog sell price

A rate sheet tier only wins when the sheet applies on the resolution date and
prices the SKU (an item, or formula defaults). Otherwise the next tier is
tried. The catalog read is issued up front and always awaited, since every
formula needs its base price and a missing SKU fails the whole resolution.
"""
import asyncio
import logging
from contextlib import aclosing
from datetime import date
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Iterable, Optional, TypeVar

from ..config.settings import ASSIGNMENT_ORDERS, Settings, get_settings
from .calculator import round_money
from .errors import InvalidPriceResult, NotFound, PricingError, RecordValidationError, UpstreamUnavailable
from .models import PriceBookAssignment, PricingContext, ResolvedPrice, Sku
from .rate_sheet_evaluator import evaluate

if TYPE_CHECKING:
    from ..store.base import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar('T')

# tier -> provenance label prefix
TIER_LABELS = {
    'community': 'Community Rate Sheet',
    'client': 'Client Rate Sheet',
    'business_unit': 'BU Default',
}


def order_assignments(assignments: list[PriceBookAssignment], order: str) -> list[PriceBookAssignment]:
    """
    Apply the caller's tie-break to price-book assignments.

    store keeps the order the record store returned; default_first moves
    is_default assignments ahead; latest_effective puts the most recent
    effective_date first. Sorts are stable so store order breaks ties.
    """
    if order == 'store':
        return list(assignments)
    if order == 'default_first':
        return sorted(assignments, key=lambda a: not a.is_default)
    if order == 'latest_effective':
        return sorted(assignments, key=lambda a: a.effective_date or date.min, reverse=True)
    raise ValueError(f"Unknown assignment order '{order}', expected one of {', '.join(ASSIGNMENT_ORDERS)}")


class PricingEngine:
    """
    Stateless price resolver over a record store.

    Safe to share across concurrent requests; it holds no per-request state.
    """

    def __init__(self, store: 'RecordStore', settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    async def _read(self, operation: str, call: Awaitable[T], timeout: float) -> T:
        """Await one store read; timeouts and backend failures become UpstreamUnavailable."""
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Store read %s timed out after %ss", operation, timeout)
            raise UpstreamUnavailable(operation, f"timed out after {timeout}s") from None
        except (PricingError, RecordValidationError):
            raise
        except Exception as e:
            logger.warning("Store read %s failed: %s", operation, e)
            raise UpstreamUnavailable(operation, str(e)) from e

    async def _candidate_rate_sheets(
        self,
        sku_id: str,
        context: PricingContext,
        as_of: date,
        order: str,
        timeout: float,
        trace: list[tuple[str, str, Optional[str]]],
    ) -> AsyncIterator[tuple[str, str]]:
        """
        Yield (tier, rate_sheet_id) for each tier that names a rate sheet.

        Tiers are read lazily: a later tier is only queried once the caller
        has rejected every earlier one.
        """
        client_id = context.client_id

        if context.community_id:
            community = await self._read(
                'get_community', self.store.get_community(context.community_id), timeout
            )
            if community is not None:
                if client_id is None and community.client_id:
                    client_id = community.client_id
                    trace.append(("Context", "Using community's client", client_id))
                if community.rate_sheet_override_id:
                    yield 'community', community.rate_sheet_override_id
                else:
                    trace.append(("Community Rate Sheet", "Community names no rate sheet", None))
            else:
                trace.append(("Community Rate Sheet", f"Community {context.community_id} not found", None))

        if client_id:
            assignments = await self._read(
                'get_client_price_book_assignments',
                self.store.get_client_price_book_assignments(client_id),
                timeout,
            )
            matches = [
                a for a in assignments
                if a.rate_sheet_id and a.applies_on(as_of) and a.contains(sku_id)
            ]
            if matches:
                chosen = order_assignments(matches, order)[0]
                if len(matches) > 1:
                    trace.append((
                        "Client Rate Sheet",
                        f"{len(matches)} price-book assignments contain SKU, picked by '{order}' order",
                        chosen.price_book_id,
                    ))
                yield 'client', chosen.rate_sheet_id
            else:
                trace.append(("Client Rate Sheet", "No price-book assignment covers SKU", None))

        if context.business_unit_id:
            business_unit = await self._read(
                'get_business_unit', self.store.get_business_unit(context.business_unit_id), timeout
            )
            if business_unit is not None and business_unit.default_rate_sheet_id:
                yield 'business_unit', business_unit.default_rate_sheet_id
            else:
                trace.append(("BU Default", "Business unit names no default rate sheet", None))

    async def _catalog_sku(self, task: 'asyncio.Future[Optional[Sku]]', sku_id: str) -> Sku:
        sku = await task
        if sku is None:
            raise NotFound(sku_id)
        if not sku.is_active:
            raise NotFound(sku_id, "is inactive")
        return sku

    async def resolve_price(
        self,
        sku_id: str,
        context: Optional[PricingContext] = None,
        timeout: Optional[float] = None,
    ) -> ResolvedPrice:
        """
        Resolve the effective unit price for one SKU.

        Args:
            sku_id: Catalog SKU identifier
            context: Client / community / business unit to price for
            timeout: Seconds allowed per store read (defaults to settings)

        Returns:
            ResolvedPrice with provenance and trace

        Raises:
            NotFound, InvalidMargin, InvalidPriceResult, UpstreamUnavailable
        """
        context = context or PricingContext()
        timeout = timeout if timeout is not None else self.settings.store_timeout
        as_of = context.as_of or date.today()
        order = context.assignment_order or self.settings.assignment_order
        if order not in ASSIGNMENT_ORDERS:
            raise ValueError(f"Unknown assignment order '{order}', expected one of {', '.join(ASSIGNMENT_ORDERS)}")

        trace: list[tuple[str, str, Optional[str]]] = []
        catalog_task = asyncio.ensure_future(
            self._read('get_sku', self.store.get_sku(sku_id), timeout)
        )
        try:
            result = await self._resolve(sku_id, context, as_of, order, timeout, catalog_task, trace)
        finally:
            if not catalog_task.done():
                catalog_task.cancel()
            elif not catalog_task.cancelled():
                # Mark the exception retrieved; the cascade's own error is what propagates
                catalog_task.exception()

        for step, description, value in trace:
            result.add_trace(step, description, value)
        logger.info(
            "Resolved %s → $%s via %s",
            sku_id, result.unit_price, result.pricing_source,
            extra={"sku_id": sku_id, "tier": result.tier},
        )
        return result

    async def _resolve(
        self,
        sku_id: str,
        context: PricingContext,
        as_of: date,
        order: str,
        timeout: float,
        catalog_task: 'asyncio.Future[Optional[Sku]]',
        trace: list[tuple[str, str, Optional[str]]],
    ) -> ResolvedPrice:
        if context.community_id:
            override = await self._read(
                'get_community_override',
                self.store.get_community_override(context.community_id, sku_id),
                timeout,
            )
            if override is not None:
                sku = await self._catalog_sku(catalog_task, sku_id)
                if override.price_override < 0:
                    raise InvalidPriceResult(override.price_override, 'fixed')
                source = "Community Override"
                if override.reason and override.reason.strip():
                    source += f": {override.reason.strip()}"
                result = ResolvedPrice(
                    sku_id=sku_id,
                    unit_price=round_money(override.price_override),
                    pricing_method='fixed',
                    pricing_source=source,
                    tier='community_override',
                    catalog_price=sku.sell_price,
                    unit=sku.unit,
                )
                trace.append(("Community Override", source, f"${result.unit_price:.2f}"))
                return result
            trace.append(("Community Override", "No override for community", None))

        sku = await self._catalog_sku(catalog_task, sku_id)
        trace.append(("SKU Lookup", "Found product in catalog", f"${sku.sell_price:.2f}"))

        candidates = self._candidate_rate_sheets(sku_id, context, as_of, order, timeout, trace)
        async with aclosing(candidates):
            async for tier, rate_sheet_id in candidates:
                result = await self._price_from_rate_sheet(sku, tier, rate_sheet_id, as_of, timeout, trace)
                if result is not None:
                    return result

        trace.append(("Price Resolution", "No rate sheet applies, using catalog price", f"${sku.sell_price:.2f}"))
        return ResolvedPrice(
            sku_id=sku_id,
            unit_price=round_money(sku.sell_price),
            pricing_method='catalog',
            pricing_source="Catalog Default",
            tier='catalog',
            catalog_price=sku.sell_price,
            unit=sku.unit,
        )

    async def _price_from_rate_sheet(
        self,
        sku: Sku,
        tier: str,
        rate_sheet_id: str,
        as_of: date,
        timeout: float,
        trace: list[tuple[str, str, Optional[str]]],
    ) -> Optional[ResolvedPrice]:
        """Price the SKU under one tier's rate sheet, or None to try the next tier."""
        sku_id = sku.id
        label = TIER_LABELS[tier]
        rate_sheet = await self._read('get_rate_sheet', self.store.get_rate_sheet(rate_sheet_id), timeout)
        if rate_sheet is None:
            trace.append((label, f"Rate sheet {rate_sheet_id} not found", None))
            logger.debug("Tier %s: rate sheet %s not found", tier, rate_sheet_id)
            return None
        if not rate_sheet.applies_on(as_of):
            trace.append((label, f"{rate_sheet.name} inactive or outside effective dates", None))
            logger.debug("Tier %s: rate sheet %s does not apply on %s", tier, rate_sheet_id, as_of)
            return None

        item = await self._read(
            'get_rate_sheet_item', self.store.get_rate_sheet_item(rate_sheet.id, sku_id), timeout
        )
        evaluation = evaluate(rate_sheet, sku_id, item, sku.sell_price)
        if evaluation is None:
            trace.append((label, f"{rate_sheet.name} has no price for SKU", None))
            logger.debug("Tier %s: rate sheet %s has no price for %s", tier, rate_sheet_id, sku_id)
            return None

        calc = evaluation.calculation
        result = ResolvedPrice(
            sku_id=sku_id,
            unit_price=calc.unit_price,
            pricing_method=calc.method,
            pricing_source=f"{label}: {rate_sheet.name}",
            tier=tier,
            catalog_price=sku.sell_price,
            unit=sku.unit,
            material_price=calc.material_price,
            labor_price=calc.labor_price,
            rate_sheet_id=rate_sheet.id,
            rate_sheet_name=rate_sheet.name,
            used_sheet_default=evaluation.used_sheet_default,
        )
        how = "sheet default" if evaluation.used_sheet_default else "SKU item"
        trace.append((label, f"{rate_sheet.name} ({how})", rate_sheet.id))
        for message in calc.traces:
            trace.append(("Price Resolution", message, f"${calc.unit_price:.2f}"))
        return result

    async def resolve_prices(
        self,
        sku_ids: Iterable[str],
        context: Optional[PricingContext] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, ResolvedPrice]:
        """Resolve several SKUs concurrently; any failure fails the batch."""
        unique = list(dict.fromkeys(sku_ids))
        tasks = [asyncio.ensure_future(self.resolve_price(s, context, timeout)) for s in unique]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return dict(zip(unique, results))
