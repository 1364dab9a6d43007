from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config.settings import get_settings
from ..engine import (
    InvalidMargin,
    InvalidPriceResult,
    NotFound,
    PricingContext,
    PricingEngine,
    RecordValidationError,
    UpstreamUnavailable,
)
from ..logging_config import setup_logging
from .state import close_engine, get_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    yield
    await close_engine()


app = FastAPI(
    title="Fence Pricing API",
    description="Resolves SKU prices through community, client and business-unit rate sheets",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ContextFields(BaseModel):
    client_id: Optional[str] = None
    community_id: Optional[str] = None
    business_unit_id: Optional[str] = None
    as_of: Optional[date] = None
    assignment_order: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0)

    def to_context(self) -> PricingContext:
        return PricingContext(
            client_id=self.client_id,
            community_id=self.community_id,
            business_unit_id=self.business_unit_id,
            as_of=self.as_of,
            assignment_order=self.assignment_order,
        )


class PriceRequest(ContextFields):
    sku_id: str


class BatchPriceRequest(ContextFields):
    sku_ids: List[str] = Field(min_length=1)


def _http_error(e: Exception) -> HTTPException:
    """Map an engine error onto an HTTP status."""
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidMargin, InvalidPriceResult, RecordValidationError)):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, UpstreamUnavailable):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _encode(payload):
    """JSON-ready payload with money as exact two-decimal strings."""
    return jsonable_encoder(payload, custom_encoder={Decimal: str})


@app.get("/")
async def root():
    return {"status": "online", "message": "Fence Pricing API Active"}


@app.post("/resolve-price")
async def resolve_price(req: PriceRequest, engine: PricingEngine = Depends(get_engine)):
    try:
        result = await engine.resolve_price(req.sku_id, req.to_context(), timeout=req.timeout)
    except (NotFound, InvalidMargin, InvalidPriceResult, RecordValidationError, UpstreamUnavailable, ValueError) as e:
        raise _http_error(e)
    return _encode(result)


@app.post("/resolve-prices")
async def resolve_prices(req: BatchPriceRequest, engine: PricingEngine = Depends(get_engine)):
    try:
        results = await engine.resolve_prices(req.sku_ids, req.to_context(), timeout=req.timeout)
    except (NotFound, InvalidMargin, InvalidPriceResult, RecordValidationError, UpstreamUnavailable, ValueError) as e:
        raise _http_error(e)
    return _encode(results)


@app.get("/system/status")
async def get_status():
    settings = get_settings()
    return {
        "engine_active": True,
        "backend": settings.backend,
        "store_timeout": settings.store_timeout,
        "assignment_order": settings.assignment_order,
    }
