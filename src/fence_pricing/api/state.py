"""
Process-wide engine instance for the API.

Built lazily from settings so importing the app does not touch the data
directory or the network.
"""
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from ..engine import PricingEngine
from ..store import SupabaseRecordStore, TableRecordStore

logger = logging.getLogger(__name__)

_engine: Optional[PricingEngine] = None


def build_store(settings: Settings):
    """Create the record store named by ``settings.backend``."""
    if settings.backend == 'supabase':
        logger.info("Using Supabase record store at %s", settings.supabase_url)
        return SupabaseRecordStore(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.store_timeout,
        )
    logger.info("Using table record store from %s", settings.data_dir)
    return TableRecordStore.from_directory(settings.data_dir)


def get_engine() -> PricingEngine:
    """Get the shared engine, creating it on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = PricingEngine(build_store(settings), settings)
    return _engine


async def close_engine():
    """Release the store's connections, if it holds any."""
    global _engine
    if _engine is not None:
        close = getattr(_engine.store, 'aclose', None)
        if close is not None:
            await close()
        _engine = None
