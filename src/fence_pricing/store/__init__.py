"""Store subpackage - record store implementations backing the engine."""
from .base import RecordStore
from .table_store import TableRecordStore
from .supabase_store import SupabaseRecordStore

__all__ = ['RecordStore', 'TableRecordStore', 'SupabaseRecordStore']
