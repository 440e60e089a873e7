from contest_scout.config import Settings
from contest_scout.store.base import Store
from contest_scout.store.memory import InMemoryStore
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)


def _get_supabase_client(settings: Settings):
    """Return a Supabase client or None if credentials are absent."""
    if not settings.supabase_url or not settings.supabase_key:
        return None
    try:
        from supabase import create_client
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as exc:
        logger.warning("supabase_client_init_failed", error=str(exc))
        return None


def get_store(settings: Settings) -> Store:
    """Supabase when configured and reachable at startup, otherwise in-memory."""
    client = _get_supabase_client(settings)
    if client is None:
        logger.warning("store_in_memory_fallback")
        return InMemoryStore()

    from contest_scout.store.supabase_store import SupabaseStore
    return SupabaseStore(client)
