from typing import Optional
import logging
import time

from supabase import acreate_client, AsyncClient

from venturelink.core.config import settings

logger = logging.getLogger(__name__)


class SupabaseService:
    """Lazily creates the async Supabase client and retries after failures."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None,
                 retry_interval: Optional[float] = None):
        self.client: Optional[AsyncClient] = None
        self._url = url
        self._key = key
        self._retry_interval = (
            retry_interval if retry_interval is not None else settings.SUPABASE_RETRY_INTERVAL_SECONDS
        )
        self._last_attempt: Optional[float] = None

    async def initialize(self) -> None:
        self._last_attempt = time.monotonic()
        supabase_url = self._url or settings.SUPABASE_URL
        # Roster queries always filter on investor_id, with or without row-level security
        supabase_key = self._key or settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY

        if not supabase_url or not supabase_key:
            logger.warning("Supabase URL or key not configured - roster sync is unavailable")
            self.client = None
            return

        try:
            self.client = await acreate_client(supabase_url, supabase_key)
            logger.info("Supabase client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            self.client = None

    async def get_client(self) -> Optional[AsyncClient]:
        if self.client is None and self._should_retry():
            await self.initialize()
        return self.client

    def _should_retry(self) -> bool:
        if self._last_attempt is None:
            return True
        return time.monotonic() - self._last_attempt >= self._retry_interval


_supabase_service: Optional[SupabaseService] = None


def get_supabase_service() -> SupabaseService:
    global _supabase_service
    if _supabase_service is None:
        _supabase_service = SupabaseService()
    return _supabase_service


def reset_supabase_service() -> None:
    """Drop the cached service (e.g. for tests or config change)."""
    global _supabase_service
    _supabase_service = None
