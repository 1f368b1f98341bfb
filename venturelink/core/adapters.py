"""
Resolve backend-agnostic adapters from config.
Default: Supabase for both the affiliation store and the identity source.

Lazy initialization with retry: if Supabase is unavailable at first call,
adapters return None and will re-attempt on subsequent calls once the
SupabaseService retry interval has elapsed.
"""

from typing import Optional

from venturelink.core.config import settings
from venturelink.abstractions.affiliation_store import AffiliationStore, SupabaseAffiliationStore
from venturelink.abstractions.identity import IdentitySource, SupabaseIdentitySource
from venturelink.core.database import get_supabase_service
import logging

logger = logging.getLogger(__name__)

_affiliation_store: Optional[AffiliationStore] = None
_identity_source: Optional[IdentitySource] = None


async def _get_client():
    """Get the Supabase client, returning None if unavailable (will retry later)."""
    client = await get_supabase_service().get_client()
    if not client:
        logger.warning("Supabase client not available yet - roster sync is limited until connection is established")
    return client


async def get_affiliation_store() -> Optional[AffiliationStore]:
    """Return configured affiliation store (default: Supabase). Returns None if unavailable."""
    global _affiliation_store
    if _affiliation_store is not None:
        return _affiliation_store
    backend = (settings.DATA_BACKEND or "supabase").lower()
    if backend == "supabase":
        client = await _get_client()
        if not client:
            return None
        _affiliation_store = SupabaseAffiliationStore(client, table=settings.AFFILIATIONS_TABLE)
        logger.info("Affiliation store adapter: Supabase (table=%s)", settings.AFFILIATIONS_TABLE)
    else:
        raise ValueError(f"Unknown DATA_BACKEND: {backend}. Supported: supabase.")
    return _affiliation_store


async def get_identity_source() -> Optional[IdentitySource]:
    """Return configured identity source (default: Supabase auth). Returns None if unavailable."""
    global _identity_source
    if _identity_source is not None:
        return _identity_source
    backend = (settings.IDENTITY_BACKEND or "supabase").lower()
    if backend == "supabase":
        client = await _get_client()
        if not client:
            return None
        _identity_source = SupabaseIdentitySource(client)
        logger.info("Identity adapter: Supabase auth")
    else:
        raise ValueError(f"Unknown IDENTITY_BACKEND: {backend}. Supported: supabase.")
    return _identity_source


def reset_adapters() -> None:
    """Reset cached adapters (e.g. for tests or config change)."""
    global _affiliation_store, _identity_source
    _affiliation_store = None
    _identity_source = None
