"""
Dependency injection for request-scoped roster services
"""

from typing import AsyncIterator, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from venturelink.abstractions.affiliation_store import AffiliationStore
from venturelink.abstractions.identity import FixedIdentitySource
from venturelink.core.adapters import get_affiliation_store
from venturelink.core.database import get_supabase_service
from venturelink.core.exceptions import AuthenticationError, RemoteOperationError, create_http_exception
from venturelink.services.roster.synchronizer import CompanyRosterSynchronizer

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Resolve the bearer token to a Supabase user id"""
    if credentials is None:
        raise create_http_exception(AuthenticationError("Missing bearer token"))

    client = await get_supabase_service().get_client()
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication backend unavailable",
        )

    try:
        response = await client.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.error(f"Token verification failed: {e}")
        raise create_http_exception(AuthenticationError("Could not validate credentials"))

    if response is None or response.user is None:
        raise create_http_exception(AuthenticationError("Could not validate credentials"))
    return str(response.user.id)


async def get_roster_store() -> AffiliationStore:
    store = await get_affiliation_store()
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Affiliation store unavailable",
        )
    return store


async def get_roster(
    user_id: str = Depends(get_current_user_id),
    store: AffiliationStore = Depends(get_roster_store),
) -> AsyncIterator[CompanyRosterSynchronizer]:
    """Request-scoped synchronizer, loaded for the caller's identity"""
    roster = CompanyRosterSynchronizer(store, FixedIdentitySource(user_id), auto_initialize=False)
    try:
        await roster.initialize()
        if not roster.is_initialized:
            raise create_http_exception(
                RemoteOperationError(roster.last_error or "Failed to load companies", operation="list")
            )
        yield roster
    finally:
        await roster.aclose()
