"""
Affiliation storage abstraction (investor_companies table / equivalent).
Implementations: Supabase. Every query is scoped to the owning investor.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import logging

from venturelink.core.exceptions import RemoteOperationError

logger = logging.getLogger(__name__)


class AffiliationStore(ABC):
    """Interface for the remote table of company affiliations."""

    @abstractmethod
    async def list_for_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        """All rows owned by owner_id, newest first by created_at."""
        pass

    @abstractmethod
    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row. Returns the inserted row including id and created_at."""
        pass

    @abstractmethod
    async def update(
        self,
        affiliation_id: str,
        owner_id: str,
        record: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Update the row matching both id and owner. None when nothing matched."""
        pass

    @abstractmethod
    async def delete(self, affiliation_id: str, owner_id: str) -> bool:
        """Delete the row matching both id and owner. True when a row was removed."""
        pass


class SupabaseAffiliationStore(AffiliationStore):
    """Supabase implementation over an async client."""

    def __init__(self, client, table: str = "investor_companies"):
        self._client = client
        self._table = table

    async def list_for_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        try:
            r = await (
                self._client.table(self._table)
                .select("*")
                .eq("investor_id", owner_id)
                .order("created_at", desc=True)
                .execute()
            )
            return list(r.data or [])
        except Exception as e:
            logger.warning("list_for_owner %s: %s", owner_id, e)
            raise RemoteOperationError(f"Failed to load companies: {e}", operation="list") from e

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = await self._client.table(self._table).insert(record).execute()
        except Exception as e:
            logger.warning("insert into %s: %s", self._table, e)
            raise RemoteOperationError(f"Failed to add company: {e}", operation="insert") from e
        if not r.data:
            raise RemoteOperationError("Insert returned no row", operation="insert")
        return r.data[0]

    async def update(
        self,
        affiliation_id: str,
        owner_id: str,
        record: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        try:
            r = await (
                self._client.table(self._table)
                .update(record)
                .eq("id", affiliation_id)
                .eq("investor_id", owner_id)
                .execute()
            )
        except Exception as e:
            logger.warning("update %s: %s", affiliation_id, e)
            raise RemoteOperationError(f"Failed to update company: {e}", operation="update") from e
        return r.data[0] if r.data else None

    async def delete(self, affiliation_id: str, owner_id: str) -> bool:
        try:
            r = await (
                self._client.table(self._table)
                .delete()
                .eq("id", affiliation_id)
                .eq("investor_id", owner_id)
                .execute()
            )
        except Exception as e:
            logger.warning("delete %s: %s", affiliation_id, e)
            raise RemoteOperationError(f"Failed to delete company: {e}", operation="delete") from e
        return bool(r.data)
