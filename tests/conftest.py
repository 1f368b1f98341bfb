"""
Pytest fixtures for roster synchronizer tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from venturelink.abstractions.affiliation_store import AffiliationStore
from venturelink.abstractions.identity import IdentitySource, ManualIdentitySource
from venturelink.services.roster.synchronizer import CompanyRosterSynchronizer


class InMemoryAffiliationStore(AffiliationStore):
    """investor_companies stand-in that assigns ids and created_at like the server."""

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.calls: List[Tuple[Any, ...]] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self._seq = 0
        self._clock = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def _next_row(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self._seq += 1
        self._clock += timedelta(minutes=1)
        row = {**record, "id": f"aff-{self._seq}", "created_at": self._clock.isoformat()}
        self.rows.append(row)
        return row

    def seed(self, owner_id: str, company_name: str, title: str, website_url: Optional[str] = None) -> Dict[str, Any]:
        return dict(self._next_row({
            "investor_id": owner_id,
            "company_name": company_name,
            "investor_title_in_company": title,
            "website_url": website_url,
        }))

    def count_calls(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    async def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation,) + args)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def list_for_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        await self._enter("list", owner_id)
        owned = [dict(r) for r in self.rows if r["investor_id"] == owner_id]
        return sorted(owned, key=lambda r: r["created_at"], reverse=True)

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("insert", record)
        return dict(self._next_row(record))

    async def update(self, affiliation_id: str, owner_id: str, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await self._enter("update", affiliation_id, owner_id, record)
        for row in self.rows:
            if row["id"] == affiliation_id and row["investor_id"] == owner_id:
                row.update(record)
                return dict(row)
        return None

    async def delete(self, affiliation_id: str, owner_id: str) -> bool:
        await self._enter("delete", affiliation_id, owner_id)
        before = len(self.rows)
        self.rows = [
            r for r in self.rows
            if not (r["id"] == affiliation_id and r["investor_id"] == owner_id)
        ]
        return len(self.rows) < before


class SilentIdentitySource(IdentitySource):
    """Identity that can change without emitting events."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    async def current_user_id(self) -> Optional[str]:
        return self.user_id

    def subscribe(self, callback) -> Callable[[], None]:
        return lambda: None


async def settle(ticks: int = 10) -> None:
    """Let scheduled background tasks run."""
    for _ in range(ticks):
        await asyncio.sleep(0)


@pytest.fixture
def store():
    return InMemoryAffiliationStore()


@pytest.fixture
def identity():
    return ManualIdentitySource("u1")


@pytest_asyncio.fixture
async def roster(store, identity):
    sync = CompanyRosterSynchronizer(store, identity, remote_timeout=1.0)
    yield sync
    await sync.aclose()


@pytest_asyncio.fixture
async def ready_roster(roster):
    await roster.initialize()
    assert roster.is_initialized
    return roster


@pytest.fixture
def silent_identity():
    return SilentIdentitySource("u1")


@pytest.fixture(name="settle")
def settle_fixture():
    return settle
