from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AffiliationDraft(BaseModel):
    """The three editable fields of an affiliation, before it is persisted."""
    company_name: Optional[str] = None
    title: Optional[str] = None
    website_url: Optional[str] = ""

    class Config:
        frozen = True

    def normalized(self) -> "AffiliationDraft":
        return AffiliationDraft(
            company_name=(self.company_name or "").strip(),
            title=(self.title or "").strip(),
            website_url=(self.website_url or "").strip(),
        )

    def to_insert_record(self, owner_id: str) -> Dict[str, Any]:
        draft = self.normalized()
        return {
            "investor_id": owner_id,
            "company_name": draft.company_name,
            "investor_title_in_company": draft.title,
            "website_url": draft.website_url or None,
            "created_at": _utcnow().isoformat(),
        }

    def to_update_record(self) -> Dict[str, Any]:
        draft = self.normalized()
        return {
            "company_name": draft.company_name,
            "investor_title_in_company": draft.title,
            "website_url": draft.website_url or None,
            "updated_at": _utcnow().isoformat(),
        }


class CompanyAffiliation(BaseModel):
    """A company and the investor's role in it."""
    id: str
    company_name: str
    title: str
    website_url: str = ""
    date_added: datetime

    class Config:
        frozen = True

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "CompanyAffiliation":
        """Build from an ``investor_companies`` row."""
        return cls(
            id=str(row.get("id") or ""),
            company_name=row.get("company_name") or "",
            title=row.get("investor_title_in_company") or "",
            website_url=row.get("website_url") or "",
            date_added=row.get("created_at") or _utcnow(),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "investor_title_in_company": self.title,
            "website_url": self.website_url,
            "created_at": self.date_added.isoformat(),
        }


class RosterPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    RESETTING = "resetting"


@dataclass(frozen=True)
class RosterSnapshot:
    """Read-only view of the synchronizer state at one instant."""
    affiliations: Tuple[CompanyAffiliation, ...]
    is_loading: bool
    is_saving: bool
    last_error: Optional[str]
    is_initialized: bool
    dirty_fields: FrozenSet[str]
    owner_user_id: Optional[str]
    phase: RosterPhase
