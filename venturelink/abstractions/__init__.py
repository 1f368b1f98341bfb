"""
Backend-agnostic abstractions for the affiliation table and the authenticated identity.
Implementations target Supabase; in-process identity sources cover shared sessions and scripts.
"""

from venturelink.abstractions.affiliation_store import (
    AffiliationStore,
    SupabaseAffiliationStore,
)
from venturelink.abstractions.identity import (
    FixedIdentitySource,
    IdentityEvent,
    IdentityEventKind,
    IdentitySource,
    ManualIdentitySource,
    SupabaseIdentitySource,
)

__all__ = [
    "AffiliationStore",
    "SupabaseAffiliationStore",
    "FixedIdentitySource",
    "IdentityEvent",
    "IdentityEventKind",
    "IdentitySource",
    "ManualIdentitySource",
    "SupabaseIdentitySource",
]
