"""
Company roster: validated CRUD over an investor's company affiliations,
with form dirtiness tracking and reset on account switch.
"""
from .synchronizer import CompanyRosterSynchronizer
from .form import AffiliationForm
from .validators import (
    validate_company_name,
    validate_title,
    validate_website,
    validate_draft,
    is_submittable,
)

__all__ = [
    "CompanyRosterSynchronizer",
    "AffiliationForm",
    "validate_company_name",
    "validate_title",
    "validate_website",
    "validate_draft",
    "is_submittable",
]
