"""
Field validators for the company affiliation form.

Each validator returns None when the value is acceptable, otherwise the
message shown next to the field. They read nothing but their argument.
"""

import re
from typing import Dict, Optional

from venturelink.core.exceptions import ValidationError
from venturelink.schemas.affiliation import AffiliationDraft

MIN_FIELD_LENGTH = 2

# Scheme optional, host with a dotted suffix, optional path
WEBSITE_PATTERN = re.compile(
    r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})([/\w .-]*)/?$",
    re.IGNORECASE | re.ASCII,
)


def _validate_required(value: Optional[str], label: str) -> Optional[str]:
    if value is None or not value.strip():
        return f"{label} is required"
    if len(value.strip()) < MIN_FIELD_LENGTH:
        return f"{label} must be at least {MIN_FIELD_LENGTH} characters"
    return None


def validate_company_name(value: Optional[str]) -> Optional[str]:
    return _validate_required(value, "Company name")


def validate_title(value: Optional[str]) -> Optional[str]:
    return _validate_required(value, "Title")


def validate_website(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None  # optional field
    if not WEBSITE_PATTERN.match(value.strip()):
        return "Please enter a valid website URL"
    return None


FIELD_VALIDATORS = {
    "company_name": validate_company_name,
    "title": validate_title,
    "website_url": validate_website,
}


def validate_draft(draft: AffiliationDraft) -> Dict[str, str]:
    """Messages for every failing field, in form order."""
    errors: Dict[str, str] = {}
    for field, validator in FIELD_VALIDATORS.items():
        message = validator(getattr(draft, field))
        if message:
            errors[field] = message
    return errors


def is_submittable(company_name: Optional[str], title: Optional[str]) -> bool:
    return validate_company_name(company_name) is None and validate_title(title) is None


def ensure_valid(draft: AffiliationDraft) -> None:
    """Raise ValidationError for the first failing field."""
    errors = validate_draft(draft)
    if errors:
        field, message = next(iter(errors.items()))
        raise ValidationError(message, field=field, details={"errors": errors})
