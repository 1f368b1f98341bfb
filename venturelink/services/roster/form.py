from typing import Callable, Dict, FrozenSet, List, Optional

import logging

from venturelink.schemas.affiliation import AffiliationDraft, CompanyAffiliation
from venturelink.services.roster.validators import FIELD_VALIDATORS, is_submittable

logger = logging.getLogger(__name__)

FORM_FIELDS = ("company_name", "title", "website_url")


class AffiliationForm:
    """
    Editable text fields for adding or editing an affiliation.

    A field is dirty while its value differs from the value it had when the
    form was last loaded or cleared.
    """

    def __init__(self):
        self._values: Dict[str, str] = {name: "" for name in FORM_FIELDS}
        self._clean: Dict[str, str] = dict(self._values)
        self._listeners: List[Callable[[], None]] = []

    def __getitem__(self, name: str) -> str:
        self._check_field(name)
        return self._values[name]

    @property
    def company_name(self) -> str:
        return self._values["company_name"]

    @property
    def title(self) -> str:
        return self._values["title"]

    @property
    def website_url(self) -> str:
        return self._values["website_url"]

    @property
    def dirty_fields(self) -> FrozenSet[str]:
        return frozenset(
            name for name in FORM_FIELDS if self._values[name] != self._clean[name]
        )

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self.dirty_fields)

    @property
    def is_submittable(self) -> bool:
        return is_submittable(self.company_name, self.title)

    def set_field(self, name: str, value: Optional[str]) -> None:
        self._check_field(name)
        value = value or ""
        if self._values[name] == value:
            return
        self._values[name] = value
        self._notify()

    def errors(self) -> Dict[str, str]:
        result = {}
        for name in FORM_FIELDS:
            message = FIELD_VALIDATORS[name](self._values[name])
            if message:
                result[name] = message
        return result

    def to_draft(self) -> AffiliationDraft:
        return AffiliationDraft(**self._values)

    def load(self, affiliation: CompanyAffiliation) -> None:
        """Populate from an existing record; the loaded values count as clean."""
        self._values = {
            "company_name": affiliation.company_name,
            "title": affiliation.title,
            "website_url": affiliation.website_url,
        }
        self._clean = dict(self._values)
        self._notify()

    def clear(self) -> None:
        self._values = {name: "" for name in FORM_FIELDS}
        self._clean = dict(self._values)
        self._notify()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _check_field(self, name: str) -> None:
        if name not in self._values:
            raise ValueError(f"Unknown form field: {name}")

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                logger.exception("Form listener failed")
