"""
Company roster synchronizer.

Keeps an observable, newest-first mirror of one investor's company
affiliations in step with the remote ``investor_companies`` table.

Identity safety: the roster always belongs to ``owner_user_id``. When the
signed-in identity changes (another user signs in, or the current one signs
out) the state is cleared synchronously and an internal epoch is bumped, so a
slow request issued for the previous identity can never write into the state
the next identity sees.

    UNINITIALIZED -> INITIALIZING -> READY
    INITIALIZING -> UNINITIALIZED          (load failed, retryable)
    READY -> RESETTING -> UNINITIALIZED    (identity changed)
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

import logging

from pydantic import ValidationError as RecordValidationError

from venturelink.abstractions.affiliation_store import AffiliationStore
from venturelink.abstractions.identity import IdentityEvent, IdentityEventKind, IdentitySource
from venturelink.core.config import settings
from venturelink.core.exceptions import (
    AuthenticationError,
    RemoteOperationError,
    ResourceNotFoundError,
    RosterClosedError,
    ValidationError,
    VentureLinkBaseException,
)
from venturelink.schemas.affiliation import (
    AffiliationDraft,
    CompanyAffiliation,
    RosterPhase,
    RosterSnapshot,
)
from venturelink.services.roster.form import AffiliationForm
from venturelink.services.roster.validators import ensure_valid
from venturelink.utils.timeout_handler import run_with_timeout

logger = logging.getLogger(__name__)

RosterObserver = Callable[["CompanyRosterSynchronizer"], None]

# Two affiliations count as a complete profile section
COMPLETE_ROSTER_SIZE = 2


class CompanyRosterSynchronizer:
    """Observable mirror of a signed-in investor's company affiliations."""

    def __init__(
        self,
        store: AffiliationStore,
        identity: IdentitySource,
        *,
        remote_timeout: Optional[float] = None,
        active_role_keywords: Optional[Iterable[str]] = None,
        auto_initialize: bool = True,
    ):
        self._store = store
        self._identity = identity
        self._remote_timeout = (
            remote_timeout if remote_timeout is not None else settings.REMOTE_TIMEOUT_SECONDS
        )
        keywords = active_role_keywords if active_role_keywords is not None else settings.ACTIVE_ROLE_KEYWORDS
        self._active_role_keywords: Tuple[str, ...] = tuple(k.lower() for k in keywords)
        self._auto_initialize = auto_initialize

        self._affiliations: Tuple[CompanyAffiliation, ...] = ()
        self._is_loading = False
        self._is_saving = False
        self._last_error: Optional[str] = None
        self._owner_user_id: Optional[str] = None
        self._phase = RosterPhase.UNINITIALIZED

        self._epoch = 0
        self._init_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._observers: Dict[int, RosterObserver] = {}
        self._next_observer = 0
        self._suspended = 0
        self._closed = False

        self.form = AffiliationForm()
        self._unsubscribe_form = self.form.subscribe(self._notify)
        self._unsubscribe_identity = identity.subscribe(self.handle_identity_event)

    async def __aenter__(self) -> "CompanyRosterSynchronizer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def affiliations(self) -> Tuple[CompanyAffiliation, ...]:
        return self._affiliations

    @property
    def count(self) -> int:
        return len(self._affiliations)

    @property
    def has_affiliations(self) -> bool:
        return bool(self._affiliations)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_saving(self) -> bool:
        return self._is_saving

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def is_initialized(self) -> bool:
        return self._phase is RosterPhase.READY

    @property
    def owner_user_id(self) -> Optional[str]:
        return self._owner_user_id

    @property
    def phase(self) -> RosterPhase:
        return self._phase

    @property
    def dirty_fields(self) -> FrozenSet[str]:
        return self.form.dirty_fields

    @property
    def has_unsaved_changes(self) -> bool:
        return self.form.has_unsaved_changes

    @property
    def is_form_valid(self) -> bool:
        return self.form.is_submittable

    @property
    def completion_percentage(self) -> float:
        if not self._affiliations:
            return 0.0
        if len(self._affiliations) >= COMPLETE_ROSTER_SIZE:
            return 100.0
        return len(self._affiliations) / COMPLETE_ROSTER_SIZE * 100

    def current_affiliations(self) -> List[CompanyAffiliation]:
        """Affiliations whose title suggests an active role (CEO, founder, partner...)."""
        return [
            a for a in self._affiliations
            if any(keyword in a.title.lower() for keyword in self._active_role_keywords)
        ]

    def get(self, affiliation_id: str) -> Optional[CompanyAffiliation]:
        for affiliation in self._affiliations:
            if affiliation.id == affiliation_id:
                return affiliation
        return None

    def snapshot(self) -> RosterSnapshot:
        return RosterSnapshot(
            affiliations=self._affiliations,
            is_loading=self._is_loading,
            is_saving=self._is_saving,
            last_error=self._last_error,
            is_initialized=self.is_initialized,
            dirty_fields=self.dirty_fields,
            owner_user_id=self._owner_user_id,
            phase=self._phase,
        )

    def subscribe(self, callback: RosterObserver) -> Callable[[], None]:
        """Call ``callback(self)`` after every state change. Returns an unsubscribe callable."""
        token = self._next_observer
        self._next_observer += 1
        self._observers[token] = callback

        def unsubscribe() -> None:
            self._observers.pop(token, None)

        return unsubscribe

    def clear_error(self) -> None:
        self._last_error = None
        self._notify()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the roster for the signed-in identity. Safe to call repeatedly."""
        self._ensure_open()
        try:
            user_id = await self._current_user_id()
        except VentureLinkBaseException as e:
            self._last_error = f"Failed to initialize companies data: {e.message}"
            self._notify()
            logger.error(f"Error resolving identity during initialization: {e}")
            return
        if user_id is None:
            logger.warning("No authenticated user found during initialization")
            return

        if self._owner_user_id is not None and self._owner_user_id != user_id:
            logger.info("User changed during initialization, resetting roster state")
            self._reset()
        self._owner_user_id = user_id

        if self._phase is RosterPhase.READY:
            logger.debug(f"Roster already initialized for user: {user_id}")
            return

        if self._init_task is None or self._init_task.done():
            self._phase = RosterPhase.INITIALIZING
            self._is_loading = True
            self._last_error = None
            self._notify()
            self._init_task = asyncio.ensure_future(self._load(user_id, self._epoch))

        try:
            await asyncio.shield(self._init_task)
        except asyncio.CancelledError:
            if self._closed:
                return
            raise

    async def _load(self, user_id: str, epoch: int) -> None:
        try:
            logger.info(f"Loading investor companies for user: {user_id}")
            rows = await self._remote(self._store.list_for_owner(user_id), "list_affiliations")
            affiliations = self._parse_rows(rows, "list_affiliations")
        except Exception as e:
            if epoch != self._epoch:
                return
            self._last_error = f"Failed to initialize companies data: {self._describe(e)}"
            self._phase = RosterPhase.UNINITIALIZED
            logger.error(f"Error initializing companies for user {user_id}: {e}")
        else:
            if epoch != self._epoch:
                logger.info(f"Discarding roster loaded for previous identity {user_id}")
                return
            self._affiliations = affiliations
            self._phase = RosterPhase.READY
            logger.info(f"Loaded {len(affiliations)} companies for user: {user_id}")
        finally:
            if epoch == self._epoch:
                self._is_loading = False
                self._notify()

    async def refresh(self) -> None:
        """Re-fetch the roster for the current owner."""
        self._ensure_open()
        user_id = await self._require_owner("refresh")
        if user_id is None:
            return
        if not self.is_initialized:
            await self.initialize()
            return

        epoch = self._epoch
        self._is_loading = True
        self._notify()
        try:
            rows = await self._remote(self._store.list_for_owner(user_id), "list_affiliations")
            affiliations = self._parse_rows(rows, "list_affiliations")
        except VentureLinkBaseException as e:
            if epoch == self._epoch:
                self._last_error = f"Failed to refresh companies: {e.message}"
            raise
        else:
            if epoch == self._epoch:
                self._affiliations = affiliations
                self._last_error = None
        finally:
            if epoch == self._epoch:
                self._is_loading = False
                self._notify()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_affiliation(self, draft: Optional[AffiliationDraft] = None) -> Optional[CompanyAffiliation]:
        """
        Validate and insert a new affiliation, then prepend the stored row.

        With no draft the add form's current values are submitted. Returns
        None without writing when the signed-in identity no longer owns the
        roster; the roster is re-initialized for the new identity instead.
        """
        self._ensure_open()
        draft = (draft if draft is not None else self.form.to_draft()).normalized()
        self._validate(draft)

        user_id = await self._require_owner("add_affiliation")
        if user_id is None:
            return None

        epoch = self._epoch
        self._begin_save()
        try:
            logger.info(f"Adding new company for user: {user_id}")
            row = await self._remote(self._store.insert(draft.to_insert_record(user_id)), "insert_affiliation")
            created = self._parse_row(row, "insert_affiliation")
        except VentureLinkBaseException as e:
            if epoch == self._epoch:
                self._last_error = f"Failed to add company: {e.message}"
            logger.error(f"Error adding company: {e}")
            raise
        else:
            if epoch != self._epoch:
                logger.warning(f"Identity changed while adding company {created.id}; not applied locally")
                return created
            self._affiliations = (created,) + self._affiliations
            with self._batched():
                self.form.clear()
            return created
        finally:
            if epoch == self._epoch:
                self._end_save()

    async def update_affiliation(self, affiliation_id: str, draft: AffiliationDraft) -> Optional[CompanyAffiliation]:
        """Replace the editable fields of an affiliation, keeping its list position."""
        self._ensure_open()
        draft = draft.normalized()
        self._validate(draft)

        user_id = await self._require_owner("update_affiliation")
        if user_id is None:
            return None
        existing = self._find_or_raise(affiliation_id)

        epoch = self._epoch
        self._begin_save()
        try:
            logger.info(f"Updating company: {existing.company_name}")
            row = await self._remote(
                self._store.update(affiliation_id, user_id, draft.to_update_record()),
                "update_affiliation",
            )
            if row is None:
                raise ResourceNotFoundError("Affiliation", affiliation_id)
            updated = self._parse_row({**existing.to_record(), **row}, "update_affiliation")
        except VentureLinkBaseException as e:
            if epoch == self._epoch:
                self._last_error = f"Failed to update company: {e.message}"
            logger.error(f"Error updating company {affiliation_id}: {e}")
            raise
        else:
            if epoch != self._epoch:
                return updated
            self._affiliations = tuple(
                updated if a.id == affiliation_id else a for a in self._affiliations
            )
            return updated
        finally:
            if epoch == self._epoch:
                self._end_save()

    async def delete_affiliation(self, affiliation_id: str) -> None:
        """Delete an affiliation remotely, then drop it from the roster."""
        self._ensure_open()
        user_id = await self._require_owner("delete_affiliation")
        if user_id is None:
            return
        existing = self._find_or_raise(affiliation_id)

        epoch = self._epoch
        self._begin_save()
        try:
            logger.info(f"Deleting company: {existing.company_name}")
            removed = await self._remote(self._store.delete(affiliation_id, user_id), "delete_affiliation")
        except VentureLinkBaseException as e:
            if epoch == self._epoch:
                self._last_error = f"Failed to delete company: {e.message}"
            logger.error(f"Error deleting company {affiliation_id}: {e}")
            raise
        else:
            if not removed:
                logger.warning(f"Remote delete matched no row for {affiliation_id}")
            if epoch == self._epoch:
                self._affiliations = tuple(a for a in self._affiliations if a.id != affiliation_id)
        finally:
            if epoch == self._epoch:
                self._end_save()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def handle_identity_event(self, event: IdentityEvent) -> None:
        """Drive the reset state machine from a sign-in / sign-out event."""
        if self._closed:
            return
        new_user_id = event.user_id if event.kind is IdentityEventKind.SIGNED_IN else None

        if self._owner_user_id is not None and new_user_id != self._owner_user_id:
            if new_user_id is None:
                logger.info("User signed out, resetting roster state")
            else:
                logger.info("Different user detected, resetting roster state")
            self._reset()

        if new_user_id is not None and self._phase is RosterPhase.UNINITIALIZED and self._auto_initialize:
            self._schedule_initialize()

    def _reset(self) -> None:
        with self._batched():
            self._phase = RosterPhase.RESETTING
            self._epoch += 1
            self._init_task = None
            self._affiliations = ()
            self.form.clear()
            self._last_error = None
            self._is_loading = False
            self._is_saving = False
            self._owner_user_id = None
            self._phase = RosterPhase.UNINITIALIZED

    def _schedule_initialize(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; initialize() must be called explicitly")
            return
        task = loop.create_task(self.initialize())
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background roster initialization failed: {error}")

    async def _require_owner(self, operation: str) -> Optional[str]:
        """The owner id when the signed-in identity owns the roster, else None after re-initializing."""
        try:
            user_id = await self._current_user_id()
        except VentureLinkBaseException as e:
            self._last_error = e.message
            self._notify()
            raise
        if user_id is None:
            error = AuthenticationError()
            self._last_error = error.message
            self._notify()
            raise error
        if user_id != self._owner_user_id:
            logger.warning(f"User mismatch in {operation}, reinitializing")
            if self._owner_user_id is not None:
                self._reset()
            await self.initialize()
            return None
        return user_id

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._epoch += 1
        self._unsubscribe_identity()
        self._unsubscribe_form()

        pending = [t for t in self._background if not t.done()]
        if self._init_task is not None and not self._init_task.done():
            pending.append(self._init_task)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._background.clear()
        self._init_task = None
        self._observers.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise RosterClosedError()

    def _validate(self, draft: AffiliationDraft) -> None:
        try:
            ensure_valid(draft)
        except ValidationError as e:
            self._last_error = e.message
            self._notify()
            raise

    def _find_or_raise(self, affiliation_id: str) -> CompanyAffiliation:
        existing = self.get(affiliation_id)
        if existing is None:
            error = ResourceNotFoundError("Affiliation", affiliation_id)
            self._last_error = error.message
            self._notify()
            raise error
        return existing

    async def _remote(self, awaitable: Awaitable[Any], operation: str) -> Any:
        try:
            return await run_with_timeout(awaitable, operation, self._remote_timeout)
        except VentureLinkBaseException:
            raise
        except Exception as e:
            raise RemoteOperationError(str(e), operation=operation) from e

    async def _current_user_id(self) -> Optional[str]:
        return await self._remote(self._identity.current_user_id(), "get_current_user")

    def _begin_save(self) -> None:
        self._is_saving = True
        self._last_error = None
        self._notify()

    def _end_save(self) -> None:
        self._is_saving = False
        self._notify()

    @classmethod
    def _parse_rows(cls, rows: Iterable[Dict[str, Any]], operation: str) -> Tuple[CompanyAffiliation, ...]:
        """Newest-first affiliations from server rows."""
        affiliations = [cls._parse_row(row, operation) for row in rows]
        affiliations.sort(key=lambda a: a.date_added, reverse=True)
        return tuple(affiliations)

    @staticmethod
    def _parse_row(row: Dict[str, Any], operation: str) -> CompanyAffiliation:
        try:
            return CompanyAffiliation.from_record(row)
        except (ValueError, TypeError, RecordValidationError) as e:
            raise RemoteOperationError(f"Malformed affiliation record: {e}", operation=operation) from e

    @staticmethod
    def _describe(error: Exception) -> str:
        return error.message if isinstance(error, VentureLinkBaseException) else str(error)

    @contextmanager
    def _batched(self):
        """Hold observer notifications until the block finishes, then notify once."""
        self._suspended += 1
        try:
            yield
        finally:
            self._suspended -= 1
        self._notify()

    def _notify(self) -> None:
        if self._suspended:
            return
        for callback in list(self._observers.values()):
            try:
                callback(self)
            except Exception:
                logger.exception("Roster observer failed")
