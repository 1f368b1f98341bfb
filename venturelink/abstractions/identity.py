"""
Identity abstraction: who is signed in, and a stream of sign-in / sign-out events.
The roster synchronizer receives one of these explicitly instead of reading a global auth singleton.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import logging

logger = logging.getLogger(__name__)


class IdentityEventKind(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


@dataclass(frozen=True)
class IdentityEvent:
    kind: IdentityEventKind
    user_id: Optional[str] = None

    @classmethod
    def signed_in(cls, user_id: str) -> "IdentityEvent":
        return cls(IdentityEventKind.SIGNED_IN, user_id)

    @classmethod
    def signed_out(cls) -> "IdentityEvent":
        return cls(IdentityEventKind.SIGNED_OUT, None)


IdentityCallback = Callable[[IdentityEvent], None]


class IdentitySource(ABC):
    """Interface for resolving and observing the authenticated identity."""

    @abstractmethod
    async def current_user_id(self) -> Optional[str]:
        """Id of the signed-in user, or None when signed out."""
        pass

    @abstractmethod
    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register for identity events. Returns a callable that unsubscribes."""
        pass


class _ListenerRegistry:
    def __init__(self):
        self._listeners: Dict[int, IdentityCallback] = {}
        self._next_token = 0

    def add(self, callback: IdentityCallback) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def emit(self, event: IdentityEvent) -> None:
        for callback in list(self._listeners.values()):
            try:
                callback(event)
            except Exception:
                logger.exception("Identity listener failed for %s", event.kind.value)


class ManualIdentitySource(IdentitySource):
    """In-process identity driven by explicit sign_in / sign_out calls."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self._listeners = _ListenerRegistry()

    async def current_user_id(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        return self._listeners.add(callback)

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id
        self._listeners.emit(IdentityEvent.signed_in(user_id))

    def sign_out(self) -> None:
        self._user_id = None
        self._listeners.emit(IdentityEvent.signed_out())


class FixedIdentitySource(IdentitySource):
    """Identity resolved once, e.g. from a request's bearer token. Never changes."""

    def __init__(self, user_id: str):
        self._user_id = user_id

    async def current_user_id(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        return lambda: None


class SupabaseIdentitySource(IdentitySource):
    """Identity backed by a Supabase async client's auth session."""

    # Events that carry a live session for a user
    _SIGNED_IN_EVENTS = {"SIGNED_IN", "INITIAL_SESSION", "TOKEN_REFRESHED", "USER_UPDATED"}

    def __init__(self, client):
        self._client = client

    async def current_user_id(self) -> Optional[str]:
        session = await self._client.auth.get_session()
        if session is None or session.user is None:
            return None
        return str(session.user.id)

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        def on_auth_state_change(event, session) -> None:
            mapped = self._map_event(str(event), session)
            if mapped is not None:
                callback(mapped)

        subscription = self._client.auth.on_auth_state_change(on_auth_state_change)
        return subscription.unsubscribe

    def _map_event(self, event: str, session) -> Optional[IdentityEvent]:
        if event == "SIGNED_OUT":
            return IdentityEvent.signed_out()
        if event in self._SIGNED_IN_EVENTS:
            user = getattr(session, "user", None)
            if user is None:
                return IdentityEvent.signed_out()
            return IdentityEvent.signed_in(str(user.id))
        logger.debug("Ignoring auth event %s", event)
        return None
