"""
Session Gate - decides what an admin route may show.

States: loading -> authenticated | unauthenticated. While loading the gate
only ever answers "placeholder": no protected content and no redirect until
the session check has a definitive answer.

The current session lives in an explicit SessionStore handed to the gate,
so any session state can be injected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from folio.bus.events import EventBus, EVENT_SESSION_CHANGED
from folio.errors import FolioError, StoreError

logger = logging.getLogger(__name__)

LOADING = 'loading'
AUTHENTICATED = 'authenticated'
UNAUTHENTICATED = 'unauthenticated'

LOGIN_ROUTE = '/admin'

RENDER = 'render'
PLACEHOLDER = 'placeholder'
REDIRECT = 'redirect'


@dataclass
class Session:
    access_token: str
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    expires_at: Optional[datetime] = None

    def expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class SessionStore:
    """Holder for the client-side session marker."""

    def __init__(self, session: Optional[Session] = None):
        self._session = session

    def get(self) -> Optional[Session]:
        return self._session

    def set(self, session: Session):
        self._session = session

    def clear(self):
        self._session = None


@dataclass(frozen=True)
class GateDecision:
    action: str
    route: str


def is_protected(route: str, login_route: str = LOGIN_ROUTE) -> bool:
    return route.startswith(login_route + '/')


class SessionGate:

    def __init__(self, auth_client, store: Optional[SessionStore] = None, login_route: str = LOGIN_ROUTE):
        self._auth = auth_client
        self.store = store or SessionStore()
        self.login_route = login_route
        self.state = LOADING
        self.user: Optional[Dict[str, Any]] = None
        self._bus = EventBus()

    def on_change(self, handler: Callable[[Dict[str, Any]], None]):
        """handler({'state': ..., 'user': ...}) on every state change."""
        self._bus.on(EVENT_SESSION_CHANGED, handler)

    def off_change(self, handler: Callable[[Dict[str, Any]], None]) -> bool:
        return self._bus.off(EVENT_SESSION_CHANGED, handler)

    def _set_state(self, state: str, user: Optional[Dict[str, Any]] = None):
        changed = state != self.state
        self.state, self.user = state, user
        if changed:
            logger.info(f"Session {state}")
            self._bus.emit(EVENT_SESSION_CHANGED, {'state': state, 'user': user})

    def check(self) -> str:
        """Resolve the loading state against the auth service."""
        if self._auth is None:
            logger.warning("Auth service not configured; admin routes are closed")
            self._set_state(UNAUTHENTICATED)
            return self.state

        session = self.store.get()
        if session is None:
            self._set_state(UNAUTHENTICATED)
            return self.state
        if session.expired():
            self.store.clear()
            self._set_state(UNAUTHENTICATED)
            return self.state

        try:
            user = self._auth.get_user(session.access_token)
        except StoreError as e:
            # Unreachable, not rejected: keep the marker
            logger.error(f"Session check failed: {e}")
            self._set_state(UNAUTHENTICATED)
            return self.state
        except FolioError as e:
            logger.error(f"Session rejected: {e}")
            user = None

        if user is None:
            self.store.clear()
            self._set_state(UNAUTHENTICATED)
        else:
            self._set_state(AUTHENTICATED, user)
        return self.state

    def resolve(self, route: str) -> GateDecision:
        if not is_protected(route, self.login_route):
            return GateDecision(RENDER, route)
        if self.state == LOADING:
            return GateDecision(PLACEHOLDER, route)
        if self.state == AUTHENTICATED:
            return GateDecision(RENDER, route)
        return GateDecision(REDIRECT, self.login_route)

    def login(self, email: str, password: str) -> Session:
        if self._auth is None:
            raise StoreError("Auth service not configured")
        session = self._auth.sign_in(email, password)
        self.store.set(session)
        self._set_state(AUTHENTICATED, {'id': session.user_id, 'email': session.email})
        return session

    def register(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[str]:
        if self._auth is None:
            raise StoreError("Auth service not configured")
        return self._auth.sign_up(email, password, full_name)

    def logout(self) -> GateDecision:
        """End the server session and drop the local marker, then send to login."""
        session = self.store.get()
        try:
            if session is not None and self._auth is not None:
                self._auth.sign_out(session.access_token)
        except FolioError as e:
            logger.error(f"Server-side sign-out failed: {e}")
        finally:
            self.store.clear()
            self._set_state(UNAUTHENTICATED)
        return GateDecision(REDIRECT, self.login_route)
