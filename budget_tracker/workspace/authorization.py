"""
Authorization state machine — guest / reader / admin.

Three independent credential paths lead to a role:

  - agency passcode       -> reader, scoped to the matching agency
  - backend auth session  -> admin
  - demo bypass           -> admin, no backend call

Role and demo flags live in an explicit ``AppSession`` and are persisted
to the local cache (``user_role`` / ``is_demo_mode``) only through the
named transitions below, so ``restore()`` can rebuild them at startup.

Precedence when the auth client reports a session change: an active demo
flag wins and the notification leaves the role alone. Without demo, a
session grants admin; losing it demotes an admin to guest and leaves a
reader as reader.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from budget_tracker.core.exceptions import AuthError, PermissionDeniedError
from budget_tracker.workspace.local_cache import CacheKeys, LocalCache

logger = logging.getLogger(__name__)


class Role(str, Enum):
    GUEST = "guest"
    READER = "reader"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, minimum: "Role") -> bool:
        return self.rank >= minimum.rank


_ROLE_RANK = {Role.GUEST: 0, Role.READER: 1, Role.ADMIN: 2}


@dataclass
class AppSession:
    """Who is using the workspace right now."""
    role: Role = Role.GUEST
    demo_mode: bool = False
    auth_session: object | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.auth_session is not None


class AuthorizationStateMachine:
    """Owns every role transition of an ``AppSession``.

    Args:
        app_session: The session object mutated by transitions.
        repository: Agency repository, used to match reader passcodes.
        cache: Local cache the role / demo flags are persisted in.
        auth_client: Backend auth client; optional for offline-only use.
        reload: Called after demo login and logout to reload app state.
    """

    def __init__(self, app_session: AppSession, repository, cache: LocalCache,
                 auth_client=None, reload: Callable[[], None] | None = None):
        self.session = app_session
        self.repository = repository
        self.cache = cache
        self.auth_client = auth_client
        self._reload = reload
        self._unsubscribe = None
        if auth_client is not None:
            self._unsubscribe = auth_client.on_auth_state_change(self.handle_auth_state_change)

    @property
    def role(self) -> Role:
        return self.session.role

    # ── Persistence ──────────────────────────────────────────────────────

    def _enter(self, role: Role, demo_mode: bool) -> None:
        previous = self.session.role
        self.session.role = role
        self.session.demo_mode = demo_mode
        if role == Role.GUEST:
            self.cache.remove(CacheKeys.USER_ROLE)
        else:
            self.cache.set(CacheKeys.USER_ROLE, role.value)
        if demo_mode:
            self.cache.set(CacheKeys.DEMO_MODE, "true")
        else:
            self.cache.remove(CacheKeys.DEMO_MODE)
        if previous != role:
            logger.info("Role %s -> %s", previous.value, role.value,
                        extra={"role": role.value, "event_type": "role_change"})

    def restore(self) -> Role:
        """Rebuild the role from persisted flags and the current auth session."""
        demo = self.cache.get(CacheKeys.DEMO_MODE) == "true"
        stored = self.cache.get(CacheKeys.USER_ROLE)
        auth_session = self.auth_client.get_session() if self.auth_client else None
        self.session.auth_session = auth_session

        if demo:
            self._enter(Role.ADMIN, demo_mode=True)
        elif auth_session is not None:
            self._enter(Role.ADMIN, demo_mode=False)
        elif stored == Role.READER.value:
            self._enter(Role.READER, demo_mode=False)
        else:
            # A persisted admin without demo flag or session is stale.
            self._enter(Role.GUEST, demo_mode=False)
        return self.session.role

    # ── Transitions ──────────────────────────────────────────────────────

    def login_as_reader(self, passcode: str) -> bool:
        agency = self.repository.find_agency_by_passcode(passcode)
        if agency is None:
            logger.info("Reader login rejected", extra={"event_type": "reader_login_failed"})
            return False
        self.repository.switch_agency(agency.id)
        self._enter(Role.READER, demo_mode=False)
        return True

    def sign_in(self, email: str, password: str):
        return self._backend_login(self._auth().sign_in, email, password)

    def sign_up(self, email: str, password: str):
        return self._backend_login(self._auth().sign_up, email, password)

    def _backend_login(self, call, email, password):
        was_demo = self.session.demo_mode
        auth_session = call(email, password)
        self.session.auth_session = auth_session
        self._enter(Role.ADMIN, demo_mode=False)
        if was_demo:
            # Loads triggered during the sign-in skipped the remote store
            self._do_reload()
        return auth_session

    def login_as_demo_admin(self) -> None:
        self._enter(Role.ADMIN, demo_mode=True)
        self._do_reload()

    def logout(self) -> None:
        self._enter(Role.GUEST, demo_mode=False)
        if self.auth_client is not None and self.auth_client.get_session() is not None:
            self.auth_client.sign_out()
        self.session.auth_session = None
        self._do_reload()

    def handle_auth_state_change(self, event: str, auth_session) -> None:
        """Subscriber for the auth client's session notifications."""
        self.session.auth_session = auth_session
        if self.session.demo_mode:
            logger.debug("Auth event %s ignored in demo mode", event)
            return
        if auth_session is not None:
            self._enter(Role.ADMIN, demo_mode=False)
        elif self.session.role == Role.ADMIN:
            self._enter(Role.GUEST, demo_mode=False)

    def require(self, minimum: Role) -> None:
        if not self.session.role.at_least(minimum):
            raise PermissionDeniedError(minimum.value, self.session.role.value)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── Helpers ──────────────────────────────────────────────────────────

    def _auth(self):
        if self.auth_client is None:
            raise AuthError("Backend authentication is not configured", 503)
        return self.auth_client

    def _do_reload(self) -> None:
        if self._reload is not None:
            self._reload()
