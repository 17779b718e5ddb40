"""
Auth clients — hold the current backend session and announce its changes.

The workspace only consumes three things from here: "is there a session",
"what is its user id" and "tell me when it changes". ``AuthClient`` owns
that contract; subclasses only implement the backend calls:

  - DirectAuthClient  talks to the services in-process (same Flask app)
  - HttpAuthClient    talks to the /api/v1/auth endpoints with requests

Subscribers are called as ``callback(event, session)`` with event one of
SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, USER_UPDATED.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import requests

from budget_tracker.core.exceptions import AuthError
from budget_tracker.utils.http import backend_error_message

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"

AuthCallback = Callable[[str, "AuthSession | None"], None]


@dataclass(frozen=True)
class AuthSession:
    """Backend session as seen by the client."""
    user_id: str
    email: str
    access_token: str
    refresh_token: str
    expires_at: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthSession":
        user = payload.get("user") or {}
        return cls(
            user_id=str(user["id"]),
            email=user.get("email", ""),
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
            expires_at=payload.get("expires_at"),
        )


class AuthClient:
    """Session holder + change subscription shared by all auth clients."""

    def __init__(self):
        self._session: AuthSession | None = None
        self._subscribers: list[AuthCallback] = []

    # ── Contract consumed by the workspace ───────────────────────────────

    def get_session(self) -> AuthSession | None:
        return self._session

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _set_session(self, session: AuthSession | None, event: str) -> None:
        self._session = session
        logger.info("Auth state change: %s", event,
                    extra={"event_type": event, "user_id": session.user_id if session else None})
        for callback in list(self._subscribers):
            callback(event, session)

    # ── Commands ─────────────────────────────────────────────────────────

    def sign_in(self, email: str, password: str) -> AuthSession:
        session = self._sign_in(email, password)
        self._set_session(session, SIGNED_IN)
        return session

    def sign_up(self, email: str, password: str) -> AuthSession:
        session = self._sign_up(email, password)
        self._set_session(session, SIGNED_IN)
        return session

    def sign_out(self) -> None:
        session = self._session
        if session is None:
            return
        try:
            self._sign_out(session)
        except AuthError as exc:
            # The local session is dropped regardless; the refresh token expires on its own.
            logger.warning("Backend sign-out failed: %s", exc)
        self._set_session(None, SIGNED_OUT)

    def refresh(self) -> AuthSession:
        session = self._require_session()
        refreshed = self._refresh(session)
        self._set_session(refreshed, TOKEN_REFRESHED)
        return refreshed

    def update_password(self, new_password: str, confirm_password: str | None = None) -> None:
        session = self._require_session()
        self._update_password(session, new_password, confirm_password)
        self._set_session(session, USER_UPDATED)

    def _require_session(self) -> AuthSession:
        if self._session is None:
            raise AuthError("Not signed in", 401)
        return self._session

    # ── Backend calls (subclasses) ───────────────────────────────────────

    def _sign_in(self, email, password) -> AuthSession:
        raise NotImplementedError

    def _sign_up(self, email, password) -> AuthSession:
        raise NotImplementedError

    def _sign_out(self, session) -> None:
        raise NotImplementedError

    def _refresh(self, session) -> AuthSession:
        raise NotImplementedError

    def _update_password(self, session, new_password, confirm_password) -> None:
        raise NotImplementedError


class DirectAuthClient(AuthClient):
    """Calls the user / JWT services inside the given Flask app."""

    def __init__(self, app):
        super().__init__()
        self.app = app

    def _issue(self, user) -> AuthSession:
        from budget_tracker.services.jwt_service import issue_session

        tokens = issue_session(user, None, "direct-client")
        return AuthSession(
            user_id=user.id,
            email=user.email,
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            expires_at=tokens["expires_at"].isoformat(),
        )

    def _sign_in(self, email, password):
        from budget_tracker.services.user_service import authenticate_user

        with self.app.app_context():
            return self._issue(authenticate_user(email, password))

    def _sign_up(self, email, password):
        from budget_tracker.services.user_service import create_user

        with self.app.app_context():
            return self._issue(create_user(email, password))

    def _sign_out(self, session):
        from budget_tracker.services.jwt_service import hash_token, revoke_session_by_token

        with self.app.app_context():
            revoke_session_by_token(hash_token(session.refresh_token))

    def _refresh(self, session):
        from budget_tracker.services.jwt_service import hash_token, revoke_session_by_token
        from budget_tracker.services.user_service import get_user_by_id

        with self.app.app_context():
            user = get_user_by_id(session.user_id)
            if user is None or not revoke_session_by_token(hash_token(session.refresh_token)):
                raise AuthError("Session not found or revoked", 401)
            return self._issue(user)

    def _update_password(self, session, new_password, confirm_password):
        from budget_tracker.services.user_service import change_user_password

        with self.app.app_context():
            change_user_password(session.user_id, new_password, confirm_password)


class HttpAuthClient(AuthClient):
    """Talks to a remote backend's /api/v1/auth endpoints."""

    def __init__(self, base_url: str, timeout: float = 10, http: requests.Session | None = None):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _call(self, method: str, path: str, *, json=None, token: str | None = None) -> dict:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = self.http.request(
                method, f"{self.base_url}/api/v1/auth{path}",
                json=json, headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Auth backend unreachable: %s", exc)
            raise AuthError(f"Network error: {exc}", 503) from exc
        if not resp.ok:
            raise AuthError(backend_error_message(resp), resp.status_code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise AuthError(f"Malformed auth response: {exc}", 502) from exc

    def _sign_in(self, email, password):
        payload = self._call("POST", "/login", json={"email": email, "password": password})
        return AuthSession.from_payload(payload)

    def _sign_up(self, email, password):
        payload = self._call("POST", "/signup", json={"email": email, "password": password})
        return AuthSession.from_payload(payload)

    def _sign_out(self, session):
        self._call("POST", "/logout", json={"refresh_token": session.refresh_token},
                   token=session.access_token)

    def _refresh(self, session):
        payload = self._call("POST", "/refresh", json={"refresh_token": session.refresh_token})
        return AuthSession.from_payload(payload)

    def _update_password(self, session, new_password, confirm_password):
        body = {"new_password": new_password}
        if confirm_password is not None:
            body["confirm_password"] = confirm_password
        self._call("PUT", "/password", json=body, token=session.access_token)
