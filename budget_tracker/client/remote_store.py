"""
Remote store adapters — one whole JSON document per authenticated user.

Operations: ``fetch(user_id)`` (None when nothing is stored) and
``upsert(user_id, document)`` (insert-or-replace). Every failure surfaces
as ``RemoteStoreError``; deciding whether to ignore it is the caller's job.
"""

from __future__ import annotations

import logging

import requests
from sqlalchemy.exc import SQLAlchemyError

from budget_tracker.core.exceptions import AuthError, RemoteStoreError, ValidationError
from budget_tracker.utils.http import backend_error_message

logger = logging.getLogger(__name__)


class RemoteStore:
    def fetch(self, user_id: str) -> dict | None:
        raise NotImplementedError

    def upsert(self, user_id: str, document: dict) -> None:
        raise NotImplementedError


class DirectRemoteStore(RemoteStore):
    """Reads/writes the ``user_data`` table inside the given Flask app."""

    def __init__(self, app):
        self.app = app

    def fetch(self, user_id):
        from budget_tracker.services.user_data_service import get_user_data

        with self.app.app_context():
            try:
                row = get_user_data(user_id)
            except SQLAlchemyError as exc:
                raise RemoteStoreError(f"user_data read failed: {exc}") from exc
            return dict(row.data) if row is not None and row.data else None

    def upsert(self, user_id, document):
        from budget_tracker.models import db
        from budget_tracker.services.user_data_service import upsert_user_data

        with self.app.app_context():
            try:
                upsert_user_data(user_id, document)
            except ValidationError as exc:
                raise RemoteStoreError(str(exc)) from exc
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise RemoteStoreError(f"user_data write failed: {exc}") from exc


class HttpRemoteStore(RemoteStore):
    """Uses /api/v1/user-data with the access token of ``auth_client``.

    A 401 answer triggers one token refresh through the auth client and a
    single retry of the same request.
    """

    def __init__(self, base_url: str, auth_client, timeout: float = 10,
                 http: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.auth_client = auth_client
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, user_id: str) -> dict:
        session = self.auth_client.get_session()
        if session is None or session.user_id != user_id:
            raise RemoteStoreError(f"No active session for user {user_id}")
        return {
            "Authorization": f"Bearer {session.access_token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, user_id: str, **kwargs):
        url = f"{self.base_url}/api/v1/user-data"
        send = self.http.get if method == "GET" else self.http.put
        try:
            return send(url, headers=self._headers(user_id), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise RemoteStoreError(f"user_data {method} failed: {exc}") from exc

    def _send(self, method: str, user_id: str, **kwargs):
        resp = self._request(method, user_id, **kwargs)
        if resp.status_code != 401:
            return resp
        logger.info("Access token rejected, refreshing session", extra={"user_id": user_id})
        try:
            self.auth_client.refresh()
        except AuthError as exc:
            raise RemoteStoreError(f"Session refresh failed: {exc}") from exc
        return self._request(method, user_id, **kwargs)

    def fetch(self, user_id):
        resp = self._send("GET", user_id)
        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise RemoteStoreError(backend_error_message(resp))
        try:
            body = resp.json()
        except ValueError as exc:
            raise RemoteStoreError(f"user_data response is not JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise RemoteStoreError("user_data response is not an object")
        data = body.get("data")
        if data is not None and not isinstance(data, dict):
            raise RemoteStoreError("user_data document is not an object")
        return data or None

    def upsert(self, user_id, document):
        resp = self._send("PUT", user_id, json={"data": document})
        if not resp.ok:
            raise RemoteStoreError(backend_error_message(resp))
