"""HTTP auth client / remote store tests with a mocked requests session."""

from unittest.mock import MagicMock

import pytest
import requests

from budget_tracker.client.auth_client import SIGNED_IN, SIGNED_OUT, HttpAuthClient
from budget_tracker.client.remote_store import HttpRemoteStore
from budget_tracker.core.exceptions import AuthError, RemoteStoreError
from budget_tracker.workspace.sync import LoadSource, SyncCoordinator

BASE = "http://backend.local"


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.reason = "Error" if status >= 400 else "OK"
    resp.content = b"{}" if body is not None else b""
    resp.json.return_value = body
    return resp


def _session_payload(user_id="u-1", access_token="access-1"):
    return {
        "access_token": access_token,
        "refresh_token": "refresh-1",
        "token_type": "Bearer",
        "expires_in": 3600,
        "expires_at": "2030-01-01T00:00:00+00:00",
        "user": {"id": user_id, "email": "admin@agency.co.th"},
    }


@pytest.fixture()
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture()
def auth(http):
    return HttpAuthClient(BASE, timeout=2, http=http)


class TestHttpAuthClient:
    def test_sign_in_notifies(self, auth, http):
        http.request.return_value = _response(200, _session_payload())
        events = []
        auth.on_auth_state_change(lambda event, s: events.append((event, s.user_id if s else None)))

        session = auth.sign_in("admin@agency.co.th", "secret123")

        assert session.access_token == "access-1"
        assert auth.get_session() == session
        assert events == [(SIGNED_IN, "u-1")]
        method, url = http.request.call_args.args
        assert (method, url) == ("POST", f"{BASE}/api/v1/auth/login")
        assert http.request.call_args.kwargs["timeout"] == 2

    def test_backend_error_message(self, auth, http):
        http.request.return_value = _response(401, {"error": "Invalid login credentials"})
        with pytest.raises(AuthError) as exc:
            auth.sign_in("admin@agency.co.th", "bad")
        assert exc.value.message == "Invalid login credentials"
        assert exc.value.status_code == 401
        assert auth.get_session() is None

    def test_network_error(self, auth, http):
        http.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(AuthError) as exc:
            auth.sign_up("admin@agency.co.th", "secret123")
        assert exc.value.status_code == 503

    def test_sign_out_drops_session_even_on_failure(self, auth, http):
        http.request.return_value = _response(200, _session_payload())
        auth.sign_in("admin@agency.co.th", "secret123")
        events = []
        auth.on_auth_state_change(lambda event, s: events.append(event))

        http.request.side_effect = requests.Timeout("slow")
        auth.sign_out()
        assert auth.get_session() is None
        assert events == [SIGNED_OUT]

    def test_update_password_sends_bearer(self, auth, http):
        http.request.return_value = _response(200, _session_payload())
        auth.sign_in("admin@agency.co.th", "secret123")
        http.request.return_value = _response(200, {"message": "ok"})
        auth.update_password("newsecret", "newsecret")
        kwargs = http.request.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer access-1"
        assert kwargs["json"] == {"new_password": "newsecret", "confirm_password": "newsecret"}

    def test_malformed_json_body(self, auth, http):
        resp = _response(200, {})
        resp.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        http.request.return_value = resp
        with pytest.raises(AuthError) as exc:
            auth.sign_in("admin@agency.co.th", "secret123")
        assert exc.value.status_code == 502
        assert auth.get_session() is None

    def test_unsubscribe(self, auth, http):
        http.request.return_value = _response(200, _session_payload())
        events = []
        unsubscribe = auth.on_auth_state_change(lambda event, s: events.append(event))
        unsubscribe()
        auth.sign_in("admin@agency.co.th", "secret123")
        assert events == []


class TestHttpRemoteStore:
    @pytest.fixture()
    def store(self, auth, http):
        http.request.return_value = _response(200, _session_payload())
        auth.sign_in("admin@agency.co.th", "secret123")
        return HttpRemoteStore(BASE, auth, timeout=2, http=http)

    def test_fetch(self, store, http):
        document = {"agencies": [{"id": "a"}], "currentAgencyId": "a"}
        http.get.return_value = _response(200, {"user_id": "u-1", "data": document})
        assert store.fetch("u-1") == document
        assert http.get.call_args.kwargs["headers"]["Authorization"] == "Bearer access-1"

    def test_fetch_missing(self, store, http):
        http.get.return_value = _response(404, {"error": "No data stored for this user"})
        assert store.fetch("u-1") is None

    def test_fetch_failure(self, store, http):
        http.get.return_value = _response(500, {"error": "boom"})
        with pytest.raises(RemoteStoreError, match="boom"):
            store.fetch("u-1")

    def test_upsert(self, store, http):
        http.put.return_value = _response(200, {})
        store.upsert("u-1", {"agencies": [{"id": "a"}], "currentAgencyId": "a"})
        assert http.put.call_args.args[0] == f"{BASE}/api/v1/user-data"
        assert http.put.call_args.kwargs["json"]["data"]["currentAgencyId"] == "a"

    def test_upsert_network_error(self, store, http):
        http.put.side_effect = requests.ConnectionError("down")
        with pytest.raises(RemoteStoreError):
            store.upsert("u-1", {"agencies": [{"id": "a"}]})

    def test_other_user_rejected(self, store):
        with pytest.raises(RemoteStoreError):
            store.fetch("someone-else")

    def test_fetch_non_json_body(self, store, http):
        resp = _response(200, {})
        resp.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        http.get.return_value = resp
        with pytest.raises(RemoteStoreError, match="not JSON"):
            store.fetch("u-1")

    @pytest.mark.parametrize("body", [["a", "b"], {"user_id": "u-1", "data": "text"}])
    def test_fetch_non_object_body(self, store, http, body):
        http.get.return_value = _response(200, body)
        with pytest.raises(RemoteStoreError):
            store.fetch("u-1")

    def test_garbage_body_falls_back_to_defaults(self, store, http, repo, cache):
        http.get.return_value = _response(200, ["not", "a", "document"])
        sync = SyncCoordinator(repo, cache, remote_store=store, auth_client=store.auth_client,
                               run_inline=True)
        assert sync.load() == LoadSource.DEFAULTS
        http.put.assert_not_called()


class TestTokenRefresh:
    @pytest.fixture()
    def store(self, auth, http):
        http.request.return_value = _response(200, _session_payload())
        auth.sign_in("admin@agency.co.th", "secret123")
        return HttpRemoteStore(BASE, auth, timeout=2, http=http)

    def test_expired_token_refreshed_and_retried(self, store, auth, http):
        http.request.return_value = _response(200, _session_payload(access_token="access-2"))
        http.put.side_effect = [_response(401, {"error": "Token expired"}), _response(200, {})]

        store.upsert("u-1", {"agencies": [{"id": "a"}], "currentAgencyId": "a"})

        assert http.put.call_count == 2
        first, second = http.put.call_args_list
        assert first.kwargs["headers"]["Authorization"] == "Bearer access-1"
        assert second.kwargs["headers"]["Authorization"] == "Bearer access-2"
        assert http.request.call_args.args == ("POST", f"{BASE}/api/v1/auth/refresh")
        assert auth.get_session().access_token == "access-2"

    def test_retry_happens_once(self, store, http):
        http.request.return_value = _response(200, _session_payload(access_token="access-2"))
        http.get.return_value = _response(401, {"error": "Token expired"})
        with pytest.raises(RemoteStoreError):
            store.fetch("u-1")
        assert http.get.call_count == 2

    def test_failed_refresh(self, store, http):
        http.request.return_value = _response(401, {"error": "Session not found or revoked"})
        http.get.return_value = _response(401, {"error": "Token expired"})
        with pytest.raises(RemoteStoreError, match="Session refresh failed"):
            store.fetch("u-1")
        assert http.get.call_count == 1
