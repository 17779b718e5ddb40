"""
Shared pytest fixtures for the Project Budget Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - cache: Fresh in-memory local cache
    - repo: AgencyRepository seeded with the default agency
    - auth_headers: Bearer header factory for a freshly signed-up user
"""

import pytest

from budget_tracker import create_app
from budget_tracker.models import db as _db
from budget_tracker.workspace.ids import MonotonicIdClock
from budget_tracker.workspace.local_cache import MemoryCache
from budget_tracker.workspace.repository import AgencyRepository


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Workspace fixtures ───────────────────────────────────────────────────


class StepClock:
    """Deterministic millisecond clock: 1_700_000_000_000, +1 per call."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        self.now += 1
        return self.now


@pytest.fixture()
def clock():
    return MonotonicIdClock(now_ms=StepClock())


@pytest.fixture()
def cache():
    return MemoryCache()


@pytest.fixture()
def repo(clock):
    return AgencyRepository(clock=clock)


# ── API helpers ──────────────────────────────────────────────────────────


@pytest.fixture()
def signup(client):
    """Sign up via the API and return the session payload."""

    def _signup(email="admin@agency.co.th", password="secret123"):
        res = client.post("/api/v1/auth/signup", json={"email": email, "password": password})
        assert res.status_code == 201, res.get_json()
        return res.get_json()

    return _signup


@pytest.fixture()
def auth_headers(signup):
    payload = signup()
    return {"Authorization": f"Bearer {payload['access_token']}"}
