"""
Sync coordinator tests.

Tests cover:
  - Load order: remote document > local cache > legacy keys > defaults
  - Local write on every change, remote upsert only with a session
  - Remote failures logged and never rolling back local state
  - Manual upload (sync_local_to_cloud)
"""

import json
import logging

import pytest

from budget_tracker.client.auth_client import AuthClient, AuthSession
from budget_tracker.core.exceptions import RemoteStoreError, SyncError
from budget_tracker.workspace.authorization import AppSession
from budget_tracker.workspace.defaults import DEFAULT_AGENCY_ID
from budget_tracker.workspace.local_cache import CacheKeys
from budget_tracker.workspace.repository import AgencyRepository
from budget_tracker.workspace.sync import LoadSource, SyncCoordinator


class FakeRemoteStore:
    def __init__(self, documents=None, fail_fetch=False, fail_upsert=False):
        self.documents = dict(documents or {})
        self.fail_fetch = fail_fetch
        self.fail_upsert = fail_upsert
        self.upserts = []
        self.fetches = []

    def fetch(self, user_id):
        self.fetches.append(user_id)
        if self.fail_fetch:
            raise RemoteStoreError("connection refused")
        return self.documents.get(user_id)

    def upsert(self, user_id, document):
        if self.fail_upsert:
            raise RemoteStoreError("write timeout")
        self.upserts.append((user_id, document))
        self.documents[user_id] = document


def _signed_in_client(user_id="u-1"):
    client = AuthClient()
    client._set_session(
        AuthSession(user_id=user_id, email="admin@agency.co.th", access_token="a", refresh_token="r"),
        "SIGNED_IN",
    )
    return client


def _remote_document():
    return {
        "agencies": [
            {"id": "cloud-1", "name": "Cloud A", "projects": [], "categories": ["x"],
             "totalAllocatedBudget": 10},
            {"id": "cloud-2", "name": "Cloud B", "projects": [], "categories": [],
             "totalAllocatedBudget": 20, "passcode": "9999"},
        ],
        "currentAgencyId": "cloud-2",
    }


@pytest.fixture()
def remote():
    return FakeRemoteStore()


def _coordinator(repo, cache, remote=None, auth_client=None):
    return SyncCoordinator(repo, cache, remote_store=remote, auth_client=auth_client, run_inline=True)


# ═══════════════════════════════════════════════════════════════
# LOAD
# ═══════════════════════════════════════════════════════════════

class TestLoad:
    def test_defaults_when_nothing_stored(self, repo, cache):
        sync = _coordinator(repo, cache)
        assert sync.load() == LoadSource.DEFAULTS
        assert repo.current_agency_id == DEFAULT_AGENCY_ID
        assert json.loads(cache.get(CacheKeys.AGENCIES))[0]["id"] == DEFAULT_AGENCY_ID
        assert cache.get(CacheKeys.CURRENT_AGENCY_ID) == DEFAULT_AGENCY_ID

    def test_local_cache_round_trip(self, repo, cache, clock):
        sync = _coordinator(repo, cache)
        sync.load()
        repo.add_agency("B")
        repo.add_project({"projectCode": "B-1", "name": "Bridge", "budget": 7})
        expected = repo.to_document()

        fresh = AgencyRepository(clock=clock)
        assert _coordinator(fresh, cache).load() == LoadSource.LOCAL
        assert fresh.to_document() == expected

    def test_unknown_current_id_falls_back(self, repo, cache):
        cache.set(CacheKeys.AGENCIES, json.dumps([{"id": "a", "name": "A"}, {"id": "b", "name": "B"}]))
        cache.set(CacheKeys.CURRENT_AGENCY_ID, "missing")
        _coordinator(repo, cache).load()
        assert repo.current_agency_id == "a"

    @pytest.mark.parametrize("raw", ["{not json", '"a string"', "[]", '[{"name": "no id"}]'])
    def test_corrupt_cache_reseeds(self, repo, cache, raw):
        cache.set(CacheKeys.AGENCIES, raw)
        assert _coordinator(repo, cache).load() == LoadSource.DEFAULTS
        assert repo.current_agency_id == DEFAULT_AGENCY_ID

    def test_legacy_migration(self, repo, cache):
        cache.set(CacheKeys.LEGACY_PROJECTS, json.dumps([
            {"id": 7, "projectCode": "OLD-7", "name": "Old", "budget": 5,
             "progressLevel": "In Progress"},
        ]))
        cache.set(CacheKeys.LEGACY_CATEGORIES, json.dumps(["ถนน", "ถนน", "สะพาน"]))
        cache.set(CacheKeys.LEGACY_BUDGET, "2500000.5")

        assert _coordinator(repo, cache).load() == LoadSource.LEGACY
        agency = repo.current_agency
        assert agency.id == DEFAULT_AGENCY_ID
        assert [p.project_code for p in agency.projects] == ["OLD-7"]
        assert agency.projects[0].progress_level.value == "InProgress"
        assert agency.categories == ["ถนน", "สะพาน"]
        assert agency.total_allocated_budget == 2500000.5
        for key in CacheKeys.LEGACY_KEYS:
            assert cache.get(key) is None
        assert cache.get(CacheKeys.AGENCIES) is not None

    def test_legacy_budget_only(self, repo, cache):
        cache.set(CacheKeys.LEGACY_BUDGET, "42")
        _coordinator(repo, cache).load()
        assert repo.total_allocated_budget == 42
        assert [p.project_code for p in repo.projects] == ["PRJ-001"]

    def test_remote_document_adopted(self, repo, cache):
        remote = FakeRemoteStore({"u-1": _remote_document()})
        cache.set(CacheKeys.AGENCIES, json.dumps([{"id": "local", "name": "Local"}]))

        sync = _coordinator(repo, cache, remote, _signed_in_client())
        assert sync.load() == LoadSource.REMOTE
        assert [a.id for a in repo.agencies] == ["cloud-1", "cloud-2"]
        assert repo.current_agency_id == "cloud-2"
        assert json.loads(cache.get(CacheKeys.AGENCIES))[0]["id"] == "cloud-1"

    def test_empty_remote_uses_local_and_pushes(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        assert sync.load() == LoadSource.DEFAULTS
        assert remote.upserts[-1][0] == "u-1"
        assert remote.upserts[-1][1]["currentAgencyId"] == DEFAULT_AGENCY_ID

    def test_remote_without_agencies_ignored(self, repo, cache):
        remote = FakeRemoteStore({"u-1": {"agencies": [], "currentAgencyId": None}})
        assert _coordinator(repo, cache, remote, _signed_in_client()).load() == LoadSource.DEFAULTS

    def test_failed_remote_read_falls_back_without_push(self, repo, cache, caplog):
        remote = FakeRemoteStore(fail_fetch=True)
        with caplog.at_level(logging.ERROR):
            assert _coordinator(repo, cache, remote, _signed_in_client()).load() == LoadSource.DEFAULTS
        assert remote.upserts == []
        assert "Remote load failed" in caplog.text

    def test_no_session_no_remote_read(self, repo, cache):
        remote = FakeRemoteStore({"u-1": _remote_document()})
        assert _coordinator(repo, cache, remote, AuthClient()).load() == LoadSource.DEFAULTS
        assert remote.upserts == []


# ═══════════════════════════════════════════════════════════════
# SAVE ON CHANGE
# ═══════════════════════════════════════════════════════════════

class TestSaveOnChange:
    def test_changes_before_load_are_not_persisted(self, repo, cache):
        _coordinator(repo, cache)
        repo.add_category("x")
        assert cache.get(CacheKeys.AGENCIES) is None

    def test_local_write_without_session(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, AuthClient())
        sync.load()
        agency = repo.add_agency("B")
        assert cache.get(CacheKeys.CURRENT_AGENCY_ID) == agency.id
        assert remote.upserts == []

    def test_remote_upsert_with_session(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        sync.load()
        repo.add_category("สะพาน")
        user_id, document = remote.upserts[-1]
        assert user_id == "u-1"
        assert "สะพาน" in document["agencies"][0]["categories"]

    def test_snapshot_is_a_copy(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        sync.load()
        repo.add_category("A")
        _, document = remote.upserts[-1]
        repo.add_category("B")
        assert "B" not in document["agencies"][0]["categories"]

    def test_remote_failure_keeps_local_state(self, repo, cache, caplog):
        remote = FakeRemoteStore(fail_upsert=True)
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        with caplog.at_level(logging.ERROR):
            sync.load()
            repo.add_category("สะพาน")
        assert "สะพาน" in repo.categories
        assert "สะพาน" in cache.get(CacheKeys.AGENCIES)
        assert "Background remote save failed" in caplog.text

    def test_unexpected_store_error_is_logged(self, repo, cache, caplog):
        remote = FakeRemoteStore()
        remote.upsert = lambda user_id, document: {}["missing"]
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        with caplog.at_level(logging.ERROR):
            sync.load()
            repo.add_category("สะพาน")
        assert "สะพาน" in cache.get(CacheKeys.AGENCIES)
        assert "Background remote save crashed" in caplog.text

    def test_background_thread_mode(self, repo, cache, remote):
        sync = SyncCoordinator(repo, cache, remote_store=remote, auth_client=_signed_in_client())
        sync.load()
        repo.add_category("async")
        sync.wait_for_pending(timeout=5)
        assert any("async" in doc["agencies"][0]["categories"] for _, doc in remote.upserts)

    def test_close_stops_listening(self, repo, cache):
        sync = _coordinator(repo, cache)
        sync.load()
        sync.close()
        repo.add_category("late")
        assert "late" not in cache.get(CacheKeys.AGENCIES)


# ═══════════════════════════════════════════════════════════════
# MANUAL SYNC
# ═══════════════════════════════════════════════════════════════

class TestManualSync:
    def test_requires_session(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, AuthClient())
        sync.load()
        with pytest.raises(SyncError) as exc:
            sync.sync_local_to_cloud()
        assert str(exc.value) == "กรุณาเข้าสู่ระบบก่อนซิงค์ข้อมูล"

    def test_not_confirmed(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        sync.load()
        pushed = len(remote.upserts)
        assert sync.sync_local_to_cloud(confirmed=False) is False
        assert len(remote.upserts) == pushed

    def test_uploads_snapshot(self, repo, cache, remote):
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        sync.load()
        assert sync.sync_local_to_cloud() is True
        assert remote.documents["u-1"] == repo.to_document()

    def test_remote_failure_raises(self, repo, cache):
        remote = FakeRemoteStore(fail_upsert=True)
        sync = _coordinator(repo, cache, remote, _signed_in_client())
        sync.load()
        with pytest.raises(SyncError) as exc:
            sync.sync_local_to_cloud()
        assert str(exc.value) == "เกิดข้อผิดพลาดในการซิงค์: write timeout"


# ═══════════════════════════════════════════════════════════════
# DEMO MODE
# ═══════════════════════════════════════════════════════════════

class TestDemoMode:
    @pytest.fixture()
    def demo_sync(self, repo, cache):
        remote = FakeRemoteStore({"u-1": _remote_document()})
        sync = SyncCoordinator(repo, cache, remote_store=remote, auth_client=_signed_in_client(),
                               run_inline=True, app_session=AppSession(demo_mode=True))
        return sync, remote

    def test_load_skips_remote(self, demo_sync, repo):
        sync, remote = demo_sync
        assert sync.load() == LoadSource.DEFAULTS
        assert remote.fetches == []
        assert remote.upserts == []
        assert repo.current_agency_id == DEFAULT_AGENCY_ID

    def test_changes_stay_local(self, demo_sync, repo, cache):
        sync, remote = demo_sync
        sync.load()
        repo.add_project({"projectCode": "DEMO-1", "name": "demo-only"})
        assert "DEMO-1" in cache.get(CacheKeys.AGENCIES)
        assert remote.upserts == []
        assert remote.documents["u-1"] == _remote_document()

    def test_manual_sync_refused(self, demo_sync):
        sync, remote = demo_sync
        sync.load()
        with pytest.raises(SyncError):
            sync.sync_local_to_cloud()
        assert remote.upserts == []

    def test_leaving_demo_restores_remote_io(self, demo_sync, repo):
        sync, remote = demo_sync
        sync.load()
        sync.app_session.demo_mode = False
        assert sync.load() == LoadSource.REMOTE
        assert remote.fetches == ["u-1"]
