"""
Sync coordinator — keeps the repository, the local cache and the remote
per-user document in step.

  load()                   pick the source of truth at startup / auth change
  (repository listener)    local write always, remote upsert when signed in
  sync_local_to_cloud()    explicit, synchronous upload of the local snapshot

Remote writes from the automatic path are fire-and-forget: each runs on its
own daemon thread with a deep copy of the snapshot taken when the change
happened. Failures are logged and never roll back local state; completion
order is not guaranteed, so the remote document is last-write-wins.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from enum import Enum

from budget_tracker.core.exceptions import RemoteStoreError, SyncError
from budget_tracker.workspace.defaults import DEFAULT_TOTAL_BUDGET, default_agency
from budget_tracker.workspace.local_cache import CacheKeys, LocalCache
from budget_tracker.workspace.types import Agency, Project

logger = logging.getLogger(__name__)


class LoadSource(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    LEGACY = "legacy"
    DEFAULTS = "defaults"


class SyncCoordinator:
    """Persists every repository change; loads the workspace on demand.

    Args:
        repository: The ``AgencyRepository`` to load into and listen to.
        cache: Local cache (always written).
        remote_store: Remote document store; ``None`` for offline-only use.
        auth_client: Source of the current backend session.
        app: Flask app whose context is pushed around remote writes.
        run_inline: Run remote writes on the calling thread (tests, CLI).
        app_session: Role holder; while its demo flag is set the remote
            store is neither read nor written.
    """

    def __init__(self, repository, cache: LocalCache, remote_store=None, auth_client=None,
                 app=None, run_inline: bool = False, app_session=None):
        self.repository = repository
        self.cache = cache
        self.remote_store = remote_store
        self.auth_client = auth_client
        self.app = app
        self.run_inline = run_inline
        self.app_session = app_session
        self._loaded = False
        self._pending: list[threading.Thread] = []
        self._pending_lock = threading.Lock()
        self._unsubscribe = repository.subscribe(self._on_change)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def _current_auth_session(self):
        """Backend session used for remote I/O; None while demo mode is active."""
        if self.app_session is not None and self.app_session.demo_mode:
            return None
        return self.auth_client.get_session() if self.auth_client is not None else None

    # ── Load ─────────────────────────────────────────────────────────────

    def load(self) -> LoadSource:
        """Choose the source of truth and replace the repository contents.

        Remote (when signed in and the document holds agencies) wins over
        the local cache; the local cache wins over legacy keys; seeded
        defaults are the last resort.
        """
        self._loaded = False
        auth_session = self._current_auth_session()
        remote_reachable = False
        source = None

        if auth_session is not None and self.remote_store is not None:
            try:
                document = self.remote_store.fetch(auth_session.user_id)
                remote_reachable = True
            except RemoteStoreError as exc:
                logger.error("Remote load failed, using local cache: %s", exc,
                             extra={"user_id": auth_session.user_id, "event_type": "remote_load_failed"})
                document = None
            if document and self._adopt(document):
                source = LoadSource.REMOTE

        if source is None:
            source = self._load_local()

        self._loaded = True
        self._write_local()
        if auth_session is not None and remote_reachable:
            self._schedule_remote(auth_session.user_id)
        logger.info("Workspace loaded from %s (%d agencies)", source.value,
                    len(self.repository.agencies),
                    extra={"event_type": "workspace_loaded", "agency_id": self.repository.current_agency_id})
        return source

    def _adopt(self, document: dict) -> bool:
        try:
            agencies = [Agency.from_dict(a) for a in document.get("agencies") or []]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error("Remote document malformed, ignored: %s", exc)
            return False
        if not agencies:
            return False
        self.repository.replace_all(agencies, document.get("currentAgencyId"))
        return True

    def _load_local(self) -> LoadSource:
        raw = self.cache.get(CacheKeys.AGENCIES)
        if raw:
            try:
                agencies = [Agency.from_dict(a) for a in json.loads(raw)]
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.error("Local agencies cache corrupt, reseeding defaults: %s", exc,
                             extra={"event_type": "local_cache_corrupt"})
                agencies = []
            if agencies:
                self.repository.replace_all(agencies, self.cache.get(CacheKeys.CURRENT_AGENCY_ID))
                return LoadSource.LOCAL
            self.repository.replace_all([default_agency()])
            return LoadSource.DEFAULTS

        if any(self.cache.get(key) is not None for key in CacheKeys.LEGACY_KEYS):
            self.repository.replace_all([self._migrate_legacy()])
            return LoadSource.LEGACY

        self.repository.replace_all([default_agency()])
        return LoadSource.DEFAULTS

    def _migrate_legacy(self) -> Agency:
        """Fold the single-agency keys into one default agency, then drop them."""
        projects = categories = None
        budget = None
        try:
            raw = self.cache.get(CacheKeys.LEGACY_PROJECTS)
            if raw:
                projects = [Project.from_dict(p) for p in json.loads(raw)]
            raw = self.cache.get(CacheKeys.LEGACY_CATEGORIES)
            if raw:
                categories = []
                for name in json.loads(raw):
                    if name not in categories:
                        categories.append(name)
            raw = self.cache.get(CacheKeys.LEGACY_BUDGET)
            if raw:
                budget = float(raw)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error("Legacy data unreadable, kept what parsed: %s", exc)

        for key in CacheKeys.LEGACY_KEYS:
            self.cache.remove(key)
        logger.info("Migrated legacy single-agency data", extra={"event_type": "legacy_migrated"})
        return default_agency(
            projects=projects,
            categories=categories,
            total_allocated_budget=budget if budget is not None else DEFAULT_TOTAL_BUDGET,
        )

    # ── Save on change ───────────────────────────────────────────────────

    def _on_change(self, repository, event_type: str) -> None:
        if not self._loaded:
            return
        self._write_local()
        auth_session = self._current_auth_session()
        if auth_session is not None:
            self._schedule_remote(auth_session.user_id)

    def _write_local(self) -> None:
        document = self.repository.to_document()
        self.cache.set(CacheKeys.AGENCIES, json.dumps(document["agencies"], ensure_ascii=False))
        self.cache.set(CacheKeys.CURRENT_AGENCY_ID, document["currentAgencyId"])

    def _schedule_remote(self, user_id: str) -> None:
        if self.remote_store is None:
            return
        snapshot = copy.deepcopy(self.repository.to_document())
        if self.run_inline:
            self._push(user_id, snapshot)
            return
        thread = threading.Thread(target=self._push, args=(user_id, snapshot), daemon=True)
        with self._pending_lock:
            self._pending = [t for t in self._pending if t.is_alive()]
            self._pending.append(thread)
        thread.start()

    def _push(self, user_id: str, snapshot: dict) -> None:
        try:
            if self.app is not None:
                with self.app.app_context():
                    self.remote_store.upsert(user_id, snapshot)
            else:
                self.remote_store.upsert(user_id, snapshot)
        except RemoteStoreError as exc:
            logger.error("Background remote save failed: %s", exc,
                         extra={"user_id": user_id, "event_type": "remote_save_failed"})
        except Exception:
            logger.exception("Background remote save crashed",
                             extra={"user_id": user_id, "event_type": "remote_save_failed"})

    def wait_for_pending(self, timeout: float | None = None) -> None:
        """Block until every scheduled remote write has finished."""
        with self._pending_lock:
            threads = list(self._pending)
            self._pending = []
        for thread in threads:
            thread.join(timeout)

    # ── Manual sync ──────────────────────────────────────────────────────

    def sync_local_to_cloud(self, confirmed: bool = True) -> bool:
        """Upload the current snapshot, overwriting the remote document.

        Returns False when the caller did not confirm.

        Raises:
            SyncError: no backend session, or the remote write failed.
        """
        auth_session = self._current_auth_session()
        if auth_session is None or self.remote_store is None:
            raise SyncError("กรุณาเข้าสู่ระบบก่อนซิงค์ข้อมูล")
        if not confirmed:
            return False
        try:
            self.remote_store.upsert(auth_session.user_id, copy.deepcopy(self.repository.to_document()))
        except RemoteStoreError as exc:
            logger.error("Manual sync failed: %s", exc, extra={"user_id": auth_session.user_id})
            raise SyncError(f"เกิดข้อผิดพลาดในการซิงค์: {exc}") from exc
        logger.info("Local workspace uploaded", extra={"user_id": auth_session.user_id,
                                                        "event_type": "manual_sync"})
        return True

    def close(self) -> None:
        self._unsubscribe()
