"""
Workspace facade — the single object an application talks to.

Wires the repository, the sync coordinator, the authorization state
machine and the UI passcode guard together, and checks the caller's
role before every mutation:

  - views                                   any role; non-admins only see the
                                            current agency, without its passcode
  - agency / project / category / budget    admin
  - reset_all_project_dates, clear_all_data admin + UI passcode
  - sync_local_to_cloud                     admin with a backend session

Usage:
    ws = Workspace.from_app(app).start()
    ws.login_as_demo_admin()
    ws.add_project({"projectCode": "PRJ-9", "name": "Bridge", "budget": 1e6})
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from budget_tracker.client.auth_client import SIGNED_IN, SIGNED_OUT, DirectAuthClient, HttpAuthClient
from budget_tracker.client.remote_store import DirectRemoteStore, HttpRemoteStore
from budget_tracker.core.exceptions import AuthError
from budget_tracker.workspace.authorization import AppSession, AuthorizationStateMachine, Role
from budget_tracker.workspace.local_cache import LocalCache, create_local_cache
from budget_tracker.workspace.passcode import PasscodeGuard
from budget_tracker.workspace.reports import BudgetSummary, budget_summary
from budget_tracker.workspace.repository import AgencyRepository
from budget_tracker.workspace.sync import LoadSource, SyncCoordinator
from budget_tracker.workspace.types import Agency, Project

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(self, cache: LocalCache, remote_store=None, auth_client=None, app=None,
                 run_inline: bool = False, clock=None):
        self.cache = cache
        self.auth_client = auth_client
        self.repository = AgencyRepository(clock=clock)
        self.session = AppSession()
        self.sync = SyncCoordinator(self.repository, cache, remote_store=remote_store,
                                    auth_client=auth_client, app=app, run_inline=run_inline,
                                    app_session=self.session)
        self.auth = AuthorizationStateMachine(self.session, self.repository, cache,
                                              auth_client=auth_client, reload=self.reload)
        self.passcode = PasscodeGuard(cache)
        self._unsubscribe_auth = None
        if auth_client is not None:
            self._unsubscribe_auth = auth_client.on_auth_state_change(self._on_auth_event)

    @classmethod
    def from_app(cls, app, cache: LocalCache | None = None) -> "Workspace":
        """Build a workspace from app config.

        With BACKEND_URL set the backend is reached over HTTP; otherwise the
        services of ``app`` are called in-process.
        """
        cache = cache or create_local_cache(app.config.get("LOCAL_CACHE_URL"))
        backend_url = app.config.get("BACKEND_URL")
        if backend_url:
            timeout = app.config.get("BACKEND_TIMEOUT", 10)
            auth_client = HttpAuthClient(backend_url, timeout=timeout)
            remote_store = HttpRemoteStore(backend_url, auth_client, timeout=timeout)
        else:
            auth_client = DirectAuthClient(app)
            remote_store = DirectRemoteStore(app)
        return cls(cache, remote_store=remote_store, auth_client=auth_client, app=app,
                   run_inline=app.config.get("SYNC_REMOTE_INLINE", False))

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> "Workspace":
        """Restore the role from the cache and load the workspace."""
        self.auth.restore()
        self.reload()
        return self

    def reload(self) -> LoadSource:
        return self.sync.load()

    def _on_auth_event(self, event: str, auth_session) -> None:
        if event in (SIGNED_IN, SIGNED_OUT):
            self.reload()

    def close(self) -> None:
        self.sync.wait_for_pending()
        self.sync.close()
        self.auth.close()
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def role(self) -> Role:
        return self.session.role

    @property
    def is_demo_mode(self) -> bool:
        return self.session.demo_mode

    @property
    def agencies(self) -> list[Agency]:
        if self.session.role == Role.ADMIN:
            return self.repository.agencies
        agency = self.current_agency
        return [agency] if agency is not None else []

    @property
    def current_agency_id(self) -> str:
        return self.repository.current_agency_id

    @property
    def current_agency(self) -> Agency | None:
        agency = self.repository.current_agency
        if agency is None or self.session.role == Role.ADMIN:
            return agency
        return dataclasses.replace(agency, passcode=None)

    @property
    def projects(self) -> list[Project]:
        return self.repository.projects

    @property
    def categories(self) -> list[str]:
        return self.repository.categories

    @property
    def total_allocated_budget(self) -> float:
        return self.repository.total_allocated_budget

    def budget_summary(self) -> BudgetSummary:
        return budget_summary(self.repository.current_agency)

    # ── Authorization ────────────────────────────────────────────────────

    def login_as_reader(self, passcode: str) -> bool:
        return self.auth.login_as_reader(passcode)

    def sign_in(self, email: str, password: str):
        return self.auth.sign_in(email, password)

    def sign_up(self, email: str, password: str):
        return self.auth.sign_up(email, password)

    def login_as_demo_admin(self) -> None:
        self.auth.login_as_demo_admin()

    def logout(self) -> None:
        self.auth.logout()

    def update_password(self, new_password: str, confirm_password: str | None = None) -> None:
        if self.auth_client is None:
            raise AuthError("Backend authentication is not configured", 503)
        self.auth_client.update_password(new_password, confirm_password)

    # ── Agencies (admin) ─────────────────────────────────────────────────

    def add_agency(self, name: str) -> Agency:
        self.auth.require(Role.ADMIN)
        return self.repository.add_agency(name)

    def switch_agency(self, agency_id: str) -> bool:
        self.auth.require(Role.ADMIN)
        return self.repository.switch_agency(agency_id)

    def update_agency_name(self, agency_id: str, name: str) -> None:
        self.auth.require(Role.ADMIN)
        self.repository.update_agency_name(agency_id, name)

    def update_agency_passcode(self, agency_id: str, passcode: str | None) -> None:
        self.auth.require(Role.ADMIN)
        self.repository.update_agency_passcode(agency_id, passcode)

    def delete_agency(self, agency_id: str) -> None:
        self.auth.require(Role.ADMIN)
        self.repository.delete_agency(agency_id)

    def clear_all_data(self, app_passcode: str) -> None:
        self.auth.require(Role.ADMIN)
        self.passcode.require(app_passcode)
        self.repository.clear_all_data()

    # ── Projects / categories / budget (admin) ───────────────────────────

    def add_project(self, data: dict[str, Any]) -> Project | None:
        self.auth.require(Role.ADMIN)
        return self.repository.add_project(data)

    def update_project(self, project_id: int, fields: dict[str, Any]) -> Project | None:
        self.auth.require(Role.ADMIN)
        return self.repository.update_project(project_id, fields)

    def delete_project(self, project_id: int) -> bool:
        self.auth.require(Role.ADMIN)
        return self.repository.delete_project(project_id)

    def duplicate_project(self, project_id: int) -> Project | None:
        self.auth.require(Role.ADMIN)
        return self.repository.duplicate_project(project_id)

    def reset_all_project_dates(self, app_passcode: str) -> int:
        self.auth.require(Role.ADMIN)
        self.passcode.require(app_passcode)
        return self.repository.reset_all_project_dates()

    def add_category(self, name: str) -> bool:
        self.auth.require(Role.ADMIN)
        return self.repository.add_category(name)

    def delete_category(self, name: str) -> bool:
        self.auth.require(Role.ADMIN)
        return self.repository.delete_category(name)

    def update_total_allocated_budget(self, amount: float) -> None:
        self.auth.require(Role.ADMIN)
        self.repository.update_total_allocated_budget(amount)

    # ── UI passcode / sync ───────────────────────────────────────────────

    def change_app_passcode(self, current: str, new: str, confirm: str) -> None:
        self.auth.require(Role.ADMIN)
        self.passcode.change(current, new, confirm)

    def sync_local_to_cloud(self, confirmed: bool = True) -> bool:
        self.auth.require(Role.ADMIN)
        return self.sync.sync_local_to_cloud(confirmed)
