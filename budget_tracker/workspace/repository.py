"""
Agency / Project repository — the in-memory workspace state.

Owns the agency list and the current-agency pointer. Project and category
commands always act on the current agency only, except
``reset_all_project_dates`` which deliberately touches every agency.

Commands referencing an id that does not exist are silent no-ops; the only
refused mutation is deleting the last agency (``LastAgencyError``).

Listeners registered with ``subscribe`` are called after every applied
change with ``(repository, event_type)``; the sync coordinator is one.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from budget_tracker.core.exceptions import LastAgencyError
from budget_tracker.workspace.defaults import (
    DEFAULT_AGENCY_PASSCODE,
    DEFAULT_TOTAL_BUDGET,
    default_agency,
    default_categories,
)
from budget_tracker.workspace.ids import MonotonicIdClock
from budget_tracker.workspace.types import Agency, Project, ProgressLevel

logger = logging.getLogger(__name__)

Listener = Callable[["AgencyRepository", str], None]


class AgencyRepository:
    """Agencies plus the "current agency" selector."""

    def __init__(
        self,
        agencies: list[Agency] | None = None,
        current_agency_id: str | None = None,
        clock: MonotonicIdClock | None = None,
    ):
        self._clock = clock or MonotonicIdClock()
        self._listeners: list[Listener] = []
        self._agencies: list[Agency] = []
        self._current_id = ""
        self.replace_all(agencies or [default_agency()], current_agency_id)

    # ── Listeners ────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _changed(self, event_type: str) -> None:
        logger.debug("Workspace change: %s", event_type,
                     extra={"event_type": event_type, "agency_id": self._current_id})
        for listener in list(self._listeners):
            listener(self, event_type)

    # ── State / views ────────────────────────────────────────────────────

    @property
    def agencies(self) -> list[Agency]:
        return list(self._agencies)

    @property
    def current_agency_id(self) -> str:
        return self._current_id

    @property
    def current_agency(self) -> Agency | None:
        return self.find_agency(self._current_id)

    @property
    def projects(self) -> list[Project]:
        agency = self.current_agency
        return list(agency.projects) if agency else []

    @property
    def categories(self) -> list[str]:
        agency = self.current_agency
        return list(agency.categories) if agency else []

    @property
    def total_allocated_budget(self) -> float:
        agency = self.current_agency
        return agency.total_allocated_budget if agency else 0

    def find_agency(self, agency_id: str) -> Agency | None:
        for agency in self._agencies:
            if agency.id == agency_id:
                return agency
        return None

    def find_agency_by_passcode(self, passcode: str) -> Agency | None:
        if not passcode:
            return None
        for agency in self._agencies:
            if agency.passcode and agency.passcode == passcode:
                return agency
        return None

    def replace_all(self, agencies: list[Agency], current_agency_id: str | None = None,
                    notify: bool = False) -> None:
        """Swap in a whole agency list (load, remote adoption, reset).

        An unknown or empty ``current_agency_id`` falls back to the first agency.
        """
        if not agencies:
            raise ValueError("at least one agency is required")
        self._agencies = list(agencies)
        if current_agency_id and self.find_agency(current_agency_id):
            self._current_id = current_agency_id
        else:
            self._current_id = self._agencies[0].id
        if notify:
            self._changed("replace_all")

    def to_document(self) -> dict:
        """Full snapshot ``{"agencies": [...], "currentAgencyId": ...}``."""
        return {
            "agencies": [a.to_dict() for a in self._agencies],
            "currentAgencyId": self._current_id,
        }

    @classmethod
    def from_document(cls, document: dict, clock: MonotonicIdClock | None = None) -> "AgencyRepository":
        agencies = [Agency.from_dict(a) for a in document.get("agencies") or []]
        return cls(agencies, document.get("currentAgencyId"), clock=clock)

    # ── Agency commands ──────────────────────────────────────────────────

    def add_agency(self, name: str) -> Agency:
        agency = Agency(
            id=self._clock.next_str_id(),
            name=name,
            projects=[],
            categories=default_categories(),
            total_allocated_budget=DEFAULT_TOTAL_BUDGET,
            passcode=DEFAULT_AGENCY_PASSCODE,
        )
        self._agencies.append(agency)
        self._current_id = agency.id
        self._changed("add_agency")
        return agency

    def switch_agency(self, agency_id: str) -> bool:
        if not self.find_agency(agency_id):
            return False
        self._current_id = agency_id
        self._changed("switch_agency")
        return True

    def update_agency_name(self, agency_id: str, name: str) -> None:
        agency = self.find_agency(agency_id)
        if agency:
            agency.name = name
            self._changed("update_agency_name")

    def update_agency_passcode(self, agency_id: str, passcode: str | None) -> None:
        agency = self.find_agency(agency_id)
        if agency:
            agency.passcode = passcode
            self._changed("update_agency_passcode")

    def delete_agency(self, agency_id: str) -> None:
        if len(self._agencies) <= 1:
            logger.warning("Refused to delete the last agency %s", agency_id,
                           extra={"agency_id": agency_id})
            raise LastAgencyError(agency_id)
        agency = self.find_agency(agency_id)
        if agency is None:
            return
        self._agencies.remove(agency)
        if self._current_id == agency_id:
            self._current_id = self._agencies[0].id
        self._changed("delete_agency")

    def clear_all_data(self) -> None:
        """Replace everything with one freshly seeded default agency."""
        fresh = default_agency()
        self._agencies = [fresh]
        self._current_id = fresh.id
        logger.warning("All workspace data cleared", extra={"event_type": "clear_all_data"})
        self._changed("clear_all_data")

    # ── Project commands (current agency) ────────────────────────────────

    def add_project(self, data: dict[str, Any]) -> Project | None:
        agency = self.current_agency
        if agency is None:
            return None
        project = Project(id=self._clock.next_id(), project_code="", name="")
        project.apply(data)
        project.progress = 0
        agency.projects.insert(0, project)
        self._changed("add_project")
        return project

    def update_project(self, project_id: int, fields: dict[str, Any]) -> Project | None:
        agency = self.current_agency
        project = agency.find_project(project_id) if agency else None
        if project is None:
            return None
        project.apply(fields)
        self._changed("update_project")
        return project

    def delete_project(self, project_id: int) -> bool:
        agency = self.current_agency
        project = agency.find_project(project_id) if agency else None
        if project is None:
            return False
        agency.projects.remove(project)
        self._changed("delete_project")
        return True

    def duplicate_project(self, project_id: int) -> Project | None:
        agency = self.current_agency
        source = agency.find_project(project_id) if agency else None
        if source is None:
            return None
        clone = source.copy()
        clone.id = self._clock.next_id()
        clone.name = f"{source.name} (Copy)"
        clone.project_code = f"{source.project_code}-COPY"
        clone.progress = 0
        clone.progress_level = ProgressLevel.NOT_START
        clone.activity_date = None
        agency.projects.insert(0, clone)
        self._changed("duplicate_project")
        return clone

    def reset_all_project_dates(self) -> int:
        """Clear ``activity_date`` on every project of every agency."""
        cleared = 0
        for agency in self._agencies:
            for project in agency.projects:
                if project.activity_date is not None:
                    project.activity_date = None
                    cleared += 1
        logger.warning("Reset activity dates on %d projects", cleared,
                       extra={"event_type": "reset_all_project_dates"})
        self._changed("reset_all_project_dates")
        return cleared

    # ── Category / budget commands (current agency) ──────────────────────

    def add_category(self, name: str) -> bool:
        agency = self.current_agency
        if agency is None or name in agency.categories:
            return False
        agency.categories.append(name)
        self._changed("add_category")
        return True

    def delete_category(self, name: str) -> bool:
        """Remove a category name; projects tagged with it keep the string."""
        agency = self.current_agency
        if agency is None or name not in agency.categories:
            return False
        agency.categories.remove(name)
        self._changed("delete_category")
        return True

    def update_total_allocated_budget(self, amount: float) -> None:
        agency = self.current_agency
        if agency is not None:
            agency.total_allocated_budget = amount
            self._changed("update_total_allocated_budget")
