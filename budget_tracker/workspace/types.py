"""
Workspace domain types — Agency, Project, WBSItem.

These are plain in-memory records, not database rows: the whole agency list
travels as one JSON document between the local cache and the remote store.
``to_dict`` / ``from_dict`` use the camelCase field names of that document
and omit unset optional fields, so ``from_dict(x.to_dict()) == x``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProgressLevel(str, Enum):
    NOT_START = "NotStart"
    PLANNING = "Planning"
    IN_PROGRESS = "InProgress"
    DONE = "Done"

    @classmethod
    def parse(cls, value) -> "ProgressLevel":
        """Accept current values, older spaced spellings and missing values."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.NOT_START
        compact = str(value).replace(" ", "")
        for level in cls:
            if level.value.lower() == compact.lower():
                return level
        raise ValueError(f"Unknown progress level: {value!r}")


class ProjectStatus(str, Enum):
    """Legacy status labels kept for documents written by older clients."""
    PLANNING = "วางแผน"
    IN_PROGRESS = "กำลังดำเนินการ"
    DONE = "เสร็จสิ้น"


@dataclass
class WBSItem:
    """One line of a project's cost breakdown (shown as BOQ in the UI)."""
    id: str
    description: str
    quantity: float = 0
    unit: str = ""
    unit_price: float = 0

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "unitPrice": self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WBSItem":
        return cls(
            id=str(data["id"]),
            description=data.get("description", ""),
            quantity=data.get("quantity", 0),
            unit=data.get("unit", ""),
            unit_price=data.get("unitPrice", 0),
        )


# camelCase document key -> attribute name, for partial updates
PROJECT_FIELDS = {
    "projectCode": "project_code",
    "name": "name",
    "budget": "budget",
    "status": "status",
    "progress": "progress",
    "progressLevel": "progress_level",
    "activityDate": "activity_date",
    "owner": "owner",
    "location": "location",
    "startDate": "start_date",
    "category": "category",
    "wbs": "wbs",
}

_OPTIONAL_PROJECT_FIELDS = ("activity_date", "owner", "location", "start_date")


@dataclass
class Project:
    id: int
    project_code: str
    name: str
    budget: float = 0
    status: str = ProjectStatus.PLANNING.value
    progress: int = 0
    progress_level: ProgressLevel = ProgressLevel.NOT_START
    category: str = ""
    wbs: list[WBSItem] = field(default_factory=list)
    activity_date: str | None = None
    owner: str | None = None
    location: str | None = None
    start_date: str | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "projectCode": self.project_code,
            "name": self.name,
            "budget": self.budget,
            "status": self.status,
            "progress": self.progress,
            "progressLevel": self.progress_level.value,
            "category": self.category,
            "wbs": [item.to_dict() for item in self.wbs],
        }
        for attr in _OPTIONAL_PROJECT_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                d[_camel(attr)] = value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(
            id=int(data["id"]),
            project_code=data.get("projectCode", ""),
            name=data.get("name", ""),
            budget=data.get("budget", 0),
            status=data.get("status", ProjectStatus.PLANNING.value),
            progress=data.get("progress", 0),
            progress_level=ProgressLevel.parse(data.get("progressLevel")),
            category=data.get("category", ""),
            wbs=[WBSItem.from_dict(item) for item in data.get("wbs") or []],
            activity_date=data.get("activityDate"),
            owner=data.get("owner"),
            location=data.get("location"),
            start_date=data.get("startDate"),
        )

    def apply(self, fields: dict[str, Any]) -> None:
        """Merge camelCase or snake_case fields into this project.

        ``id`` is never overwritten; unknown keys are ignored.
        """
        for key, value in fields.items():
            attr = PROJECT_FIELDS.get(key, key)
            if attr == "id" or attr not in _ATTRS:
                continue
            if attr == "progress_level":
                value = ProgressLevel.parse(value)
            elif attr == "wbs":
                value = [v if isinstance(v, WBSItem) else WBSItem.from_dict(v) for v in value or []]
            elif isinstance(value, ProjectStatus):
                value = value.value
            setattr(self, attr, value)

    def copy(self) -> "Project":
        return copy.deepcopy(self)


_ATTRS = set(PROJECT_FIELDS.values())


@dataclass
class Agency:
    """A tenant: its own projects, categories, budget ceiling and reader passcode."""
    id: str
    name: str
    projects: list[Project] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    total_allocated_budget: float = 0
    passcode: str | None = None

    def find_project(self, project_id: int) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "projects": [p.to_dict() for p in self.projects],
            "categories": list(self.categories),
            "totalAllocatedBudget": self.total_allocated_budget,
        }
        if self.passcode is not None:
            d["passcode"] = self.passcode
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Agency":
        categories: list[str] = []
        for name in data.get("categories") or []:
            if name not in categories:
                categories.append(name)
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            projects=[Project.from_dict(p) for p in data.get("projects") or []],
            categories=categories,
            total_allocated_budget=data.get("totalAllocatedBudget", 0),
            passcode=data.get("passcode"),
        )


def _camel(attr: str) -> str:
    head, *rest = attr.split("_")
    return head + "".join(part.title() for part in rest)
