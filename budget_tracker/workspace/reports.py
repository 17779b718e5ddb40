"""Budget overview figures for one agency.

``budget`` on a project is stored independently of its WBS lines; the
summary reports both so callers can spot projects whose budget drifted
from the cost breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from budget_tracker.workspace.defaults import OTHER_CATEGORY
from budget_tracker.workspace.types import Agency, ProgressLevel, Project


def wbs_total(project: Project) -> float:
    return sum(item.total for item in project.wbs)


@dataclass
class BudgetSummary:
    total_allocated_budget: float
    total_project_budget: float
    remaining_budget: float
    total_wbs: float
    project_count: int
    by_category: dict[str, float] = field(default_factory=dict)
    by_progress_level: dict[str, int] = field(default_factory=dict)

    @property
    def is_over_budget(self) -> bool:
        return self.remaining_budget < 0

    def to_dict(self) -> dict:
        return {
            "totalAllocatedBudget": self.total_allocated_budget,
            "totalProjectBudget": self.total_project_budget,
            "remainingBudget": self.remaining_budget,
            "totalWbs": self.total_wbs,
            "projectCount": self.project_count,
            "byCategory": dict(self.by_category),
            "byProgressLevel": dict(self.by_progress_level),
            "isOverBudget": self.is_over_budget,
        }


def budget_summary(agency: Agency | None) -> BudgetSummary:
    """Totals, remaining allocation, per-category budget and progress counts.

    Projects with an empty category, or one no longer in the agency's list,
    are counted under ``อื่นๆ``.
    """
    if agency is None:
        return BudgetSummary(0, 0, 0, 0, 0,
                             by_progress_level={level.value: 0 for level in ProgressLevel})

    by_category = {name: 0 for name in agency.categories}
    by_level = {level.value: 0 for level in ProgressLevel}
    total = 0
    total_wbs = 0
    for project in agency.projects:
        total += project.budget
        total_wbs += wbs_total(project)
        bucket = project.category if project.category in agency.categories else OTHER_CATEGORY
        by_category[bucket] = by_category.get(bucket, 0) + project.budget
        by_level[project.progress_level.value] += 1

    return BudgetSummary(
        total_allocated_budget=agency.total_allocated_budget,
        total_project_budget=total,
        remaining_budget=agency.total_allocated_budget - total,
        total_wbs=total_wbs,
        project_count=len(agency.projects),
        by_category=by_category,
        by_progress_level=by_level,
    )
