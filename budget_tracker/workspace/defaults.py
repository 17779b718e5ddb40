"""Seed data used when no stored workspace exists and by ``clear_all_data``."""

from budget_tracker.workspace.types import Agency, Project, ProgressLevel, ProjectStatus

DEFAULT_AGENCY_ID = "default-agency"
DEFAULT_AGENCY_NAME = "หน่วยงานเริ่มต้น"
DEFAULT_TOTAL_BUDGET = 100000000
# Reader passcode given to agencies created with add_agency
DEFAULT_AGENCY_PASSCODE = "1111"
# Bucket label for projects whose category is empty or was deleted
OTHER_CATEGORY = "อื่นๆ"

DEFAULT_CATEGORIES = (
    "บ้านพักอาศัย",
    "อาคารพาณิชย์",
    "โรงงาน/โกดัง",
    OTHER_CATEGORY,
)


def default_categories() -> list[str]:
    return list(DEFAULT_CATEGORIES)


def default_projects() -> list[Project]:
    return [
        Project(
            id=1,
            project_code="PRJ-001",
            name="ปรับปรุงตึกสำนักงาน A",
            budget=5000000,
            status=ProjectStatus.IN_PROGRESS.value,
            progress=25,
            progress_level=ProgressLevel.IN_PROGRESS,
            owner="บริษัท เอ",
            location="กรุงเทพฯ",
            category="อาคารพาณิชย์",
            wbs=[],
        ),
    ]


def default_agency(projects=None, categories=None, total_allocated_budget=None) -> Agency:
    """Fresh seeded agency; every call returns new lists."""
    return Agency(
        id=DEFAULT_AGENCY_ID,
        name=DEFAULT_AGENCY_NAME,
        projects=default_projects() if projects is None else projects,
        categories=default_categories() if categories is None else categories,
        total_allocated_budget=DEFAULT_TOTAL_BUDGET if total_allocated_budget is None else total_allocated_budget,
    )
