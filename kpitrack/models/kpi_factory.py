"""KPI tree creation factory for kpiTrack.

This module centralizes creation logic so that every new KPI, activity, task
and weekly record starts from the same defaults, wherever it is created.
"""

import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from kpitrack.models.kpi import KPI, Activity, KpiCategory, Task, WeeklyRecord
from kpitrack.models.status import StatusValue
from kpitrack.models.constants import (
    DEFAULT_KPI_TARGET,
    DEFAULT_KPI_CURRENT,
    DEFAULT_KPI_UNIT,
    DEFAULT_KPI_CATEGORY,
)


def new_id(prefix: str) -> str:
    """Generate an identifier such as 'kpi-<uuid4>'."""
    return f"{prefix}-{uuid.uuid4()}"


def create_kpi_defaults() -> Dict[str, Any]:
    """Get default KPI values as a dictionary.

    Returns:
        Dictionary with default KPI field values using constants
    """
    return {
        "description": "",
        "target": DEFAULT_KPI_TARGET,
        "current": DEFAULT_KPI_CURRENT,
        "previous": None,
        "unit": DEFAULT_KPI_UNIT,
        "category": DEFAULT_KPI_CATEGORY,
        "activities": [],
    }


def create_kpi(
    title: str,
    category: Optional[KpiCategory] = None,
    description: Optional[str] = None,
    target: Optional[float] = None,
    current: Optional[float] = None,
    previous: Optional[float] = None,
    unit: Optional[str] = None,
    activities: Optional[List[Activity]] = None,
    kpi_id: Optional[str] = None,
) -> KPI:
    """Create a KPI with defaults, allowing overrides.

    Args:
        title: KPI title (required)
        category: Category label (defaults to CUSTOM)
        description: Longer description
        target: Target value (defaults to constant)
        current: Current value (defaults to constant)
        previous: Value at the previous measurement
        unit: Unit of target/current
        activities: Initial activities
        kpi_id: Explicit identifier (generated if None)

    Returns:
        KPI object with defaults applied
    """
    defaults = create_kpi_defaults()
    return KPI(
        id=kpi_id or new_id("kpi"),
        title=title,
        description=description if description is not None else defaults["description"],
        target=target if target is not None else defaults["target"],
        current=current if current is not None else defaults["current"],
        previous=previous if previous is not None else defaults["previous"],
        unit=unit if unit is not None else defaults["unit"],
        category=category if category is not None else defaults["category"],
        activities=activities if activities is not None else defaults["activities"],
    )


def create_activity(name: str, tasks: Optional[List[Task]] = None, activity_id: Optional[str] = None) -> Activity:
    """Create an activity; its status is derived from the tasks."""
    return Activity(id=activity_id or new_id("activity"), name=name, tasks=tasks or [])


def create_task(
    name: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    records: Optional[List[WeeklyRecord]] = None,
    task_id: Optional[str] = None,
) -> Task:
    """Create a task; its status is derived from the records."""
    return Task(
        id=task_id or new_id("task"),
        name=name,
        start_date=start_date,
        end_date=end_date,
        records=records or [],
    )


def create_weekly_record(
    year: int,
    month: int,
    week: int,
    status: Optional[StatusValue] = None,
    comment: Optional[str] = None,
) -> WeeklyRecord:
    """Create a weekly record (NOT_STARTED unless a status is given)."""
    return WeeklyRecord(
        year=year,
        month=month,
        week=week,
        status=status if status is not None else StatusValue.NOT_STARTED,
        comment=comment,
    )
