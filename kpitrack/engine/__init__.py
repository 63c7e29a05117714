"""Calendar, rollup and reporting engine for kpiTrack."""

from kpitrack.engine.weeks import (
    WeekStart,
    InvalidArgumentError,
    week_of_month,
    weeks_in_month,
    week_bounds,
    week_of_year,
    year_week_bounds,
)
from kpitrack.engine.rollup import normalize_status, derive_status, rollup_task, rollup_activity, rollup_kpi
from kpitrack.engine.records import generate_task_records, find_duplicate_records, set_record_status
from kpitrack.engine.reporting import build_weekly_report, render_report_markdown

__all__ = [
    "WeekStart",
    "InvalidArgumentError",
    "week_of_month",
    "weeks_in_month",
    "week_bounds",
    "week_of_year",
    "year_week_bounds",
    "normalize_status",
    "derive_status",
    "rollup_task",
    "rollup_activity",
    "rollup_kpi",
    "generate_task_records",
    "find_duplicate_records",
    "set_record_status",
    "build_weekly_report",
    "render_report_markdown",
]
