"""Weekly report aggregation for kpiTrack.

Builds the "what happened this week" report from a snapshot of named KPI
collections. A matching weekly record is reported under its task's derived
status rather than the record's own status, because the task is the unit of
work the report is about.
"""

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from kpitrack.engine.rollup import derive_status, status_counts
from kpitrack.engine.weeks import DISPLAY_WEEK_START, RECORD_WEEK_START, week_bounds, year_week_bounds
from kpitrack.models.constants import REPORT_EMPTY_SECTION
from kpitrack.models.kpi import KPI, Task
from kpitrack.models.report import ReportSummary, WeekBucket, WeeklyReport
from kpitrack.models.status import StatusValue

logger = logging.getLogger(__name__)


def _coerce_kpi(entry: Any, category: str) -> Optional[KPI]:
    if isinstance(entry, KPI):
        return entry
    if isinstance(entry, Mapping):
        try:
            return KPI.model_validate(dict(entry))
        except ValidationError as e:
            logger.warning(f"Skipping malformed KPI in '{category}': {e.error_count()} validation error(s)")
            return None
    logger.warning(f"Skipping non-KPI entry in '{category}': {type(entry).__name__}")
    return None


def flatten_kpis(kpi_collections: Any) -> Iterator[Tuple[str, KPI]]:
    """Yield (category, KPI) pairs in collection order, then KPI order.

    Malformed collections and entries are logged and skipped.
    """
    if not isinstance(kpi_collections, Mapping):
        if kpi_collections is not None:
            logger.warning(f"Expected a mapping of KPI collections, got {type(kpi_collections).__name__}")
        return
    for category, kpis in kpi_collections.items():
        label = str(category)
        if not isinstance(kpis, (list, tuple)):
            logger.warning(f"Skipping KPI collection '{label}': expected a list, got {type(kpis).__name__}")
            continue
        for entry in kpis:
            kpi = _coerce_kpi(entry, label)
            if kpi is not None:
                yield label, kpi


def effective_task_status(task: Task) -> StatusValue:
    """Status a task is reported under: derived from all of its records."""
    return derive_status([r.status for r in task.records])


def report_period(target_year: int, target_week: int, target_month: Optional[int] = None) -> Tuple[str, WeekBucket]:
    """Resolve the display header and date range for a target week.

    With a month, the week is a week-of-month and the range is the record
    bucket (Sunday-anchored) those records were filed under. Without one, the
    week is a week-of-year shown Monday-anchored.

    Raises:
        InvalidArgumentError: If the year, month or week is out of range
    """
    if target_month is None:
        bucket = year_week_bounds(target_year, target_week, DISPLAY_WEEK_START)
        prefix = f"{target_year} W{target_week:02d}"
    else:
        bucket = week_bounds(target_year, target_month, target_week, RECORD_WEEK_START)
        prefix = f"{target_year}-{target_month:02d} week {target_week}"
    label = f"{prefix} ({_fmt(bucket.start_date)} ~ {_fmt(bucket.end_date)})"
    return label, bucket


def _fmt(d: date) -> str:
    return d.strftime("%Y.%m.%d")


def build_weekly_report(
    kpi_collections: Any,
    target_year: int,
    target_week: int,
    target_month: Optional[int] = None,
) -> WeeklyReport:
    """Build the weekly report for (target_year, target_week).

    Steps:
    1. Flatten KPIs across collections, tagging each with its collection name
    2. Keep weekly records with year == target_year and week == target_week
       (and month == target_month when given)
    3. Resolve each match to its task's derived status
    4. Partition into completed / in-progress / not-started
    5. Render entries as "[category] task name" in flattening order

    Duplicate records on a task are not filtered here; each one is reported.
    This function is deterministic - same inputs always produce same outputs.

    Args:
        kpi_collections: Mapping of category label to list of KPIs (models or dicts)
        target_year: Year to report on
        target_week: Week number (week-of-month when target_month is given)
        target_month: Optional month restricting the match

    Returns:
        WeeklyReport; all sections empty when there is nothing to report

    Raises:
        InvalidArgumentError: If the target period is out of range
    """
    period_label, bucket = report_period(target_year, target_week, target_month)

    sections: Dict[StatusValue, List[str]] = {s: [] for s in StatusValue}
    matched: List[StatusValue] = []
    by_category: Dict[str, List[StatusValue]] = {}

    for category, kpi in flatten_kpis(kpi_collections):
        for activity in kpi.activities:
            for task in activity.tasks:
                status = effective_task_status(task)
                for record in task.records:
                    if record.year != target_year or record.week != target_week:
                        continue
                    if target_month is not None and record.month != target_month:
                        continue
                    sections[status].append(f"[{category}] {task.name}")
                    matched.append(status)
                    by_category.setdefault(category, []).append(status)

    summary = ReportSummary(
        total=len(matched),
        counts=status_counts(matched),
        by_category={cat: status_counts(statuses) for cat, statuses in by_category.items()},
    )
    logger.debug(f"Built weekly report for {period_label}: {len(matched)} record(s)")

    return WeeklyReport(
        year=target_year,
        week=target_week,
        month=target_month,
        period_label=period_label,
        period_start=bucket.start_date,
        period_end=bucket.end_date,
        completed=sections[StatusValue.COMPLETED],
        in_progress=sections[StatusValue.IN_PROGRESS],
        not_started=sections[StatusValue.NOT_STARTED],
        summary=summary,
    )


def _section(title: str, entries: List[str]) -> List[str]:
    lines = [f"### {title}"]
    if entries:
        lines.extend(f"- {entry}" for entry in entries)
    else:
        lines.append(REPORT_EMPTY_SECTION)
    lines.append("")
    return lines


def render_report_markdown(report: WeeklyReport) -> str:
    """Render a report as the Markdown block the dashboard copies to the clipboard."""
    lines = [
        f"## Weekly Report: {report.period_label}",
        f"**Period:** {_fmt(report.period_start)} ~ {_fmt(report.period_end)}",
        "",
    ]
    lines += _section("1. Completed this week", report.completed)
    lines += _section("2. In progress", report.in_progress)
    lines += _section("3. Planned next week / on hold", report.not_started)
    lines += ["### 4. Notes", "- ", ""]
    return "\n".join(lines)
