"""Data models for kpiTrack."""

from kpitrack.models.status import StatusValue, normalize_status
from kpitrack.models.kpi import KPI, Activity, KpiCategory, Task, WeeklyRecord
from kpitrack.models.report import ReportSummary, WeekBucket, WeeklyReport

__all__ = [
    "StatusValue",
    "normalize_status",
    "KPI",
    "Activity",
    "KpiCategory",
    "Task",
    "WeeklyRecord",
    "ReportSummary",
    "WeekBucket",
    "WeeklyReport",
]
