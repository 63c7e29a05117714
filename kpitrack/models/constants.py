"""Constants for kpiTrack.

This module centralizes default values and calendar conventions used throughout the application.
"""

from kpitrack.models.kpi import KpiCategory


# KPI defaults
DEFAULT_KPI_TARGET = 100.0
DEFAULT_KPI_CURRENT = 0.0
DEFAULT_KPI_UNIT = ""
DEFAULT_KPI_CATEGORY = KpiCategory.CUSTOM

# Built-in category collections, in dashboard order
DEFAULT_CATEGORY_ORDER = [
    KpiCategory.SAFETY.value,
    KpiCategory.LEASE.value,
    KpiCategory.ASSET.value,
    KpiCategory.INFRA.value,
]

# Calendar
DAYS_PER_WEEK = 7

# Progress
MAX_PROGRESS_PERCENT = 100.0

# Report rendering
REPORT_EMPTY_SECTION = "- None"
