"""Calendar bucket and weekly report models for kpiTrack."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class WeekBucket(BaseModel):
    """One week bucket with an inclusive date range."""

    week_number: int = Field(..., ge=1, description="1-based week index")
    start_date: date = Field(..., description="First day of the week (inclusive)")
    end_date: date = Field(..., description="Last day of the week (inclusive)")

    def contains(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date


class ReportSummary(BaseModel):
    """Numeric summary of a weekly report."""

    total: int = Field(0, description="Number of matched records")
    counts: Dict[str, int] = Field(default_factory=dict, description="Matches per status")
    by_category: Dict[str, Dict[str, int]] = Field(
        default_factory=dict, description="Matches per category, then per status"
    )


class WeeklyReport(BaseModel):
    """Task outcomes for one target week, grouped by effective status."""

    year: int = Field(..., description="Target year")
    week: int = Field(..., description="Target week number")
    month: Optional[int] = Field(None, description="Target month, when the week is week-of-month")
    period_label: str = Field(..., description="Human-readable period header")
    period_start: date = Field(..., description="First day of the displayed period")
    period_end: date = Field(..., description="Last day of the displayed period")
    completed: List[str] = Field(default_factory=list, description="'[category] task' entries")
    in_progress: List[str] = Field(default_factory=list, description="'[category] task' entries")
    not_started: List[str] = Field(default_factory=list, description="'[category] task' entries")
    summary: ReportSummary = Field(default_factory=ReportSummary, description="Counts")

    def is_empty(self) -> bool:
        return not (self.completed or self.in_progress or self.not_started)
