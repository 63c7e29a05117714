"""KPI tree data models for kpiTrack.

A KPI owns Activities, an Activity owns Tasks, and a Task owns one WeeklyRecord
per (year, month, week-of-month). Task and Activity statuses are derived from
their children and recomputed whenever a model is built.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from kpitrack.models.status import StatusValue, normalize_status


def _empty_if_none(v):
    # Older snapshots store missing child collections as null.
    return [] if v is None else v


class KpiCategory(str, Enum):
    """KPI category enumeration."""
    SAFETY = "safety"
    LEASE = "lease"
    ASSET = "asset"
    INFRA = "infra"
    CUSTOM = "custom"


class WeeklyRecord(BaseModel):
    """Status of a task for one week-of-month bucket."""

    year: int = Field(..., description="Calendar year")
    month: int = Field(..., ge=1, le=12, description="Calendar month (1-12)")
    week: int = Field(..., ge=1, le=6, description="1-based week-of-month index")
    status: StatusValue = Field(StatusValue.NOT_STARTED, description="Status for this week")
    comment: Optional[str] = Field(None, description="Free-form note for this week")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v):
        return normalize_status(v)

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class Task(BaseModel):
    """Unit of work tracked week by week."""

    id: str = Field(..., description="Unique task identifier")
    name: str = Field(..., description="Task name")
    start_date: Optional[date] = Field(None, description="First day of the task's active period")
    end_date: Optional[date] = Field(None, description="Last day of the task's active period")
    status: StatusValue = Field(
        StatusValue.NOT_STARTED,
        description="Derived from the weekly records; never set independently",
    )
    records: List[WeeklyRecord] = Field(default_factory=list, description="Weekly records, in order")

    @field_validator("records", mode="before")
    @classmethod
    def _records_default(cls, v):
        return _empty_if_none(v)

    @model_validator(mode="after")
    def _check_dates_and_derive_status(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        from kpitrack.engine.rollup import derive_status

        self.status = derive_status([r.status for r in self.records]).value
        return self

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class Activity(BaseModel):
    """Group of tasks serving one KPI."""

    id: str = Field(..., description="Unique activity identifier")
    name: str = Field(..., description="Activity name")
    status: StatusValue = Field(
        StatusValue.NOT_STARTED,
        description="Derived from task statuses; never set independently",
    )
    tasks: List[Task] = Field(default_factory=list, description="Tasks, in order")

    @field_validator("tasks", mode="before")
    @classmethod
    def _tasks_default(cls, v):
        return _empty_if_none(v)

    @model_validator(mode="after")
    def _derive_status(self):
        from kpitrack.engine.rollup import derive_status

        self.status = derive_status([t.status for t in self.tasks]).value
        return self

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class KPI(BaseModel):
    """Tracked performance indicator."""

    id: str = Field(..., description="Unique KPI identifier")
    title: str = Field(
        ...,
        validation_alias=AliasChoices("title", "name"),
        description="KPI title (older payloads call it 'name')",
    )
    description: str = Field("", description="Longer description")
    target: float = Field(100.0, description="Target value")
    current: float = Field(0.0, description="Current value")
    previous: Optional[float] = Field(None, description="Value at the previous measurement")
    unit: str = Field("", description="Unit of target/current")
    category: KpiCategory = Field(KpiCategory.CUSTOM, description="Category label")
    activities: List[Activity] = Field(default_factory=list, description="Activities, in order")

    @field_validator("activities", mode="before")
    @classmethod
    def _activities_default(cls, v):
        return _empty_if_none(v)

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
