"""SQLAlchemy database models for kpiTrack."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from kpitrack.database.database import Base
from kpitrack.models.kpi import KPI, Activity, KpiCategory, Task, WeeklyRecord
from kpitrack.models.status import StatusValue, normalize_status


def enum_to_value(enum_obj) -> str:
    """Convert enum to string value (handles both enum and string).

    Args:
        enum_obj: Enum instance or string value

    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_category(value: Optional[str]) -> KpiCategory:
    """Convert a stored category string to KpiCategory, falling back to CUSTOM."""
    if not value:
        return KpiCategory.CUSTOM
    try:
        return KpiCategory(value.lower())
    except (ValueError, AttributeError):
        return KpiCategory.CUSTOM


class KpiDB(Base):
    """Database model for KPI."""

    __tablename__ = "kpis"

    id = Column(String, primary_key=True)
    # Collection the KPI belongs to (built-in category or a custom tab key)
    collection = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    title = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    target = Column(Float, nullable=False, default=100.0)
    current = Column(Float, nullable=False, default=0.0)
    previous = Column(Float, nullable=True)
    unit = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default=KpiCategory.CUSTOM.value)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    activities = relationship(
        "ActivityDB",
        order_by="ActivityDB.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_pydantic(self) -> KPI:
        """Convert database model to Pydantic model."""
        return KPI(
            id=self.id,
            title=self.title,
            description=self.description or "",
            target=self.target,
            current=self.current,
            previous=self.previous,
            unit=self.unit or "",
            category=value_to_category(self.category),
            activities=[a.to_pydantic() for a in self.activities],
        )

    @classmethod
    def from_pydantic(cls, kpi: KPI, collection: str, position: int = 0):
        """Create database model (with its whole subtree) from Pydantic model."""
        return cls(
            id=kpi.id,
            collection=collection,
            position=position,
            title=kpi.title,
            description=kpi.description,
            target=kpi.target,
            current=kpi.current,
            previous=kpi.previous,
            unit=kpi.unit,
            category=enum_to_value(kpi.category),
            activities=[ActivityDB.from_pydantic(a, i) for i, a in enumerate(kpi.activities)],
        )


class ActivityDB(Base):
    """Database model for Activity."""

    __tablename__ = "activities"

    id = Column(String, primary_key=True)
    kpi_id = Column(String, ForeignKey("kpis.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    # Cached rollup; recomputed on every save and ignored on load
    status = Column(String, nullable=False, default=StatusValue.NOT_STARTED.value)

    tasks = relationship(
        "TaskDB",
        order_by="TaskDB.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_pydantic(self) -> Activity:
        return Activity(id=self.id, name=self.name, tasks=[t.to_pydantic() for t in self.tasks])

    @classmethod
    def from_pydantic(cls, activity: Activity, position: int = 0):
        return cls(
            id=activity.id,
            position=position,
            name=activity.name,
            status=enum_to_value(activity.status),
            tasks=[TaskDB.from_pydantic(t, i) for i, t in enumerate(activity.tasks)],
        )


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"

    id = Column(String, primary_key=True)
    activity_id = Column(String, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    start_date = Column(String, nullable=True)  # ISO date
    end_date = Column(String, nullable=True)  # ISO date
    # Cached rollup; recomputed on every save and ignored on load
    status = Column(String, nullable=False, default=StatusValue.NOT_STARTED.value)

    records = relationship(
        "WeeklyRecordDB",
        order_by="WeeklyRecordDB.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_pydantic(self) -> Task:
        return Task(
            id=self.id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            records=[r.to_pydantic() for r in self.records],
        )

    @classmethod
    def from_pydantic(cls, task: Task, position: int = 0):
        return cls(
            id=task.id,
            position=position,
            name=task.name,
            start_date=task.start_date.isoformat() if task.start_date else None,
            end_date=task.end_date.isoformat() if task.end_date else None,
            status=enum_to_value(task.status),
            records=[WeeklyRecordDB.from_pydantic(r, i) for i, r in enumerate(task.records)],
        )


class WeeklyRecordDB(Base):
    """Database model for WeeklyRecord."""

    __tablename__ = "weekly_records"
    __table_args__ = (
        # At most one record per task and week-of-month.
        UniqueConstraint("task_id", "year", "month", "week", name="uq_weekly_record_task_week"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    week = Column(Integer, nullable=False)
    # Stored as written; older rows may carry legacy tokens
    status = Column(String, nullable=False, default=StatusValue.NOT_STARTED.value)
    comment = Column(String, nullable=True)

    def to_pydantic(self) -> WeeklyRecord:
        return WeeklyRecord(
            year=self.year,
            month=self.month,
            week=self.week,
            status=normalize_status(self.status),
            comment=self.comment,
        )

    @classmethod
    def from_pydantic(cls, record: WeeklyRecord, position: int = 0):
        return cls(
            position=position,
            year=record.year,
            month=record.month,
            week=record.week,
            status=enum_to_value(record.status),
            comment=record.comment,
        )
