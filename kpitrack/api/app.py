"""FastAPI web application for kpiTrack."""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from kpitrack.database.database import get_db, init_db
from kpitrack.database.repository import KpiRepository
from kpitrack.engine.reporting import build_weekly_report, render_report_markdown
from kpitrack.engine.rollup import activity_progress, kpi_progress
from kpitrack.engine.weeks import InvalidArgumentError, WeekStart, week_of_month, weeks_in_month
from kpitrack.models.kpi import KPI, Activity, KpiCategory
from kpitrack.models.kpi_factory import create_kpi
from kpitrack.models.report import WeekBucket, WeeklyReport
from kpitrack.models.status import normalize_status

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables are created once, before the first request.
    init_db()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="kpiTrack API",
    description="KPI, activity and weekly task tracking for facility, asset and lease management",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/response models
class KpiCreateRequest(BaseModel):
    """Request body for KPI creation."""
    title: str
    collection: Optional[str] = Field(None, description="Collection name (defaults to category)")
    category: KpiCategory = KpiCategory.CUSTOM
    description: Optional[str] = None
    target: Optional[float] = None
    current: Optional[float] = None
    previous: Optional[float] = None
    unit: Optional[str] = None
    activities: List[Activity] = Field(default_factory=list)


class KpiResponse(BaseModel):
    """Response wrapping a single KPI."""
    kpi: KPI
    collection: Optional[str] = None
    progress: float = Field(0.0, description="Percentage of target reached (0-100)")
    activity_progress: Dict[str, int] = Field(
        default_factory=dict, description="Map of activity id to completed-task percentage"
    )


class KpiListResponse(BaseModel):
    """Response for KPI listing."""
    kpis: List[KPI]
    count: int


class KpiCollectionsResponse(BaseModel):
    """Response for KPIs grouped by collection."""
    collections: Dict[str, List[KPI]]


class RecordStatusRequest(BaseModel):
    """Request body for a weekly record status edit."""
    year: int
    month: int = Field(..., ge=1, le=12)
    week: int = Field(..., ge=1, le=6)
    status: str = Field(..., description="Status token (legacy aliases accepted)")


class MonthWeeksResponse(BaseModel):
    """Response for a month's week buckets."""
    year: int
    month: int
    week_start: WeekStart
    weeks: List[WeekBucket]


class WeekOfMonthResponse(BaseModel):
    """Response for a single date's week-of-month."""
    day: date
    week_start: WeekStart
    year: int
    month: int
    week: int


def _kpi_response(kpi: KPI, collection: Optional[str] = None) -> KpiResponse:
    return KpiResponse(
        kpi=kpi,
        collection=collection,
        progress=kpi_progress(kpi),
        activity_progress={a.id: activity_progress(a) for a in kpi.activities},
    )


def _require_kpi(repo: KpiRepository, kpi_id: str) -> KPI:
    kpi = repo.get(kpi_id)
    if kpi is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"KPI {kpi_id} not found")
    return kpi


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.post("/kpis", response_model=KpiResponse, status_code=status.HTTP_201_CREATED)
def create_kpi_endpoint(request: KpiCreateRequest, db: Session = Depends(get_db)):
    """Create a KPI (optionally with activities, tasks and records)."""
    repo = KpiRepository(db)
    kpi = create_kpi(
        title=request.title,
        category=request.category,
        description=request.description,
        target=request.target,
        current=request.current,
        previous=request.previous,
        unit=request.unit,
        activities=request.activities,
    )
    try:
        created = repo.create(kpi, request.collection)
    except ValueError as e:
        logger.warning(f"Rejected KPI creation: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _kpi_response(created, repo.get_collection_name(created.id))


@app.get("/kpis", response_model=KpiListResponse)
def list_kpis(collection: Optional[str] = None, db: Session = Depends(get_db)):
    """List KPIs, optionally restricted to one collection."""
    kpis = KpiRepository(db).get_all(collection)
    return KpiListResponse(kpis=kpis, count=len(kpis))


@app.get("/kpis/collections", response_model=KpiCollectionsResponse)
def list_kpi_collections(db: Session = Depends(get_db)):
    """List KPIs grouped by collection (built-in categories first)."""
    return KpiCollectionsResponse(collections=KpiRepository(db).get_collections())


@app.get("/kpis/{kpi_id}", response_model=KpiResponse)
def get_kpi(kpi_id: str, db: Session = Depends(get_db)):
    """Get a KPI with its derived progress figures."""
    repo = KpiRepository(db)
    kpi = _require_kpi(repo, kpi_id)
    return _kpi_response(kpi, repo.get_collection_name(kpi_id))


@app.put("/kpis/{kpi_id}", response_model=KpiResponse)
def update_kpi(kpi_id: str, kpi: KPI, collection: Optional[str] = None, db: Session = Depends(get_db)):
    """Replace a KPI tree; derived statuses are recomputed before saving."""
    if kpi.id != kpi_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="KPI id in body does not match path")
    repo = KpiRepository(db)
    _require_kpi(repo, kpi_id)
    try:
        updated = repo.update(kpi, collection)
    except ValueError as e:
        logger.warning(f"Rejected update of KPI {kpi_id}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _kpi_response(updated, repo.get_collection_name(kpi_id))


@app.delete("/kpis/{kpi_id}")
def delete_kpi(kpi_id: str, db: Session = Depends(get_db)):
    """Delete a KPI together with its activities, tasks and records."""
    if not KpiRepository(db).delete(kpi_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"KPI {kpi_id} not found")
    return {"deleted": True, "id": kpi_id}


@app.put("/kpis/{kpi_id}/tasks/{task_id}/records", response_model=KpiResponse)
def update_record_status(
    kpi_id: str,
    task_id: str,
    request: RecordStatusRequest,
    db: Session = Depends(get_db),
):
    """Set the status of one weekly record; task and activity statuses roll up."""
    repo = KpiRepository(db)
    _require_kpi(repo, kpi_id)
    try:
        updated = repo.update_record_status(
            kpi_id, task_id, request.year, request.month, request.week, normalize_status(request.status)
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _kpi_response(updated, repo.get_collection_name(kpi_id))


@app.post("/kpis/{kpi_id}/tasks/{task_id}/records/generate", response_model=KpiResponse)
def generate_records(kpi_id: str, task_id: str, db: Session = Depends(get_db)):
    """Create a NOT_STARTED record for every week of the task's period that lacks one."""
    repo = KpiRepository(db)
    _require_kpi(repo, kpi_id)
    try:
        updated = repo.generate_records(kpi_id, task_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _kpi_response(updated, repo.get_collection_name(kpi_id))


@app.get("/calendar/week-of-month", response_model=WeekOfMonthResponse)
def get_week_of_month(
    day: date = Query(..., alias="date"),
    week_start: WeekStart = WeekStart.SUNDAY,
):
    """Resolve a date to its week-of-month bucket."""
    try:
        week = week_of_month(day, week_start)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return WeekOfMonthResponse(day=day, week_start=week_start, year=day.year, month=day.month, week=week)


@app.get("/calendar/{year}/{month}/weeks", response_model=MonthWeeksResponse)
def get_month_weeks(year: int, month: int, week_start: WeekStart = WeekStart.SUNDAY):
    """Enumerate the week buckets of a month."""
    try:
        weeks = weeks_in_month(year, month, week_start)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return MonthWeeksResponse(year=year, month=month, week_start=week_start, weeks=weeks)


def _weekly_report(db: Session, year: int, week: int, month: Optional[int]) -> WeeklyReport:
    collections = KpiRepository(db).get_collections()
    try:
        return build_weekly_report(collections, year, week, month)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/reports/weekly", response_model=WeeklyReport)
def get_weekly_report(
    year: int,
    week: int,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Weekly report over every stored KPI collection."""
    return _weekly_report(db, year, week, month)


@app.get("/reports/weekly/markdown", response_class=PlainTextResponse)
def get_weekly_report_markdown(
    year: int,
    week: int,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Weekly report rendered as a Markdown block for clipboard copy."""
    return render_report_markdown(_weekly_report(db, year, week, month))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
