"""Pytest fixtures and configuration for kpiTrack tests."""

import pytest
from datetime import date
from unittest.mock import patch
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from kpitrack.database.database import Base, get_db
from kpitrack.database import models  # noqa: F401  (registers tables on Base.metadata)
from kpitrack.database.repository import KpiRepository
from kpitrack.models.kpi import KPI, Activity, Task, WeeklyRecord


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def kpi_repository(db_session: Session):
    """Create a KpiRepository instance for testing."""
    return KpiRepository(db_session)


@pytest.fixture
def drainage_task():
    """Task with a completed week 1 and a legacy 'pending' week 2 (March 2026)."""
    return Task(
        id="t1",
        name="Inspect drainage",
        start_date=date(2026, 3, 1),
        end_date=date(2026, 3, 14),
        records=[
            WeeklyRecord(year=2026, month=3, week=1, status="completed"),
            WeeklyRecord(year=2026, month=3, week=2, status="pending"),
        ],
    )


@pytest.fixture
def sample_kpi_base(drainage_task):
    """Base KPI data for creating test KPIs.

    Returns a dict with default KPI attributes that can be overridden.
    """
    return {
        "id": "k1",
        "title": "Zero safety incidents",
        "description": "Monthly inspection coverage",
        "target": 100.0,
        "current": 40.0,
        "unit": "%",
        "category": "safety",
        "activities": [Activity(id="a1", name="Drainage upkeep", tasks=[drainage_task])],
    }


@pytest.fixture
def sample_kpi(sample_kpi_base):
    """Create a sample KPI object for testing."""
    return KPI(**sample_kpi_base)


@pytest.fixture
def sample_kpi_payload():
    """JSON payload for POST /kpis with nested activities, tasks and records."""
    return {
        "title": "Zero safety incidents",
        "category": "safety",
        "target": 100,
        "current": 40,
        "unit": "%",
        "activities": [
            {
                "id": "a1",
                "name": "Drainage upkeep",
                "tasks": [
                    {
                        "id": "t1",
                        "name": "Inspect drainage",
                        "start_date": "2026-03-01",
                        "end_date": "2026-03-14",
                        "records": [
                            {"year": 2026, "month": 3, "week": 1, "status": "complete"},
                            {"year": 2026, "month": 3, "week": 2, "status": "pending"},
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def test_client(db_session: Session):
    """Create a FastAPI test client with the database dependency overridden."""
    from kpitrack.api.app import app

    # Override the get_db dependency to use our test database session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db

    # Startup would create tables in the configured database; the test session already has them.
    with patch("kpitrack.api.app.init_db"):
        with TestClient(app) as client:
            yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
