"""Tests for KpiRepository CRUD operations."""

import pytest
from datetime import date

from kpitrack.database.models import ActivityDB, KpiDB, TaskDB, WeeklyRecordDB
from kpitrack.models.kpi import KPI, Activity, Task, WeeklyRecord
from kpitrack.models.status import StatusValue


class TestKpiRepository:
    """Test KpiRepository CRUD operations."""

    def test_create_kpi(self, kpi_repository, sample_kpi):
        """Test creating a KPI with its nested tree."""
        created = kpi_repository.create(sample_kpi)

        assert created.id == "k1"
        assert created.title == sample_kpi.title
        assert created.category == "safety"
        assert len(created.activities) == 1
        task = created.activities[0].tasks[0]
        assert task.start_date == date(2026, 3, 1)
        assert [r.status for r in task.records] == [StatusValue.COMPLETED, StatusValue.NOT_STARTED]
        assert task.status == StatusValue.IN_PROGRESS
        assert kpi_repository.get_collection_name("k1") == "safety"

    def test_get_kpi_by_id(self, kpi_repository, sample_kpi):
        kpi_repository.create(sample_kpi)
        retrieved = kpi_repository.get("k1")

        assert retrieved is not None
        assert retrieved == kpi_repository.get("k1")
        assert retrieved.activities[0].status == StatusValue.IN_PROGRESS

    def test_get_nonexistent_kpi(self, kpi_repository):
        """Test retrieving a nonexistent KPI returns None."""
        assert kpi_repository.get("nonexistent-id") is None
        assert kpi_repository.get_collection_name("nonexistent-id") is None

    def test_legacy_status_tokens_normalized_on_load(self, kpi_repository, sample_kpi, db_session):
        """Rows written by older clients may still hold legacy tokens."""
        kpi_repository.create(sample_kpi)
        rows = db_session.query(WeeklyRecordDB).order_by(WeeklyRecordDB.position).all()
        rows[0].status = "complete"
        rows[1].status = "in_progress"
        db_session.commit()

        task = kpi_repository.get("k1").activities[0].tasks[0]
        assert [r.status for r in task.records] == [StatusValue.COMPLETED, StatusValue.IN_PROGRESS]
        assert task.status == StatusValue.IN_PROGRESS

    def test_create_with_duplicate_records_rejected(self, kpi_repository, sample_kpi_base):
        task = Task(
            id="t1",
            name="Inspect drainage",
            records=[
                WeeklyRecord(year=2026, month=3, week=1),
                WeeklyRecord(year=2026, month=3, week=1, status="completed"),
            ],
        )
        kpi = KPI(**{**sample_kpi_base, "activities": [Activity(id="a1", name="Upkeep", tasks=[task])]})
        with pytest.raises(ValueError, match="duplicate"):
            kpi_repository.create(kpi)
        assert kpi_repository.get("k1") is None

    def test_create_with_taken_child_ids_rejected(self, kpi_repository, sample_kpi):
        """Activity and task ids are global; a second KPI cannot reuse them."""
        kpi_repository.create(sample_kpi)
        clash = sample_kpi.model_copy(update={"id": "k2"})
        with pytest.raises(ValueError, match="Activity id a1"):
            kpi_repository.create(clash)

        renamed = clash.model_copy(
            update={"activities": [sample_kpi.activities[0].model_copy(update={"id": "a2"})]}
        )
        with pytest.raises(ValueError, match="Task id t1"):
            kpi_repository.create(renamed)
        assert kpi_repository.get("k2") is None

    def test_repeated_child_ids_in_one_tree_rejected(self, kpi_repository, sample_kpi_base, drainage_task):
        activity = Activity(id="a1", name="Upkeep", tasks=[drainage_task, drainage_task])
        kpi = KPI(**{**sample_kpi_base, "activities": [activity]})
        with pytest.raises(ValueError, match="more than once"):
            kpi_repository.create(kpi)

    def test_update_cannot_take_another_kpis_task(self, kpi_repository, sample_kpi, sample_kpi_base):
        kpi_repository.create(sample_kpi)
        other = kpi_repository.create(KPI(**{**sample_kpi_base, "id": "k2", "activities": []}))
        thief = other.model_copy(
            update={"activities": [Activity(id="a9", name="Copy", tasks=[Task(id="t1", name="Stolen")])]}
        )
        with pytest.raises(ValueError, match="Task id t1"):
            kpi_repository.update(thief)
        assert kpi_repository.get("k2").activities == []

    def test_get_all_by_collection(self, kpi_repository, sample_kpi_base):
        kpi_repository.create(KPI(**{**sample_kpi_base, "id": "k1", "activities": []}))
        kpi_repository.create(KPI(**{**sample_kpi_base, "id": "k2", "activities": []}))
        kpi_repository.create(KPI(**{**sample_kpi_base, "id": "k3", "category": "lease", "activities": []}))

        assert [k.id for k in kpi_repository.get_all("safety")] == ["k1", "k2"]
        assert [k.id for k in kpi_repository.get_all("lease")] == ["k3"]
        assert len(kpi_repository.get_all()) == 3

    def test_get_collections_order(self, kpi_repository, sample_kpi_base):
        """Built-in categories come first (even empty), then custom collections by name."""
        base = {**sample_kpi_base, "activities": []}
        kpi_repository.create(KPI(**{**base, "id": "k1", "category": "infra"}))
        kpi_repository.create(KPI(**{**base, "id": "k2", "category": "custom"}), collection="Zoning")
        kpi_repository.create(KPI(**{**base, "id": "k3", "category": "custom"}), collection="Parking")
        kpi_repository.create(KPI(**{**base, "id": "k4", "category": "infra"}))

        collections = kpi_repository.get_collections()
        assert list(collections) == ["safety", "lease", "asset", "infra", "Parking", "Zoning"]
        assert collections["safety"] == []
        assert [k.id for k in collections["infra"]] == ["k1", "k4"]
        assert [k.id for k in collections["Parking"]] == ["k3"]

    def test_update_kpi(self, kpi_repository, sample_kpi):
        kpi_repository.create(sample_kpi)
        task = sample_kpi.activities[0].tasks[0]
        new_task = task.model_copy(
            update={"records": task.records + [WeeklyRecord(year=2026, month=3, week=3, status="completed")]}
        )
        changed = sample_kpi.model_copy(
            update={
                "current": 75.0,
                "activities": [sample_kpi.activities[0].model_copy(update={"tasks": [new_task]})],
            }
        )

        updated = kpi_repository.update(changed)
        assert updated.current == 75.0
        assert len(updated.activities[0].tasks[0].records) == 3
        assert kpi_repository.get("k1").current == 75.0
        assert kpi_repository.get_collection_name("k1") == "safety"

    def test_update_keeps_record_rows_unique(self, kpi_repository, sample_kpi, db_session):
        """Saving the same tree twice does not trip the per-week unique constraint."""
        kpi_repository.create(sample_kpi)
        kpi_repository.update(sample_kpi)
        kpi_repository.update(sample_kpi)
        assert db_session.query(WeeklyRecordDB).count() == 2

    def test_update_moves_collection(self, kpi_repository, sample_kpi):
        kpi_repository.create(sample_kpi)
        kpi_repository.update(sample_kpi, collection="Parking")
        assert kpi_repository.get_collection_name("k1") == "Parking"
        assert kpi_repository.get_all("safety") == []

    def test_update_nonexistent_kpi_raises(self, kpi_repository, sample_kpi):
        with pytest.raises(ValueError, match="not found"):
            kpi_repository.update(sample_kpi)

    def test_delete_kpi_cascades(self, kpi_repository, sample_kpi, db_session):
        kpi_repository.create(sample_kpi)
        assert db_session.query(WeeklyRecordDB).count() == 2

        assert kpi_repository.delete("k1") is True
        assert kpi_repository.get("k1") is None
        assert db_session.query(KpiDB).count() == 0
        assert db_session.query(ActivityDB).count() == 0
        assert db_session.query(TaskDB).count() == 0
        assert db_session.query(WeeklyRecordDB).count() == 0

    def test_delete_nonexistent_kpi(self, kpi_repository):
        assert kpi_repository.delete("nonexistent-id") is False


class TestRecordOperations:
    """Test record-level edits persisted through the repository."""

    def test_update_record_status_rolls_up(self, kpi_repository, sample_kpi):
        kpi_repository.create(sample_kpi)
        updated = kpi_repository.update_record_status("k1", "t1", 2026, 3, 2, StatusValue.COMPLETED)

        task = updated.activities[0].tasks[0]
        assert task.records[1].status == StatusValue.COMPLETED
        assert task.status == StatusValue.COMPLETED
        assert updated.activities[0].status == StatusValue.COMPLETED
        assert kpi_repository.get("k1").activities[0].status == StatusValue.COMPLETED

    def test_update_record_status_missing_kpi(self, kpi_repository):
        with pytest.raises(ValueError):
            kpi_repository.update_record_status("nope", "t1", 2026, 3, 1, StatusValue.COMPLETED)

    def test_update_record_status_missing_task(self, kpi_repository, sample_kpi):
        kpi_repository.create(sample_kpi)
        with pytest.raises(LookupError):
            kpi_repository.update_record_status("k1", "nope", 2026, 3, 1, StatusValue.COMPLETED)

    def test_update_record_status_missing_record(self, kpi_repository, sample_kpi):
        kpi_repository.create(sample_kpi)
        with pytest.raises(LookupError):
            kpi_repository.update_record_status("k1", "t1", 2026, 3, 5, StatusValue.COMPLETED)

    def test_generate_records(self, kpi_repository, sample_kpi_base):
        task = Task(id="t1", name="Check sprinklers", start_date=date(2026, 3, 4), end_date=date(2026, 3, 20))
        kpi = KPI(**{**sample_kpi_base, "activities": [Activity(id="a1", name="Fire safety", tasks=[task])]})
        kpi_repository.create(kpi)

        updated = kpi_repository.generate_records("k1", "t1")
        records = updated.activities[0].tasks[0].records
        assert [(r.year, r.month, r.week) for r in records] == [(2026, 3, 1), (2026, 3, 2), (2026, 3, 3)]

        # Running it again adds nothing
        again = kpi_repository.generate_records("k1", "t1")
        assert len(again.activities[0].tasks[0].records) == 3
