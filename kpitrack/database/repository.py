"""Repository layer for database operations."""

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from kpitrack.database.models import ActivityDB, KpiDB, TaskDB, enum_to_value
from kpitrack.engine.records import find_duplicate_records, generate_task_records, set_record_status
from kpitrack.engine.rollup import rollup_kpi
from kpitrack.models.constants import DEFAULT_CATEGORY_ORDER
from kpitrack.models.kpi import KPI, Task
from kpitrack.models.status import StatusValue

logger = logging.getLogger(__name__)


def _check_unique_records(kpi: KPI) -> None:
    """Reject a KPI tree holding two records for the same task and week."""
    for activity in kpi.activities:
        for task in activity.tasks:
            duplicates = find_duplicate_records(task.records)
            if duplicates:
                year, month, week = duplicates[0]
                raise ValueError(
                    f"Task {task.id} has duplicate records for {year}-{month:02d} week {week}"
                )


def _replace_task(kpi: KPI, task_id: str, change: Callable[[Task], Task]) -> KPI:
    """Return a copy of the KPI with one task replaced by change(task)."""
    found = False
    activities = []
    for activity in kpi.activities:
        tasks = []
        for task in activity.tasks:
            if task.id == task_id:
                task = change(task)
                found = True
            tasks.append(task)
        activities.append(activity.model_copy(update={"tasks": tasks}))
    if not found:
        raise LookupError(f"Task {task_id} not found in KPI {kpi.id}")
    return rollup_kpi(kpi.model_copy(update={"activities": activities}))


class KpiRepository:
    """Repository for KPI tree database operations.

    Every read goes through the pydantic models (normalizing stored status
    tokens); every write rolls statuses up before it is persisted.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_db(self, kpi_id: str) -> Optional[KpiDB]:
        return self.db.query(KpiDB).filter(KpiDB.id == kpi_id).first()

    def _next_position(self, collection: str) -> int:
        return self.db.query(KpiDB).filter(KpiDB.collection == collection).count()

    def _check_child_ids(self, kpi: KPI) -> None:
        """Reject activity or task ids that repeat in the tree or belong to another KPI.

        Raises:
            ValueError: On the first colliding id
        """
        activity_ids = [a.id for a in kpi.activities]
        task_ids = [t.id for a in kpi.activities for t in a.tasks]
        for kind, ids in (("Activity", activity_ids), ("Task", task_ids)):
            if len(set(ids)) != len(ids):
                repeated = next(i for i in ids if ids.count(i) > 1)
                raise ValueError(f"{kind} id {repeated} appears more than once in KPI {kpi.id}")

        if activity_ids:
            taken = (
                self.db.query(ActivityDB.id)
                .filter(ActivityDB.id.in_(activity_ids), ActivityDB.kpi_id != kpi.id)
                .first()
            )
            if taken:
                raise ValueError(f"Activity id {taken[0]} is already used by another KPI")
        if task_ids:
            taken = (
                self.db.query(TaskDB.id)
                .join(ActivityDB, TaskDB.activity_id == ActivityDB.id)
                .filter(TaskDB.id.in_(task_ids), ActivityDB.kpi_id != kpi.id)
                .first()
            )
            if taken:
                raise ValueError(f"Task id {taken[0]} is already used by another KPI")

    def create(self, kpi: KPI, collection: Optional[str] = None) -> KPI:
        """Create a new KPI (with its activities, tasks and records).

        Args:
            kpi: KPI to store
            collection: Collection name (defaults to the KPI's category)

        Raises:
            ValueError: If a task holds duplicate weekly records or a child id is taken
        """
        _check_unique_records(kpi)
        self._check_child_ids(kpi)
        collection = collection or enum_to_value(kpi.category)
        kpi = rollup_kpi(kpi)
        try:
            kpi_db = KpiDB.from_pydantic(kpi, collection, self._next_position(collection))
            self.db.add(kpi_db)
            self.db.commit()
            self.db.refresh(kpi_db)
            logger.debug(f"Created KPI {kpi.id} in '{collection}': {kpi.title[:50]}")
            return kpi_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create KPI {kpi.id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, kpi_id: str) -> Optional[KPI]:
        """Get KPI by ID."""
        kpi_db = self._get_db(kpi_id)
        return kpi_db.to_pydantic() if kpi_db else None

    def get_collection_name(self, kpi_id: str) -> Optional[str]:
        kpi_db = self._get_db(kpi_id)
        return kpi_db.collection if kpi_db else None

    def get_all(self, collection: Optional[str] = None) -> List[KPI]:
        """Get all KPIs (optionally of one collection) in collection, then position order."""
        query = self.db.query(KpiDB)
        if collection is not None:
            query = query.filter(KpiDB.collection == collection)
        kpis_db = query.order_by(KpiDB.collection, KpiDB.position, KpiDB.created_at).all()
        return [kpi_db.to_pydantic() for kpi_db in kpis_db]

    def get_collections(self) -> Dict[str, List[KPI]]:
        """Get KPIs grouped by collection.

        Built-in categories come first, in dashboard order, and are present even
        when empty. Custom collections follow in name order.
        """
        collections: Dict[str, List[KPI]] = {name: [] for name in DEFAULT_CATEGORY_ORDER}
        kpis_db = self.db.query(KpiDB).order_by(KpiDB.position, KpiDB.created_at).all()
        custom: Dict[str, List[KPI]] = {}
        for kpi_db in kpis_db:
            target = collections if kpi_db.collection in collections else custom
            target.setdefault(kpi_db.collection, []).append(kpi_db.to_pydantic())
        for name in sorted(custom):
            collections[name] = custom[name]
        return collections

    def update(self, kpi: KPI, collection: Optional[str] = None) -> KPI:
        """Replace a stored KPI tree with the given one.

        Args:
            kpi: New state of the KPI (matched by id)
            collection: Move the KPI to this collection (keeps the current one if None)

        Raises:
            ValueError: If the KPI does not exist, a task holds duplicate records
                or a child id is taken
        """
        kpi_db = self._get_db(kpi.id)
        if not kpi_db:
            raise ValueError(f"KPI {kpi.id} not found")
        _check_unique_records(kpi)
        self._check_child_ids(kpi)
        kpi = rollup_kpi(kpi)

        target_collection = collection or kpi_db.collection
        position = kpi_db.position if target_collection == kpi_db.collection else self._next_position(target_collection)
        created_at = kpi_db.created_at

        try:
            # Drop the old subtree before inserting the new one so unique
            # (task, year, month, week) keys never coexist in one flush.
            # Children are loaded first so the ORM deletes them, not only the DB cascade.
            for activity_db in kpi_db.activities:
                for task_db in activity_db.tasks:
                    task_db.records
            self.db.delete(kpi_db)
            self.db.flush()
            new_db = KpiDB.from_pydantic(kpi, target_collection, position)
            new_db.created_at = created_at
            self.db.add(new_db)
            self.db.commit()
            self.db.refresh(new_db)
            logger.debug(f"Updated KPI {kpi.id}: {kpi.title[:50]}")
            return new_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update KPI {kpi.id}: {type(e).__name__}: {str(e)}")
            raise

    def delete(self, kpi_id: str) -> bool:
        """Delete a KPI and, by cascade, its activities, tasks and records."""
        kpi_db = self._get_db(kpi_id)
        if not kpi_db:
            return False

        try:
            self.db.delete(kpi_db)
            self.db.commit()
            logger.debug(f"Deleted KPI {kpi_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete KPI {kpi_id}: {type(e).__name__}: {str(e)}")
            raise

    def update_record_status(
        self,
        kpi_id: str,
        task_id: str,
        year: int,
        month: int,
        week: int,
        status: StatusValue,
    ) -> KPI:
        """Rewrite one weekly record's status and persist the rolled-up tree.

        Raises:
            ValueError: If the KPI does not exist
            LookupError: If the task or the record does not exist
        """
        kpi = self.get(kpi_id)
        if kpi is None:
            raise ValueError(f"KPI {kpi_id} not found")
        updated = _replace_task(kpi, task_id, lambda t: set_record_status(t, year, month, week, status))
        return self.update(updated)

    def generate_records(self, kpi_id: str, task_id: str) -> KPI:
        """Fill in one record per week of a task's active period and persist.

        Raises:
            ValueError: If the KPI does not exist
            LookupError: If the task does not exist
        """
        kpi = self.get(kpi_id)
        if kpi is None:
            raise ValueError(f"KPI {kpi_id} not found")
        updated = _replace_task(
            kpi, task_id, lambda t: t.model_copy(update={"records": generate_task_records(t)})
        )
        return self.update(updated)
