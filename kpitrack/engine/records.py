"""Weekly record bookkeeping for tasks.

Records are keyed on (year, month, week-of-month) of the Sunday that starts
each week, so a week that begins on the last Sunday of a month is filed under
that month even when most of its days fall in the next one.
"""

from typing import Dict, List, Tuple, Union

from kpitrack.engine.rollup import rollup_task
from kpitrack.engine.weeks import RECORD_WEEK_START, WeekStart, iter_week_starts, week_of_month
from kpitrack.models.kpi import Task, WeeklyRecord
from kpitrack.models.status import StatusValue, normalize_status

RecordKey = Tuple[int, int, int]


def record_key(record: WeeklyRecord) -> RecordKey:
    return (record.year, record.month, record.week)


def find_duplicate_records(records: List[WeeklyRecord]) -> List[RecordKey]:
    """Return (year, month, week) keys that occur more than once, in first-seen order."""
    seen: Dict[RecordKey, int] = {}
    for r in records:
        key = record_key(r)
        seen[key] = seen.get(key, 0) + 1
    return [key for key, n in seen.items() if n > 1]


def generate_task_records(task: Task, week_start: WeekStart = RECORD_WEEK_START) -> List[WeeklyRecord]:
    """Build one record per week of the task's active period.

    Existing records are kept as they are; weeks without a record get a new
    NOT_STARTED one. Tasks missing either date keep their current records.

    Args:
        task: Task whose start_date/end_date span the active period
        week_start: Week anchor used to key the records

    Returns:
        Records in chronological order
    """
    if not task.start_date or not task.end_date:
        return list(task.records)

    existing = {record_key(r): r for r in task.records}
    records: List[WeeklyRecord] = []
    for day in iter_week_starts(task.start_date, task.end_date, week_start):
        key = (day.year, day.month, week_of_month(day, week_start))
        record = existing.get(key)
        if record is None:
            record = WeeklyRecord(year=key[0], month=key[1], week=key[2], status=StatusValue.NOT_STARTED)
        records.append(record)
    return records


def set_record_status(
    task: Task,
    year: int,
    month: int,
    week: int,
    status: Union[StatusValue, str],
) -> Task:
    """Rewrite one record's status and roll the task up.

    Raises:
        LookupError: If the task has no record for (year, month, week)
    """
    target = (year, month, week)
    new_status = normalize_status(status)
    found = False
    records: List[WeeklyRecord] = []
    for r in task.records:
        if record_key(r) == target:
            r = r.model_copy(update={"status": new_status.value})
            found = True
        records.append(r)
    if not found:
        raise LookupError(f"Task {task.id} has no record for {year}-{month:02d} week {week}")
    return rollup_task(task.model_copy(update={"records": records}))
