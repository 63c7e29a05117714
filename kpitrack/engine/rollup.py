"""Status rollup logic for kpiTrack.

A parent's status is a pure function of its children's statuses, evaluated
with a fixed precedence. The same rule applies at both levels of the tree:
weekly records -> task, and tasks -> activity.
"""

import math
from collections import Counter
from typing import Dict, Iterable, Union

from kpitrack.models.kpi import KPI, Activity, Task
from kpitrack.models.status import StatusValue, normalize_status
from kpitrack.models.constants import MAX_PROGRESS_PERCENT

__all__ = [
    "normalize_status",
    "derive_status",
    "rollup_task",
    "rollup_activity",
    "rollup_kpi",
    "status_counts",
    "kpi_progress",
    "activity_progress",
]


def derive_status(statuses: Iterable[Union[StatusValue, str]]) -> StatusValue:
    """Derive a parent status from its children's statuses.

    Rules, evaluated in order:
    1. No children -> NOT_STARTED
    2. Any child IN_PROGRESS -> IN_PROGRESS
    3. All children COMPLETED -> COMPLETED
    4. All children NOT_STARTED -> NOT_STARTED
    5. Otherwise (a NOT_STARTED/COMPLETED mix) -> IN_PROGRESS

    Rule 5 is intentional: partial completion reads as work underway.
    This function is deterministic - same inputs always produce same outputs.

    Args:
        statuses: Canonical child statuses (StatusValue or its string value)

    Returns:
        The derived StatusValue

    Raises:
        ValueError: If a value is not canonical (normalize it first)
    """
    values = [StatusValue(s) for s in statuses]
    if not values:
        return StatusValue.NOT_STARTED

    if StatusValue.IN_PROGRESS in values:
        return StatusValue.IN_PROGRESS

    if all(v == StatusValue.COMPLETED for v in values):
        return StatusValue.COMPLETED

    if all(v == StatusValue.NOT_STARTED for v in values):
        return StatusValue.NOT_STARTED

    return StatusValue.IN_PROGRESS


def rollup_task(task: Task) -> Task:
    """Return a copy of the task with its status recomputed from its records."""
    status = derive_status([r.status for r in task.records])
    return task.model_copy(update={"status": status.value})


def rollup_activity(activity: Activity) -> Activity:
    """Return a copy of the activity with task and activity statuses recomputed."""
    tasks = [rollup_task(t) for t in activity.tasks]
    status = derive_status([t.status for t in tasks])
    return activity.model_copy(update={"tasks": tasks, "status": status.value})


def rollup_kpi(kpi: KPI) -> KPI:
    """Return a copy of the KPI with every derived status below it recomputed."""
    return kpi.model_copy(update={"activities": [rollup_activity(a) for a in kpi.activities]})


def status_counts(statuses: Iterable[Union[StatusValue, str]]) -> Dict[str, int]:
    """Count statuses, with an entry (possibly 0) for every canonical value."""
    counter = Counter(StatusValue(s) for s in statuses)
    return {s.value: counter.get(s, 0) for s in StatusValue}


def kpi_progress(kpi: KPI) -> float:
    """Percentage of target reached, capped at 100 (0 when target <= 0)."""
    if kpi.target <= 0:
        return 0.0
    return min(MAX_PROGRESS_PERCENT, (kpi.current / kpi.target) * 100)


def activity_progress(activity: Activity) -> int:
    """Rounded percentage of the activity's tasks whose derived status is COMPLETED."""
    if not activity.tasks:
        return 0
    completed = sum(
        1 for t in activity.tasks
        if derive_status([r.status for r in t.records]) == StatusValue.COMPLETED
    )
    # Half-up rounding, matching the dashboard display.
    return math.floor(completed / len(activity.tasks) * 100 + 0.5)
