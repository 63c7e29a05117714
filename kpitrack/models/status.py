"""Work status enumeration and legacy token normalization for kpiTrack.

Every status that enters the system (database rows, API payloads, imported
snapshots) goes through normalize_status() before any rollup or report logic
sees it. Older clients persisted several overlapping vocabularies; the alias
table below is the single place where they are mapped onto the canonical values.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class StatusValue(str, Enum):
    """Canonical work status."""
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# Canonical tokens map to themselves; legacy and variant tokens follow.
STATUS_ALIASES: Dict[str, StatusValue] = {
    StatusValue.NOT_STARTED.value: StatusValue.NOT_STARTED,
    StatusValue.IN_PROGRESS.value: StatusValue.IN_PROGRESS,
    StatusValue.COMPLETED.value: StatusValue.COMPLETED,
    "pending": StatusValue.NOT_STARTED,
    "on_hold": StatusValue.NOT_STARTED,
    "deferred": StatusValue.NOT_STARTED,
    "in_progress": StatusValue.IN_PROGRESS,
    "complete": StatusValue.COMPLETED,
}


def normalize_status(token: Optional[Union[str, StatusValue]]) -> StatusValue:
    """Map any persisted status token onto a StatusValue.

    Lookup ignores case and surrounding whitespace. Unknown or missing tokens
    resolve to NOT_STARTED and are logged, since they mean an upstream writer
    is using a vocabulary this table does not know about.

    Args:
        token: Raw status token (string, StatusValue, or None)

    Returns:
        The canonical StatusValue
    """
    if isinstance(token, StatusValue):
        return token

    key = token.strip().lower() if isinstance(token, str) else None
    status = STATUS_ALIASES.get(key) if key else None
    if status is None:
        logger.warning(f"Unmapped status token {token!r}; treating as {StatusValue.NOT_STARTED.value}")
        return StatusValue.NOT_STARTED
    return status
