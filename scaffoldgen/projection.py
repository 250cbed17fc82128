"""Client-side projection of progress events into a display timeline.

Every event appends a record; repeated events for the same phase are kept as
separate entries so the timeline shows the full history rather than a live
summary per phase.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .streaming.events import (
    COMPLETE,
    ERROR,
    PHASE_COMPLETE,
    PHASE_PROGRESS,
    PHASE_START,
    ProgressEvent,
)

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "error"

_STATUS_BY_EVENT = {
    PHASE_START: RUNNING,
    PHASE_PROGRESS: RUNNING,
    PHASE_COMPLETE: COMPLETED,
    COMPLETE: COMPLETED,
    ERROR: FAILED,
}


@dataclass(frozen=True)
class ProgressRecord:
    phase: str
    status: str
    message: str
    progress: Optional[int] = None


def reduce(records: Sequence[ProgressRecord], event: ProgressEvent) -> List[ProgressRecord]:
    """Return ``records`` with ``event`` appended; result frames leave it unchanged."""
    status = _STATUS_BY_EVENT.get(event.type)
    if status is None:
        return list(records)
    record = ProgressRecord(
        phase=event.phase or event.type,
        status=status,
        message=event.message,
        progress=event.progress,
    )
    return [*records, record]


def mark_failed(records: Sequence[ProgressRecord], message: str) -> List[ProgressRecord]:
    """Mark the last record as failed with ``message``."""
    if not records:
        return [ProgressRecord(phase=FAILED, status=FAILED, message=message)]
    return [*records[:-1], replace(records[-1], status=FAILED, message=message)]


class ProgressTimeline:
    """Holds the records of the current run."""

    def __init__(self) -> None:
        self._records: List[ProgressRecord] = []

    @property
    def records(self) -> Tuple[ProgressRecord, ...]:
        return tuple(self._records)

    def apply(self, event: ProgressEvent) -> ProgressRecord | None:
        before = len(self._records)
        self._records = reduce(self._records, event)
        return self._records[-1] if len(self._records) > before else None

    def fail(self, message: str) -> ProgressRecord:
        self._records = mark_failed(self._records, message)
        return self._records[-1]

    def reset(self) -> None:
        """Clear the timeline; call before starting a new plan run."""
        self._records = []

    @property
    def completed_count(self) -> int:
        return sum(1 for record in self._records if record.status == COMPLETED)

    def __len__(self) -> int:
        return len(self._records)


def format_record(record: ProgressRecord) -> str:
    marker = {PENDING: " ", RUNNING: ">", COMPLETED: "+", FAILED: "x"}.get(record.status, "?")
    progress = f" {record.progress:3d}%" if record.progress is not None else ""
    return f"[{marker}]{progress} {record.phase}: {record.message}"


__all__ = [
    "COMPLETED",
    "FAILED",
    "PENDING",
    "ProgressRecord",
    "ProgressTimeline",
    "RUNNING",
    "format_record",
    "mark_failed",
    "reduce",
]
