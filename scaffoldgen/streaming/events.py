"""Progress events and their newline-delimited wire framing."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

FRAME_PREFIX = "data: "

PHASE_START = "phase_start"
PHASE_PROGRESS = "phase_progress"
PHASE_COMPLETE = "phase_complete"
COMPLETE = "complete"
ERROR = "error"
RESULT = "result"

EVENT_TYPES = frozenset({PHASE_START, PHASE_PROGRESS, PHASE_COMPLETE, COMPLETE, ERROR, RESULT})
PHASE_EVENT_TYPES = frozenset({PHASE_START, PHASE_PROGRESS, PHASE_COMPLETE})
TERMINAL_EVENT_TYPES = frozenset({ERROR, RESULT})


class StreamFramingError(ValueError):
    """Raised for a frame line that cannot be decoded into an event."""


@dataclass(frozen=True)
class ProgressEvent:
    """One event on the progress stream."""

    type: str
    phase: Optional[str] = None
    message: str = ""
    progress: Optional[int] = None
    data: Any = None

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{self.type}'")
        if self.type in PHASE_EVENT_TYPES and not self.phase:
            raise ValueError(f"'{self.type}' events require a phase")
        if self.progress is not None and not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be within 0..100, got {self.progress}")

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> Dict[str, Any]:
        if self.type == RESULT:
            return {"type": RESULT, "data": self.data}
        if self.type == ERROR:
            return {"type": ERROR, "message": self.message}
        payload: Dict[str, Any] = {"type": self.type, "phase": self.phase, "message": self.message}
        if self.progress is not None:
            payload["progress"] = self.progress
        if self.data is not None:
            payload["data"] = self.data
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProgressEvent":
        if not isinstance(payload, Mapping):
            raise StreamFramingError("frame payload must be a JSON object")
        event_type = payload.get("type")
        phase = payload.get("phase")
        progress = payload.get("progress")
        if isinstance(progress, bool) or not isinstance(progress, (int, float, type(None))):
            raise StreamFramingError(f"invalid progress value {progress!r}")
        try:
            return cls(
                type=str(event_type),
                phase=None if phase is None else str(phase),
                message=str(payload.get("message") or ""),
                progress=None if progress is None else int(progress),
                data=payload.get("data"),
            )
        except ValueError as exc:
            raise StreamFramingError(str(exc)) from exc


def phase_start(phase: str, message: str, progress: int | None = None, data: Any = None) -> ProgressEvent:
    return ProgressEvent(PHASE_START, phase, message, progress, data)


def phase_progress(phase: str, message: str, progress: int | None = None, data: Any = None) -> ProgressEvent:
    return ProgressEvent(PHASE_PROGRESS, phase, message, progress, data)


def phase_complete(phase: str, message: str, progress: int | None = None, data: Any = None) -> ProgressEvent:
    return ProgressEvent(PHASE_COMPLETE, phase, message, progress, data)


def encode_frame(event: ProgressEvent, prefix: str = FRAME_PREFIX) -> bytes:
    """Serialize ``event`` as one prefixed, newline-terminated JSON line.

    ``json.dumps`` escapes embedded newlines, so the terminator is the only
    newline in the frame.
    """
    body = json.dumps(event.to_dict(), separators=(",", ":"), ensure_ascii=False)
    return f"{prefix}{body}\n".encode("utf-8")


def decode_frame(line: str, prefix: str = FRAME_PREFIX) -> Optional[ProgressEvent]:
    """Decode one complete line; returns None for lines that are not frames."""
    line = line.rstrip("\r")
    if not line.startswith(prefix):
        return None
    try:
        payload = json.loads(line[len(prefix):])
    except json.JSONDecodeError as exc:
        raise StreamFramingError(f"malformed frame JSON: {exc}") from exc
    return ProgressEvent.from_dict(payload)


__all__ = [
    "COMPLETE",
    "ERROR",
    "EVENT_TYPES",
    "FRAME_PREFIX",
    "PHASE_COMPLETE",
    "PHASE_PROGRESS",
    "PHASE_START",
    "ProgressEvent",
    "RESULT",
    "StreamFramingError",
    "decode_frame",
    "encode_frame",
    "phase_complete",
    "phase_progress",
    "phase_start",
]
