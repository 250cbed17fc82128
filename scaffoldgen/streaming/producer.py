"""Producer side of the progress stream."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, Mapping, Optional

from ..logging import get_logger
from .events import (
    COMPLETE,
    ERROR,
    FRAME_PREFIX,
    PHASE_COMPLETE,
    PHASE_PROGRESS,
    PHASE_START,
    RESULT,
    ProgressEvent,
    encode_frame,
)

IDLE = "idle"
STREAMING = "streaming"
RESULT_SENT = "result_sent"
ERROR_SENT = "error_sent"
CLOSED = "closed"

_STARTED = "started"
_COMPLETED = "completed"


class StreamStateError(RuntimeError):
    """Raised when an event would break the stream's ordering rules."""


class EventStream:
    """Single-producer, ordered frame channel drained by the response body.

    States move ``idle -> streaming -> result_sent | error_sent -> closed``.
    Exactly one terminal frame (result or error) is accepted; the drain ends
    right after it. Per phase, ``phase_start`` must precede any progress and
    at most one ``phase_complete`` is accepted.
    """

    def __init__(self, *, prefix: str = FRAME_PREFIX, maxsize: int = 0) -> None:
        self.prefix = prefix
        self.state = IDLE
        self._queue: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue(maxsize)
        self._phases: Dict[str, str] = {}
        self.logger = get_logger("streaming.producer")

    @property
    def terminated(self) -> bool:
        return self.state in {RESULT_SENT, ERROR_SENT, CLOSED}

    async def emit(self, event: ProgressEvent) -> None:
        """Queue ``event`` after checking it against the stream state."""
        if self.terminated:
            raise StreamStateError(f"Cannot emit '{event.type}' after the stream is {self.state}")
        self._check_phase_order(event)

        await self._queue.put(encode_frame(event, self.prefix))
        if event.type == RESULT:
            self.state = RESULT_SENT
        elif event.type == ERROR:
            self.state = ERROR_SENT
        else:
            self.state = STREAMING
        if event.is_terminal:
            await self._queue.put(None)

    async def phase_start(self, phase: str, message: str, progress: int | None = None, data: Any = None) -> None:
        await self.emit(ProgressEvent(PHASE_START, phase, message, progress, data))

    async def phase_progress(self, phase: str, message: str, progress: int | None = None, data: Any = None) -> None:
        await self.emit(ProgressEvent(PHASE_PROGRESS, phase, message, progress, data))

    async def phase_complete(self, phase: str, message: str, progress: int | None = None, data: Any = None) -> None:
        await self.emit(ProgressEvent(PHASE_COMPLETE, phase, message, progress, data))

    async def complete(self, message: str, data: Any = None) -> None:
        await self.emit(ProgressEvent(COMPLETE, COMPLETE, message, 100, data))

    async def send_result(self, payload: Mapping[str, Any]) -> None:
        await self.emit(ProgressEvent(RESULT, data=dict(payload)))

    async def send_error(self, message: str) -> None:
        await self.emit(ProgressEvent(ERROR, message=message))

    async def close(self) -> None:
        """End the stream; without a prior terminal frame the consumer sees an aborted stream."""
        if self.state == CLOSED:
            return
        if not self.terminated:
            self.logger.debug("Closing stream before a terminal frame was sent")
            await self._queue.put(None)
        self.state = CLOSED

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield encoded frames in emission order until the stream ends."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                self.state = CLOSED
                return
            yield frame

    def _check_phase_order(self, event: ProgressEvent) -> None:
        if event.type not in {PHASE_START, PHASE_PROGRESS, PHASE_COMPLETE}:
            return
        phase = event.phase or ""
        status = self._phases.get(phase)
        if event.type == PHASE_START:
            if status is not None:
                raise StreamStateError(f"Phase '{phase}' was already started")
            self._phases[phase] = _STARTED
            return
        if status is None:
            raise StreamStateError(f"Phase '{phase}' has not been started")
        if status == _COMPLETED:
            raise StreamStateError(f"Phase '{phase}' is already complete")
        if event.type == PHASE_COMPLETE:
            self._phases[phase] = _COMPLETED


__all__ = [
    "CLOSED",
    "ERROR_SENT",
    "EventStream",
    "IDLE",
    "RESULT_SENT",
    "STREAMING",
    "StreamStateError",
]
