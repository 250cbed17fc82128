"""Consumer side of the progress stream.

Frames arrive as arbitrary byte chunks. The consumer keeps a text buffer,
treats every newline-terminated line as complete and carries the trailing
fragment over to the next chunk, so the parsed events do not depend on where
the chunk boundaries fall. Malformed lines are logged and skipped; this keeps
a stream alive through transient corruption but can also hide a genuinely
broken producer.

A frame whose ``type`` is not one of the known event types counts as
malformed and is skipped the same way rather than forwarded to the progress
callback, so callbacks only ever see the event types the producer defines.
"""

from __future__ import annotations

import codecs
import inspect
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, List, Optional, Union

from ..logging import get_logger
from .events import ERROR, FRAME_PREFIX, RESULT, ProgressEvent, StreamFramingError, decode_frame

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class StreamTerminationError(RuntimeError):
    """Raised when the stream ends or is aborted without a terminal frame."""


class StreamErrorFrame(RuntimeError):
    """Raised when the producer reports failure through an error frame."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StreamConsumer:
    """Reassembles frames from chunks and dispatches the decoded events."""

    def __init__(self, *, prefix: str = FRAME_PREFIX) -> None:
        self.prefix = prefix
        self.logger = get_logger("streaming.consumer")
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._result: Any = None
        self._has_result = False
        self._aborted = False

    @property
    def has_result(self) -> bool:
        return self._has_result

    @property
    def result(self) -> Any:
        return self._result

    def abort(self) -> None:
        """Stop consuming; the pending read fails with StreamTerminationError."""
        self._aborted = True

    def feed(self, chunk: Union[bytes, str]) -> List[ProgressEvent]:
        """Append ``chunk`` and return the events completed by it, in order."""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events: List[ProgressEvent] = []
        for line in lines:
            try:
                event = decode_frame(line, self.prefix)
            except StreamFramingError as exc:
                self.logger.warning("Skipping malformed frame: %s", exc)
                continue
            if event is None:
                if line.strip():
                    self.logger.debug("Ignoring unprefixed line: %.80s", line)
                continue
            events.append(event)
        return events

    async def events(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[ProgressEvent]:
        """Yield progress events until the stream ends.

        A result frame is stored rather than yielded; an error frame stops
        reading and raises StreamErrorFrame.
        """
        async for chunk in chunks:
            if self._aborted:
                raise StreamTerminationError("stream aborted before a terminal frame")
            for event in self.feed(chunk):
                if event.type == RESULT:
                    self._result = event.data
                    self._has_result = True
                    continue
                if event.type == ERROR:
                    raise StreamErrorFrame(event.message or "generation failed")
                yield event
                if self._aborted:
                    raise StreamTerminationError("stream aborted before a terminal frame")

        tail = self._buffer + self._decoder.decode(b"", final=True)
        if tail.strip():
            self.logger.debug("Discarding %d chars of unterminated frame data", len(tail))
        self._buffer = ""
        if self._aborted:
            raise StreamTerminationError("stream aborted before a terminal frame")
        if not self._has_result:
            raise StreamTerminationError("stream ended without result")

    async def consume(
        self,
        chunks: AsyncIterable[bytes],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Any:
        """Drain ``chunks``, forwarding progress events, and return the result payload."""
        async for event in self.events(chunks):
            if on_progress is None:
                continue
            outcome = on_progress(event)
            if inspect.isawaitable(outcome):
                await outcome
        return self._result


__all__ = ["ProgressCallback", "StreamConsumer", "StreamErrorFrame", "StreamTerminationError"]
