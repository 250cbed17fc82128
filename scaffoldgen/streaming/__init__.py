"""Streaming event channel: frame encoding, producer, consumer and HTTP client."""

from .client import GenerationClient, GenerationClientError
from .consumer import StreamConsumer, StreamErrorFrame, StreamTerminationError
from .events import (
    FRAME_PREFIX,
    ProgressEvent,
    StreamFramingError,
    decode_frame,
    encode_frame,
)
from .producer import EventStream, StreamStateError

__all__ = [
    "EventStream",
    "FRAME_PREFIX",
    "GenerationClient",
    "GenerationClientError",
    "ProgressEvent",
    "StreamConsumer",
    "StreamErrorFrame",
    "StreamFramingError",
    "StreamStateError",
    "StreamTerminationError",
    "decode_frame",
    "encode_frame",
]
