"""Tests for the producer-side event stream."""

from __future__ import annotations

import asyncio

import pytest

from scaffoldgen.streaming import EventStream, StreamStateError, decode_frame
from scaffoldgen.streaming.producer import CLOSED, RESULT_SENT


async def _drain(stream: EventStream) -> list:
    return [decode_frame(frame.decode("utf-8").rstrip("\n")) async for frame in stream.frames()]


def test_frames_drain_in_order_and_stop_after_result() -> None:
    async def _scenario():
        stream = EventStream()
        await stream.phase_start("planning", "Building plan", 25)
        await stream.phase_progress("planning", "Halfway", 27)
        await stream.phase_complete("planning", "Planned 2 artifact(s)", 30)
        await stream.complete("Done")
        await stream.send_result({"projectId": "proj-1", "success": True, "phases": {}})
        assert stream.state == RESULT_SENT
        events = await _drain(stream)
        return stream, events

    stream, events = asyncio.run(_scenario())

    assert [event.type for event in events] == [
        "phase_start",
        "phase_progress",
        "phase_complete",
        "complete",
        "result",
    ]
    assert stream.state == CLOSED


def test_second_terminal_frame_is_rejected() -> None:
    async def _scenario():
        stream = EventStream()
        await stream.send_error("Generation failed: boom")
        with pytest.raises(StreamStateError):
            await stream.send_result({"projectId": "p"})
        with pytest.raises(StreamStateError):
            await stream.phase_start("generation", "too late")

    asyncio.run(_scenario())


def test_phase_order_is_enforced() -> None:
    async def _scenario():
        stream = EventStream()
        with pytest.raises(StreamStateError, match="not been started"):
            await stream.phase_progress("generation", "early")
        await stream.phase_start("generation", "start")
        await stream.phase_complete("generation", "done")
        with pytest.raises(StreamStateError, match="already complete"):
            await stream.phase_complete("generation", "again")
        with pytest.raises(StreamStateError, match="already started"):
            await stream.phase_start("generation", "restart")

    asyncio.run(_scenario())


def test_close_without_terminal_frame_ends_drain() -> None:
    async def _scenario():
        stream = EventStream()
        await stream.phase_start("analysis", "Analyzing")
        await stream.close()
        return await _drain(stream)

    events = asyncio.run(_scenario())

    assert [event.type for event in events] == ["phase_start"]
