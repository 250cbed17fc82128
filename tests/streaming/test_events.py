"""Tests for progress event framing."""

from __future__ import annotations

import pytest

from scaffoldgen.streaming.events import (
    ProgressEvent,
    StreamFramingError,
    decode_frame,
    encode_frame,
    phase_progress,
)


def test_frame_is_prefixed_compact_json_line() -> None:
    frame = encode_frame(phase_progress("generation", "Generating useA.ts", 30))

    assert frame == (
        b'data: {"type":"phase_progress","phase":"generation",'
        b'"message":"Generating useA.ts","progress":30}\n'
    )


def test_embedded_newlines_stay_inside_one_frame() -> None:
    frame = encode_frame(ProgressEvent("result", data={"source": "line one\nline two"}))

    assert frame.count(b"\n") == 1
    assert decode_frame(frame.decode("utf-8").rstrip("\n")).data == {"source": "line one\nline two"}


def test_terminal_frames_carry_only_their_fields() -> None:
    assert ProgressEvent("error", message="boom").to_dict() == {"type": "error", "message": "boom"}
    assert ProgressEvent("result", data={"projectId": "p"}).to_dict() == {
        "type": "result",
        "data": {"projectId": "p"},
    }


def test_unprefixed_lines_are_not_frames() -> None:
    assert decode_frame(": keep-alive") is None
    assert decode_frame("") is None


def test_malformed_json_raises_framing_error() -> None:
    with pytest.raises(StreamFramingError):
        decode_frame('data: {"type": "phase_start"')


def test_unknown_type_raises_framing_error() -> None:
    with pytest.raises(StreamFramingError):
        decode_frame('data: {"type":"heartbeat"}')


def test_progress_outside_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        phase_progress("generation", "too far", 120)
