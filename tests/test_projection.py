"""Tests for the progress timeline projection."""

from __future__ import annotations

from scaffoldgen.projection import (
    COMPLETED,
    FAILED,
    RUNNING,
    ProgressRecord,
    ProgressTimeline,
    format_record,
    mark_failed,
    reduce,
)
from scaffoldgen.streaming.events import ProgressEvent, phase_complete, phase_progress, phase_start


def test_every_event_appends_a_record() -> None:
    records: list = []
    for event in (
        phase_start("generation", "Generating 2 artifact(s)", 30),
        phase_progress("generation", "Generating useA.ts", 30),
        phase_progress("generation", "Generating App.tsx", 62),
        phase_complete("generation", "Generated 2 artifact(s)", 95),
    ):
        records = reduce(records, event)

    assert [record.status for record in records] == [RUNNING, RUNNING, RUNNING, COMPLETED]
    assert [record.progress for record in records] == [30, 30, 62, 95]


def test_result_frames_are_not_recorded() -> None:
    records = reduce([], ProgressEvent("result", data={"projectId": "proj-1"}))

    assert records == []


def test_fail_marks_last_record() -> None:
    timeline = ProgressTimeline()
    timeline.apply(phase_start("analysis", "Analyzing", 10))

    record = timeline.fail("Generation failed: backend unavailable")

    assert record == ProgressRecord(
        phase="analysis", status=FAILED, message="Generation failed: backend unavailable", progress=10
    )
    assert len(timeline) == 1


def test_fail_on_empty_timeline_appends_error_record() -> None:
    assert mark_failed([], "stream ended without result")[0].status == FAILED


def test_reset_clears_records() -> None:
    timeline = ProgressTimeline()
    timeline.apply(phase_start("planning", "Planning"))
    timeline.apply(phase_complete("planning", "Planned"))

    assert timeline.completed_count == 1
    timeline.reset()
    assert timeline.records == ()


def test_format_record() -> None:
    record = ProgressRecord(phase="generation", status=COMPLETED, message="Done", progress=95)

    assert format_record(record) == "[+]  95% generation: Done"
