"""Tests for the scaffoldgen logging helpers."""

from __future__ import annotations

import logging

from scaffoldgen.logging import ProjectLogAdapter, get_logger, project_logger


def test_get_logger_uses_the_package_hierarchy() -> None:
    assert get_logger().name == "scaffoldgen"
    assert get_logger("service").name == "scaffoldgen.service"


def test_project_logger_tags_records(caplog) -> None:
    log = project_logger("orchestrator", "proj-9")

    with caplog.at_level(logging.INFO, logger="scaffoldgen.orchestrator"):
        log.info("Planned %d task(s)", 3, extra={"phase": "planning"})

    assert isinstance(log, ProjectLogAdapter)
    record = caplog.records[-1]
    assert record.name == "scaffoldgen.orchestrator"
    assert record.getMessage() == "[proj-9] Planned 3 task(s)"
    assert record.project_id == "proj-9"
    assert record.phase == "planning"
