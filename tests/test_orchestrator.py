"""Tests for the end-to-end generation pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from scaffoldgen.config import GenerationSettings, LLMConfig, ScaffoldConfig
from scaffoldgen.llm import ChatBackend
from scaffoldgen.models import IntegrationConfig, ProjectRequest
from scaffoldgen.orchestrator import GenerationOrchestrator
from scaffoldgen.streaming import EventStream, decode_frame


class _ListSink:
    def __init__(self) -> None:
        self.events = []

    async def emit(self, event) -> None:
        self.events.append(event)


def _request(integration: IntegrationConfig | None = None) -> ProjectRequest:
    return ProjectRequest(
        project_name="Blog",
        description="A small blog",
        requirements="Posts, comments and an admin area",
        integration=integration,
    )


def _orchestrator(backend, **kwargs) -> GenerationOrchestrator:
    return GenerationOrchestrator(backend, id_factory=lambda: "proj-1", **kwargs)


def test_run_reports_every_phase_and_ends_with_result(make_backend) -> None:
    integration = IntegrationConfig.from_mapping({"stores": [{"name": "A"}], "useRouter": False})
    sink = _ListSink()

    result = asyncio.run(_orchestrator(make_backend()).run(_request(integration), sink))

    assert result.success is True
    assert result.project_id == "proj-1"
    assert result.phases["generation"]["artifacts"] == {
        "useA.ts": "// useA.ts\nexport {};",
        "App.tsx": "// App.tsx\nexport {};",
    }
    assert [(event.type, event.phase) for event in sink.events] == [
        ("phase_start", "initialization"),
        ("phase_complete", "initialization"),
        ("phase_start", "analysis"),
        ("phase_complete", "analysis"),
        ("phase_start", "planning"),
        ("phase_complete", "planning"),
        ("phase_start", "generation"),
        ("phase_progress", "generation"),
        ("phase_progress", "generation"),
        ("phase_progress", "generation"),
        ("phase_progress", "generation"),
        ("phase_complete", "generation"),
        ("complete", "complete"),
        ("result", None),
    ]
    assert sink.events[-1].data == result.to_dict()
    progress = [event.progress for event in sink.events if event.progress is not None]
    assert progress == sorted(progress)


def test_missing_integration_is_inferred(make_backend) -> None:
    def reply(prompt: str) -> str:
        if "**Output File**" in prompt:
            return "```ts\nexport {};\n```"
        return json.dumps({"stores": [{"name": "Post"}], "routes": [{"path": "/", "component": "Home"}]})

    backend = make_backend(reply)

    result = asyncio.run(_orchestrator(backend).generate(_request()))

    assert result.success is True
    assert result.phases["analysis"]["stores"] == ["Post"]
    assert list(result.phases["generation"]["artifacts"]) == ["usePost.ts", "AppRouter.tsx", "App.tsx"]


def test_inference_can_be_disabled(make_backend) -> None:
    config = ScaffoldConfig(root=Path("."), generation=GenerationSettings(infer_integration=False))
    backend = make_backend()

    result = asyncio.run(_orchestrator(backend, config=config).generate(_request()))

    assert result.success is True
    assert backend.requested_files == ["App.tsx"]


def test_backend_failure_emits_exactly_one_error_frame(make_backend, blog_integration) -> None:
    backend = make_backend(fail_on="**Output File**: AppRouter.tsx")
    sink = _ListSink()

    result = asyncio.run(_orchestrator(backend).run(_request(blog_integration), sink))

    assert result.success is False
    assert "AppRouter.tsx" in result.error
    terminal = [event for event in sink.events if event.is_terminal]
    assert len(terminal) == 1
    assert terminal[0].type == "error"
    assert terminal[0].message.startswith("Generation failed:")
    assert sink.events[-1] is terminal[0]


def test_connection_reset_ends_with_an_error_frame(make_backend, blog_integration) -> None:
    backend = make_backend(fail_on="**Output File**: useAuth.ts", error=ConnectionResetError("peer reset"))
    sink = _ListSink()

    result = asyncio.run(_orchestrator(backend).run(_request(blog_integration), sink))

    assert result.success is False
    assert "peer reset" in result.error
    assert sink.events[-1].type == "error"
    assert sum(1 for event in sink.events if event.is_terminal) == 1


def test_unexpected_planning_error_is_reported(make_backend, blog_integration) -> None:
    class _BrokenPlanBuilder:
        def build(self, config):
            raise KeyError("layers")

    sink = _ListSink()
    orchestrator = _orchestrator(make_backend(), plan_builder=_BrokenPlanBuilder())

    result = asyncio.run(orchestrator.run(_request(blog_integration), sink))

    assert result.success is False
    assert "planning" not in result.phases
    assert [event.type for event in sink.events][-2:] == ["phase_start", "error"]
    assert sink.events[-1].message == f"Generation failed: {result.error}"


def test_timeout_fails_the_run(blog_integration) -> None:
    class _StuckBackend:
        async def run(self, prompt: str, *, system: str | None = None) -> str:
            await asyncio.sleep(10)
            return ""

    sink = _ListSink()
    orchestrator = _orchestrator(_StuckBackend(), timeout=0.05)

    result = asyncio.run(orchestrator.run(_request(blog_integration), sink))

    assert result.success is False
    assert "timed out" in result.error
    assert sink.events[-1].type == "error"


def test_run_drives_an_event_stream(make_backend) -> None:
    integration = IntegrationConfig.from_mapping({"stores": [{"name": "A"}], "useRouter": False})

    async def _scenario():
        stream = EventStream()
        await _orchestrator(make_backend()).run(_request(integration), stream)
        return [decode_frame(frame.decode("utf-8").rstrip("\n")) async for frame in stream.frames()]

    events = asyncio.run(_scenario())

    assert events[-1].type == "result"
    assert sum(1 for event in events if event.is_terminal) == 1


def test_backend_is_built_from_llm_config(monkeypatch) -> None:
    monkeypatch.delenv("SCAFFOLDGEN_LLM_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    config = ScaffoldConfig(
        root=Path("."),
        llm=LLMConfig(model="local-model", base_url="http://localhost:8080/v1", max_tokens=512),
    )

    backend = GenerationOrchestrator(config=config).backend

    assert isinstance(backend, ChatBackend)
    assert backend.model == "local-model"
    assert backend.base_url == "http://localhost:8080/v1"
    assert backend.max_tokens == 512
    assert backend.api_key is None


def test_failure_log_carries_the_project_id(make_backend, blog_integration, caplog) -> None:
    backend = make_backend(fail_on="**Output File**: useAuth.ts")

    with caplog.at_level(logging.INFO, logger="scaffoldgen.orchestrator"):
        asyncio.run(_orchestrator(backend).generate(_request(blog_integration)))

    failures = [
        record
        for record in caplog.records
        if record.name == "scaffoldgen.orchestrator" and record.levelno == logging.ERROR
    ]
    assert failures
    assert all(record.project_id == "proj-1" for record in failures)
    assert failures[-1].getMessage().startswith("[proj-1] Generation failed:")
