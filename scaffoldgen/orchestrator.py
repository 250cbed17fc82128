"""Runs one build request through analysis, planning and generation."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from .config import LLMConfig, ScaffoldConfig
from .execution.executor import TaskExecutor
from .extraction import ArtifactExtractor
from .llm.base import Backend
from .llm.runner import ChatBackend
from .logging import get_logger, project_logger
from .models import (
    GeneratedArtifact,
    GenerationPlan,
    GenerationResult,
    GenerationTask,
    IntegrationConfig,
    ProjectRequest,
)
from .planning.builder import PlanBuilder
from .planning.inference import IntegrationInferrer
from .prompting.compiler import SYSTEM_PROMPT, PromptCompiler
from .streaming.events import (
    COMPLETE,
    ERROR,
    RESULT,
    ProgressEvent,
    phase_complete,
    phase_progress,
    phase_start,
)

# Share of the progress bar spent before and during artifact generation.
_GENERATION_START = 30
_GENERATION_SPAN = 65


class EventSink(Protocol):
    """Destination for progress events, e.g. an EventStream."""

    async def emit(self, event: ProgressEvent) -> None:
        ...


class NullSink:
    """Discards events; used by the non-streaming variant."""

    async def emit(self, event: ProgressEvent) -> None:
        return None


class _GenerationObserver:
    """Turns executor notifications into ``generation`` phase progress."""

    def __init__(self, sink: EventSink) -> None:
        self.sink = sink

    async def task_started(self, task: GenerationTask, position: int, total: int) -> None:
        await self.sink.emit(
            phase_progress(
                "generation",
                f"Generating {task.filename} ({position}/{total})",
                _generation_progress(position - 1, total),
                data={"taskId": task.id, "type": task.type},
            )
        )

    async def task_completed(
        self, task: GenerationTask, artifact: GeneratedArtifact, position: int, total: int
    ) -> None:
        await self.sink.emit(
            phase_progress(
                "generation",
                f"Generated {artifact.filename} ({position}/{total})",
                _generation_progress(position, total),
                data={"taskId": task.id, "fenced": artifact.fenced},
            )
        )


class GenerationOrchestrator:
    """Coordinates the generation pipeline for one request at a time."""

    def __init__(
        self,
        backend: Backend | None = None,
        *,
        config: ScaffoldConfig | None = None,
        compiler: PromptCompiler | None = None,
        extractor: ArtifactExtractor | None = None,
        plan_builder: PlanBuilder | None = None,
        inferrer: IntegrationInferrer | None = None,
        timeout: float | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.config = config or ScaffoldConfig(root=Path.cwd())
        self.compiler = compiler or PromptCompiler(self.config.generation.templates_dir)
        self.extractor = extractor or ArtifactExtractor()
        self.plan_builder = plan_builder or PlanBuilder(self.compiler)
        self.timeout = timeout if timeout is not None else self.config.generation.timeout
        self.logger = get_logger("orchestrator")
        self._backend = backend
        self._inferrer = inferrer
        self._id_factory = id_factory or _default_project_id

    @property
    def backend(self) -> Backend:
        if self._backend is None:
            self._backend = self._build_backend(self.config.llm)
        return self._backend

    async def generate(self, request: ProjectRequest) -> GenerationResult:
        """Non-streaming variant: run the pipeline and return only the result."""
        return await self.run(request, NullSink())

    async def run(self, request: ProjectRequest, sink: EventSink) -> GenerationResult:
        """Run the pipeline, reporting phases to ``sink`` and ending with one terminal frame."""
        project_id = self._id_factory()
        phases: Dict[str, Any] = {}
        log = project_logger("orchestrator", project_id)
        log.info("Starting generation for %s", request.project_name)
        try:
            result = await asyncio.wait_for(
                self._run_phases(request, sink, project_id, phases),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            message = f"Generation timed out after {self.timeout:.0f}s"
            log.error(message)
            return await self._fail(sink, project_id, phases, message)
        except Exception as exc:
            _log_exception(log, "Generation failed", exc)
            return await self._fail(sink, project_id, phases, str(exc) or type(exc).__name__)

        await sink.emit(ProgressEvent(RESULT, data=result.to_dict()))
        log.info("Generation finished")
        return result

    async def _run_phases(
        self,
        request: ProjectRequest,
        sink: EventSink,
        project_id: str,
        phases: Dict[str, Any],
    ) -> GenerationResult:
        await sink.emit(
            phase_start("initialization", f"Starting generation for {request.project_name}", 0)
        )
        await sink.emit(phase_complete("initialization", "Request accepted", 5))

        await sink.emit(phase_start("analysis", "Analyzing requirements and planning integrations", 10))
        integration = await self._resolve_integration(request)
        summary = integration.summary()
        phases["analysis"] = summary
        await sink.emit(
            phase_complete(
                "analysis",
                f"Found {len(integration.stores)} store(s), {len(integration.queries)} query hook(s) "
                f"and {len(integration.routes)} route(s)",
                20,
                data=summary,
            )
        )

        await sink.emit(phase_start("planning", "Building generation plan", 25))
        plan = self.plan_builder.build(integration)
        phases["planning"] = {"tasks": plan.describe()}
        await sink.emit(
            phase_complete("planning", f"Planned {len(plan)} artifact(s)", _GENERATION_START, data=phases["planning"])
        )

        artifacts = await self._generate(plan, sink)
        phases["generation"] = {
            "artifacts": {artifact.filename: artifact.source for artifact in artifacts},
            "lowConfidence": [artifact.filename for artifact in artifacts if artifact.low_confidence],
        }

        await sink.emit(
            ProgressEvent(
                COMPLETE,
                COMPLETE,
                f"Successfully generated {request.project_name}",
                100,
                data={"projectId": project_id},
            )
        )
        return GenerationResult(project_id=project_id, success=True, phases=phases)

    async def _generate(self, plan: GenerationPlan, sink: EventSink) -> list[GeneratedArtifact]:
        await sink.emit(phase_start("generation", f"Generating {len(plan)} artifact(s)", _GENERATION_START))
        executor = TaskExecutor(
            self.backend,
            self.compiler,
            self.extractor,
            system_prompt=self._system_prompt(),
        )
        artifacts = await executor.execute(plan, _GenerationObserver(sink))
        low_confidence = sum(1 for artifact in artifacts if artifact.low_confidence)
        message = f"Generated {len(artifacts)} artifact(s)"
        if low_confidence:
            message += f" ({low_confidence} without a fenced code block)"
        await sink.emit(phase_complete("generation", message, _GENERATION_START + _GENERATION_SPAN))
        return artifacts

    async def _resolve_integration(self, request: ProjectRequest) -> IntegrationConfig:
        if request.integration is not None:
            self.logger.debug("Using integration config supplied with the request")
            return request.integration
        if not self.config.generation.infer_integration:
            self.logger.debug("Integration inference disabled; using default integration config")
            return IntegrationConfig()
        if self._inferrer is None:
            self._inferrer = IntegrationInferrer(self.backend, self.compiler, self.extractor)
        return await self._inferrer.infer(request)

    async def _fail(
        self, sink: EventSink, project_id: str, phases: Dict[str, Any], message: str
    ) -> GenerationResult:
        await sink.emit(ProgressEvent(ERROR, message=f"Generation failed: {message}"))
        return GenerationResult(project_id=project_id, success=False, phases=phases, error=message)

    def _system_prompt(self) -> Optional[str]:
        if self.config.llm is not None and self.config.llm.system_prompt:
            return self.config.llm.system_prompt
        return SYSTEM_PROMPT

    @staticmethod
    def _build_backend(llm_cfg: LLMConfig | None) -> ChatBackend:
        llm_cfg = llm_cfg or LLMConfig()
        # Unset values fall through to ChatBackend defaults and environment lookups.
        options = {
            key: value
            for key, value in vars(llm_cfg).items()
            if key in {"temperature", "max_tokens", "api_key", "request_timeout"} and value is not None
        }
        return ChatBackend(llm_cfg.model, base_url=llm_cfg.base_url, **options)


def _generation_progress(done: int, total: int) -> int:
    return _GENERATION_START + int(_GENERATION_SPAN * done / max(total, 1))


def _log_exception(log: logging.LoggerAdapter, message: str, exc: Exception) -> None:
    if log.isEnabledFor(logging.DEBUG):
        log.exception("%s: %s", message, exc)
    else:
        log.error("%s: %s", message, exc)


def _default_project_id() -> str:
    return f"proj-{int(time.time() * 1000)}"


__all__ = ["EventSink", "GenerationOrchestrator", "NullSink"]
