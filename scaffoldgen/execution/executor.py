"""Sequential dispatch of a generation plan to the backend."""

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from ..extraction import ArtifactExtractor
from ..llm.base import Backend, call_backend
from ..logging import get_logger
from ..models import GeneratedArtifact, GenerationPlan, GenerationTask
from ..prompting.compiler import SYSTEM_PROMPT, PromptCompiler


class TaskExecutionError(RuntimeError):
    """Raised when a task fails; the remaining tasks of the plan are not run."""

    def __init__(self, task: GenerationTask, cause: BaseException) -> None:
        super().__init__(f"Generating {task.filename} failed: {str(cause) or type(cause).__name__}")
        self.task = task
        self.cause = cause


class TaskObserver(Protocol):
    """Receives a notification around every task the executor runs."""

    async def task_started(self, task: GenerationTask, position: int, total: int) -> None:
        ...

    async def task_completed(
        self, task: GenerationTask, artifact: GeneratedArtifact, position: int, total: int
    ) -> None:
        ...


class TaskExecutor:
    """Runs each task of a plan exactly once, strictly in plan order.

    Later prompts refer to earlier artifacts by name, so tasks are never
    dispatched concurrently. The first failing task halts the plan.
    """

    def __init__(
        self,
        backend: Backend,
        compiler: PromptCompiler | None = None,
        extractor: ArtifactExtractor | None = None,
        *,
        system_prompt: str | None = SYSTEM_PROMPT,
    ) -> None:
        self.backend = backend
        self.compiler = compiler or PromptCompiler()
        self.extractor = extractor or ArtifactExtractor()
        self.system_prompt = system_prompt
        self.logger = get_logger("executor")
        self._artifacts: List[GeneratedArtifact] = []
        self._running = False

    @property
    def artifacts(self) -> Tuple[GeneratedArtifact, ...]:
        """Artifacts produced so far by the current or last run."""
        return tuple(self._artifacts)

    async def execute(
        self, plan: GenerationPlan, observer: Optional[TaskObserver] = None
    ) -> List[GeneratedArtifact]:
        """Generate every artifact in ``plan`` and return them in plan order."""
        if self._running:
            raise RuntimeError("TaskExecutor is already executing a plan")
        self._running = True
        self._artifacts = []
        dispatched: set[str] = set()
        total = len(plan)
        try:
            for position, task in enumerate(plan, start=1):
                if task.id in dispatched:
                    raise TaskExecutionError(task, RuntimeError("task was already dispatched"))
                dispatched.add(task.id)

                if observer is not None:
                    await observer.task_started(task, position, total)
                self.logger.info("Generating %s (%d/%d)", task.filename, position, total)

                try:
                    prompt = self.compiler.compile(task)
                    reply = await call_backend(self.backend, prompt, system=self.system_prompt)
                    extracted = self.extractor.extract(reply)
                except Exception as exc:
                    self.logger.error("Task %s failed: %s", task.id, exc)
                    raise TaskExecutionError(task, exc) from exc

                artifact = GeneratedArtifact(
                    task_id=task.id,
                    filename=task.filename,
                    source=extracted.text,
                    fenced=extracted.fenced,
                )
                if artifact.low_confidence:
                    self.logger.warning(
                        "No fenced code block in reply for %s; keeping the raw reply", task.filename
                    )
                self._artifacts.append(artifact)

                if observer is not None:
                    await observer.task_completed(task, artifact, position, total)
            return list(self._artifacts)
        finally:
            self._running = False


__all__ = ["TaskExecutionError", "TaskExecutor", "TaskObserver"]
