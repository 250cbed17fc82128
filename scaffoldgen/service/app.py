"""FastAPI application entrypoint for scaffoldgen service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import ConfigError, load_config
from ..logging import get_logger
from ..models import IntegrationConfig, ProjectRequest, TechStack
from ..orchestrator import GenerationOrchestrator
from ..streaming.producer import EventStream

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"

_LOGGER = get_logger("service")


class TechStackModel(BaseModel):
    frontend: Optional[str] = None
    backend: Optional[str] = None
    database: Optional[str] = None


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(alias="projectName", min_length=1)
    description: str = ""
    requirements: str = Field(min_length=1)
    tech_stack: Optional[TechStackModel] = Field(default=None, alias="techStack")
    integration: Optional[Dict[str, Any]] = None

    def to_project_request(self) -> ProjectRequest:
        """Convert to the pipeline's request type; a bad integration block raises ConfigError."""
        integration = None
        if self.integration is not None:
            integration = IntegrationConfig.from_mapping(self.integration)
        tech_stack = None
        if self.tech_stack is not None:
            tech_stack = TechStack(**self.tech_stack.model_dump())
        return ProjectRequest(
            project_name=self.project_name,
            description=self.description,
            requirements=self.requirements,
            tech_stack=tech_stack,
            integration=integration,
        )


class GenerationResultModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId")
    success: bool
    phases: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class ExampleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(alias="projectName")
    requirements: str
    integration: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str


EXAMPLE_REQUESTS: List[Dict[str, Any]] = [
    {
        "projectName": "Blog",
        "requirements": "Create a blog with posts and comments",
        "integration": {
            "stores": [{"name": "Post", "state": {"posts": "Post[]"}, "actions": ["addPost"]}],
            "queries": [{"name": "Posts", "endpoint": "/posts", "method": "GET"}],
            "routes": [
                {"path": "/", "component": "PostList"},
                {"path": "/admin", "component": "Admin", "protected": True},
            ],
        },
    },
    {
        "projectName": "Todo App",
        "requirements": "Build a task management system",
    },
]


def _default_orchestrator() -> GenerationOrchestrator:
    return GenerationOrchestrator(config=load_config(Path.cwd()))


async def stream_generation(
    orchestrator: GenerationOrchestrator, project: ProjectRequest
) -> AsyncIterator[bytes]:
    """Yield the frames of one run; closing the iterator early cancels the run."""
    stream = EventStream()

    async def _produce() -> None:
        try:
            await orchestrator.run(project, stream)
        except Exception as exc:  # pragma: no cover
            _LOGGER.error("Streaming generation crashed: %s", exc)
            if not stream.terminated:
                await stream.send_error(f"Generation failed: {exc}")
        finally:
            await stream.close()

    producer = asyncio.create_task(_produce())
    try:
        async for frame in stream.frames():
            yield frame
    finally:
        # Reached early when the client disconnects.
        if not producer.done():
            _LOGGER.info("Client disconnected; cancelling generation for %s", project.project_name)
            producer.cancel()


def create_app(
    orchestrator_factory: Callable[[], GenerationOrchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing the generation pipeline."""

    app = FastAPI(title="Scaffoldgen Service", version="1.0.0")

    async def get_orchestrator() -> GenerationOrchestrator:
        # One orchestrator per request; runs never share executor state.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/api/examples", response_model=List[ExampleRequest], response_model_exclude_none=True)
    async def examples() -> List[Dict[str, Any]]:
        return EXAMPLE_REQUESTS

    @app.post(
        "/api/generate",
        response_model=GenerationResultModel,
        response_model_exclude_none=True,
    )
    async def generate(
        payload: GenerateRequest,
        orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    ) -> GenerationResultModel:
        result = await orchestrator.generate(payload.to_project_request())
        return GenerationResultModel.model_validate(result.to_dict())

    @app.post("/api/generate/stream")
    async def generate_stream(
        payload: GenerateRequest,
        orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    ) -> StreamingResponse:
        return StreamingResponse(
            stream_generation(orchestrator, payload.to_project_request()),
            media_type=EVENT_STREAM_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "0.0.0.0", port: int = 3000) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=host, port=port)
