"""Asks the backend to infer an integration config from a build request."""

from __future__ import annotations

import json

from ..config import ConfigError
from ..extraction import ArtifactExtractor
from ..llm.base import Backend, call_backend
from ..logging import get_logger
from ..models import IntegrationConfig, ProjectRequest
from ..prompting.compiler import PromptCompiler

ANALYSIS_SYSTEM_PROMPT = (
    "You are a software architect. Answer with a single JSON document and nothing else."
)


class IntegrationInferrer:
    """Turns free-form requirements into an :class:`IntegrationConfig`."""

    def __init__(
        self,
        backend: Backend,
        compiler: PromptCompiler | None = None,
        extractor: ArtifactExtractor | None = None,
    ) -> None:
        self.backend = backend
        self.compiler = compiler or PromptCompiler()
        self.extractor = extractor or ArtifactExtractor()
        self.logger = get_logger("planning.inference")

    async def infer(self, request: ProjectRequest) -> IntegrationConfig:
        prompt = self.compiler.compile_analysis(request)
        reply = await call_backend(self.backend, prompt, system=ANALYSIS_SYSTEM_PROMPT)
        payload = self._parse_json(self.extractor.extract(reply).text)
        config = IntegrationConfig.from_mapping(payload)
        self.logger.info(
            "Inferred %d store(s), %d query(ies), %d route(s), %d middleware(s)",
            len(config.stores),
            len(config.queries),
            len(config.routes),
            len(config.middlewares),
        )
        return config

    @staticmethod
    def _parse_json(text: str) -> dict:
        candidate = text.strip()
        if not candidate.startswith("{"):
            start = candidate.find("{")
            end = candidate.rfind("}")
            if start == -1 or end <= start:
                raise ConfigError("Backend did not return an integration config as JSON")
            candidate = candidate[start : end + 1]
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Backend returned malformed integration JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("Integration config JSON must be an object")
        return data


__all__ = ["IntegrationInferrer"]
