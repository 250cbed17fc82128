"""HTTP client for the generation service."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from ..config import DEFAULT_TIMEOUT_SECONDS
from ..logging import get_logger
from ..models import GenerationResult
from .consumer import ProgressCallback, StreamConsumer, StreamTerminationError

GENERATE_PATH = "/api/generate"
STREAM_PATH = "/api/generate/stream"


class GenerationClientError(RuntimeError):
    """Raised when the service rejects a request."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"Service responded with {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class GenerationClient:
    """Posts build requests and reconstructs the streamed progress."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        # One coarse ceiling for the whole operation; there is no per-task timeout.
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("streaming.client")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
        )

    async def generate(self, payload: Mapping[str, Any]) -> GenerationResult:
        """Run the non-streaming variant and return its result."""
        async with self._client() as client:
            response = await client.post(GENERATE_PATH, json=dict(payload))
            if response.status_code >= 400:
                raise GenerationClientError(response.status_code, _detail(response.text))
            return GenerationResult.from_dict(response.json())

    async def generate_stream(
        self,
        payload: Mapping[str, Any],
        on_progress: Optional[ProgressCallback] = None,
        *,
        consumer: Optional[StreamConsumer] = None,
    ) -> GenerationResult:
        """Run a streamed generation, forwarding progress events as they arrive."""
        consumer = consumer or StreamConsumer()
        async with self._client() as client:
            try:
                async with client.stream("POST", STREAM_PATH, json=dict(payload)) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        raise GenerationClientError(
                            response.status_code, _detail(body.decode("utf-8", errors="replace"))
                        )
                    self.logger.debug("Streaming progress from %s%s", self.base_url, STREAM_PATH)
                    result = await consumer.consume(response.aiter_bytes(), on_progress)
            except httpx.TimeoutException as exc:
                raise StreamTerminationError(
                    f"stream timed out after {self.timeout:.0f}s"
                ) from exc
            except (httpx.TransportError, httpx.StreamError) as exc:
                raise StreamTerminationError(f"connection lost before a terminal frame: {exc}") from exc
        if not isinstance(result, Mapping):
            raise StreamTerminationError("result frame did not carry a generation result")
        return GenerationResult.from_dict(result)


def _detail(text: str) -> str:
    return text.strip()[:500] or "no detail"


__all__ = ["GenerationClient", "GenerationClientError"]
