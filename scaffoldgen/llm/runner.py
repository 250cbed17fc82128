"""Backend that talks to an OpenAI-compatible ``/chat/completions`` endpoint."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..logging import get_logger
from .base import BackendError

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_REQUEST_TIMEOUT = 120.0

# First non-empty variable wins.
MODEL_ENV = ("SCAFFOLDGEN_LLM_MODEL", "OPENAI_MODEL")
BASE_URL_ENV = ("SCAFFOLDGEN_LLM_BASE_URL", "OPENAI_BASE_URL")
API_KEY_ENV = ("SCAFFOLDGEN_LLM_API_KEY", "OPENAI_API_KEY")

_FROM_ENV: Any = object()


@dataclass(frozen=True)
class ChatRequest:
    """A single, fully resolved completion request."""

    prompt: str
    system: Optional[str]
    model: str
    base_url: str
    api_key: Optional[str]
    temperature: Optional[float]
    max_tokens: Optional[int]
    request_timeout: float

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def messages(self) -> List[Dict[str, str]]:
        system = [{"role": "system", "content": self.system}] if self.system else []
        return system + [{"role": "user", "content": self.prompt}]

    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"model": self.model, "messages": self.messages()}
        for key in ("temperature", "max_tokens"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


Transport = Callable[[ChatRequest], str]


class ChatBackend:
    """Synchronous backend; the executor runs it in a worker thread."""

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = _FROM_ENV,
        api_key: str | None = _FROM_ENV,
        temperature: Optional[float] = 0.3,
        max_tokens: Optional[int] = None,
        request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
        transport: Transport | None = None,
    ) -> None:
        self.model = model or _env(MODEL_ENV) or DEFAULT_MODEL
        if base_url is _FROM_ENV or not base_url:
            base_url = _env(BASE_URL_ENV) or DEFAULT_BASE_URL
        self.base_url = base_url.rstrip("/")
        # An explicit None disables the environment lookup.
        self.api_key = _env(API_KEY_ENV) if api_key is _FROM_ENV else api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout or DEFAULT_REQUEST_TIMEOUT
        self.transport = transport or post_chat_completion
        self.logger = get_logger("llm")

    def request(self, prompt: str, *, system: str | None = None) -> ChatRequest:
        return ChatRequest(
            prompt=prompt,
            system=system,
            model=self.model,
            base_url=self.base_url,
            api_key=self.api_key,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            request_timeout=self.request_timeout,
        )

    def run(self, prompt: str, *, system: str | None = None) -> str:
        """Send ``prompt`` and return the complete reply text."""
        request = self.request(prompt, system=system)
        self.logger.debug("POST %s model=%s prompt_len=%d", request.endpoint, self.model, len(prompt))
        reply = self.transport(request)
        self.logger.debug("Backend replied with %d chars", len(reply))
        return reply


def post_chat_completion(request: ChatRequest) -> str:
    """Default transport: one blocking POST through urllib."""
    http_request = Request(
        request.endpoint,
        data=json.dumps(request.payload()).encode("utf-8"),
        headers=request.headers(),
        method="POST",
    )
    try:
        with urlopen(http_request, timeout=request.request_timeout) as response:
            raw = response.read()
    except HTTPError as exc:  # pragma: no cover - depends on runtime
        body = exc.read().decode("utf-8", errors="ignore").strip()
        raise BackendError(f"{request.endpoint} answered {exc.code}: {body or exc.reason}") from exc
    except URLError as exc:  # pragma: no cover - depends on runtime
        raise BackendError(f"Could not reach {request.endpoint}: {exc.reason}") from exc
    except TimeoutError as exc:  # pragma: no cover - depends on runtime
        raise BackendError(f"No reply from {request.endpoint} within {request.request_timeout:.0f}s") from exc
    except (OSError, HTTPException) as exc:
        raise BackendError(f"Connection to {request.endpoint} failed: {exc}") from exc

    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise BackendError(f"{request.endpoint} returned a non-JSON body") from exc

    reply = reply_text(document)
    if not reply.strip():
        raise BackendError(f"{request.endpoint} returned an empty completion")
    return reply.strip()


def reply_text(document: Any) -> str:
    """Pull the first choice's text out of a chat or legacy completion body."""
    if not isinstance(document, Mapping):
        return ""
    choices = document.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
        return ""
    choice = choices[0]
    message = choice.get("message")
    if isinstance(message, Mapping) and isinstance(message.get("content"), str):
        return message["content"]
    text = choice.get("text")
    return text if isinstance(text, str) else ""


def _env(keys: tuple[str, ...]) -> Optional[str]:
    return next((os.environ[key] for key in keys if os.environ.get(key)), None)


__all__ = ["ChatBackend", "ChatRequest", "post_chat_completion", "reply_text"]
