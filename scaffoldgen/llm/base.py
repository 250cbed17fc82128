"""The prompt-in/text-out contract every generation backend satisfies."""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Protocol


class BackendError(RuntimeError):
    """Raised when a backend call fails (network, provider-side, auth)."""


class Backend(Protocol):
    """Protocol implemented by text-generation backends.

    ``run`` may be a plain method or a coroutine function.
    """

    def run(self, prompt: str, *, system: str | None = None) -> str:
        """Return the full reply for ``prompt`` or raise BackendError."""


async def call_backend(backend: Backend, prompt: str, *, system: str | None = None) -> str:
    """Await the full reply without blocking the event loop."""
    run = backend.run
    if inspect.iscoroutinefunction(run):
        reply = await run(prompt, system=system)
    else:
        loop = asyncio.get_running_loop()
        reply = await loop.run_in_executor(None, functools.partial(run, prompt, system=system))
    if not isinstance(reply, str):
        raise BackendError(f"Backend returned {type(reply).__name__} instead of text")
    return reply


__all__ = ["Backend", "BackendError", "call_backend"]
