"""Tests for awaiting sync and async backends."""

from __future__ import annotations

import asyncio
import threading

import pytest

from scaffoldgen.llm import BackendError, call_backend


def test_sync_backend_runs_off_the_event_loop_thread() -> None:
    seen = {}

    class _SyncBackend:
        def run(self, prompt: str, *, system: str | None = None) -> str:
            seen["thread"] = threading.current_thread()
            seen["system"] = system
            return prompt.upper()

    reply = asyncio.run(call_backend(_SyncBackend(), "ping", system="sys"))

    assert reply == "PING"
    assert seen["system"] == "sys"
    assert seen["thread"] is not threading.main_thread()


def test_async_backend_is_awaited_directly() -> None:
    class _AsyncBackend:
        async def run(self, prompt: str, *, system: str | None = None) -> str:
            return f"{system}:{prompt}"

    assert asyncio.run(call_backend(_AsyncBackend(), "ping", system="sys")) == "sys:ping"


def test_non_text_reply_is_a_backend_error() -> None:
    class _BrokenBackend:
        def run(self, prompt: str, *, system: str | None = None):
            return None

    with pytest.raises(BackendError):
        asyncio.run(call_backend(_BrokenBackend(), "ping"))
