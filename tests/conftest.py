from __future__ import annotations

import re
from typing import Callable, List, Optional

import pytest

from scaffoldgen.llm.base import BackendError
from scaffoldgen.models import IntegrationConfig

_OUTPUT_FILE = re.compile(r"\*\*Output File\*\*: (\S+)")


class ScriptedBackend:
    """Backend double that records prompts and answers with a fenced block per file."""

    def __init__(
        self,
        reply: Optional[Callable[[str], str]] = None,
        *,
        fail_on: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []
        self._reply = reply or _default_reply
        self.fail_on = fail_on
        self.error = error or BackendError("backend unavailable")

    def run(self, prompt: str, *, system: str | None = None) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        if self.fail_on is not None and self.fail_on in prompt:
            raise self.error
        return self._reply(prompt)

    @property
    def requested_files(self) -> List[str]:
        files = []
        for prompt in self.prompts:
            match = _OUTPUT_FILE.search(prompt)
            files.append(match.group(1) if match else "")
        return files


def _default_reply(prompt: str) -> str:
    match = _OUTPUT_FILE.search(prompt)
    filename = match.group(1) if match else "unknown"
    return f"Here is the file.\n\n```typescript\n// {filename}\nexport {{}};\n```\n"


@pytest.fixture
def make_backend() -> Callable[..., ScriptedBackend]:
    """Build scripted backends with an optional reply function or failure trigger."""
    return ScriptedBackend


@pytest.fixture
def blog_integration() -> IntegrationConfig:
    return IntegrationConfig.from_mapping(
        {
            "useHooks": True,
            "apiBaseUrl": "/api",
            "stores": [{"name": "Auth", "state": {"user": "User | null"}, "actions": ["login", "logout"]}],
            "queries": [
                {"name": "Posts", "endpoint": "/posts", "method": "GET", "usedBy": ["PostList"]},
                {"name": "CreatePost", "endpoint": "/posts", "method": "POST"},
            ],
            "routes": [
                {"path": "/", "componentName": "PostList"},
                {"path": "/admin", "component": "Admin", "protected": True},
            ],
            "middlewares": [
                {"name": "auth", "type": "auth", "config": {"strategy": "jwt", "tokenLocation": "header"}},
            ],
        }
    )
