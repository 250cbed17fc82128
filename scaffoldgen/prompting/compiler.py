"""Renders generation tasks into self-contained backend prompts."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Any, Dict, List, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, UndefinedError

from ..config import ConfigError
from ..models import (
    HOOK,
    MIDDLEWARE,
    PROVIDER,
    QUERY,
    ROUTER,
    STORE,
    GenerationTask,
    ProjectRequest,
)

SYSTEM_PROMPT = (
    "You are a senior TypeScript engineer generating production-ready application modules. "
    "Return the complete file in a single fenced code block and keep any explanation short."
)

# Fields that must be present and non-empty on a task's configuration before it can be rendered.
REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    STORE: ("name",),
    QUERY: ("name", "endpoint", "method"),
    HOOK: (),
    ROUTER: ("routes",),
    MIDDLEWARE: ("name", "kind"),
    PROVIDER: (),
}
AUTH_REQUIRED_FIELDS: Tuple[str, ...] = ("strategy", "token_location")

ANALYSIS_TEMPLATE = "analysis.md.j2"


class PromptCompiler:
    """Compiles a task into prompt text using one fixed template per task type."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.default_templates_dir = Path(__file__).with_name("templates")
        self.templates_dir = templates_dir
        search_path: List[str] = []
        if templates_dir is not None:
            search_path.append(str(templates_dir))
        search_path.append(str(self.default_templates_dir))
        self._env = Environment(
            loader=FileSystemLoader(search_path),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def compile(self, task: GenerationTask) -> str:
        """Return the prompt for ``task``; raises ConfigError on a missing required field."""
        self._check_required(task)
        context = self._context_for(task)
        return self._render(f"{task.type}.md.j2", context)

    def compile_analysis(self, request: ProjectRequest) -> str:
        """Return the prompt asking the backend to infer an integration config."""
        for field_name in ("project_name", "requirements"):
            if not str(getattr(request, field_name, "") or "").strip():
                raise ConfigError(f"Build request requires a non-empty '{field_name}'")
        return self._render(ANALYSIS_TEMPLATE, {"request": request})

    def _render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound as exc:
            raise ConfigError(f"No prompt template named '{template_name}'") from exc
        try:
            rendered = template.render(**context)
        except UndefinedError as exc:
            raise ConfigError(f"Template '{template_name}' references a missing field: {exc}") from exc
        return rendered.strip() + "\n"

    @staticmethod
    def _check_required(task: GenerationTask) -> None:
        required = REQUIRED_FIELDS.get(task.type)
        if required is None:
            raise ConfigError(f"Unknown task type '{task.type}'")
        if task.type == MIDDLEWARE and getattr(task.config, "kind", None) == "auth":
            required = required + AUTH_REQUIRED_FIELDS
        for field_name in required:
            value = getattr(task.config, field_name, None)
            if value is None or (isinstance(value, (str, tuple, list)) and not value):
                raise ConfigError(f"{task.type} task '{task.name}' is missing required field '{field_name}'")

    @staticmethod
    def _context_for(task: GenerationTask) -> Dict[str, Any]:
        context: Dict[str, Any] = {"task": task, "config": task.config}
        if task.type == QUERY:
            context["endpoint"] = f"{task.config.api_base_url}{task.config.endpoint}"
            context["query_key"] = task.config.name.lower()
        elif task.type == HOOK:
            # Store and query hooks are planned as `<name>.ts` at the output root.
            context["import_paths"] = {
                hook: _relative_import(f"{hook}.ts", task.filename)
                for hook in (*task.config.query_hooks, *task.config.store_hooks)
            }
        return context


def _relative_import(target: str, importer: str) -> str:
    path = posixpath.relpath(posixpath.splitext(target)[0], posixpath.dirname(importer) or ".")
    return path if path.startswith(".") else f"./{path}"


__all__ = ["PromptCompiler", "REQUIRED_FIELDS", "SYSTEM_PROMPT"]
