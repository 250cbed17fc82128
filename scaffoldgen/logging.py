"""Logging utilities for scaffoldgen commands and services.

Service mode runs several generations concurrently, so per-run messages go
through :func:`project_logger`, which tags each record with its project id.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "scaffoldgen"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the scaffoldgen hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class ProjectLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with the project id and exposes it as ``record.project_id``."""

    def process(self, msg, kwargs):
        project_id = self.extra["project_id"]
        kwargs["extra"] = {**(kwargs.get("extra") or {}), "project_id": project_id}
        return f"[{project_id}] {msg}", kwargs


def project_logger(name: str, project_id: str) -> ProjectLogAdapter:
    return ProjectLogAdapter(get_logger(name), {"project_id": project_id})


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the scaffoldgen logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[scaffoldgen] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["ProjectLogAdapter", "configure_logging", "get_logger", "project_logger"]
