"""Plan execution against a text-generation backend."""

from .executor import TaskExecutionError, TaskExecutor, TaskObserver

__all__ = ["TaskExecutionError", "TaskExecutor", "TaskObserver"]
