"""Text-generation backends."""

from .base import Backend, BackendError, call_backend
from .runner import ChatBackend

__all__ = ["Backend", "BackendError", "ChatBackend", "call_backend"]
