"""Prompt templates and the task prompt compiler."""

from .compiler import PromptCompiler, SYSTEM_PROMPT

__all__ = ["PromptCompiler", "SYSTEM_PROMPT"]
