"""Isolates the deliverable source block from a free-form backend reply.

The selection rule is a heuristic: the longest fenced block wins, ties go to the
first one, and a reply without any complete fence is returned verbatim and
flagged as low confidence. A reply whose prose carries a longer, unrelated
example than the real implementation will select the wrong block.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .logging import get_logger

FENCE = "```"

logger = get_logger("extraction")


class ExtractionError(RuntimeError):
    """Raised when a reply carries nothing that could be used as an artifact."""


@dataclass(frozen=True)
class FencedBlock:
    """One complete fenced region found in a reply."""

    info: str
    text: str
    line: int


@dataclass(frozen=True)
class ExtractedSource:
    """Source text chosen from a reply and whether it came from a fenced block."""

    text: str
    fenced: bool


def scan_fences(reply: str) -> List[FencedBlock]:
    """Return every complete fenced block in order of appearance.

    Fences never nest: inside an open block, only a line made entirely of
    backticks closes it. An opening fence left unclosed at the end of the
    reply is not a block.
    """
    blocks: List[FencedBlock] = []
    inside = False
    info = ""
    start_line = 0
    body: List[str] = []

    for number, line in enumerate(reply.splitlines(keepends=True), start=1):
        stripped = line.strip()
        if not inside:
            if stripped.startswith(FENCE):
                inside = True
                info = stripped.lstrip("`").strip()
                start_line = number
                body = []
            continue
        if stripped.startswith(FENCE) and not stripped.strip("`"):
            blocks.append(FencedBlock(info=info, text=_strip_final_newline("".join(body)), line=start_line))
            inside = False
            continue
        body.append(line)

    if inside:
        logger.debug("Ignoring unterminated fence opened on line %d", start_line)
    return blocks


def extract(reply: str) -> ExtractedSource:
    """Return the longest fenced block in ``reply``, or the reply itself when none exists."""
    if not reply or not reply.strip():
        raise ExtractionError("Backend reply is empty")

    blocks = scan_fences(reply)
    if not blocks:
        logger.debug("No fenced block found; using raw reply (%d chars)", len(reply))
        return ExtractedSource(text=reply, fenced=False)

    chosen = blocks[0]
    for block in blocks[1:]:
        # Strictly longer only, so the first of equal-length blocks is kept.
        if len(block.text) > len(chosen.text):
            chosen = block
    if len(blocks) > 1:
        logger.debug(
            "Selected block from line %d (%d chars) out of %d fenced blocks",
            chosen.line,
            len(chosen.text),
            len(blocks),
        )
    return ExtractedSource(text=chosen.text, fenced=True)


class ArtifactExtractor:
    """Injectable wrapper around :func:`extract`."""

    def extract(self, reply: str) -> ExtractedSource:
        return extract(reply)


def _strip_final_newline(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


__all__ = [
    "ArtifactExtractor",
    "ExtractedSource",
    "ExtractionError",
    "FencedBlock",
    "extract",
    "scan_fences",
]
