"""Render top memory hits as a prompt block."""

from __future__ import annotations

from axis_kernel.memory.store import MemoryIndex
from axis_kernel.utils.logging import logger

QUESTION_SNIPPET = 80
ANSWER_SNIPPET = 120


def build_memory_context(index: MemoryIndex, query: str, limit: int = 3) -> str:
    """Return a ``[Relevant Memories]`` block or ``""`` when nothing matches."""
    try:
        hits = index.retrieve_top_k(query, limit)
    except OSError as exc:
        logger.warning("memory_context_failed", error=str(exc))
        return ""
    if not hits:
        return ""
    lines = [
        f"- (score={h.score:.2f}) Q: {h.entry.input.text[:QUESTION_SNIPPET]} / A: {h.entry.output.text[:ANSWER_SNIPPET]}"
        for h in hits
    ]
    return "\n[Relevant Memories]\n" + "\n".join(lines)


__all__ = ["build_memory_context"]
