"""Session assembly: prompt context in, persisted turn out."""

from __future__ import annotations

import asyncio
from typing import Optional

from axis_kernel.memory import MemoryIndex, build_memory_context
from axis_kernel.storage import HistoryLog, InteractionTurn, RelationalLog
from axis_kernel.utils.logging import logger

HISTORY_TURNS = 5
MEMORY_LIMIT = 3


class SessionAssembler:
    def __init__(
        self,
        history: HistoryLog,
        index: MemoryIndex,
        relational: Optional[RelationalLog] = None,
        *,
        history_turns: int = HISTORY_TURNS,
        memory_limit: int = MEMORY_LIMIT,
    ) -> None:
        self.history = history
        self.index = index
        self.relational = relational
        self.history_turns = history_turns
        self.memory_limit = memory_limit

    def history_context(self, session_id: str) -> str:
        turns = self.history.recent(session_id, self.history_turns)
        if not turns:
            return "None"
        return "\n---\n".join(f"User: {t.input_text}\nAxis: {t.output_text}" for t in turns)

    async def memory_context(self, text: str) -> str:
        """Memory-index recall, falling back to the relational log."""
        context = await asyncio.to_thread(build_memory_context, self.index, text, self.memory_limit)
        if context or self.relational is None:
            return context
        try:
            related = await self.relational.search_similar(text, self.memory_limit)
        except Exception as exc:  # noqa: BLE001
            logger.warning("relational_recall_failed", error=str(exc))
            return ""
        if not related:
            return ""
        return "\n[Related Messages]\n" + "\n".join(f"- {line[:120]}" for line in related)

    async def finalize(
        self,
        session_id: str,
        input_text: str,
        output_text: str,
        *,
        provider_used: str,
        provider: Optional[str],
        task_type: Optional[str] = None,
        source: str = "llm",
    ) -> InteractionTurn:
        """Build the turn and write it to every sink.

        Each sink is independent; a failure is logged and the others still run.
        """
        turn = InteractionTurn(
            session_id=session_id,
            input_text=input_text,
            output_text=output_text,
            provider_used=provider_used,
            task_type=task_type or None,
        )
        try:
            await asyncio.to_thread(self.history.append, turn)
        except Exception as exc:  # noqa: BLE001
            logger.warning("history_write_failed", session=session_id, error=str(exc))
        if self.relational is not None:
            try:
                await self.relational.save_interaction(session_id, input_text, output_text)
            except Exception as exc:  # noqa: BLE001
                logger.warning("relational_write_failed", session=session_id, error=str(exc))
        try:
            await asyncio.to_thread(
                self.index.record,
                session_id,
                input_text,
                output_text,
                source,
                provider,
                [],
                task_type=task_type or None,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("memory_write_failed", session=session_id, error=str(exc))
        return turn


__all__ = ["SessionAssembler", "HISTORY_TURNS", "MEMORY_LIMIT"]
