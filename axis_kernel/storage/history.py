"""Flat JSON interaction log.

The whole history lives in one JSON array that is rewritten on every append
or delete. Simple and inspectable, but only sensible while history is small.
"""

from __future__ import annotations

import json
import os
import time
import uuid
from pathlib import Path
from typing import List, Optional

from filelock import FileLock
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from axis_kernel.utils.logging import logger


class InteractionTurn(BaseModel):
    """One completed user/assistant exchange."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str
    timestamp_ms: int = Field(default_factory=lambda: int(time.time() * 1000))
    input_text: str
    output_text: str
    provider_used: str = ""
    task_type: Optional[str] = None


_TURNS = TypeAdapter(List[InteractionTurn])


class HistoryLog:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(str(self.path) + ".lock")

    def _read(self) -> List[InteractionTurn]:
        if not self.path.exists():
            return []
        try:
            return _TURNS.validate_json(self.path.read_bytes())
        except ValidationError as exc:
            logger.warning("history_unreadable", path=str(self.path), error=str(exc))
            return []

    def _write(self, turns: List[InteractionTurn]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            json.dumps([t.model_dump() for t in turns], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, self.path)

    def all(self) -> List[InteractionTurn]:
        with self._lock:
            return self._read()

    def append(self, turn: InteractionTurn) -> None:
        with self._lock:
            turns = self._read()
            turns.append(turn)
            self._write(turns)

    def for_session(self, session_id: str) -> List[InteractionTurn]:
        return [t for t in self.all() if t.session_id == session_id]

    def recent(self, session_id: str, limit: int = 5) -> List[InteractionTurn]:
        """The last ``limit`` turns of a session, oldest first."""
        turns = self.for_session(session_id)
        return turns[-limit:] if limit > 0 else []

    def delete_session(self, session_id: str) -> int:
        with self._lock:
            turns = self._read()
            kept = [t for t in turns if t.session_id != session_id]
            self._write(kept)
        return len(turns) - len(kept)


__all__ = ["InteractionTurn", "HistoryLog"]
