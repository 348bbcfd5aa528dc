"""Interaction log sinks."""

from .db import RelationalLog
from .history import HistoryLog, InteractionTurn

__all__ = ["HistoryLog", "InteractionTurn", "RelationalLog"]
