"""Action mini-language: parsing, capabilities and execution."""

from .capabilities import Capabilities, DesktopCapabilities, vital_stats
from .commands import parse_chain, parse_command
from .interpreter import ActionInterpreter, ActionOutcome
from .web import DuckDuckGoSearch, EncyclopediaSearch, SearchResult

__all__ = [
    "ActionInterpreter",
    "ActionOutcome",
    "Capabilities",
    "DesktopCapabilities",
    "DuckDuckGoSearch",
    "EncyclopediaSearch",
    "SearchResult",
    "parse_chain",
    "parse_command",
    "vital_stats",
]
