"""Memory index: storage, records and prompt injection."""

from .memory_injector import build_memory_context
from .records import AttachmentRef, IoBlock, MemoryEntry, MemoryHit, MemoryKind, MemoryMeta, Stickies
from .store import MemoryIndex
from .tokenizer import normalize_text, tokenize

__all__ = [
    "AttachmentRef",
    "IoBlock",
    "MemoryEntry",
    "MemoryHit",
    "MemoryIndex",
    "MemoryKind",
    "MemoryMeta",
    "Stickies",
    "build_memory_context",
    "normalize_text",
    "tokenize",
]
