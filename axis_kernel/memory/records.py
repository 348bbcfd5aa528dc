from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MemoryKind(str, Enum):
    SHORT_TERM = "SHORT_TERM"
    LONG_TERM = "LONG_TERM"
    META = "META"
    SEALED = "SEALED"


class AttachmentRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object_id: str
    name: str = ""
    mime: str = ""


class IoBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""
    attachments: List[AttachmentRef] = Field(default_factory=list)


class MemoryEntry(BaseModel):
    """Full input/output payload of one remembered interaction."""

    model_config = ConfigDict(extra="ignore")

    id: str
    session_id: str
    timestamp_ms: int
    input: IoBlock = Field(default_factory=IoBlock)
    output: IoBlock = Field(default_factory=IoBlock)


class Stickies(BaseModel):
    """Large / medium / small category labels."""

    l: str = ""  # noqa: E741
    m: str = ""
    s: str = ""


class MemoryMeta(BaseModel):
    """Scoring-side metadata, stored beside the entry under the same id.

    Validation happens on construction, so an invalid record never reaches
    the disk.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str
    session_id: str = ""
    kind: MemoryKind = MemoryKind.SHORT_TERM
    importance: float = Field(0.5, ge=0.0, le=1.0)
    tags: List[str] = Field(default_factory=list)
    stickies: Optional[Stickies] = None
    source: str = ""
    provider: Optional[str] = None
    references: List[str] = Field(default_factory=list)
    sealed_reason: Optional[str] = None
    task_type: Optional[str] = None
    created_at_ms: int
    updated_at_ms: int
    search_text: str = ""

    @model_validator(mode="after")
    def _sealed_needs_reason(self) -> "MemoryMeta":
        if self.kind is MemoryKind.SEALED and not (self.sealed_reason or "").strip():
            raise ValueError("sealed records require a sealed_reason")
        return self


class MemoryHit(BaseModel):
    id: str
    score: float
    meta: MemoryMeta
    entry: MemoryEntry


__all__ = [
    "MemoryKind",
    "AttachmentRef",
    "IoBlock",
    "MemoryEntry",
    "Stickies",
    "MemoryMeta",
    "MemoryHit",
]
