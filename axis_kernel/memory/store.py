"""File-backed memory index.

Every remembered interaction is two sibling JSON files under
``<root>/entries``: ``<id>.json`` holds the full input/output payload and
``<id>.meta.json`` holds the scoring metadata. Retrieval only reads the
metadata files and hydrates entries for the hits it returns.
"""

from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from filelock import FileLock
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from axis_kernel.errors import MemoryValidationError
from axis_kernel.memory.records import (
    AttachmentRef,
    IoBlock,
    MemoryEntry,
    MemoryHit,
    MemoryKind,
    MemoryMeta,
)
from axis_kernel.memory.tokenizer import normalize_text, tokenize
from axis_kernel.scoring import ScoreWeights, passes_prefilter, score_record
from axis_kernel.utils.logging import logger

MEMORY_OP_COUNT = Counter(
    "axis_memory_operations_total",
    "Total memory index operations",
    ["op"],
)
MEMORY_OP_LATENCY = Histogram(
    "axis_memory_operation_seconds",
    "Latency of memory index operations",
    ["op"],
)

META_SUFFIX = ".meta.json"
_UNSAFE_STEM_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def now_ms() -> int:
    return int(time.time() * 1000)


def build_search_text(input_text: str, output_text: str, attachments: Iterable[AttachmentRef] = ()) -> str:
    names = "".join(f"{a.name}\n" for a in attachments if a.name)
    return normalize_text(f"{input_text}\n{output_text}\n{names}")


def session_stem(session_id: str) -> str:
    """Filename-safe form of a session id, used as the record id prefix."""
    stem = _UNSAFE_STEM_CHARS.sub("_", session_id).lstrip(".")
    return stem or "session"


def _atomic_write(path: Path, payload: str) -> None:
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(payload, encoding="utf-8")
    os.replace(tmp, path)


class MemoryIndex:
    """Append-only store of interaction entries with ranked retrieval."""

    def __init__(
        self,
        root: Path | str,
        *,
        clock: Callable[[], int] | None = None,
        weights: ScoreWeights | None = None,
    ) -> None:
        self.root = Path(root)
        self.entries_dir = self.root / "entries"
        self.entries_dir.mkdir(parents=True, exist_ok=True)
        self._entries_real = self.entries_dir.resolve()
        self.clock = clock or now_ms
        self.weights = weights or ScoreWeights.from_env()
        self._lock = FileLock(str(self.root / ".index.lock"))

    # -- paths ---------------------------------------------------------
    def _path(self, record_id: str, suffix: str) -> Path:
        path = self.entries_dir / f"{record_id}{suffix}"
        if path.resolve().parent != self._entries_real:
            raise MemoryValidationError(f"record id {record_id!r} escapes the memory index")
        return path

    def _entry_path(self, record_id: str) -> Path:
        return self._path(record_id, ".json")

    def _meta_path(self, record_id: str) -> Path:
        return self._path(record_id, META_SUFFIX)

    def _next_id(self, session_id: str, stamp_ms: int) -> str:
        stem = session_stem(session_id)
        record_id = f"{stem}-{stamp_ms}"
        while self._entry_path(record_id).exists() or self._meta_path(record_id).exists():
            stamp_ms += 1
            record_id = f"{stem}-{stamp_ms}"
        return record_id

    # -- writes --------------------------------------------------------
    def _write_pair(self, entry: MemoryEntry, meta: MemoryMeta) -> None:
        entry_path = self._entry_path(entry.id)
        existed = entry_path.exists()
        _atomic_write(entry_path, entry.model_dump_json(indent=2))
        try:
            _atomic_write(self._meta_path(meta.id), meta.model_dump_json(indent=2))
        except OSError:
            if not existed:
                entry_path.unlink(missing_ok=True)
            raise

    def save(self, entry: MemoryEntry, meta: MemoryMeta) -> None:
        """Persist an already-built entry/meta pair."""
        if entry.id != meta.id:
            raise MemoryValidationError(f"entry id {entry.id!r} does not match meta id {meta.id!r}")
        start = time.perf_counter()
        with self._lock:
            self._write_pair(entry, meta)
        MEMORY_OP_COUNT.labels("save").inc()
        MEMORY_OP_LATENCY.labels("save").observe(time.perf_counter() - start)

    def record(
        self,
        session_id: str,
        input_text: str,
        output_text: str,
        source: str = "llm",
        provider: Optional[str] = None,
        references: Sequence[str] | None = None,
        *,
        tags: Sequence[str] | None = None,
        importance: float = 0.5,
        kind: MemoryKind = MemoryKind.SHORT_TERM,
        sealed_reason: Optional[str] = None,
        task_type: Optional[str] = None,
        input_attachments: Sequence[AttachmentRef] = (),
        output_attachments: Sequence[AttachmentRef] = (),
    ) -> MemoryMeta:
        """Store one interaction and return its metadata.

        Raises :class:`MemoryValidationError` before touching the disk when
        the metadata is invalid.
        """
        start = time.perf_counter()
        stamp = self.clock()
        all_tags = list(tags or [])
        if task_type:
            all_tags.append(f"task:{task_type}")
        with self._lock:
            record_id = self._next_id(session_id, stamp)
            try:
                entry = MemoryEntry(
                    id=record_id,
                    session_id=session_id,
                    timestamp_ms=stamp,
                    input=IoBlock(text=input_text, attachments=list(input_attachments)),
                    output=IoBlock(text=output_text, attachments=list(output_attachments)),
                )
                meta = MemoryMeta(
                    id=record_id,
                    session_id=session_id,
                    kind=kind,
                    importance=importance,
                    tags=all_tags,
                    source=source,
                    provider=provider,
                    references=list(references or []),
                    sealed_reason=sealed_reason,
                    task_type=task_type or None,
                    created_at_ms=stamp,
                    updated_at_ms=stamp,
                    search_text=build_search_text(
                        input_text, output_text, [*input_attachments, *output_attachments]
                    ),
                )
            except ValidationError as exc:
                MEMORY_OP_COUNT.labels("rejected").inc()
                raise MemoryValidationError(str(exc)) from exc
            self._write_pair(entry, meta)
        MEMORY_OP_COUNT.labels("record").inc()
        MEMORY_OP_LATENCY.labels("record").observe(time.perf_counter() - start)
        logger.info("memory_saved", id=record_id, session=session_id, source=source, provider=provider)
        return meta

    def rekind(self, record_id: str, kind: MemoryKind, sealed_reason: Optional[str] = None) -> MemoryMeta:
        """Promote, demote or seal a record. Only the metadata file changes."""
        with self._lock:
            meta = self.load_meta(record_id)
            if meta is None:
                raise KeyError(record_id)
            data = meta.model_dump()
            data.update(
                kind=kind,
                sealed_reason=sealed_reason if kind is MemoryKind.SEALED else None,
                updated_at_ms=self.clock(),
            )
            try:
                updated = MemoryMeta.model_validate(data)
            except ValidationError as exc:
                raise MemoryValidationError(str(exc)) from exc
            _atomic_write(self._meta_path(record_id), updated.model_dump_json(indent=2))
        MEMORY_OP_COUNT.labels("rekind").inc()
        return updated

    def delete(self, record_id: str) -> bool:
        with self._lock:
            found = False
            for path in (self._meta_path(record_id), self._entry_path(record_id)):
                if path.exists():
                    path.unlink()
                    found = True
        MEMORY_OP_COUNT.labels("delete").inc()
        return found

    # -- reads ---------------------------------------------------------
    def load_meta(self, record_id: str) -> Optional[MemoryMeta]:
        path = self._meta_path(record_id)
        if not path.exists():
            return None
        return MemoryMeta.model_validate_json(path.read_text(encoding="utf-8"))

    def load_entry(self, record_id: str) -> Optional[MemoryEntry]:
        path = self._entry_path(record_id)
        if not path.exists():
            return None
        return MemoryEntry.model_validate_json(path.read_text(encoding="utf-8"))

    def list_meta(self) -> List[MemoryMeta]:
        """All readable metadata records, most recently updated first."""
        metas: List[MemoryMeta] = []
        for path in self.entries_dir.glob(f"*{META_SUFFIX}"):
            try:
                metas.append(MemoryMeta.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as exc:
                logger.debug("memory_meta_skipped", path=str(path), error=str(exc))
        metas.sort(key=lambda m: m.updated_at_ms, reverse=True)
        return metas

    def retrieve_top_k(self, query: str, k: int) -> List[MemoryHit]:
        q_norm = normalize_text(query)
        if not q_norm or k <= 0:
            return []
        start = time.perf_counter()
        q_tokens = tokenize(q_norm)
        now = self.clock()
        scored: List[tuple[float, MemoryMeta]] = []
        for meta in self.list_meta():
            if meta.kind is MemoryKind.SEALED or not meta.search_text:
                continue
            if not passes_prefilter(q_tokens, meta.search_text, meta.tags):
                continue
            score = score_record(
                q_norm,
                q_tokens,
                meta.search_text,
                tokenize(meta.search_text),
                meta.tags,
                meta.importance,
                meta.updated_at_ms,
                now,
                self.weights,
            )
            if score > 0:
                scored.append((score, meta))
        scored.sort(key=lambda pair: pair[0], reverse=True)

        hits: List[MemoryHit] = []
        for score, meta in scored:
            if len(hits) >= k:
                break
            try:
                entry = self.load_entry(meta.id)
            except (OSError, ValueError) as exc:
                logger.debug("memory_entry_skipped", id=meta.id, error=str(exc))
                continue
            if entry is not None:
                hits.append(MemoryHit(id=meta.id, score=score, meta=meta, entry=entry))
        MEMORY_OP_COUNT.labels("retrieve").inc()
        MEMORY_OP_LATENCY.labels("retrieve").observe(time.perf_counter() - start)
        return hits

    def search_best(self, query: str) -> Optional[MemoryHit]:
        hits = self.retrieve_top_k(query, 1)
        return hits[0] if hits else None


__all__ = ["MemoryIndex", "build_search_text", "now_ms", "session_stem", "MEMORY_OP_COUNT", "MEMORY_OP_LATENCY"]
