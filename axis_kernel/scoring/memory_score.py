"""Heuristic relevance scoring for memory records."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Iterable, Sequence, Set

MS_PER_DAY = 86_400_000.0
RECENCY_WINDOW_DAYS = 30.0


@dataclass(frozen=True)
class ScoreWeights:
    jaccard: float = 5.0
    tags: float = 1.5
    importance: float = 2.0
    recency: float = 1.0
    exact: float = 2.0

    @classmethod
    def from_env(cls) -> "ScoreWeights":
        env = os.getenv("AXIS_SCORE_WEIGHTS")
        if not env:
            return cls()
        try:
            data = json.loads(env)
            return cls(**{k: float(v) for k, v in data.items() if k in cls.__dataclass_fields__})
        except (ValueError, TypeError, AttributeError):
            return cls()


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def _overlaps(tag: str, token: str) -> bool:
    return tag in token or token in tag


def tag_overlap(tags: Iterable[str], query_tokens: Sequence[str]) -> int:
    """Count tags sharing a substring (either direction) with a query token."""
    count = 0
    for tag in tags:
        tag = tag.lower()
        if tag and any(_overlaps(tag, tok) for tok in query_tokens):
            count += 1
    return count


def recency_boost(updated_at_ms: int, now_ms: int) -> float:
    age_days = max(now_ms - updated_at_ms, 0) / MS_PER_DAY
    return min(max(1.0 - age_days / RECENCY_WINDOW_DAYS, 0.0), 1.0)


def passes_prefilter(query_tokens: Sequence[str], search_text: str, tags: Iterable[str]) -> bool:
    if any(tok in search_text for tok in query_tokens):
        return True
    return tag_overlap(tags, query_tokens) > 0


def score_record(
    query_norm: str,
    query_tokens: Sequence[str],
    search_text: str,
    record_tokens: Iterable[str],
    tags: Sequence[str],
    importance: float,
    updated_at_ms: int,
    now_ms: int,
    weights: ScoreWeights | None = None,
) -> float:
    weights = weights or ScoreWeights()
    score = jaccard(set(query_tokens), set(record_tokens)) * weights.jaccard
    score += tag_overlap(tags, query_tokens) * weights.tags
    score += min(max(importance, 0.0), 1.0) * weights.importance
    score += recency_boost(updated_at_ms, now_ms) * weights.recency
    if query_norm and query_norm in search_text:
        score += weights.exact
    return score


__all__ = [
    "ScoreWeights",
    "jaccard",
    "tag_overlap",
    "recency_boost",
    "passes_prefilter",
    "score_record",
]
