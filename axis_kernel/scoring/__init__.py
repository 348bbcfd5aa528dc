"""Scoring helpers for memory retrieval."""

from .memory_score import (
    ScoreWeights,
    jaccard,
    passes_prefilter,
    recency_boost,
    score_record,
    tag_overlap,
)

__all__ = [
    "ScoreWeights",
    "jaccard",
    "passes_prefilter",
    "recency_boost",
    "score_record",
    "tag_overlap",
]
