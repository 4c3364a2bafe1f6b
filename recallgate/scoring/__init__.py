"""Temporal relevance scoring and ranking."""

from recallgate.scoring.ranking import (
    RankedChunk,
    format_collection_block,
    rank,
    score_chunks,
)
from recallgate.scoring.temporal import (
    ScoredChunk,
    apply_decay,
    effective_age,
    score,
    temporal_weight,
)

__all__ = [
    "RankedChunk",
    "format_collection_block",
    "rank",
    "score_chunks",
    "ScoredChunk",
    "apply_decay",
    "effective_age",
    "score",
    "temporal_weight",
]
