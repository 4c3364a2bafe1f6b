"""Temporal relevance: re-weight similarity scores by how old a chunk is.

Two directions:
- decay: older chunks lose weight, floored at `minRelevance`
- nostalgia: older chunks gain weight, capped at `maxBoost`

Each comes in an exponential (half-life) and a linear (per-message rate) shape.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from recallgate.policy.types import DecayConfig, DecayMode, DecayType


@dataclass(frozen=True)
class ScoredChunk:
    """A retrieved chunk with its raw similarity and age in messages."""
    text: str
    similarity_score: float
    message_age: int
    scene_boundary_crossed: bool = False
    scene_age: int | None = None            # messages since the last scene boundary
    adjusted_score: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def final_score(self) -> float:
        return self.similarity_score if self.adjusted_score is None else self.adjusted_score


def effective_age(chunk: ScoredChunk, decay: DecayConfig) -> float:
    """Age used for weighting; scene-aware configs measure from the scene boundary."""
    age = max(0, chunk.message_age)
    if decay.scene_aware and chunk.scene_boundary_crossed:
        if chunk.scene_age is None:
            return 0
        return min(max(0, chunk.scene_age), age)
    return age


def temporal_weight(age: float, decay: DecayConfig) -> float:
    """Multiplier applied to a similarity score at `age` messages."""
    age = max(0.0, age)
    half_life = max(1, decay.half_life)

    if decay.mode is DecayMode.LINEAR:
        if decay.type is DecayType.NOSTALGIA:
            return min(decay.max_boost, 1.0 + decay.linear_rate * age)
        return max(decay.min_relevance, 1.0 - decay.linear_rate * age)

    halving = 2.0 ** (-age / half_life)
    if decay.type is DecayType.NOSTALGIA:
        return min(decay.max_boost, decay.max_boost - (decay.max_boost - 1.0) * halving)
    return max(decay.min_relevance, halving)


def score(chunk: ScoredChunk, decay: DecayConfig) -> float:
    """
    Adjusted score of one chunk.

    Args:
        chunk: Retrieved chunk.
        decay: The owning collection's temporal config.

    Returns:
        `similarity_score` unchanged when decay is disabled, otherwise
        `similarity_score * weight`.
    """
    if not decay.enabled:
        return chunk.similarity_score
    return chunk.similarity_score * temporal_weight(effective_age(chunk, decay), decay)


def apply_decay(chunk: ScoredChunk, decay: DecayConfig) -> ScoredChunk:
    """Return a copy of `chunk` with `adjusted_score` filled in."""
    return replace(chunk, adjusted_score=score(chunk, decay))
