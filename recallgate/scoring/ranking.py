"""Batch scoring, cross-collection ranking and prompt block formatting."""

from dataclasses import dataclass
from typing import Iterable

from recallgate.policy.types import CollectionPolicy, DecayConfig
from recallgate.scoring.temporal import ScoredChunk, apply_decay

USER_MACRO = "{{user}}"
CHAR_MACRO = "{{char}}"


@dataclass(frozen=True)
class RankedChunk:
    """A scored chunk tagged with the collection it came from."""
    collection_id: str
    chunk: ScoredChunk

    @property
    def score(self) -> float:
        return self.chunk.final_score


def score_chunks(chunks: Iterable[ScoredChunk], decay: DecayConfig) -> list[ScoredChunk]:
    """Apply one collection's temporal config to every chunk it returned."""
    return [apply_decay(chunk, decay) for chunk in chunks]


def rank(ranked: Iterable[RankedChunk], limit: int | None = None) -> list[RankedChunk]:
    """Sort by adjusted score, then raw similarity, then collection id."""
    ordered = sorted(
        ranked,
        key=lambda r: (-r.score, -r.chunk.similarity_score, r.collection_id),
    )
    if limit is not None:
        ordered = ordered[:max(0, limit)]
    return ordered


def substitute_macros(text: str, user: str = "", char: str = "") -> str:
    return text.replace(USER_MACRO, user).replace(CHAR_MACRO, char)


def format_collection_block(
    policy: CollectionPolicy,
    chunks: Iterable[ScoredChunk],
    user: str = "",
    char: str = "",
) -> str:
    """
    Render a collection's chunks for prompt injection.

    The context prompt (if any) comes first, then chunk texts separated by
    blank lines; the whole block is wrapped in the collection's XML tag when
    one is set.

    Returns:
        The block, or an empty string when there are no chunks.
    """
    texts = [c.text.strip() for c in chunks if c.text and c.text.strip()]
    if not texts:
        return ""

    parts = []
    context = substitute_macros(policy.injection.context, user, char).strip()
    if context:
        parts.append(context)
    parts.append("\n\n".join(texts))
    body = "\n\n".join(parts)

    tag = policy.injection.xml_tag
    if tag:
        return f"<{tag}>\n{body}\n</{tag}>"
    return body
