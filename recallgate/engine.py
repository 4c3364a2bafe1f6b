"""Per-turn orchestration: decide which collections to query, then score results."""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from recallgate.activation.patterns import MatchOptions
from recallgate.activation.resolver import ActivationDecision, decide
from recallgate.config.schema import EngineConfig
from recallgate.conversation.snapshot import ConversationSnapshot
from recallgate.errors import BackendError
from recallgate.policy.store import PolicyStore
from recallgate.policy.types import CollectionPolicy
from recallgate.scoring.ranking import RankedChunk, rank, score_chunks
from recallgate.scoring.temporal import ScoredChunk


class VectorBackend(ABC):
    """
    Abstract base for the similarity search collaborator.

    Implementations wrap whatever vector index holds the collections.
    """

    @abstractmethod
    def query_similar(
        self,
        collection_id: str,
        query_text: str,
        top_k: int,
        threshold: float,
    ) -> list[ScoredChunk]:
        """
        Find the chunks of one collection most similar to a query.

        Args:
            collection_id: Collection to search.
            query_text: Text to embed and compare.
            top_k: Maximum number of chunks.
            threshold: Minimum similarity score.

        Returns:
            Chunks ordered by similarity, best first.

        Raises:
            BackendError: The index could not be queried.
        """
        ...


@dataclass(frozen=True)
class TurnResult:
    """Activation decisions and merged, re-ranked chunks for one turn."""
    decisions: dict[str, ActivationDecision] = field(default_factory=dict)
    chunks: list[RankedChunk] = field(default_factory=list)
    failed: tuple[str, ...] = ()

    @property
    def activated(self) -> list[str]:
        return [cid for cid, d in self.decisions.items() if d.activated]

    def chunks_for(self, collection_id: str) -> list[ScoredChunk]:
        return [r.chunk for r in self.chunks if r.collection_id == collection_id]


class RetrievalEngine:
    """
    Runs the activation pass and temporal scoring over a set of collections.

    Policies are read from the store once per call; the snapshot and the
    backend's chunks are never modified.
    """

    def __init__(
        self,
        store: PolicyStore,
        backend: VectorBackend | None = None,
        config: EngineConfig | None = None,
    ):
        self.store = store
        self.backend = backend
        self.config = config or EngineConfig()
        self.match_options = MatchOptions(
            max_regex_length=self.config.patterns.max_regex_length,
            check_redos=self.config.patterns.check_redos,
        )

    def load_policies(self, collection_ids: Iterable[str]) -> dict[str, CollectionPolicy]:
        """Read each distinct collection's policy from the store, in order."""
        policies: dict[str, CollectionPolicy] = {}
        for cid in collection_ids:
            if cid not in policies:
                policies[cid] = self.store.load_policy(cid)
        return policies

    def decide(
        self,
        collection_ids: Iterable[str],
        snapshot: ConversationSnapshot,
        rng: random.Random | None = None,
    ) -> dict[str, ActivationDecision]:
        """Evaluate each collection exactly once for this turn."""
        return self._decide_policies(self.load_policies(collection_ids), snapshot, rng)

    def _decide_policies(
        self,
        policies: dict[str, CollectionPolicy],
        snapshot: ConversationSnapshot,
        rng: random.Random | None,
    ) -> dict[str, ActivationDecision]:
        rng = rng or random.Random()
        decisions: dict[str, ActivationDecision] = {}
        for cid, policy in policies.items():
            decisions[cid] = decide(policy, snapshot, rng, self.match_options)
            logger.debug(f"Collection {cid}: {decisions[cid].stage.value} -> {decisions[cid].activated}")
        return decisions

    def run_turn(
        self,
        collection_ids: Iterable[str],
        snapshot: ConversationSnapshot,
        query_text: str,
        rng: random.Random | None = None,
    ) -> TurnResult:
        """
        Decide, query activated collections, apply temporal scoring and rank.

        A backend failure for one collection is logged and skipped; the
        other collections still contribute.
        """
        if self.backend is None:
            raise ValueError("run_turn requires a vector backend")

        policies = self.load_policies(collection_ids)
        decisions = self._decide_policies(policies, snapshot, rng)
        retrieval = self.config.retrieval
        merged: list[RankedChunk] = []
        failed: list[str] = []

        for cid, decision in decisions.items():
            if not decision.activated:
                continue
            try:
                found = self.backend.query_similar(cid, query_text, retrieval.top_k, retrieval.threshold)
            except BackendError as e:
                logger.error(f"Vector query failed for collection {cid}: {e}")
                failed.append(cid)
                continue

            decay = policies[cid].decay
            merged.extend(RankedChunk(cid, chunk) for chunk in score_chunks(found, decay))

        ranked = rank(merged, limit=retrieval.max_results)
        logger.info(
            f"Turn: {sum(d.activated for d in decisions.values())}/{len(decisions)} collections active, "
            f"{len(ranked)} chunks kept"
        )
        return TurnResult(decisions=decisions, chunks=ranked, failed=tuple(failed))
