"""Activation resolver: decides whether a collection is queried this turn.

Priority (first applicable stage wins):
1. alwaysActive            -> activate
2. triggers configured     -> activate iff a trigger matches; no fallthrough
3. conditions enabled      -> activate iff the condition set resolves true
4. nothing configured      -> activate (unconfigured collections stay on)
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from loguru import logger

from recallgate.activation import triggers as trigger_matcher
from recallgate.activation.conditions import resolve_conditions
from recallgate.activation.patterns import DEFAULT_MATCH_OPTIONS, MatchOptions
from recallgate.conversation.snapshot import ConversationSnapshot
from recallgate.policy.types import CollectionPolicy


class ActivationStage(str, Enum):
    """Terminal stage that produced an activation decision."""
    ALWAYS = "always"
    TRIGGER_MATCH = "trigger_match"
    TRIGGER_NO_MATCH = "trigger_no_match"
    CONDITIONS = "conditions"
    DEFAULT = "default"


@dataclass(frozen=True)
class ActivationDecision:
    stage: ActivationStage
    activated: bool
    detail: str = ""


_Stage = Callable[
    [CollectionPolicy, ConversationSnapshot, random.Random, MatchOptions],
    "ActivationDecision | None",
]


def _always(policy, snapshot, rng, options) -> ActivationDecision | None:
    if policy.always_active:
        return ActivationDecision(ActivationStage.ALWAYS, True, "always active")
    return None


def _triggers(policy, snapshot, rng, options) -> ActivationDecision | None:
    if policy.triggers.is_empty:
        return None
    if trigger_matcher.matches(policy.triggers, snapshot, options):
        hits = trigger_matcher.matching_triggers(policy.triggers, snapshot, options)
        return ActivationDecision(ActivationStage.TRIGGER_MATCH, True, ", ".join(hits))
    return ActivationDecision(ActivationStage.TRIGGER_NO_MATCH, False, "no trigger matched")


def _conditions(policy, snapshot, rng, options) -> ActivationDecision | None:
    if not policy.conditions.enabled:
        return None
    result = resolve_conditions(policy.conditions, snapshot, rng, options)
    detail = f"{len(policy.conditions.rules)} rule(s), {policy.conditions.logic.value}"
    return ActivationDecision(ActivationStage.CONDITIONS, result, detail)


def _default(policy, snapshot, rng, options) -> ActivationDecision | None:
    return ActivationDecision(ActivationStage.DEFAULT, True, "no activation rules configured")


# Order is the activation contract; `_default` always terminates the chain.
PIPELINE: tuple[_Stage, ...] = (_always, _triggers, _conditions, _default)


def decide(
    policy: CollectionPolicy,
    snapshot: ConversationSnapshot,
    rng: random.Random | None = None,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> ActivationDecision:
    """
    Run the activation pipeline for one collection.

    Args:
        policy: The collection's policy.
        snapshot: Current conversation.
        rng: Random source for `randomChance` rules.
        options: Regex safety limits.

    Returns:
        The decision of the first stage that applies.
    """
    rng = rng or random.Random()
    for stage in PIPELINE:
        decision = stage(policy, snapshot, rng, options)
        if decision is not None:
            logger.debug(f"Activation: {decision.stage.value} -> {decision.activated}")
            return decision
    raise AssertionError("activation pipeline has no terminal stage")


def should_activate(
    policy: CollectionPolicy,
    snapshot: ConversationSnapshot,
    rng: random.Random | None = None,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> bool:
    return decide(policy, snapshot, rng, options).activated
