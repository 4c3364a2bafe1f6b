"""Activation: triggers, condition rules and the priority resolver."""

from recallgate.activation.conditions import (
    ConditionType,
    evaluate,
    evaluate_rule,
    resolve,
    resolve_conditions,
)
from recallgate.activation.patterns import MatchOptions
from recallgate.activation.resolver import (
    ActivationDecision,
    ActivationStage,
    decide,
    should_activate,
)
from recallgate.activation.triggers import matches, matching_triggers

__all__ = [
    "ConditionType",
    "evaluate",
    "evaluate_rule",
    "resolve",
    "resolve_conditions",
    "MatchOptions",
    "ActivationDecision",
    "ActivationStage",
    "decide",
    "should_activate",
    "matches",
    "matching_triggers",
]
