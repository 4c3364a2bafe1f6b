"""Collection policy package.

`policy.types` is a stable contract (Pydantic models).
Persistence lives in `policy.store`.
"""

from recallgate.policy.types import (
    CollectionPolicy,
    ConditionLogic,
    ConditionRule,
    ConditionSet,
    DecayConfig,
    DecayMode,
    DecayType,
    InjectionConfig,
    InjectionPosition,
    MatchMode,
    TriggerConfig,
    default_decay_for,
    default_policy_for,
    parse_trigger_text,
)
from recallgate.policy.store import PolicyStore
from recallgate.policy.summary import activation_summary, decay_summary

__all__ = [
    "CollectionPolicy",
    "ConditionLogic",
    "ConditionRule",
    "ConditionSet",
    "DecayConfig",
    "DecayMode",
    "DecayType",
    "InjectionConfig",
    "InjectionPosition",
    "MatchMode",
    "TriggerConfig",
    "default_decay_for",
    "default_policy_for",
    "parse_trigger_text",
    "PolicyStore",
    "activation_summary",
    "decay_summary",
]
