"""One-line descriptions of a collection's activation and decay settings."""

from recallgate.policy.types import CollectionPolicy, DecayConfig, DecayMode, DecayType

MAX_LISTED_TRIGGERS = 3


def activation_summary(policy: CollectionPolicy) -> str:
    """Describe which activation stage governs this collection."""
    if policy.always_active:
        return "Always active"

    triggers = policy.triggers
    if not triggers.is_empty:
        shown = ", ".join(triggers.values[:MAX_LISTED_TRIGGERS])
        extra = len(triggers.values) - MAX_LISTED_TRIGGERS
        if extra > 0:
            shown += f" +{extra} more"
        return f"Triggers: {shown} ({triggers.match_mode.value})"

    conditions = policy.conditions
    if conditions.enabled:
        count = len(conditions.rules)
        noun = "rule" if count == 1 else "rules"
        return f"Conditions: {count} {noun} ({conditions.logic.value})"

    return "Auto-activate"


def decay_summary(decay: DecayConfig) -> str:
    if not decay.enabled:
        return "Off"

    rate_pct = f"{decay.linear_rate * 100:g}%"
    if decay.type is DecayType.NOSTALGIA:
        if decay.mode is DecayMode.EXPONENTIAL:
            text = f"Nostalgia: exponential, half-life {decay.half_life}, max {decay.max_boost:g}x"
        else:
            text = f"Nostalgia: linear, +{rate_pct}/msg, max {decay.max_boost:g}x"
    elif decay.mode is DecayMode.EXPONENTIAL:
        text = f"Decay: exponential, half-life {decay.half_life}"
    else:
        text = f"Decay: linear, -{rate_pct}/msg, floor {decay.min_relevance:g}"

    if decay.scene_aware:
        text += ", scene-aware"
    return text
