"""Trigger matching: lorebook-style keyword activation for collections."""

from loguru import logger

from recallgate.activation.patterns import DEFAULT_MATCH_OPTIONS, CompiledPattern, MatchOptions
from recallgate.conversation.snapshot import ConversationSnapshot, Message
from recallgate.policy.types import MatchMode, TriggerConfig


def _hits(pattern: CompiledPattern, window: tuple[Message, ...]) -> bool:
    return any(pattern.search(m.text) for m in window)


def matching_triggers(
    triggers: TriggerConfig,
    snapshot: ConversationSnapshot,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> list[str]:
    """Return the triggers that hit at least one message in the scan window."""
    window = snapshot.recent(triggers.scan_depth)
    patterns = options.compile(triggers.values, triggers.case_sensitive)
    return [p.source for p in patterns if _hits(p, window)]


def matches(
    triggers: TriggerConfig,
    snapshot: ConversationSnapshot,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> bool:
    """
    Check a collection's triggers against recent messages.

    ANY: one trigger hitting any scanned message is enough.
    ALL: every trigger must hit some scanned message (not necessarily the same one).

    Args:
        triggers: The collection's trigger configuration.
        snapshot: Current conversation.
        options: Regex safety limits.

    Returns:
        False for an empty (or all-blank) trigger list, otherwise the match result.
    """
    patterns = options.compile(triggers.values, triggers.case_sensitive)
    if not patterns:
        return False

    window = snapshot.recent(triggers.scan_depth)
    if not window:
        return False

    if triggers.match_mode is MatchMode.ALL:
        result = all(_hits(p, window) for p in patterns)
    else:
        result = any(_hits(p, window) for p in patterns)

    logger.debug(
        f"Triggers ({triggers.match_mode.value}, depth={triggers.scan_depth}, "
        f"n={len(patterns)}) -> {result}"
    )
    return result
