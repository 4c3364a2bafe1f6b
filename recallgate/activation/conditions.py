"""Condition rules: typed checks against the conversation, combined with AND/OR.

Each rule kind is a member of `ConditionType`; `evaluate` dispatches over
the closed set of members. A rule whose `type` is not a known kind is a
configuration error: it evaluates False and is logged, and the rest of the
rule set still runs.
"""

import random
from datetime import datetime, time
from enum import Enum
from typing import Any, Iterable

from loguru import logger

from recallgate.activation.emotion import VALID_EMOTIONS, detect_emotions, normalize_emotion
from recallgate.activation.patterns import DEFAULT_MATCH_OPTIONS, MatchOptions
from recallgate.conversation.snapshot import ConversationSnapshot, Message
from recallgate.policy.types import (
    ConditionLogic,
    ConditionRule,
    ConditionSet,
    MatchMode,
    coerce_bool,
    coerce_choice,
    coerce_float,
    coerce_int,
    split_list,
)


class ConditionType(str, Enum):
    """The eleven condition kinds."""
    PATTERN = "pattern"
    SPEAKER = "speaker"
    CHARACTER_PRESENT = "characterPresent"
    MESSAGE_COUNT = "messageCount"
    EMOTION = "emotion"
    IS_GROUP_CHAT = "isGroupChat"
    GENERATION_TYPE = "generationType"
    LOREBOOK_ACTIVE = "lorebookActive"
    SWIPE_COUNT = "swipeCount"
    TIME_OF_DAY = "timeOfDay"
    RANDOM_CHANCE = "randomChance"


class SearchIn(str, Enum):
    ALL = "all"
    USER = "user"
    ASSISTANT = "assistant"


class Operator(str, Enum):
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"


class DetectionMethod(str, Enum):
    AUTO = "auto"
    EXPRESSIONS = "expressions"
    PATTERNS = "patterns"
    BOTH = "both"


# Rule types written by older versions of the settings editor
LEGACY_TYPE_ALIASES = {"keyword": ConditionType.PATTERN}

DEFAULT_PATTERN_SCAN_DEPTH = 10
DEFAULT_SPEAKER_SCAN_DEPTH = 1
DEFAULT_PRESENCE_SCAN_DEPTH = 10
DEFAULT_EMOTION_SCAN_DEPTH = 3
DEFAULT_START_TIME = time(0, 0)
DEFAULT_END_TIME = time(23, 59)
DEFAULT_PROBABILITY = 50.0


def parse_condition_type(raw: str) -> ConditionType | None:
    """Resolve a stored rule type (including legacy aliases); None if unknown."""
    if raw in LEGACY_TYPE_ALIASES:
        return LEGACY_TYPE_ALIASES[raw]
    try:
        return ConditionType(raw)
    except ValueError:
        return None


# ============================================================================
# Per-kind evaluators
# ============================================================================


def _match_mode(settings: dict[str, Any]) -> MatchMode:
    raw = settings.get("matchMode", settings.get("matchType"))
    return coerce_choice(raw, MatchMode, MatchMode.ANY)


def _eval_pattern(settings: dict[str, Any], snapshot: ConversationSnapshot, options: MatchOptions) -> bool:
    raw_patterns = settings.get("patterns")
    if raw_patterns:
        patterns = split_list(raw_patterns, separators="\n")
    else:
        patterns = split_list(settings.get("values"))

    compiled = options.compile(patterns, coerce_bool(settings.get("caseSensitive")))
    if not compiled:
        return False

    depth = coerce_int(settings.get("scanDepth"), DEFAULT_PATTERN_SCAN_DEPTH, lo=1)
    search_in = coerce_choice(settings.get("searchIn"), SearchIn, SearchIn.ALL)
    role = None if search_in is SearchIn.ALL else search_in.value
    window = snapshot.recent(depth, role=role)
    if not window:
        return False

    def hit(p) -> bool:
        return any(p.search(m.text) for m in window)

    if _match_mode(settings) is MatchMode.ALL:
        return all(hit(p) for p in compiled)
    return any(hit(p) for p in compiled)


def _eval_speakers(settings: dict[str, Any], snapshot: ConversationSnapshot, default_depth: int) -> bool:
    names = {n.casefold() for n in split_list(settings.get("values"))}
    if not names:
        return False

    depth = coerce_int(settings.get("scanDepth"), default_depth, lo=1)
    authors = {m.speaker.casefold() for m in snapshot.recent(depth) if m.speaker}

    if _match_mode(settings) is MatchMode.ALL:
        return names <= authors
    return bool(names & authors)


def _compare(actual: int, settings: dict[str, Any]) -> bool:
    expected = coerce_int(settings.get("count"), 0, lo=0)
    operator = coerce_choice(settings.get("operator"), Operator, Operator.EQ)
    if operator is Operator.GTE:
        return actual >= expected
    if operator is Operator.LTE:
        return actual <= expected
    return actual == expected


def _expression_signal(snapshot: ConversationSnapshot, window: tuple[Message, ...]) -> str | None:
    """Emotion from the expressions classifier, or None when it is unavailable."""
    label = normalize_emotion(snapshot.expression_emotion)
    if label is not None:
        return label
    for message in reversed(window):
        label = normalize_emotion(message.emotion)
        if label is not None:
            return label
    return None


def _eval_emotion(settings: dict[str, Any], snapshot: ConversationSnapshot) -> bool:
    wanted = {e.lower() for e in split_list(settings.get("values"))}
    if not wanted:
        return False
    unknown = wanted.difference(VALID_EMOTIONS)
    if unknown:
        logger.warning(f"Unknown emotion label(s) in condition: {sorted(unknown)}")

    depth = coerce_int(settings.get("scanDepth"), DEFAULT_EMOTION_SCAN_DEPTH, lo=1)
    window = snapshot.recent(depth)
    method = coerce_choice(settings.get("detectionMethod"), DetectionMethod, DetectionMethod.AUTO)

    signal = _expression_signal(snapshot, window)
    by_expression = signal is not None and signal in wanted

    if method is DetectionMethod.EXPRESSIONS:
        return by_expression
    if method is DetectionMethod.AUTO and signal is not None:
        return by_expression

    by_pattern = bool(detect_emotions(window) & wanted)
    if method is DetectionMethod.BOTH:
        return by_expression and by_pattern
    return by_pattern


def _eval_generation_type(settings: dict[str, Any], snapshot: ConversationSnapshot) -> bool:
    current = snapshot.generation_type
    if not current:
        return False
    wanted = {g.lower() for g in split_list(settings.get("values"))}
    return current.lower() in wanted


def _eval_lorebook(settings: dict[str, Any], snapshot: ConversationSnapshot) -> bool:
    """`world` matches any active entry of that world; `world:uid` one entry."""
    active = snapshot.active_lorebook_entries
    if not active:
        return False
    active_worlds = {world for world, _ in active}

    for ref in split_list(settings.get("values")):
        if ref in active_worlds:
            return True
        world, sep, uid = ref.rpartition(":")
        if sep and (world, uid) in active:
            return True
    return False


def _parse_clock(value: Any, default: time) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        for fmt in ("%H:%M", "%H:%M:%S"):
            try:
                return datetime.strptime(value.strip(), fmt).time()
            except ValueError:
                continue
    if value is not None:
        logger.warning(f"Invalid time-of-day value {value!r}, using {default:%H:%M}")
    return default


def _eval_time_of_day(settings: dict[str, Any], snapshot: ConversationSnapshot) -> bool:
    """Half-open window [start, end); wraps past midnight when end < start."""
    start = _parse_clock(settings.get("startTime"), DEFAULT_START_TIME)
    end = _parse_clock(settings.get("endTime"), DEFAULT_END_TIME)
    now = snapshot.now.time().replace(second=0, microsecond=0)

    if start == end:
        return False
    if start < end:
        return start <= now < end
    return now >= start or now < end


def _eval_random(settings: dict[str, Any], rng: random.Random) -> bool:
    probability = coerce_float(settings.get("probability"), DEFAULT_PROBABILITY, lo=0.0, hi=100.0)
    return rng.random() * 100.0 < probability


# ============================================================================
# Public API
# ============================================================================


def evaluate(
    rule: ConditionRule,
    snapshot: ConversationSnapshot,
    rng: random.Random | None = None,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> bool:
    """
    Evaluate one rule against the conversation, ignoring `negate`.

    Args:
        rule: The condition rule.
        snapshot: Current conversation.
        rng: Source for `randomChance`; sampled once per call.
        options: Regex safety limits for pattern rules.

    Returns:
        The raw rule result. Unknown rule types return False.
    """
    kind = parse_condition_type(rule.type)
    settings = rule.settings

    if kind is None:
        logger.warning(f"Unknown condition type {rule.type!r}; treating as not matched")
        return False

    if kind is ConditionType.PATTERN:
        return _eval_pattern(settings, snapshot, options)
    if kind is ConditionType.SPEAKER:
        return _eval_speakers(settings, snapshot, DEFAULT_SPEAKER_SCAN_DEPTH)
    if kind is ConditionType.CHARACTER_PRESENT:
        return _eval_speakers(settings, snapshot, DEFAULT_PRESENCE_SCAN_DEPTH)
    if kind is ConditionType.MESSAGE_COUNT:
        return _compare(snapshot.message_count, settings)
    if kind is ConditionType.EMOTION:
        return _eval_emotion(settings, snapshot)
    if kind is ConditionType.IS_GROUP_CHAT:
        return snapshot.is_group_chat == coerce_bool(settings.get("isGroup"), default=True)
    if kind is ConditionType.GENERATION_TYPE:
        return _eval_generation_type(settings, snapshot)
    if kind is ConditionType.LOREBOOK_ACTIVE:
        return _eval_lorebook(settings, snapshot)
    if kind is ConditionType.SWIPE_COUNT:
        last = snapshot.last_message
        return _compare(last.swipe_count if last else 0, settings)
    if kind is ConditionType.TIME_OF_DAY:
        return _eval_time_of_day(settings, snapshot)
    if kind is ConditionType.RANDOM_CHANCE:
        return _eval_random(settings, rng or random.Random())

    logger.warning(f"Condition type {kind.value!r} has no evaluator")
    return False


def evaluate_rule(
    rule: ConditionRule,
    snapshot: ConversationSnapshot,
    rng: random.Random | None = None,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> bool:
    """Evaluate a rule and apply its `negate` flag.

    A rule of unknown type stays False even when negated, so a broken rule
    can never switch a collection on.
    """
    if parse_condition_type(rule.type) is None:
        return evaluate(rule, snapshot, rng, options)
    result = evaluate(rule, snapshot, rng, options)
    return not result if rule.negate else result


def resolve(results: Iterable[bool], logic: ConditionLogic) -> bool:
    """
    Combine rule results (negation already applied).

    Results are consumed lazily, so a generator gets short-circuited:
    AND stops at the first False, OR at the first True. An empty sequence
    resolves False under both logics.
    """
    if logic is ConditionLogic.OR:
        return any(results)

    seen = False
    for result in results:
        if not result:
            return False
        seen = True
    return seen


def resolve_conditions(
    conditions: ConditionSet,
    snapshot: ConversationSnapshot,
    rng: random.Random | None = None,
    options: MatchOptions = DEFAULT_MATCH_OPTIONS,
) -> bool:
    """Evaluate a collection's condition set; disabled sets resolve False."""
    if not conditions.enabled:
        return False
    rng = rng or random.Random()
    return resolve(
        (evaluate_rule(rule, snapshot, rng, options) for rule in conditions.rules),
        conditions.logic,
    )
