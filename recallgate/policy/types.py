"""Collection policy types (Pydantic models with camelCase JSON aliases).

Every field coerces bad input to its documented default instead of failing:
a malformed policy must never abort a turn. Out-of-range numbers are clamped
to the nearest valid value.
"""

import math
import re
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

XML_TAG_PATTERN = re.compile(r"[^a-zA-Z0-9_-]")
MAX_INJECTION_DEPTH = 50


class MatchMode(str, Enum):
    """How a list of triggers/patterns/names combines."""
    ANY = "any"
    ALL = "all"


class ConditionLogic(str, Enum):
    """How condition rule results combine."""
    AND = "AND"
    OR = "OR"


class DecayType(str, Enum):
    """Direction of temporal weighting."""
    DECAY = "decay"
    NOSTALGIA = "nostalgia"


class DecayMode(str, Enum):
    """Curve shape of temporal weighting."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"


class InjectionPosition(int, Enum):
    """Where a collection's chunks land in the prompt."""
    AFTER_PROMPT = 0
    IN_CHAT = 1
    BEFORE_PROMPT = 2


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def coerce_int(value: Any, default: int, lo: int | None = None, hi: int | None = None) -> int:
    """Parse an int leniently, clamping into [lo, hi]; garbage -> default."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    result = int(number)
    if lo is not None:
        result = max(lo, result)
    if hi is not None:
        result = min(hi, result)
    return result


def coerce_float(value: Any, default: float, lo: float | None = None, hi: float | None = None) -> float:
    """Parse a float leniently, clamping into [lo, hi]; garbage -> default."""
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    if lo is not None:
        result = max(lo, result)
    if hi is not None:
        result = min(hi, result)
    return result


def coerce_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def coerce_choice(value: Any, enum_cls: type[Enum], default: Enum) -> Enum:
    """Map a raw value onto an enum member, case-insensitively."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if str(member.value).lower() == value.strip().lower():
                return member
    return default


def split_list(value: Any, separators: str = ",") -> list[str]:
    """Normalize a list-or-delimited-string into trimmed, non-blank strings."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = re.split(f"[{re.escape(separators)}]", value)
    elif isinstance(value, (list, tuple, set, frozenset)):
        parts = [str(v) for v in value if v is not None]
    else:
        return []
    return [p.strip() for p in parts if p.strip()]


def parse_trigger_text(raw: str) -> list[str]:
    """Split trigger text the way the settings editor does: newlines or commas."""
    return split_list(raw, separators="\n,")


def sanitize_xml_tag(tag: Any) -> str:
    """Strip everything but letters, digits, underscore and hyphen."""
    if not isinstance(tag, str):
        return ""
    return XML_TAG_PATTERN.sub("", tag)


# ---------------------------------------------------------------------------
# Policy sections
# ---------------------------------------------------------------------------

class TriggerConfig(BaseModel):
    """Keyword/regex triggers, evaluated like a lorebook entry's keys."""

    values: list[str] = Field(default_factory=list)
    match_mode: MatchMode = Field(MatchMode.ANY, alias="matchMode")
    case_sensitive: bool = Field(False, alias="caseSensitive")
    scan_depth: int = Field(5, alias="scanDepth")

    model_config = {"populate_by_name": True}

    @field_validator("values", mode="before")
    @classmethod
    def _values(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return parse_trigger_text(v)
        return split_list(v)

    @field_validator("match_mode", mode="before")
    @classmethod
    def _match_mode(cls, v: Any) -> MatchMode:
        return coerce_choice(v, MatchMode, MatchMode.ANY)

    @field_validator("case_sensitive", mode="before")
    @classmethod
    def _case_sensitive(cls, v: Any) -> bool:
        return coerce_bool(v)

    @field_validator("scan_depth", mode="before")
    @classmethod
    def _scan_depth(cls, v: Any) -> int:
        return coerce_int(v, 5, lo=1)

    @property
    def is_empty(self) -> bool:
        return not self.values


class ConditionRule(BaseModel):
    """One typed condition. `type` stays a raw string so unknown kinds survive a save."""

    type: str = "pattern"
    negate: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator("negate", mode="before")
    @classmethod
    def _negate(cls, v: Any) -> bool:
        return coerce_bool(v)

    @field_validator("settings", mode="before")
    @classmethod
    def _settings(cls, v: Any) -> dict[str, Any]:
        return dict(v) if isinstance(v, dict) else {}


class ConditionSet(BaseModel):
    """Structured rules combined with AND/OR."""

    enabled: bool = False
    logic: ConditionLogic = ConditionLogic.AND
    rules: list[ConditionRule] = Field(default_factory=list)

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled(cls, v: Any) -> bool:
        return coerce_bool(v)

    @field_validator("logic", mode="before")
    @classmethod
    def _logic(cls, v: Any) -> ConditionLogic:
        return coerce_choice(v, ConditionLogic, ConditionLogic.AND)

    @field_validator("rules", mode="before")
    @classmethod
    def _rules(cls, v: Any) -> list[Any]:
        if not isinstance(v, (list, tuple)):
            return []
        kept = []
        for item in v:
            if isinstance(item, (dict, ConditionRule)):
                kept.append(item)
            else:
                logger.warning(f"Dropping malformed condition rule: {item!r}")
        return kept


class DecayConfig(BaseModel):
    """Temporal weighting (decay or nostalgia) for one collection."""

    enabled: bool = False
    type: DecayType = DecayType.DECAY
    mode: DecayMode = DecayMode.EXPONENTIAL
    half_life: int = Field(50, alias="halfLife")
    linear_rate: float = Field(0.01, alias="linearRate")
    min_relevance: float = Field(0.3, alias="minRelevance")
    max_boost: float = Field(1.2, alias="maxBoost")
    scene_aware: bool = Field(False, alias="sceneAware")

    model_config = {"populate_by_name": True}

    @field_validator("enabled", "scene_aware", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> bool:
        return coerce_bool(v)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> DecayType:
        return coerce_choice(v, DecayType, DecayType.DECAY)

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, v: Any) -> DecayMode:
        return coerce_choice(v, DecayMode, DecayMode.EXPONENTIAL)

    @field_validator("half_life", mode="before")
    @classmethod
    def _half_life(cls, v: Any) -> int:
        return coerce_int(v, 50, lo=1)

    @field_validator("linear_rate", mode="before")
    @classmethod
    def _linear_rate(cls, v: Any) -> float:
        return coerce_float(v, 0.01, lo=0.001, hi=0.5)

    @field_validator("min_relevance", mode="before")
    @classmethod
    def _min_relevance(cls, v: Any) -> float:
        return coerce_float(v, 0.3, lo=0.0, hi=2.0)

    @field_validator("max_boost", mode="before")
    @classmethod
    def _max_boost(cls, v: Any) -> float:
        return coerce_float(v, 1.2, lo=1.0, hi=3.0)


class InjectionConfig(BaseModel):
    """Prompt context and placement for a collection's chunks."""

    context: str = ""
    xml_tag: str = Field("", alias="xmlTag")
    position: InjectionPosition | None = None   # None: host's global default
    depth: int | None = None

    model_config = {"populate_by_name": True}

    @field_validator("context", mode="before")
    @classmethod
    def _context(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("xml_tag", mode="before")
    @classmethod
    def _xml_tag(cls, v: Any) -> str:
        return sanitize_xml_tag(v)

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, v: Any) -> InjectionPosition | None:
        if v is None or v == "":
            return None
        number = coerce_int(v, -1)
        try:
            return InjectionPosition(number)
        except ValueError:
            return None

    @model_validator(mode="after")
    def _depth_only_in_chat(self) -> "InjectionConfig":
        if self.position is InjectionPosition.IN_CHAT:
            self.depth = coerce_int(self.depth, 2, lo=0, hi=MAX_INJECTION_DEPTH)
        else:
            self.depth = None
        return self


# ---------------------------------------------------------------------------
# Collection policy
# ---------------------------------------------------------------------------

_FLAT_TRIGGER_KEYS = {
    "triggerMatchMode": "matchMode",
    "triggerScanDepth": "scanDepth",
    "triggerCaseSensitive": "caseSensitive",
}
_FLAT_INJECTION_KEYS = ("context", "xmlTag", "position", "depth")


def fold_flat_record(data: Any) -> Any:
    """Accept the flat metadata record the settings panel writes."""
    if not isinstance(data, dict):
        return data
    data = dict(data)

    raw_triggers = data.get("triggers")
    if isinstance(raw_triggers, (list, tuple, str)):
        folded: dict[str, Any] = {"values": raw_triggers}
        for flat_key, key in _FLAT_TRIGGER_KEYS.items():
            if flat_key in data:
                folded[key] = data.pop(flat_key)
        data["triggers"] = folded
    elif raw_triggers is not None and not isinstance(raw_triggers, (dict, TriggerConfig)):
        data["triggers"] = {}

    if "temporalDecay" in data and "decay" not in data:
        data["decay"] = data.pop("temporalDecay")

    if "injection" not in data and any(k in data for k in _FLAT_INJECTION_KEYS):
        data["injection"] = {k: data.pop(k) for k in _FLAT_INJECTION_KEYS if k in data}

    for section in ("conditions", "decay", "injection"):
        if section in data and not isinstance(data[section], (dict, BaseModel)):
            logger.warning(f"Malformed policy section '{section}', using defaults")
            data.pop(section)
    return data


class CollectionPolicy(BaseModel):
    """Persisted activation + temporal configuration of one collection."""

    always_active: bool = Field(False, alias="alwaysActive")
    triggers: TriggerConfig = Field(default_factory=TriggerConfig)
    conditions: ConditionSet = Field(default_factory=ConditionSet)
    decay: DecayConfig = Field(default_factory=DecayConfig)
    injection: InjectionConfig = Field(default_factory=InjectionConfig)

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_record(cls, data: Any) -> Any:
        return fold_flat_record(data)

    @field_validator("always_active", mode="before")
    @classmethod
    def _always_active(cls, v: Any) -> bool:
        return coerce_bool(v)

    @classmethod
    def from_raw(cls, data: Any) -> "CollectionPolicy":
        """Build a policy from stored data, never raising.

        Sections that still fail validation are replaced by their defaults.
        """
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Policy record is not an object ({type(data).__name__}), using defaults")
            return cls()
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Malformed policy record, salvaging sections: {e}")

        folded = fold_flat_record(data)
        sections: dict[str, Any] = {"always_active": coerce_bool(folded.get("alwaysActive", folded.get("always_active")))}
        for name, model in (
            ("triggers", TriggerConfig),
            ("conditions", ConditionSet),
            ("decay", DecayConfig),
            ("injection", InjectionConfig),
        ):
            try:
                sections[name] = model.model_validate(folded.get(name) or {})
            except ValidationError:
                logger.warning(f"Policy section '{name}' invalid, using defaults")
                sections[name] = model()
        return cls(**sections)

    def to_record(self) -> dict[str, Any]:
        """Serialize with camelCase keys for storage."""
        return self.model_dump(by_alias=True, mode="json")


def default_decay_for(collection_type: str | None) -> DecayConfig:
    """Type-aware decay defaults: chat history decays, everything else is flat."""
    return DecayConfig(enabled=(collection_type == "chat"))


def default_policy_for(collection_type: str | None = None) -> CollectionPolicy:
    """Policy a collection gets when it first appears."""
    return CollectionPolicy(decay=default_decay_for(collection_type))
