"""Tests for policy models: defaults, coercion, clamping and the flat panel record."""

from recallgate.policy.types import (
    CollectionPolicy,
    ConditionLogic,
    DecayConfig,
    DecayMode,
    DecayType,
    InjectionConfig,
    InjectionPosition,
    MatchMode,
    default_decay_for,
    default_policy_for,
    sanitize_xml_tag,
)


class TestDefaults:
    def test_policy_defaults(self):
        policy = CollectionPolicy()
        assert policy.always_active is False
        assert policy.triggers.values == []
        assert policy.triggers.match_mode is MatchMode.ANY
        assert policy.triggers.scan_depth == 5
        assert policy.conditions.enabled is False
        assert policy.conditions.logic is ConditionLogic.AND
        assert policy.decay.enabled is False

    def test_decay_defaults(self):
        decay = DecayConfig()
        assert decay.type is DecayType.DECAY
        assert decay.mode is DecayMode.EXPONENTIAL
        assert (decay.half_life, decay.linear_rate, decay.min_relevance, decay.max_boost) == (50, 0.01, 0.3, 1.2)
        assert decay.scene_aware is False

    def test_chat_collections_decay_by_default(self):
        assert default_decay_for("chat").enabled is True
        assert default_decay_for("file").enabled is False
        assert default_policy_for(None).decay.enabled is False


class TestCoercion:
    def test_garbage_numbers_use_defaults(self):
        decay = DecayConfig.model_validate({"halfLife": "soon", "linearRate": None, "maxBoost": float("nan")})
        assert decay.half_life == 50
        assert decay.linear_rate == 0.01
        assert decay.max_boost == 1.2

    def test_numbers_are_clamped(self):
        decay = DecayConfig.model_validate(
            {"halfLife": -4, "linearRate": 2, "minRelevance": -1, "maxBoost": 10}
        )
        assert decay.half_life == 1
        assert decay.linear_rate == 0.5
        assert decay.min_relevance == 0.0
        assert decay.max_boost == 3.0

    def test_numeric_strings_accepted(self):
        decay = DecayConfig.model_validate({"halfLife": "25", "linearRate": "0.02"})
        assert decay.half_life == 25
        assert decay.linear_rate == 0.02

    def test_unknown_enums_use_defaults(self):
        policy = CollectionPolicy.model_validate(
            {
                "triggers": {"values": ["a"], "matchMode": "some"},
                "conditions": {"logic": "XOR"},
                "decay": {"type": "rot", "mode": "cubic"},
            }
        )
        assert policy.triggers.match_mode is MatchMode.ANY
        assert policy.conditions.logic is ConditionLogic.AND
        assert policy.decay.type is DecayType.DECAY
        assert policy.decay.mode is DecayMode.EXPONENTIAL

    def test_scan_depth_minimum(self):
        policy = CollectionPolicy.model_validate({"triggers": {"values": ["a"], "scanDepth": 0}})
        assert policy.triggers.scan_depth == 1

    def test_malformed_rules_dropped(self):
        policy = CollectionPolicy.model_validate(
            {"conditions": {"enabled": True, "rules": ["oops", {"type": "speaker"}, 5]}}
        )
        assert [r.type for r in policy.conditions.rules] == ["speaker"]

    def test_unknown_rule_type_survives_round_trip(self):
        policy = CollectionPolicy.model_validate({"conditions": {"rules": [{"type": "moonPhase", "settings": {"x": 1}}]}})
        record = policy.to_record()
        assert record["conditions"]["rules"][0] == {"type": "moonPhase", "negate": False, "settings": {"x": 1}}

    def test_from_raw_never_raises(self):
        assert CollectionPolicy.from_raw(None) == CollectionPolicy()
        assert CollectionPolicy.from_raw("nonsense") == CollectionPolicy()
        policy = CollectionPolicy.from_raw({"alwaysActive": True, "decay": [1, 2]})
        assert policy.always_active is True
        assert policy.decay == DecayConfig()


class TestFlatRecord:
    def test_panel_record_is_folded(self):
        policy = CollectionPolicy.model_validate(
            {
                "alwaysActive": False,
                "triggers": ["dragon", "castle"],
                "triggerMatchMode": "all",
                "triggerScanDepth": 8,
                "triggerCaseSensitive": True,
                "temporalDecay": {"enabled": True, "halfLife": 30},
                "context": "Things {{char}} remembers:",
                "xmlTag": "memories",
                "position": 1,
                "depth": 4,
            }
        )
        assert policy.triggers.values == ["dragon", "castle"]
        assert policy.triggers.match_mode is MatchMode.ALL
        assert policy.triggers.scan_depth == 8
        assert policy.triggers.case_sensitive is True
        assert policy.decay.enabled is True
        assert policy.decay.half_life == 30
        assert policy.injection.xml_tag == "memories"
        assert policy.injection.position is InjectionPosition.IN_CHAT
        assert policy.injection.depth == 4

    def test_record_uses_camel_case(self):
        record = CollectionPolicy(always_active=True).to_record()
        assert record["alwaysActive"] is True
        assert "halfLife" in record["decay"]
        assert "scanDepth" in record["triggers"]


class TestInjection:
    def test_xml_tag_sanitized(self):
        assert sanitize_xml_tag("my tag<script>") == "mytagscript"
        assert InjectionConfig(xml_tag="a b-c_d!").xml_tag == "ab-c_d"

    def test_depth_only_for_in_chat(self):
        assert InjectionConfig(position=0, depth=4).depth is None
        assert InjectionConfig(position=1).depth == 2
        assert InjectionConfig(position=1, depth=99).depth == 50

    def test_unknown_position_means_host_default(self):
        assert InjectionConfig(position=7).position is None
        assert InjectionConfig(position="").position is None
