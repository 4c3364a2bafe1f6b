"""Tests for temporal decay / nostalgia scoring."""

import pytest

from recallgate.policy.types import DecayConfig
from recallgate.scoring.temporal import (
    ScoredChunk,
    apply_decay,
    effective_age,
    score,
    temporal_weight,
)


def _chunk(similarity: float = 0.8, age: int = 0, **kwargs) -> ScoredChunk:
    return ScoredChunk(text="chunk", similarity_score=similarity, message_age=age, **kwargs)


def _decay(**record) -> DecayConfig:
    return DecayConfig.model_validate({"enabled": True, **record})


# ============================================================================
# Disabled
# ============================================================================


@pytest.mark.parametrize("similarity,age", [(0.0, 0), (0.8, 50), (0.123456789, 10_000), (1.0, 3)])
def test_disabled_is_exact_identity(similarity, age):
    chunk = _chunk(similarity, age)
    assert score(chunk, DecayConfig(enabled=False, half_life=1, min_relevance=0)) == similarity


# ============================================================================
# Decay
# ============================================================================


class TestExponentialDecay:
    def test_half_at_half_life(self):
        decay = _decay(halfLife=20, minRelevance=0)
        assert score(_chunk(0.6, 20), decay) == pytest.approx(0.3, abs=1e-9)

    def test_worked_example(self):
        decay = _decay(halfLife=50, type="decay", mode="exponential", minRelevance=0)
        assert score(_chunk(0.8, 50), decay) == pytest.approx(0.4, abs=1e-9)
        assert score(_chunk(0.8, 100), decay) == pytest.approx(0.2, abs=1e-9)

    def test_age_zero_is_full_weight(self):
        assert temporal_weight(0, _decay()) == pytest.approx(1.0)

    def test_floored_at_min_relevance(self):
        decay = _decay(halfLife=10, minRelevance=0.3)
        assert score(_chunk(1.0, 1000), decay) == pytest.approx(0.3)

    def test_zero_half_life_clamped(self):
        decay = _decay(halfLife=0, minRelevance=0)
        assert decay.half_life == 1
        assert score(_chunk(1.0, 1), decay) == pytest.approx(0.5)


class TestLinearDecay:
    def test_rate(self):
        decay = _decay(mode="linear", linearRate=0.01, minRelevance=0)
        assert score(_chunk(1.0, 30), decay) == pytest.approx(0.7)

    @pytest.mark.parametrize("age", [0, 1, 10, 50, 69, 70, 71, 500, 10_000])
    def test_never_below_floor(self, age):
        decay = _decay(mode="linear", linearRate=0.01, minRelevance=0.3)
        chunk = _chunk(0.9, age)
        assert score(chunk, decay) >= 0.9 * 0.3 - 1e-12


# ============================================================================
# Nostalgia
# ============================================================================


class TestNostalgia:
    @pytest.mark.parametrize("mode", ["exponential", "linear"])
    def test_monotonic_and_capped(self, mode):
        decay = _decay(type="nostalgia", mode=mode, halfLife=10, linearRate=0.05, maxBoost=1.5)
        weights = [temporal_weight(age, decay) for age in range(0, 300, 3)]
        assert weights == sorted(weights)
        assert max(weights) <= 1.5
        assert weights[0] == pytest.approx(1.0)

    def test_exponential_halfway_to_boost(self):
        decay = _decay(type="nostalgia", halfLife=50, maxBoost=1.2)
        assert temporal_weight(50, decay) == pytest.approx(1.1)

    def test_linear_capped(self):
        decay = _decay(type="nostalgia", mode="linear", linearRate=0.1, maxBoost=1.2)
        assert score(_chunk(0.5, 100), decay) == pytest.approx(0.6)


# ============================================================================
# Scene awareness
# ============================================================================


class TestSceneAware:
    def test_age_resets_at_boundary(self):
        decay = _decay(halfLife=10, minRelevance=0, sceneAware=True)
        chunk = _chunk(0.8, 100, scene_boundary_crossed=True, scene_age=10)
        assert effective_age(chunk, decay) == 10
        assert score(chunk, decay) == pytest.approx(0.4)

    def test_crossed_without_scene_age_is_fresh(self):
        decay = _decay(sceneAware=True)
        chunk = _chunk(0.8, 100, scene_boundary_crossed=True)
        assert score(chunk, decay) == pytest.approx(0.8)

    def test_ignored_when_not_scene_aware(self):
        decay = _decay(halfLife=100, minRelevance=0)
        chunk = _chunk(0.8, 100, scene_boundary_crossed=True, scene_age=0)
        assert effective_age(chunk, decay) == 100

    def test_scene_age_capped_at_message_age(self):
        decay = _decay(sceneAware=True)
        chunk = _chunk(0.8, 5, scene_boundary_crossed=True, scene_age=40)
        assert effective_age(chunk, decay) == 5

    def test_applies_to_nostalgia(self):
        decay = _decay(type="nostalgia", sceneAware=True)
        chunk = _chunk(0.8, 100, scene_boundary_crossed=True, scene_age=0)
        assert score(chunk, decay) == pytest.approx(0.8)


def test_apply_decay_returns_new_chunk():
    chunk = _chunk(0.8, 50)
    scored = apply_decay(chunk, _decay(halfLife=50, minRelevance=0))
    assert chunk.adjusted_score is None
    assert scored.adjusted_score == pytest.approx(0.4)
    assert scored.final_score == scored.adjusted_score


def test_negative_age_treated_as_zero():
    assert score(_chunk(0.8, -5), _decay()) == pytest.approx(0.8)
