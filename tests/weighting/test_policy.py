"""Tests for the weighting policy, composite formulas and the weighting engine."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest

from trust_scoring.core.exceptions import PolicyConfigError
from trust_scoring.core.types import Prompt, ScoreRecord
from trust_scoring.weighting.algorithms import resolve_algorithm, sim_scores_001, sim_scores_002, source_weight
from trust_scoring.weighting.decay import DecayCurve
from trust_scoring.weighting.engine import weight, weight_records
from trust_scoring.weighting.policy import WeightingPolicy


def _record(t0, *, source="validator", value=1.0, responded_after=timedelta(days=15), prompt_id="p1"):
    return ScoreRecord(
        submission_cid="cid-1",
        sequence=1,
        index=0,
        prompt_id=prompt_id,
        response_id="r1",
        provider_id="acme",
        model_id="acme-1",
        scorer_identifier="multiple-choice",
        value=value,
        responded_at=t0 + responded_after if responded_after is not None else None,
        uploader_id="alice",
        source=source,
    )


def _prompt(t0):
    return Prompt(id="p1", type="multiple-choice", question="Q", options={"A": "a"}, answer_key="A", created_at=t0)


# ------------------------------------------------------------------
# Policy
# ------------------------------------------------------------------


def test_defaults() -> None:
    policy = WeightingPolicy()
    assert policy.user_scoring_algorithm == "simScores001"
    assert policy.user_weight_multiplier == 1.0
    assert policy.min_coverage == 0
    assert policy.prompt_age == DecayCurve("none", timedelta(days=180), timedelta(days=30))
    assert policy.response_delay == DecayCurve("none", timedelta(days=30), timedelta(days=7))


def test_from_config_accepts_camel_case() -> None:
    policy = WeightingPolicy.from_config({
        "userScoringAlgorithm": "simScores002",
        "userWeightMultiplier": "1.5",
        "minCoverage": 50,
        "promptAgeWeighting": "linear",
        "promptAgeHorizon": "10d",
        "response_delay_weighting": "exponential",
        "responseDelayHalfLife": 3600,
    })
    assert policy.user_scoring_algorithm == "simScores002"
    assert policy.user_weight_multiplier == 1.5
    assert policy.min_coverage == 50.0
    assert policy.prompt_age == DecayCurve("linear", timedelta(days=10), timedelta(days=30))
    assert policy.response_delay.shape == "exponential"
    assert policy.response_delay.half_life == timedelta(hours=1)


def test_none_values_keep_defaults() -> None:
    assert WeightingPolicy.from_config({"minCoverage": None}) == WeightingPolicy()


@pytest.mark.parametrize(
    "config",
    [
        {"userScoringAlgorithm": "simScores003"},
        {"userWeightMultiplier": 2.5},
        {"userWeightMultiplier": -0.1},
        {"userWeightMultiplier": True},
        {"userWeightMultiplier": "lots"},
        {"minCoverage": 101},
        {"promptAgeWeighting": "step"},
        {"promptAgeHorizon": "forever"},
        {"decay": "linear"},
    ],
)
def test_invalid_config_raises(config) -> None:
    with pytest.raises(PolicyConfigError):
        WeightingPolicy.from_config(config)


def test_with_overrides_and_round_trip() -> None:
    base = WeightingPolicy.from_config({"promptAgeWeighting": "exponential"})
    changed = base.with_overrides(minCoverage=25, user_weight_multiplier=None)

    assert changed.min_coverage == 25
    assert changed.prompt_age == base.prompt_age
    assert changed.user_weight_multiplier == base.user_weight_multiplier
    assert WeightingPolicy.from_config(changed.to_dict()) == changed


def test_fingerprint_tracks_content() -> None:
    assert WeightingPolicy().fingerprint() == WeightingPolicy.from_config({}).fingerprint()
    assert WeightingPolicy().fingerprint() != WeightingPolicy(min_coverage=10).fingerprint()


# ------------------------------------------------------------------
# Algorithms
# ------------------------------------------------------------------


def test_composite_formulas() -> None:
    assert sim_scores_001(0.5, 0.5, 1.0) == 0.25
    assert sim_scores_002(0.5, 0.5, 1.0) == pytest.approx(0.5)
    assert sim_scores_002(0.25, 1.0, 0.5) == pytest.approx(0.25)
    assert resolve_algorithm("simScores001") is sim_scores_001
    with pytest.raises(PolicyConfigError):
        resolve_algorithm("simScores999")


@pytest.mark.parametrize(
    ("multiplier", "user", "validator"),
    [(0.0, 0.0, 1.0), (0.5, 0.5, 1.0), (1.0, 1.0, 1.0), (2.0, 1.0, 0.5)],
)
def test_source_weight(multiplier, user, validator) -> None:
    assert source_weight("user", multiplier) == pytest.approx(user)
    assert source_weight("validator", multiplier) == pytest.approx(validator)
    if multiplier:
        assert source_weight("user", multiplier) / source_weight("validator", multiplier) == pytest.approx(multiplier)


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


def test_weight_combines_decays(t0) -> None:
    policy = WeightingPolicy.from_config({"promptAgeWeighting": "linear", "responseDelayWeighting": "linear"})

    weighted = weight(_record(t0), policy, prompt=_prompt(t0), now=t0 + timedelta(days=90))

    assert weighted.age_weight == pytest.approx(0.5)
    assert weighted.delay_weight == pytest.approx(0.5)
    assert weighted.source_weight == 1.0
    assert weighted.weight == pytest.approx(0.25)
    assert weighted.score == 1.0

    geometric = weight(_record(t0), policy.with_overrides(userScoringAlgorithm="simScores002"),
                       prompt=_prompt(t0), now=t0 + timedelta(days=90))
    assert geometric.weight == pytest.approx(0.5)


def test_weights_stay_in_unit_interval(t0) -> None:
    policy = WeightingPolicy.from_config({
        "promptAgeWeighting": "exponential",
        "responseDelayWeighting": "linear",
        "userWeightMultiplier": 2,
    })
    for days in (0, 1, 30, 365, 5000):
        for source in ("user", "validator"):
            weighted = weight(_record(t0, source=source), policy, prompt=_prompt(t0), now=t0 + timedelta(days=days))
            for component in (weighted.age_weight, weighted.delay_weight, weighted.source_weight, weighted.weight):
                assert 0.0 <= component <= 1.0
                assert math.isfinite(component)


def test_missing_timestamps_do_not_decay(t0) -> None:
    policy = WeightingPolicy.from_config({"promptAgeWeighting": "linear", "responseDelayWeighting": "linear"})

    no_prompt = weight(_record(t0), policy, prompt=None, now=t0 + timedelta(days=500))
    no_response_time = weight(_record(t0, responded_after=None), policy, prompt=_prompt(t0), now=t0)

    assert (no_prompt.age_weight, no_prompt.delay_weight) == (1.0, 1.0)
    assert no_response_time.delay_weight == 1.0


def test_zero_multiplier_silences_users(t0) -> None:
    policy = WeightingPolicy(user_weight_multiplier=0)
    assert weight(_record(t0, source="user"), policy, prompt=_prompt(t0), now=t0).weight == 0.0
    assert weight(_record(t0, source="validator"), policy, prompt=_prompt(t0), now=t0).weight == 1.0


def test_weight_is_deterministic(t0) -> None:
    policy = WeightingPolicy.from_config({"promptAgeWeighting": "exponential"})
    now = t0 + timedelta(days=17)
    assert weight(_record(t0), policy, prompt=_prompt(t0), now=now) == weight(_record(t0), policy, prompt=_prompt(t0), now=now)


def test_weight_records_looks_up_prompts(t0) -> None:
    policy = WeightingPolicy.from_config({"promptAgeWeighting": "linear"})
    records = [_record(t0), _record(t0, prompt_id="unknown")]

    weighted = weight_records(records, policy, prompts={"p1": _prompt(t0)}, now=t0 + timedelta(days=90),
                              coverage_pass=lambda record: record.prompt_id == "p1")

    assert [w.age_weight for w in weighted] == [pytest.approx(0.5), 1.0]
    assert [w.coverage_pass for w in weighted] == [True, False]
