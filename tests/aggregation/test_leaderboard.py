"""Tests for weighted-mean aggregation, ranking and pagination."""

from __future__ import annotations

import random

import pytest

from trust_scoring.core.exceptions import PolicyConfigError
from trust_scoring.core.types import LeaderboardEntry, ScoreRecord, WeightedScore
from trust_scoring.aggregation.leaderboard import (
    aggregate,
    consensus_agreement,
    coverage_by_entity,
    paginate,
)

PROMPTS = [f"p{index}" for index in range(4)]


def scored(model_id, prompt_id, score, weight=1.0, *, sequence=1, index=0, signer=None,
           coverage_pass=True, provider_id="acme", prompt_set_id="set-1", uploader="alice"):
    record = ScoreRecord(
        submission_cid=f"cid-{sequence}",
        sequence=sequence,
        index=index,
        prompt_id=prompt_id,
        response_id=f"{model_id}-{prompt_id}",
        provider_id=provider_id,
        model_id=model_id,
        scorer_identifier="multiple-choice",
        value=score,
        responded_at=None,
        uploader_id=uploader,
        source="validator",
        signer_address=signer,
        prompt_set_id=prompt_set_id,
    )
    return WeightedScore(
        record=record,
        score=score,
        age_weight=1.0,
        delay_weight=1.0,
        source_weight=1.0,
        weight=weight,
        coverage_pass=coverage_pass,
    )


def test_weighted_mean() -> None:
    report = aggregate([scored("m1", "p0", 1.0, 1.0), scored("m1", "p1", 0.0, 0.5)], eligible_prompts=PROMPTS)

    entry = report.entries[0]
    assert entry.weighted_mean_score == pytest.approx(2 / 3)
    assert entry.sample_count == 2
    assert entry.total_weight == pytest.approx(1.5)
    assert entry.coverage == 0.5
    assert entry.rank == 1


def test_zero_weight_and_undefined_scores_do_not_count() -> None:
    report = aggregate(
        [scored("m1", "p0", 1.0), scored("m1", "p1", 0.0, 0.0), scored("m1", "p2", None)],
        eligible_prompts=PROMPTS,
    )
    entry = report.entries[0]
    assert entry.weighted_mean_score == 1.0
    assert entry.sample_count == 1
    assert report.stats()["scoredRecords"] == 2


def test_entity_without_positive_weight_is_omitted() -> None:
    report = aggregate([scored("m1", "p0", 1.0, 0.0), scored("m2", "p0", 0.5)], eligible_prompts=PROMPTS)
    assert [entry.entity_id for entry in report.entries] == ["m2"]
    assert report.excluded_by_weight == ("m1",)


def test_ordering_and_tie_breaks() -> None:
    scores = [
        scored("zeta", "p0", 0.5), scored("zeta", "p1", 0.5),
        scored("alpha", "p0", 0.5), scored("alpha", "p1", 0.5),
        scored("beta", "p0", 0.5),
        scored("gamma", "p0", 0.9),
    ]
    report = aggregate(scores, eligible_prompts=PROMPTS)
    assert [(e.entity_id, e.rank) for e in report.entries] == [("gamma", 1), ("alpha", 2), ("zeta", 3), ("beta", 4)]


def test_min_coverage_gate() -> None:
    scores = [scored("full", p, 1.0) for p in PROMPTS] + [scored("half", p, 1.0) for p in PROMPTS[:2]]

    strict = aggregate(scores, eligible_prompts=PROMPTS, min_coverage=60)
    lenient = aggregate(scores, eligible_prompts=PROMPTS, min_coverage=50)

    assert [e.entity_id for e in strict.entries] == ["full"]
    assert strict.excluded_by_coverage == ("half",)
    assert [e.entity_id for e in lenient.entries] == ["full", "half"]


def test_coverage_pass_flag_excludes_entity() -> None:
    report = aggregate([scored("m1", "p0", 1.0, coverage_pass=False), scored("m2", "p0", 0.1)],
                       eligible_prompts=PROMPTS)
    assert [e.entity_id for e in report.entries] == ["m2"]
    assert report.excluded_by_coverage == ("m1",)


def test_group_by_provider() -> None:
    scores = [scored("m1", "p0", 1.0, provider_id="acme"), scored("m2", "p0", 0.0, provider_id="acme"),
              scored("m3", "p0", 0.5, provider_id="globex")]
    report = aggregate(scores, "provider", eligible_prompts=PROMPTS)
    assert [(e.entity_id, e.sample_count) for e in report.entries] == [("acme", 2), ("globex", 1)]


def test_unsigned_records_do_not_join_a_validator() -> None:
    address = "ab" * 32
    scores = [scored("m1", "p0", 1.0, signer=address),
              scored("m1", "p1", 0.0, sequence=2, uploader=address)]

    report = aggregate(scores, "validator", eligible_prompts=PROMPTS)

    assert [(e.entity_id, e.weighted_mean_score) for e in report.entries] == [
        (address, 1.0),
        (f"user:{address}", 0.0),
    ]


def test_unknown_group_by() -> None:
    with pytest.raises(PolicyConfigError):
        aggregate([], "country", eligible_prompts=PROMPTS)


def test_result_does_not_depend_on_input_order_or_workers() -> None:
    rng = random.Random(7)
    scores = [
        scored(f"m{rng.randrange(6)}", rng.choice(PROMPTS), rng.random(), rng.random(), sequence=n, index=n % 3)
        for n in range(200)
    ]
    baseline = aggregate(scores, eligible_prompts=PROMPTS, max_workers=1)
    shuffled = scores[:]
    rng.shuffle(shuffled)
    assert aggregate(shuffled, eligible_prompts=PROMPTS, max_workers=8).entries == baseline.entries


def test_prompt_set_distribution_counts_contributing_records() -> None:
    scores = [scored("m1", "p0", 1.0), scored("m1", "p1", 1.0, prompt_set_id="set-2"),
              scored("m2", "p0", 1.0, 0.0)]
    report = aggregate(scores, eligible_prompts=PROMPTS)
    assert report.prompt_set_distribution == {"set-1": 1, "set-2": 1}
    assert report.contributing_records == 2


def test_coverage_by_entity_counts_defined_eligible_scores() -> None:
    records = [s.record for s in (scored("m1", "p0", 1.0), scored("m1", "p0", 0.0), scored("m1", "p1", None),
                                  scored("m1", "x9", 1.0), scored("m2", "p3", 0.0))]
    assert coverage_by_entity(records, "model", PROMPTS) == {"m1": 0.25, "m2": 0.25}


def test_consensus_agreement() -> None:
    scores = [
        scored("m1", "p0", 1.0, signer="v1"),
        scored("m1", "p0", 1.0, signer="v2"),
        scored("m1", "p0", 0.0, signer="v3"),
        scored("m1", "p1", 1.0, signer="v1"),
        scored("m1", "p1", 1.0, signer="v2"),
    ]
    agreed = [s.score for s in consensus_agreement(scores)]
    assert agreed[:3] == [pytest.approx(0.5), pytest.approx(0.5), 0.0]
    assert agreed[3:] == [None, None]


def test_paginate() -> None:
    entries = [LeaderboardEntry(f"m{n}", 1.0, 1, 1.0, n + 1) for n in range(5)]

    window, pagination = paginate(entries, page=3, page_size=2)
    assert [e.entity_id for e in window] == ["m4"]
    assert pagination.to_dict() == {"page": 3, "pageSize": 2, "totalCount": 5, "totalPages": 3}

    beyond, _ = paginate(entries, page=9, page_size=2)
    assert beyond == ()
    assert paginate([], page=1)[1].total_pages == 0


@pytest.mark.parametrize(("page", "page_size"), [(0, 10), (1, 0), (1, 501)])
def test_paginate_rejects_out_of_range(page, page_size) -> None:
    with pytest.raises(ValueError):
        paginate([], page=page, page_size=page_size)
