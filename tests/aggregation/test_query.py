"""End-to-end leaderboard queries over an ingested submission log."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from trust_scoring.aggregation.query import LeaderboardCache, LeaderboardQuery, LeaderboardService
from trust_scoring.core.exceptions import PolicyConfigError
from trust_scoring.integrity.signing import signer_address


@pytest.fixture()
def service(log) -> LeaderboardService:
    return LeaderboardService(log, max_workers=2)


def _ingest(ingestor, make_submission, payload, **kwargs):
    submission = make_submission(payload, **kwargs)
    result = ingestor.ingest(submission)
    assert result.accepted, result
    return submission


def test_honest_model_outranks_repeated_wrong_answers(service, ingestor, make_submission,
                                                       prompts_payload, scores_payload, signing_keys) -> None:
    _ingest(ingestor, make_submission, prompts_payload(10), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 10), key=signing_keys[0])

    wrong = scores_payload("model-b", [0.0] * 10)
    outcomes = [
        ingestor.ingest(make_submission(wrong, uploader=f"sybil-{n}", key=signing_keys[n])).reason
        for n in (1, 2, 3)
    ]

    page = service.query()

    assert outcomes == [None, "duplicate", "duplicate"]
    assert [(e.entity_id, e.rank) for e in page.data] == [("model-a", 1), ("model-b", 2)]
    best, worst = page.data
    assert best.weighted_mean_score == 1.0 and best.sample_count == 10 and best.coverage == 1.0
    assert worst.weighted_mean_score == 0.0 and worst.sample_count == 10
    assert page.stats["totalRecords"] == 20
    assert page.prompt_set_distribution == {"set-1": 20}
    assert page.pagination.total_count == 2


def test_coverage_gate(service, ingestor, make_submission, prompts_payload, scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(20), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [0.5] * 20))
    _ingest(ingestor, make_submission, scores_payload("model-c", [1.0] * 8))

    gated = service.query(LeaderboardQuery(min_coverage=50))
    open_board = service.query(LeaderboardQuery(min_coverage=40))

    assert [e.entity_id for e in gated.data] == ["model-a"]
    assert gated.stats["excludedByCoverage"] == 1
    assert [e.entity_id for e in open_board.data] == ["model-c", "model-a"]
    assert open_board.data[0].coverage == pytest.approx(0.4)


def test_trusted_review_excludes_target(log, ingestor, make_submission, prompts_payload,
                                        scores_payload, signing_keys) -> None:
    service = LeaderboardService(log, trusted_reviewers={signer_address(signing_keys[4])})
    _ingest(ingestor, make_submission, prompts_payload(3), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 3))
    flagged = _ingest(ingestor, make_submission, scores_payload("model-b", [1.0] * 3))

    _ingest(ingestor, make_submission, {"type": "review", "data": {"targets": [flagged.cid]}}, uploader="anon")
    assert {e.entity_id for e in service.query().data} == {"model-a", "model-b"}

    _ingest(ingestor, make_submission, {"type": "review", "data": {"targets": [flagged.cid], "reason": "spam"}},
            uploader="moderator", key=signing_keys[4])
    assert [e.entity_id for e in service.query().data] == ["model-a"]


def test_stranger_review_cannot_retract_validator_scores(service, ingestor, make_submission, prompts_payload,
                                                          scores_payload, signing_keys) -> None:
    _ingest(ingestor, make_submission, prompts_payload(3), uploader="curator")
    target = _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 3),
                     uploader="validator", key=signing_keys[0])

    _ingest(ingestor, make_submission, {"type": "review", "data": {"targets": [target.cid]}},
            uploader="mallory", key=signing_keys[3])

    assert [e.entity_id for e in service.query().data] == ["model-a"]


def test_signer_can_retract_own_submission(service, ingestor, make_submission, prompts_payload,
                                           scores_payload, signing_keys) -> None:
    _ingest(ingestor, make_submission, prompts_payload(3), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 3))
    mistake = _ingest(ingestor, make_submission, scores_payload("model-b", [0.0] * 3),
                      uploader="validator", key=signing_keys[0])

    _ingest(ingestor, make_submission, {"type": "review", "data": {"targets": [mistake.cid]}},
            uploader="validator", key=signing_keys[0])

    assert [e.entity_id for e in service.query().data] == ["model-a"]


def test_future_dated_submission_does_not_age_out_the_board(service, ingestor, make_submission, prompts_payload,
                                                            scores_payload, t0) -> None:
    _ingest(ingestor, make_submission, prompts_payload(2), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0, 1.0]))
    _ingest(ingestor, make_submission, scores_payload("junk", [0.0], prompt_ids=["p0"]),
            uploader="anon", created_at=t0 + timedelta(days=5000))

    page = service.query(LeaderboardQuery(prompt_age_weighting="linear"))

    assert page.data[0].entity_id == "model-a"
    assert page.data[0].weighted_mean_score == pytest.approx(1.0)
    assert page.stats["meanWeight"] == pytest.approx(1.0)


def test_explicit_exclusions(service, ingestor, make_submission, prompts_payload, scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(3), uploader="curator")
    excluded = _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 3))
    _ingest(ingestor, make_submission, scores_payload("model-b", [0.0] * 3))

    page = service.query(LeaderboardQuery.from_dict({"excludeSubmissionIds": [excluded.cid]}))

    assert [e.entity_id for e in page.data] == ["model-b"]


def test_unknown_prompts_are_ignored(service, ingestor, make_submission, prompts_payload, scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(3), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 3))
    _ingest(ingestor, make_submission, scores_payload("model-x", [1.0, 1.0], prompt_ids=["zz1", "zz2"]))

    page = service.query()

    assert [e.entity_id for e in page.data] == ["model-a"]
    assert page.stats["totalRecords"] == 3


def test_filters(service, ingestor, make_submission, prompts_payload, scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(4), uploader="curator")
    _ingest(ingestor, make_submission, prompts_payload(2, prompt_set_id="set-2", prefix="q"), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0] * 4, provider_id="acme"), uploader="alice")
    _ingest(ingestor, make_submission, scores_payload("model-b", [0.5] * 4, provider_id="globex"), uploader="bob")
    _ingest(ingestor, make_submission, scores_payload("model-b", [1.0, 0.0], prompt_ids=["q0", "q1"],
                                                      provider_id="globex"), uploader="bob")

    def ids(**filters):
        return [e.entity_id for e in service.query(LeaderboardQuery(**filters)).data]

    assert ids(provider="acme") == ["model-a"]
    assert ids(owner_id="bob") == ["model-b"]
    assert ids(entity_id="model-b") == ["model-b"]
    assert ids(group_by="provider") == ["acme", "globex"]

    set_two = service.query(LeaderboardQuery(prompt_set_id="set-2"))
    assert [(e.entity_id, e.sample_count, e.coverage) for e in set_two.data] == [("model-b", 2, 1.0)]
    assert set_two.prompt_set_distribution == {"set-2": 2}


def test_zero_user_multiplier_leaves_validators_only(service, ingestor, make_submission, prompts_payload,
                                                      scores_payload, signing_keys) -> None:
    _ingest(ingestor, make_submission, prompts_payload(2), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("user-model", [1.0, 1.0]))
    _ingest(ingestor, make_submission, scores_payload("validated-model", [0.5, 0.5]), key=signing_keys[0])

    page = service.query(LeaderboardQuery(user_weight_multiplier=0))

    assert [e.entity_id for e in page.data] == ["validated-model"]
    assert page.stats["excludedByWeight"] == 1


def test_prompt_age_decay_uses_as_of(service, ingestor, make_submission, prompts_payload, scores_payload, t0) -> None:
    _ingest(ingestor, make_submission, prompts_payload(2), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0, 0.0]))

    fresh = service.query(LeaderboardQuery(prompt_age_weighting="linear"))
    aged = service.query(LeaderboardQuery(prompt_age_weighting="linear", as_of=t0 + timedelta(days=90)))

    assert fresh.stats["meanWeight"] == pytest.approx(1.0)
    assert aged.stats["meanWeight"] == pytest.approx(0.5)
    assert aged.data[0].weighted_mean_score == pytest.approx(0.5)
    assert aged.policy_fingerprint != service.policy.fingerprint()


def test_validator_grouping_scores_agreement(service, ingestor, make_submission, prompts_payload,
                                             scores_payload, signing_keys) -> None:
    _ingest(ingestor, make_submission, prompts_payload(4), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("m", [1.0] * 4), uploader="v0", key=signing_keys[0])
    _ingest(ingestor, make_submission, scores_payload("m", [1.0] * 4, scorer="exact-match"),
            uploader="v1", key=signing_keys[1])
    _ingest(ingestor, make_submission, scores_payload("m", [0.0] * 4), uploader="v2", key=signing_keys[2])

    page = service.query(LeaderboardQuery(group_by="validator"))

    agreeing = {signer_address(signing_keys[0]), signer_address(signing_keys[1])}
    assert {e.entity_id for e in page.data[:2]} == agreeing
    assert [e.weighted_mean_score for e in page.data[:2]] == [pytest.approx(0.5)] * 2
    assert page.data[2].entity_id == signer_address(signing_keys[2])
    assert page.data[2].weighted_mean_score == 0.0


def test_cache_reuses_results_until_watermark_moves(service, ingestor, make_submission,
                                                     prompts_payload, scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(2), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0, 1.0]))

    first = service.query(LeaderboardQuery(access_reason="dashboard", requested_by_user_id="u1"))
    second = service.query(LeaderboardQuery(access_reason="export", requested_by_user_id="u2"))
    assert second is first

    _ingest(ingestor, make_submission, scores_payload("model-b", [0.0, 0.0]))
    third = service.query()

    assert third is not first
    assert third.watermark == first.watermark + 1
    assert len(third.data) == 2
    assert len(service.cache) == 1


def test_cache_drops_stale_watermarks() -> None:
    cache = LeaderboardCache(max_entries=2)
    cache.put(("p", "q1", 5), "five")
    cache.put(("p", "q1", 4), "stale")
    assert cache.get(("p", "q1", 4)) is None

    cache.put(("p", "q2", 5), "five-b")
    cache.put(("p", "q3", 5), "five-c")
    assert len(cache) == 2
    assert cache.get(("p", "q1", 5)) is None

    cache.put(("p", "q1", 6), "six")
    assert len(cache) == 1


def test_pagination_and_errors(service, ingestor, make_submission, prompts_payload, scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(1), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0]))
    _ingest(ingestor, make_submission, scores_payload("model-b", [0.0]))

    second = service.query(LeaderboardQuery(page=2, page_size=1))
    assert [e.entity_id for e in second.data] == ["model-b"]
    assert second.pagination.total_pages == 2

    with pytest.raises(ValueError):
        service.query(LeaderboardQuery(page_size=0))
    with pytest.raises(PolicyConfigError):
        service.query(LeaderboardQuery(group_by="country"))
    with pytest.raises(PolicyConfigError):
        service.query(LeaderboardQuery(user_scoring_algorithm="simScores999"))


def test_query_from_wire_form(t0) -> None:
    query = LeaderboardQuery.from_dict({
        "page": 2,
        "pageSize": 10,
        "groupBy": "provider",
        "filters": {"provider": "acme", "promptSetId": "set-1", "ownerId": "alice", "id": "acme"},
        "minCoverage": 25,
        "userWeightMultiplier": 0.5,
        "asOf": "2025-01-01T00:00:00Z",
        "accessReason": "audit",
    })

    assert (query.page, query.page_size, query.group_by) == (2, 10, "provider")
    assert (query.provider, query.prompt_set_id, query.owner_id, query.entity_id) == ("acme", "set-1", "alice", "acme")
    assert query.policy_overrides()["min_coverage"] == 25
    assert query.as_of == t0
    assert query.fingerprint() == LeaderboardQuery.from_dict({
        "page": 2, "pageSize": 10, "groupBy": "provider",
        "filters": {"provider": "acme", "promptSetId": "set-1", "ownerId": "alice", "id": "acme"},
        "asOf": "2025-01-01T00:00:00Z",
    }).fingerprint()


def test_page_serializes_to_camel_case_json(service, ingestor, make_submission, prompts_payload,
                                            scores_payload) -> None:
    _ingest(ingestor, make_submission, prompts_payload(1), uploader="curator")
    _ingest(ingestor, make_submission, scores_payload("model-a", [1.0]))

    document = json.loads(service.query().to_json())

    assert document["data"][0]["entityId"] == "model-a"
    assert document["data"][0]["weightedMeanScore"] == 1.0
    assert set(document) == {"data", "stats", "promptSetDistribution", "pagination"}
