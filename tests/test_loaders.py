"""Tests for the submission and content loaders."""

from __future__ import annotations

import json
from pathlib import Path

from trust_scoring.core.types import Submission
from trust_scoring.data.loaders import (
    load_json_file,
    load_prompts,
    load_responses,
    load_submission,
    save_submission,
)
from trust_scoring.integrity.content_id import compute_cid
from trust_scoring.integrity.signing import sign, signer_address, verify

PAYLOAD = {"type": "scores", "data": [{"promptId": "p0", "modelId": "m1", "value": 1.0}]}


def _write(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_json_file_failures(tmp_path: Path) -> None:
    assert load_json_file(tmp_path / "missing.json") is None
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_json_file(broken) is None


def test_bare_payload_gets_cid_and_uploader(tmp_path: Path) -> None:
    submission = load_submission(_write(tmp_path / "alice.json", PAYLOAD))

    assert submission.cid == compute_cid(PAYLOAD)
    assert submission.uploader_id == "alice"
    assert submission.payload == PAYLOAD
    assert submission.signature is None


def test_side_files_take_precedence(tmp_path: Path, signing_keys) -> None:
    key = signing_keys[0]
    path = _write(tmp_path / "scores.json", {
        "cid": "bafkreistale",
        "uploaderId": "bob",
        "signerAddress": signer_address(key),
        "payload": PAYLOAD,
    })
    (tmp_path / "scores.json.cid").write_text(compute_cid(PAYLOAD), encoding="utf-8")
    (tmp_path / "scores.json.signature").write_text(sign(PAYLOAD, key), encoding="utf-8")

    submission = load_submission(path, uploader_id="carol")

    assert submission.cid == compute_cid(PAYLOAD)
    assert submission.uploader_id == "carol"
    assert verify(submission.payload, submission.signature, submission.signer_address)


def test_save_then_load(tmp_path: Path, signing_keys) -> None:
    key = signing_keys[1]
    original = Submission(
        cid=compute_cid(PAYLOAD),
        payload=PAYLOAD,
        uploader_id="dave",
        signature=sign(PAYLOAD, key),
        signer_address=signer_address(key),
    )

    path = save_submission(tmp_path / "out" / "dave.json", original)

    assert (tmp_path / "out" / "dave.json.cid").read_text(encoding="utf-8").strip() == original.cid
    assert load_submission(path) == original


def test_non_object_submission(tmp_path: Path) -> None:
    assert load_submission(_write(tmp_path / "list.json", [1, 2])) is None


def test_load_prompts_and_responses(tmp_path: Path, prompts_payload) -> None:
    prompts_path = _write(tmp_path / "prompts.json", prompts_payload(3))
    responses_path = _write(tmp_path / "responses.json", {
        "type": "responses",
        "data": [
            {"id": "r0", "promptId": "p0", "providerId": "acme", "modelId": "m1", "data": "A"},
            {"id": "r1", "promptId": "p9", "providerId": "acme", "modelId": "m1", "data": "B"},
            {"promptId": "p1"},
        ],
    })

    prompts = load_prompts(prompts_path)
    responses = load_responses(responses_path, prompts)

    assert sorted(prompts) == ["p0", "p1", "p2"]
    assert prompts["p0"].prompt_set_id == "set-1"
    assert [response.id for response in responses] == ["r0", "r1"]
    assert responses[0].prompt is prompts["p0"]
    assert responses[1].prompt is None


def test_load_prompts_rejects_other_payloads(tmp_path: Path) -> None:
    assert load_prompts(_write(tmp_path / "scores.json", PAYLOAD)) == {}
    assert load_responses(_write(tmp_path / "scores2.json", PAYLOAD), {}) == []


def test_load_prompts_from_plain_list(tmp_path: Path) -> None:
    prompts = load_prompts(_write(tmp_path / "list.json", [{"id": "x", "question": "Q"}, {"question": "no id"}]))
    assert list(prompts) == ["x"]
