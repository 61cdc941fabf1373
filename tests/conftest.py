"""Shared fixtures for the trust scoring test-suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from trust_scoring.core.types import Submission, format_timestamp
from trust_scoring.ingestion.ingest import IngestionPolicy, SubmissionIngestor
from trust_scoring.ingestion.log import InMemorySubmissionLog
from trust_scoring.integrity.content_id import compute_cid
from trust_scoring.integrity.signing import generate_signing_key, sign, signer_address

T0 = datetime(2025, 1, 1, tzinfo=UTC)


@pytest.fixture()
def t0() -> datetime:
    return T0


@pytest.fixture()
def signing_keys():
    """Five deterministic ed25519 keys."""

    return [generate_signing_key(bytes([index]) * 32) for index in range(1, 6)]


@pytest.fixture()
def log() -> InMemorySubmissionLog:
    return InMemorySubmissionLog()


@pytest.fixture()
def ingestor(log: InMemorySubmissionLog) -> SubmissionIngestor:
    return SubmissionIngestor(log, IngestionPolicy(mode="open"), clock=lambda: T0)


@pytest.fixture()
def make_submission() -> Callable[..., Submission]:
    """Build a correctly addressed submission, signed when ``key`` is given."""

    def factory(payload: Dict[str, Any], *, uploader: str = "alice", key=None,
                created_at: Optional[datetime] = T0, **envelope: Any) -> Submission:
        return Submission(
            cid=compute_cid(payload),
            payload=payload,
            uploader_id=uploader,
            signature=sign(payload, key) if key is not None else None,
            signer_address=signer_address(key) if key is not None else None,
            created_at=created_at,
            **envelope,
        )

    return factory


@pytest.fixture()
def prompts_payload() -> Callable[..., Dict[str, Any]]:
    """Multiple-choice prompt set ``p0..p{count-1}``, all keyed to ``A``."""

    def factory(count: int = 10, *, prompt_set_id: str = "set-1", created_at: datetime = T0,
                prefix: str = "p") -> Dict[str, Any]:
        return {
            "type": "prompts",
            "promptSetId": prompt_set_id,
            "data": [
                {
                    "id": f"{prefix}{index}",
                    "type": "multiple-choice",
                    "question": f"Question {index}",
                    "options": {"A": "alpha", "B": "beta", "C": "gamma", "D": "delta"},
                    "answerKey": "A",
                    "answer": "alpha",
                    "createdAt": format_timestamp(created_at),
                }
                for index in range(count)
            ],
        }

    return factory


@pytest.fixture()
def scores_payload() -> Callable[..., Dict[str, Any]]:
    """Scores for one model, one entry per value, on prompts ``p0, p1, ...`` unless given."""

    def factory(model_id: str, values: Sequence[Optional[float]], *,
                prompt_ids: Optional[List[str]] = None, provider_id: Optional[str] = None,
                responded_at: datetime = T0 + timedelta(hours=1),
                scorer: str = "multiple-choice") -> Dict[str, Any]:
        prompt_ids = prompt_ids or [f"p{index}" for index in range(len(values))]
        return {
            "type": "scores",
            "data": [
                {
                    "scorerIdentifier": scorer,
                    "promptId": prompt_id,
                    "responseId": f"{model_id}-{prompt_id}",
                    "value": value,
                    "providerId": provider_id or f"{model_id}-provider",
                    "modelId": model_id,
                    "respondedAt": format_timestamp(responded_at),
                }
                for prompt_id, value in zip(prompt_ids, values)
            ],
        }

    return factory
