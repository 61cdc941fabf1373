# ------------------------------------------------------------------------------------------------
# License
# ------------------------------------------------------------------------------------------------

# Copyright (c) 2025 LSeu-Open
#
# This code is licensed under the MIT License.
# See LICENSE file in the root directory

# ------------------------------------------------------------------------------------------------
# Description
# ------------------------------------------------------------------------------------------------

"""
Data types shared across the trust scoring engine.

Wire dictionaries use camelCase keys; the dataclasses use snake_case
attributes and convert with ``from_dict`` / ``to_dict``.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, Mapping, Optional

# ------------------------------------------------------------------------------------------------
# Timestamp helpers
# ------------------------------------------------------------------------------------------------


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, epoch seconds or datetime into an aware UTC datetime.

    Returns None for None or empty input. Raises ValueError for anything else
    that cannot be interpreted as a point in time.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        try:
            moment = datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"Timestamp out of range: {value!r}") from exc
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    try:
        return moment.astimezone(UTC)
    except OverflowError as exc:
        raise ValueError(f"Timestamp out of range: {value!r}") from exc


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime the way payloads carry it (UTC, ``Z`` suffix)."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


# ------------------------------------------------------------------------------------------------
# Benchmark content
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class Prompt:
    """Immutable unit of test content owned by a prompt set."""

    id: str
    type: str
    question: str
    options: Dict[str, str] = field(default_factory=dict)
    answer_key: Optional[str] = None
    answer: Optional[str] = None
    prompt_set_id: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Prompt":
        return cls(
            id=str(data["id"]),
            type=str(data.get("type", "free-form")),
            question=str(data.get("question", "")),
            options=dict(data.get("options") or {}),
            answer_key=data.get("answerKey"),
            answer=data.get("answer"),
            prompt_set_id=str(data.get("promptSetId", "")),
            created_at=parse_timestamp(data.get("createdAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "question": self.question,
            "options": dict(self.options),
            "answerKey": self.answer_key,
            "answer": self.answer,
            "promptSetId": self.prompt_set_id,
            "createdAt": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class PromptResponse:
    """A provider's answer to a prompt.

    ``prompt`` is attached in memory for scoring and is never serialized.
    """

    id: str
    prompt_id: str
    provider_id: str
    model_id: str
    data: Optional[str]
    responded_at: Optional[datetime] = None
    signature: Optional[str] = None
    public_key: Optional[str] = None
    prompt: Optional[Prompt] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], prompt: Optional[Prompt] = None) -> "PromptResponse":
        return cls(
            id=str(data["id"]),
            prompt_id=str(data["promptId"]),
            provider_id=str(data.get("providerId", "")),
            model_id=str(data.get("modelId", "")),
            data=data.get("data"),
            responded_at=parse_timestamp(data.get("respondedAt")),
            signature=data.get("signature"),
            public_key=data.get("publicKey"),
            prompt=prompt,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "promptId": self.prompt_id,
            "providerId": self.provider_id,
            "modelId": self.model_id,
            "data": self.data,
            "respondedAt": format_timestamp(self.responded_at),
        }
        if self.signature is not None:
            payload["signature"] = self.signature
        if self.public_key is not None:
            payload["publicKey"] = self.public_key
        return payload


@dataclass(frozen=True)
class Score:
    """Output of a scorer applied to one response. ``value`` is None when not scorable."""

    scorer_identifier: str
    prompt_id: str
    response_id: str
    value: Optional[float]
    provider_id: str = ""
    model_id: str = ""
    responded_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Score":
        value = data.get("value")
        return cls(
            scorer_identifier=str(data.get("scorerIdentifier", "")),
            prompt_id=str(data["promptId"]),
            response_id=str(data.get("responseId", "")),
            value=None if value is None else float(value),
            provider_id=str(data.get("providerId", "")),
            model_id=str(data.get("modelId", "")),
            responded_at=parse_timestamp(data.get("respondedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scorerIdentifier": self.scorer_identifier,
            "promptId": self.prompt_id,
            "responseId": self.response_id,
            "value": self.value,
            "providerId": self.provider_id,
            "modelId": self.model_id,
            "respondedAt": format_timestamp(self.responded_at),
        }


# ------------------------------------------------------------------------------------------------
# Submissions
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class Submission:
    """Signed, content-addressed envelope as received from a submitter."""

    cid: str
    payload: Dict[str, Any]
    uploader_id: str
    signature: Optional[str] = None
    signer_address: Optional[str] = None
    created_at: Optional[datetime] = None
    merge_id: Optional[str] = None
    chunk_index: int = 0
    final: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Submission":
        final = data.get("final", True)
        if not isinstance(final, bool):
            raise ValueError(f"'final' must be a boolean, got {final!r}")
        return cls(
            cid=str(data.get("cid", "")),
            payload=dict(data.get("payload") or {}),
            uploader_id=str(data.get("uploaderId", "")),
            signature=data.get("signature"),
            signer_address=data.get("signerAddress"),
            created_at=parse_timestamp(data.get("createdAt")),
            merge_id=data.get("mergeId"),
            chunk_index=int(data.get("chunkIndex", 0)),
            final=final,
        )

    def to_dict(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {
            "cid": self.cid,
            "uploaderId": self.uploader_id,
            "payload": self.payload,
        }
        if self.signature is not None:
            envelope["signature"] = self.signature
        if self.signer_address is not None:
            envelope["signerAddress"] = self.signer_address
        if self.created_at is not None:
            envelope["createdAt"] = format_timestamp(self.created_at)
        if self.merge_id is not None:
            envelope["mergeId"] = self.merge_id
            envelope["chunkIndex"] = self.chunk_index
            envelope["final"] = self.final
        return envelope


@dataclass(frozen=True)
class StoredSubmission:
    """An accepted submission as it sits in the append-only log."""

    sequence: int
    cid: str
    uploader_id: str
    source: str
    kind: str
    payload: Dict[str, Any]
    created_at: datetime
    signature: Optional[str] = None
    signer_address: Optional[str] = None


@dataclass(frozen=True)
class ScoreRecord:
    """One score entry flattened out of an accepted ``scores`` submission."""

    submission_cid: str
    sequence: int
    index: int
    prompt_id: str
    response_id: str
    provider_id: str
    model_id: str
    scorer_identifier: str
    value: Optional[float]
    responded_at: Optional[datetime]
    uploader_id: str
    source: str
    signer_address: Optional[str] = None
    prompt_set_id: str = ""


@dataclass(frozen=True)
class WeightedScore:
    """A score record annotated with its decay-adjusted weight. Never persisted."""

    record: ScoreRecord
    score: Optional[float]
    age_weight: float
    delay_weight: float
    source_weight: float
    weight: float
    coverage_pass: bool = True


@dataclass(frozen=True)
class LeaderboardEntry:
    """Aggregate for one entity (model, provider or validator)."""

    entity_id: str
    weighted_mean_score: float
    sample_count: int
    coverage: float
    rank: int
    distinct_prompts: int = 0
    total_weight: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "weightedMeanScore": self.weighted_mean_score,
            "sampleCount": self.sample_count,
            "coverage": self.coverage,
            "rank": self.rank,
            "distinctPrompts": self.distinct_prompts,
            "totalWeight": self.total_weight,
        }


__all__ = [
    "LeaderboardEntry",
    "Prompt",
    "PromptResponse",
    "Score",
    "ScoreRecord",
    "StoredSubmission",
    "Submission",
    "WeightedScore",
    "format_timestamp",
    "parse_timestamp",
]
