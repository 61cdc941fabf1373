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
LLM-as-judge scorer.

The judge model is an injected capability (``JudgeClient``): anything with a
``complete(messages) -> str`` method. ``HttpJudgeClient`` talks to an
OpenAI-compatible chat completions endpoint with retries.

Judge output is parsed with best-effort JSON repair. When the verdict cannot
be recovered the score is None, never an exception.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.constants import JUDGE_SCORE_SCALE
from ..core.exceptions import PolicyConfigError, ScoringUnavailable
from ..core.types import PromptResponse
from .base import Scorer

logger = logging.getLogger(__name__)

JUDGE_MODES = ("pointwise", "pairwise")

# ------------------------------------------------------------------------------------------------
# Criteria
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class Criterion:
    """One rubric criterion with its relative weight and integer scale."""

    id: str
    description: str
    weight: float = 1.0
    scale_min: float = 0.0
    scale_max: float = 5.0


DEFAULT_CRITERIA = (
    Criterion("correctness", "Is the answer factually and logically correct?", 0.6),
    Criterion("completeness", "Does the answer address every part of the task?", 0.25),
    Criterion("clarity", "Is the answer clear and concise?", 0.15),
)


def normalize_weights(criteria: Sequence[Criterion]) -> List[Criterion]:
    """Rescale criterion weights so they sum to 1 (equal weights when all are zero)."""
    if not criteria:
        raise PolicyConfigError("LLM judge requires at least one criterion")
    total = math.fsum(max(0.0, c.weight) for c in criteria)
    if total <= 0:
        share = 1.0 / len(criteria)
        return [Criterion(c.id, c.description, share, c.scale_min, c.scale_max) for c in criteria]
    return [
        Criterion(c.id, c.description, max(0.0, c.weight) / total, c.scale_min, c.scale_max)
        for c in criteria
    ]


def render_criteria(criteria: Sequence[Criterion]) -> str:
    lines = []
    for index, criterion in enumerate(criteria, start=1):
        lines.append(
            f'{index}. id="{criterion.id}" weight={criterion.weight:.3f} '
            f"scale={criterion.scale_min:g}..{criterion.scale_max:g}: {criterion.description}"
        )
    return "\n".join(lines)


def compute_overall_score(per_criterion: Sequence[Mapping[str, Any]], criteria: Sequence[Criterion]) -> float:
    """
    Combine per-criterion judge scores into a 0..100 overall score.

    Each score is clamped to its criterion's scale, mapped onto 0..100 and
    weighted. Entries for unknown criteria or non-numeric scores are ignored.
    """
    by_id = {c.id: c for c in criteria}
    total = 0.0
    for entry in per_criterion:
        criterion = by_id.get(str(entry.get("id")))
        if criterion is None:
            continue
        try:
            score = float(entry.get("score"))
        except (TypeError, ValueError):
            continue
        if not math.isfinite(score):
            continue
        low, high = criterion.scale_min, criterion.scale_max
        clamped = max(low, min(high, score))
        normalized = 0.0 if high == low else (clamped - low) / (high - low) * JUDGE_SCORE_SCALE
        total += normalized * criterion.weight
    return float(round(total))


# ------------------------------------------------------------------------------------------------
# JSON repair
# ------------------------------------------------------------------------------------------------

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def extract_first_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Best-effort extraction of a JSON object from judge output.

    Tries, in order: the whole text, the text without code fences, the slice
    from the first ``{`` to the last ``}``, and that slice with trailing
    commas removed.

    Returns:
        Optional[Dict[str, Any]]: The parsed object, or None when repair fails
    """
    if not text:
        return None

    candidates = [text, _FENCE.sub("", text.strip())]
    start, end = text.find("{"), text.rfind("}")
    if start >= 0 and end > start:
        sliced = text[start:end + 1]
        candidates.extend([sliced, _TRAILING_COMMA.sub(r"\1", sliced)])

    for candidate in candidates:
        parsed = _loads_object(candidate)
        if parsed is not None:
            return parsed
    return None


# ------------------------------------------------------------------------------------------------
# Judge clients
# ------------------------------------------------------------------------------------------------


class JudgeClient(Protocol):
    def complete(self, messages: List[Dict[str, str]]) -> str:
        ...


class JudgeAPIError(Exception):
    """Retryable failure talking to the judge endpoint."""


def create_retry_decorator(max_retries: int, backoff_factor: float):
    """Create a retry decorator with configurable parameters"""
    return retry(
        stop=stop_after_attempt(max_retries + 1),  # +1 for initial attempt
        wait=wait_exponential(multiplier=backoff_factor, min=1, max=60),
        retry=retry_if_exception_type((httpx.TransportError, JudgeAPIError)),
        before_sleep=lambda retry_state: logger.warning(
            f"Judge call failed (attempt {retry_state.attempt_number}/{max_retries + 1}), "
            f"retrying in {retry_state.next_action.sleep:.1f}s: {retry_state.outcome.exception()}"
        ),
        reraise=True,
    )


class HttpJudgeClient:
    """Judge client for OpenAI-compatible ``/chat/completions`` endpoints."""

    def __init__(self, base_url: str, model: str, api_key: Optional[str] = None,
                 timeout: float = 60.0, max_retries: int = 3, backoff_factor: float = 2.0,
                 temperature: float = 0.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout, transport=transport)
        self._send = create_retry_decorator(max_retries, backoff_factor)(self._post)

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self._client.post("/chat/completions", json=body)
        if response.status_code == 429 or response.status_code >= 500:
            raise JudgeAPIError(f"Judge endpoint returned HTTP {response.status_code}")
        response.raise_for_status()
        return response.json()

    def complete(self, messages: List[Dict[str, str]]) -> str:
        body = {"model": self.model, "messages": messages, "temperature": self.temperature}
        data = self._send(body)
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise JudgeAPIError(f"Unexpected judge response shape: {exc}") from exc

    def close(self) -> None:
        self._client.close()


# ------------------------------------------------------------------------------------------------
# Scorer
# ------------------------------------------------------------------------------------------------

SYSTEM_PROMPT = " ".join([
    "You are a strict, fair evaluation judge.",
    "Only use information provided in the task and candidate answers.",
    "For each criterion, return an integer score within the provided scale and a very brief justification.",
    "Return only JSON that conforms to the requested schema.",
])

POINTWISE_FORMAT = {
    "perCriterion": [{"id": "<string>", "score": "<integer within scale>", "justification": "<short>"}],
    "overall": "<0..100 integer>",
    "verdict": "<strong-pass | pass | borderline | fail>",
}

PAIRWISE_FORMAT = {
    "winner": "<A | B | tie>",
    "confidence": "<integer 1..5>",
    "rationale": "<short>",
}

PAIRWISE_OUTCOMES = {"a": 1.0, "b": 0.0, "tie": 0.5}


class LLMJudgeScorer(Scorer):
    """
    Scores free-form responses by asking a judge model for a rubric verdict.

    Args:
        judge (JudgeClient): Injected judge model
        criteria (Sequence[Criterion]): Rubric; weights are normalized
        mode (str): ``pointwise`` scores one response, ``pairwise`` compares
            against ``reference`` responses supplied to ``score_pair``
    """

    identifier = "llm-judge"

    def __init__(self, judge: JudgeClient, criteria: Sequence[Criterion] = DEFAULT_CRITERIA,
                 mode: str = "pointwise"):
        if mode not in JUDGE_MODES:
            raise PolicyConfigError(f"Unknown LLM judge mode '{mode}'; expected one of {JUDGE_MODES}")
        self.judge = judge
        self.criteria = normalize_weights(criteria)
        self.mode = mode

    def can_score(self, response: PromptResponse) -> bool:
        return bool(response.data) and response.prompt is not None

    def _context(self, response: PromptResponse) -> Dict[str, Any]:
        prompt = response.prompt
        meta: Dict[str, Any] = {}
        if prompt.answer:
            meta["expected/correct answer"] = prompt.answer
        if prompt.answer_key:
            meta["letter for the correct answer"] = prompt.answer_key
        if prompt.options:
            meta["available options"] = prompt.options
        return meta

    def build_messages(self, response: PromptResponse) -> List[Dict[str, str]]:
        meta = self._context(response)
        parts = [f"TASK:\n{response.prompt.question}"]
        if meta:
            parts.append(f"\nADDITIONAL CONTEXT:\n{json.dumps(meta, indent=2, sort_keys=True)}")
        parts.append(f"\nRUBRIC:\n{render_criteria(self.criteria)}")
        parts.append(f"\nCANDIDATE ANSWER:\n{response.data}")
        parts.append(f"\nRESPONSE FORMAT (strict JSON):\n{json.dumps(POINTWISE_FORMAT, indent=2)}")
        parts.append("\nOutput valid JSON only.")
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "".join(parts)},
        ]

    def _ask(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        try:
            raw = self.judge.complete(messages)
        except (httpx.HTTPError, JudgeAPIError) as exc:
            raise ScoringUnavailable(f"judge call failed: {exc}") from exc
        verdict = extract_first_json(raw)
        if verdict is None:
            logger.warning(f"Judge output could not be parsed as JSON: {raw[:120]!r}")
            raise ScoringUnavailable("unparseable judge output")
        return verdict

    def verdict_to_score(self, verdict: Mapping[str, Any]) -> Optional[float]:
        """Convert a pointwise verdict (overall on 0..100) into a [0, 1] score."""
        try:
            overall: Optional[float] = float(verdict.get("overall"))
        except (TypeError, ValueError):
            overall = None
        if overall is not None and not math.isfinite(overall):
            overall = None

        if overall is None or overall <= 0:
            per_criterion = verdict.get("perCriterion")
            if isinstance(per_criterion, list) and per_criterion:
                overall = compute_overall_score(
                    [entry for entry in per_criterion if isinstance(entry, Mapping)], self.criteria
                )
        if overall is None:
            return None
        return max(0.0, min(1.0, overall / JUDGE_SCORE_SCALE))

    def score_one(self, response: PromptResponse) -> Optional[float]:
        if self.mode != "pointwise":
            raise ScoringUnavailable("pairwise judge needs a reference response; use score_pair")
        return self.verdict_to_score(self._ask(self.build_messages(response)))

    def score_pair(self, response: PromptResponse, reference: PromptResponse) -> Optional[float]:
        """
        Compare ``response`` (A) against ``reference`` (B).

        Returns:
            Optional[float]: 1.0 when A wins, 0.0 when B wins, 0.5 for a tie,
            None when the comparison cannot be made
        """
        if not (self.can_score(response) and reference.data):
            return None
        parts = [
            f"TASK:\n{response.prompt.question}",
            f"\nRUBRIC:\n{render_criteria(self.criteria)}",
            f"\nCANDIDATE A:\n{response.data}",
            f"\nCANDIDATE B:\n{reference.data}",
            f"\nRESPONSE FORMAT (strict JSON):\n{json.dumps(PAIRWISE_FORMAT, indent=2)}",
        ]
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "".join(parts)},
        ]
        try:
            verdict = self._ask(messages)
        except ScoringUnavailable as exc:
            logger.debug(f"Pairwise judgement unavailable for '{response.id}': {exc}")
            return None
        return PAIRWISE_OUTCOMES.get(str(verdict.get("winner", "")).strip().casefold())


__all__ = [
    "Criterion",
    "DEFAULT_CRITERIA",
    "HttpJudgeClient",
    "JudgeAPIError",
    "JudgeClient",
    "LLMJudgeScorer",
    "compute_overall_score",
    "extract_first_json",
    "normalize_weights",
]
