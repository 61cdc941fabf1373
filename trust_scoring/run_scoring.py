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
Main module for the trust scoring pipeline.

This module scores provider responses with the configured scorers, wraps the
scores into a content-addressed submission, signs it, writes it next to its
``.cid``/``.signature`` side files and hands it to an ingestor.
"""

import logging
import os
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from config.scoring_config import SCORER_DEFAULTS

from .core.constants import PAYLOAD_SCORES, SUBMISSIONS_DIR
from .core.types import PromptResponse, Score, Submission
from .data.loaders import save_submission
from .ingestion.ingest import IngestResult, SubmissionIngestor
from .integrity.content_id import compute_cid
from .integrity.signing import KeyLike, sign, signer_address
from .scoring.llm_judge import HttpJudgeClient, JudgeClient, LLMJudgeScorer
from .scoring.registry import ScorerRegistry
from .scoring.runner import score_responses

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringRun:
    """What one pipeline run produced."""

    submission: Submission
    path: Path
    ingest_result: Optional[IngestResult] = None

    @property
    def score_count(self) -> int:
        return len(self.submission.payload.get("data") or [])


def create_judge_client(judge_config: Optional[Mapping[str, Any]] = None,
                        api_key: Optional[str] = None) -> HttpJudgeClient:
    """Build the HTTP judge client from the ``judge`` section of the scorer settings."""
    config = {**SCORER_DEFAULTS["judge"], **(judge_config or {})}
    return HttpJudgeClient(
        base_url=config["base_url"],
        model=config["model"],
        api_key=api_key,
        timeout=float(config["timeout"]),
        max_retries=int(config["max_retries"]),
        backoff_factor=float(config["backoff_factor"]),
    )


def build_scores_payload(scores: Iterable[Score], prompt_set_id: Optional[str] = None) -> Dict[str, Any]:
    """Wrap Score records into a ``scores`` payload."""
    payload: Dict[str, Any] = {"type": PAYLOAD_SCORES, "data": [score.to_dict() for score in scores]}
    if prompt_set_id:
        payload["promptSetId"] = prompt_set_id
    return payload


def score_with(responses: Sequence[PromptResponse], scorer_ids: Iterable[str], *,
               judge: Optional[JudgeClient] = None, max_concurrency: Optional[int] = None) -> List[Score]:
    """
    Score responses with each configured scorer.

    Args:
        responses (Sequence[PromptResponse]): Responses with their prompts attached
        scorer_ids (Iterable[str]): Scorer identifiers, applied in order
        judge (Optional[JudgeClient]): Required when ``llm-judge`` is configured
        max_concurrency (Optional[int]): Concurrent calls per scorer

    Returns:
        List[Score]: Scores of every scorer, grouped by scorer in configuration order

    Raises:
        PolicyConfigError: If a scorer identifier is unknown or cannot be built
    """
    registry = ScorerRegistry.from_config(scorer_ids, judge=judge)
    scores: List[Score] = []
    for scorer in registry:
        limit = max_concurrency
        if limit is None:
            limit = SCORER_DEFAULTS["judge"]["max_concurrency"] if isinstance(scorer, LLMJudgeScorer) else os.cpu_count() or 1
        scores.extend(score_responses(responses, scorer, max_concurrency=limit))
    return scores


def run_scoring(responses: Sequence[PromptResponse], *, uploader_id: str,
                scorer_ids: Optional[Iterable[str]] = None, private_key: KeyLike = None,
                judge: Optional[JudgeClient] = None, prompt_set_id: Optional[str] = None,
                output_dir: str = SUBMISSIONS_DIR, ingestor: Optional[SubmissionIngestor] = None,
                max_concurrency: Optional[int] = None) -> Optional[ScoringRun]:
    """
    Run the scoring pipeline for a batch of responses.

    Args:
        responses (Sequence[PromptResponse]): Responses with their prompts attached
        uploader_id (str): Identity recorded as the submission's uploader
        scorer_ids (Optional[Iterable[str]]): Scorers to run; configuration defaults otherwise
        private_key (KeyLike): Signing key; the submission is left unsigned without one
        judge (Optional[JudgeClient]): Judge model for ``llm-judge``
        prompt_set_id (Optional[str]): Prompt set the scores belong to
        output_dir (str): Directory the submission file is written to
        ingestor (Optional[SubmissionIngestor]): When given, the submission is ingested
        max_concurrency (Optional[int]): Concurrent calls per scorer

    Returns:
        Optional[ScoringRun]: The written (and possibly ingested) submission,
        None if no response could be scored

    Raises:
        MissingCredentialError: If ``private_key`` is set but unusable
        PolicyConfigError: If the scorer configuration is invalid
    """
    start_time = time.time()
    scorer_ids = list(scorer_ids or SCORER_DEFAULTS["scorers"])
    logger.info(f"[*] Scoring {len(responses)} response(s) with {', '.join(scorer_ids)}")

    scores = score_with(responses, scorer_ids, judge=judge, max_concurrency=max_concurrency)
    if not scores:
        logger.error("[-] No response could be scored; nothing to submit")
        return None

    payload = build_scores_payload(scores, prompt_set_id)
    cid = compute_cid(payload)
    signature = sign(payload, private_key) if private_key else None
    submission = Submission(
        cid=cid,
        payload=payload,
        uploader_id=uploader_id,
        signature=signature,
        signer_address=signer_address(private_key) if private_key else None,
        created_at=datetime.now(UTC),
    )

    path = save_submission(os.path.join(output_dir, f"{cid}.json"), submission)

    result = None
    if ingestor is not None:
        result = ingestor.ingest(submission)
        if result.accepted:
            logger.info(f"[+] Submission '{cid}' ingested ({result.reason or 'stored'})")
        else:
            logger.error(f"[-] Submission '{cid}' rejected: {result.reason}: {result.detail}")

    logger.info(f"[*] Total processing time: {time.time() - start_time:.2f} seconds")
    return ScoringRun(submission=submission, path=path, ingest_result=result)
