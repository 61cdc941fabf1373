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
Simulation harness.

A run generates a synthetic multiple-choice prompt set, lets every persona
answer it for a number of rounds, scores the answers with the production
scorer, signs each scores payload once per persona identity and ingests the
result through the production ingestor into a private in-memory log. The
leaderboard is then computed by the production query service.

Runs are deterministic for a given seed and never touch a production log.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import hashlib
import logging
import random
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..core.constants import MAX_PAGE_SIZE, PAYLOAD_PROMPTS, PAYLOAD_SCORES, REASON_DUPLICATE
from ..core.exceptions import PolicyConfigError, SimulationCancelled
from ..core.types import LeaderboardEntry, Prompt, PromptResponse, Submission, format_timestamp
from ..aggregation.query import LeaderboardQuery, LeaderboardService
from ..ingestion.ingest import IngestionPolicy, SubmissionIngestor
from ..ingestion.log import InMemorySubmissionLog
from ..integrity.content_id import compute_cid
from ..integrity.signing import generate_signing_key, sign
from ..scoring.registry import ScorerRegistry
from ..scoring.runner import score_responses
from ..weighting.policy import WeightingPolicy
from .personas import Persona, PersonaSpec

logger = logging.getLogger(__name__)

OPTION_LETTERS = ("A", "B", "C", "D")

# ------------------------------------------------------------------------------------------------
# Configuration & results
# ------------------------------------------------------------------------------------------------


class CancellationToken:
    """Cooperative cancellation flag shared with a running simulation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SimulationCancelled("Simulation cancelled")


@dataclass(frozen=True)
class SimulationConfig:
    personas: Sequence[Union[Persona, PersonaSpec]]
    prompt_set_size: int = 20
    rounds: int = 1
    weighting_policy: WeightingPolicy = field(default_factory=WeightingPolicy)
    seed: int = 42
    tolerance: float = 0.05
    scorer: str = "multiple-choice"
    start: datetime = datetime(2025, 1, 1, tzinfo=UTC)
    round_interval: timedelta = timedelta(days=1)
    response_delay: timedelta = timedelta(hours=1)
    cabal_target: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.personas:
            raise PolicyConfigError("A simulation needs at least one persona")
        if self.prompt_set_size < 1 or self.rounds < 1:
            raise PolicyConfigError("prompt_set_size and rounds must be positive")
        ids = [persona.id for persona in self.personas]
        if len(ids) != len(set(ids)):
            raise PolicyConfigError("Persona ids must be unique")


@dataclass(frozen=True)
class GroundTruth:
    entity_id: str
    behavior_profile: str
    expected_quality: float


@dataclass
class SimulationResult:
    """Leaderboard of a run plus the labels needed to judge it."""

    entries: Tuple[LeaderboardEntry, ...]
    ground_truth: Dict[str, GroundTruth]
    accepted: int = 0
    duplicates: int = 0
    rejected: int = 0
    watermark: int = 0
    tolerance: float = 0.05

    def entry_for(self, entity_id: str) -> Optional[LeaderboardEntry]:
        return next((entry for entry in self.entries if entry.entity_id == entity_id), None)

    def expected_order(self) -> List[str]:
        """Entity ids sorted by ground-truth quality (best first)."""
        truth = sorted(self.ground_truth.values(), key=lambda t: (-t.expected_quality, t.entity_id))
        return [t.entity_id for t in truth]

    def violations(self, tolerance: Optional[float] = None) -> List[Tuple[str, str]]:
        """
        Adversarial entities that outrank an altruistic one by more than ``tolerance``.

        Returns:
            List[Tuple[str, str]]: ``(adversary, altruist)`` pairs
        """
        tolerance = self.tolerance if tolerance is None else tolerance
        by_profile: Dict[str, List[LeaderboardEntry]] = {}
        for entry in self.entries:
            truth = self.ground_truth.get(entry.entity_id)
            if truth is not None:
                by_profile.setdefault(truth.behavior_profile, []).append(entry)

        altruists = by_profile.get("altruistic", [])
        found = []
        for profile in ("cabal", "malicious"):
            for adversary in by_profile.get(profile, []):
                for altruist in altruists:
                    if (adversary.rank < altruist.rank
                            and adversary.weighted_mean_score - altruist.weighted_mean_score > tolerance):
                        found.append((adversary.entity_id, altruist.entity_id))
        return sorted(found)


# ------------------------------------------------------------------------------------------------
# Synthetic data
# ------------------------------------------------------------------------------------------------


def generate_prompt_set(size: int, rng: random.Random, *, prompt_set_id: str, created_at: datetime) -> List[Prompt]:
    prompts = []
    for index in range(size):
        options = {letter: f"Option {letter} for question {index}" for letter in OPTION_LETTERS}
        answer_key = rng.choice(OPTION_LETTERS)
        prompts.append(Prompt(
            id=f"{prompt_set_id}-q{index:03d}",
            type="multiple-choice",
            question=f"Synthetic question {index}",
            options=options,
            answer_key=answer_key,
            answer=options[answer_key],
            prompt_set_id=prompt_set_id,
            created_at=created_at,
        ))
    return prompts


def _identity_key(seed: int, persona_id: str, index: int):
    return generate_signing_key(hashlib.sha256(f"{seed}:{persona_id}:{index}".encode("utf-8")).digest())


def _signed(payload: dict, key, uploader_id: str, created_at: datetime) -> Submission:
    return Submission(
        cid=compute_cid(payload),
        payload=payload,
        uploader_id=uploader_id,
        signature=sign(payload, key),
        signer_address=key.verify_key.encode().hex(),
        created_at=created_at,
    )


# ------------------------------------------------------------------------------------------------
# Run
# ------------------------------------------------------------------------------------------------


def run_simulation(config: SimulationConfig, *, cancel_token: Optional[CancellationToken] = None) -> SimulationResult:
    """
    Run one simulation.

    Args:
        config (SimulationConfig): Personas, prompt set size, rounds and policy
        cancel_token (Optional[CancellationToken]): Checked between personas and rounds

    Returns:
        SimulationResult: Leaderboard entries by model and ground-truth labels

    Raises:
        SimulationCancelled: If the token is cancelled before the run completes
    """
    token = cancel_token or CancellationToken()
    rng = random.Random(config.seed)
    prompt_set_id = f"sim-{config.seed}"
    prompts = generate_prompt_set(config.prompt_set_size, rng, prompt_set_id=prompt_set_id, created_at=config.start)

    log = InMemorySubmissionLog()
    end = config.start + config.round_interval * config.rounds
    ingestor = SubmissionIngestor(log, IngestionPolicy(mode="validator"), clock=lambda: end)
    scorer = ScorerRegistry.from_config([config.scorer]).get(config.scorer)
    outcomes: Counter = Counter()

    def submit(submission: Submission) -> None:
        result = ingestor.ingest(submission)
        if not result.accepted:
            outcomes["rejected"] += 1
        elif result.reason == REASON_DUPLICATE:
            outcomes["duplicates"] += 1
        else:
            outcomes["accepted"] += 1

    curator = _identity_key(config.seed, "curator", 0)
    prompt_payload = {
        "type": PAYLOAD_PROMPTS,
        "promptSetId": prompt_set_id,
        "data": [prompt.to_dict() for prompt in prompts],
    }
    submit(_signed(prompt_payload, curator, "curator", config.start))

    personas = sorted(
        (p.build() if isinstance(p, PersonaSpec) else p for p in config.personas),
        key=lambda persona: persona.id,
    )
    persona_rngs = {persona.id: random.Random(f"{config.seed}:{persona.id}") for persona in personas}
    cabal_targets: Dict[str, str] = {}
    for persona in personas:
        if persona.cabal_id is not None:
            cabal_targets.setdefault(persona.cabal_id, config.cabal_target or persona.model_id)

    logger.info(f"[*] Simulating {len(personas)} persona(s) over {config.rounds} round(s), seed {config.seed}")
    for round_index in range(config.rounds):
        token.raise_if_cancelled()
        round_start = config.start + config.round_interval * round_index
        responded_at = round_start + config.response_delay

        for persona in personas:
            token.raise_if_cancelled()
            persona_rng = persona_rngs[persona.id]
            responses = []
            for prompt in prompts:
                answer = persona.answer_bias_fn(prompt, persona_rng)
                if answer is None:
                    continue
                responses.append(PromptResponse(
                    id=f"{persona.id}-r{round_index}-{prompt.id}",
                    prompt_id=prompt.id,
                    provider_id=persona.id,
                    model_id=persona.model_id,
                    data=answer,
                    responded_at=responded_at,
                    prompt=prompt,
                ))
            scores = score_responses(responses, scorer, max_concurrency=1)
            if scores:
                payload = {
                    "type": PAYLOAD_SCORES,
                    "promptSetId": prompt_set_id,
                    "data": [score.to_dict() for score in scores],
                }
                for identity in range(persona.identities):
                    key = _identity_key(config.seed, persona.id, identity)
                    submit(_signed(payload, key, f"{persona.id}#{identity}", responded_at))

            if persona.cabal_id is not None:
                target = cabal_targets[persona.cabal_id]
                upvotes = {
                    "type": PAYLOAD_SCORES,
                    "promptSetId": prompt_set_id,
                    "data": [
                        {
                            "scorerIdentifier": scorer.identifier,
                            "promptId": prompt.id,
                            "responseId": f"{target}-r{round_index}-{prompt.id}",
                            "value": 1.0,
                            "providerId": target.removeprefix("model-"),
                            "modelId": target,
                            "respondedAt": format_timestamp(responded_at),
                        }
                        for prompt in prompts
                    ],
                }
                key = _identity_key(config.seed, persona.id, 0)
                submit(_signed(upvotes, key, f"{persona.id}#0", responded_at))

        logger.info(f"[+] Round {round_index + 1}/{config.rounds} complete (log watermark {log.watermark})")

    as_of = end
    service = LeaderboardService(log, config.weighting_policy)
    page = service.query(LeaderboardQuery(page_size=MAX_PAGE_SIZE, as_of=as_of))

    ground_truth = {
        persona.model_id: GroundTruth(persona.model_id, persona.behavior_profile, persona.accuracy)
        for persona in personas
    }
    logger.info(
        f"[+] Simulation finished: {outcomes['accepted']} accepted, "
        f"{outcomes['duplicates']} duplicate, {outcomes['rejected']} rejected"
    )
    return SimulationResult(
        entries=page.data,
        ground_truth=ground_truth,
        accepted=outcomes["accepted"],
        duplicates=outcomes["duplicates"],
        rejected=outcomes["rejected"],
        watermark=page.watermark,
        tolerance=config.tolerance,
    )


__all__ = ["CancellationToken", "GroundTruth", "SimulationConfig", "SimulationResult", "generate_prompt_set", "run_simulation"]
