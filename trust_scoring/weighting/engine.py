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
Weighting engine.

Turns score records into weighted scores. Everything here is a pure function
of the record, its prompt, the policy and the reference time, so the same
inputs always give the same weight.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Mapping, Optional

from ..core.types import Prompt, ScoreRecord, WeightedScore
from .algorithms import resolve_algorithm, source_weight
from .policy import WeightingPolicy


def weight(record: ScoreRecord, policy: WeightingPolicy, *, prompt: Optional[Prompt],
           now: datetime, coverage_pass: bool = True) -> WeightedScore:
    """
    Annotate one score record with its weight.

    Args:
        record (ScoreRecord): Stored score entry
        policy (WeightingPolicy): Active weighting policy
        prompt (Optional[Prompt]): Prompt the score refers to; without a
            creation time both temporal weights are 1
        now (datetime): Reference time for prompt age
        coverage_pass (bool): Whether the record's entity met ``min_coverage``

    Returns:
        WeightedScore: Record with age, delay, source and combined weights, all in [0, 1]
    """
    created_at = prompt.created_at if prompt is not None else None

    age_weight = 1.0
    delay_weight = 1.0
    if created_at is not None:
        age_weight = policy.prompt_age.weight(now - created_at)
        if record.responded_at is not None:
            delay_weight = policy.response_delay.weight(record.responded_at - created_at)

    src_weight = source_weight(record.source, policy.user_weight_multiplier)
    combined = resolve_algorithm(policy.user_scoring_algorithm)(age_weight, delay_weight, src_weight)

    return WeightedScore(
        record=record,
        score=record.value,
        age_weight=age_weight,
        delay_weight=delay_weight,
        source_weight=src_weight,
        weight=max(0.0, min(1.0, combined)),
        coverage_pass=coverage_pass,
    )


def weight_records(records: Iterable[ScoreRecord], policy: WeightingPolicy, *,
                   prompts: Mapping[str, Prompt], now: datetime,
                   coverage_pass: Optional[Callable[[ScoreRecord], bool]] = None) -> List[WeightedScore]:
    """Weight a batch of records, looking their prompts up in ``prompts``."""
    return [
        weight(
            record,
            policy,
            prompt=prompts.get(record.prompt_id),
            now=now,
            coverage_pass=True if coverage_pass is None else coverage_pass(record),
        )
        for record in records
    ]


__all__ = ["weight", "weight_records"]
