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
Aggregation of weighted scores into leaderboard entries.

For each entity the weighted mean is ``sum(score * weight) / sum(weight)``
over samples with a defined score and a positive weight. Coverage is the
share of the eligible prompt set the entity has defined scores for.
Entities below ``min_coverage`` (a percentage) or without any positive
weight are omitted. Ordering is by weighted mean descending, then sample
count descending, then entity id ascending, and ranks start at 1.

Groups are summarized concurrently and merged in sorted key order, so the
output does not depend on thread scheduling.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Collection, Dict, List, Optional, Sequence, Tuple

from ..core.constants import DEFAULT_PAGE_SIZE, GROUP_BY_KEYS, MAX_PAGE_SIZE, MIN_CONSENSUS_PEERS
from ..core.exceptions import PolicyConfigError
from ..core.types import LeaderboardEntry, ScoreRecord, WeightedScore

logger = logging.getLogger(__name__)

EntityKey = Callable[[ScoreRecord], str]

ENTITY_KEYS: Dict[str, EntityKey] = {
    "model": lambda record: record.model_id,
    "provider": lambda record: record.provider_id,
    "validator": lambda record: record.signer_address or f"user:{record.uploader_id}",
}

# ------------------------------------------------------------------------------------------------
# Result types
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregationReport:
    """Ranked entries plus the bookkeeping behind them."""

    entries: Tuple[LeaderboardEntry, ...]
    excluded_by_coverage: Tuple[str, ...] = ()
    excluded_by_weight: Tuple[str, ...] = ()
    total_records: int = 0
    scored_records: int = 0
    contributing_records: int = 0
    distinct_prompts: int = 0
    eligible_prompts: int = 0
    mean_weight: float = 0.0
    prompt_set_distribution: Dict[str, int] = field(default_factory=dict)

    def stats(self) -> Dict[str, object]:
        return {
            "totalEntities": len(self.entries) + len(self.excluded_by_coverage) + len(self.excluded_by_weight),
            "rankedEntities": len(self.entries),
            "excludedByCoverage": len(self.excluded_by_coverage),
            "excludedByWeight": len(self.excluded_by_weight),
            "totalRecords": self.total_records,
            "scoredRecords": self.scored_records,
            "contributingRecords": self.contributing_records,
            "distinctPrompts": self.distinct_prompts,
            "eligiblePrompts": self.eligible_prompts,
            "meanWeight": self.mean_weight,
        }


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int
    total_count: int
    total_pages: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True)
class _GroupSummary:
    entity_id: str
    mean: float
    sample_count: int
    distinct_prompts: int
    coverage: float
    total_weight: float


# ------------------------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------------------------


def entity_key_for(group_by: str) -> EntityKey:
    """Return the grouping function for ``group_by``.

    Raises:
        PolicyConfigError: If ``group_by`` is not one of ``GROUP_BY_KEYS``
    """
    try:
        return ENTITY_KEYS[group_by]
    except KeyError:
        raise PolicyConfigError(f"Unknown groupBy '{group_by}'; expected one of {GROUP_BY_KEYS}") from None


def coverage_by_entity(records: Sequence[ScoreRecord], group_by: str,
                       eligible_prompts: Collection[str]) -> Dict[str, float]:
    """Fraction of ``eligible_prompts`` each entity has a defined score for."""
    key = entity_key_for(group_by)
    eligible = set(eligible_prompts)
    answered: Dict[str, set] = defaultdict(set)
    for record in records:
        if record.value is not None and record.prompt_id in eligible:
            answered[key(record)].add(record.prompt_id)
    total = len(eligible)
    return {entity: (len(prompts) / total if total else 0.0) for entity, prompts in answered.items()}


def consensus_agreement(scores: Sequence[WeightedScore]) -> List[WeightedScore]:
    """
    Replace each validator score with its agreement with the other validators.

    Agreement is ``1 - |value - mean(others)|`` where ``others`` are the
    defined, positively weighted values other validators gave the same
    (prompt, model) pair. With fewer than ``MIN_CONSENSUS_PEERS`` others the
    score becomes undefined.
    """
    key = ENTITY_KEYS["validator"]
    opinions: Dict[Tuple[str, str], List[Tuple[str, float]]] = defaultdict(list)
    for scored in scores:
        if scored.score is not None and scored.weight > 0:
            record = scored.record
            opinions[(record.prompt_id, record.model_id)].append((key(record), scored.score))

    agreed: List[WeightedScore] = []
    for scored in scores:
        record = scored.record
        value: Optional[float] = None
        if scored.score is not None:
            me = key(record)
            others = [v for who, v in opinions[(record.prompt_id, record.model_id)] if who != me]
            if len(others) >= MIN_CONSENSUS_PEERS:
                consensus = math.fsum(others) / len(others)
                value = max(0.0, 1.0 - abs(scored.score - consensus))
        agreed.append(replace(scored, score=value))
    return agreed


def _summarize(entity_id: str, scores: Sequence[WeightedScore], eligible: frozenset) -> Optional[_GroupSummary]:
    ordered = sorted(scores, key=lambda s: (s.record.sequence, s.record.index))
    contributing = [s for s in ordered if s.score is not None and s.weight > 0]
    total_weight = math.fsum(s.weight for s in contributing)
    if not contributing or total_weight <= 0:
        return None
    mean = math.fsum(s.score * s.weight for s in contributing) / total_weight
    answered = {s.record.prompt_id for s in ordered if s.score is not None and s.record.prompt_id in eligible}
    coverage = len(answered) / len(eligible) if eligible else 0.0
    return _GroupSummary(
        entity_id=entity_id,
        mean=mean,
        sample_count=len(contributing),
        distinct_prompts=len(answered),
        coverage=coverage,
        total_weight=total_weight,
    )


# ------------------------------------------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------------------------------------------


def aggregate(weighted_scores: Sequence[WeightedScore], group_by: str = "model", *,
              eligible_prompts: Collection[str], min_coverage: float = 0.0,
              max_workers: Optional[int] = None) -> AggregationReport:
    """
    Fold weighted scores into ranked leaderboard entries.

    Args:
        weighted_scores (Sequence[WeightedScore]): Scores to aggregate
        group_by (str): ``model``, ``provider`` or ``validator``
        eligible_prompts (Collection[str]): Prompt ids the coverage is measured against
        min_coverage (float): Minimum coverage as a percentage in [0, 100]
        max_workers (Optional[int]): Thread pool size for per-group summaries

    Returns:
        AggregationReport: Entries sorted and ranked, with exclusion bookkeeping

    Notes:
        - A weight of 0 contributes to neither numerator nor denominator
        - An undefined score is excluded, never counted as 0
        - Entities whose scores carry ``coverage_pass=False`` are excluded as well
    """
    key = entity_key_for(group_by)
    eligible = frozenset(eligible_prompts)

    groups: Dict[str, List[WeightedScore]] = defaultdict(list)
    for scored in weighted_scores:
        groups[key(scored.record)].append(scored)
    entity_ids = sorted(groups)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        summaries = list(pool.map(lambda entity: _summarize(entity, groups[entity], eligible), entity_ids))

    ranked: List[_GroupSummary] = []
    excluded_by_coverage: List[str] = []
    excluded_by_weight: List[str] = []
    for entity_id, summary in zip(entity_ids, summaries):
        if summary is None:
            excluded_by_weight.append(entity_id)
            continue
        failed_gate = any(not s.coverage_pass for s in groups[entity_id])
        if failed_gate or summary.coverage * 100.0 < min_coverage:
            logger.debug(f"Dropping '{entity_id}': coverage {summary.coverage:.1%} below {min_coverage}%")
            excluded_by_coverage.append(entity_id)
            continue
        ranked.append(summary)

    ranked.sort(key=lambda s: (-s.mean, -s.sample_count, s.entity_id))
    entries = tuple(
        LeaderboardEntry(
            entity_id=summary.entity_id,
            weighted_mean_score=summary.mean,
            sample_count=summary.sample_count,
            coverage=summary.coverage,
            rank=rank,
            distinct_prompts=summary.distinct_prompts,
            total_weight=summary.total_weight,
        )
        for rank, summary in enumerate(ranked, start=1)
    )

    ranked_ids = {entry.entity_id for entry in entries}
    distribution: Dict[str, int] = defaultdict(int)
    contributing = 0
    for entity_id in ranked_ids:
        for scored in groups[entity_id]:
            if scored.score is not None and scored.weight > 0:
                contributing += 1
                distribution[scored.record.prompt_set_id] += 1

    scored_records = [s for s in weighted_scores if s.score is not None]
    return AggregationReport(
        entries=entries,
        excluded_by_coverage=tuple(excluded_by_coverage),
        excluded_by_weight=tuple(excluded_by_weight),
        total_records=len(weighted_scores),
        scored_records=len(scored_records),
        contributing_records=contributing,
        distinct_prompts=len({s.record.prompt_id for s in scored_records}),
        eligible_prompts=len(eligible),
        mean_weight=math.fsum(s.weight for s in weighted_scores) / len(weighted_scores) if weighted_scores else 0.0,
        prompt_set_distribution=dict(sorted(distribution.items())),
    )


def paginate(entries: Sequence[LeaderboardEntry], page: int = 1,
             page_size: int = DEFAULT_PAGE_SIZE) -> Tuple[Tuple[LeaderboardEntry, ...], Pagination]:
    """
    Slice ranked entries into a page.

    Raises:
        ValueError: If ``page`` < 1 or ``page_size`` is outside 1..MAX_PAGE_SIZE
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValueError(f"pageSize must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
    total = len(entries)
    start = (page - 1) * page_size
    window = tuple(entries[start:start + page_size])
    return window, Pagination(
        page=page,
        page_size=page_size,
        total_count=total,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


__all__ = [
    "AggregationReport",
    "ENTITY_KEYS",
    "Pagination",
    "aggregate",
    "consensus_agreement",
    "coverage_by_entity",
    "entity_key_for",
    "paginate",
]
