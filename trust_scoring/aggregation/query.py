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
Leaderboard query interface.

Every query folds a snapshot of the submission log: prompts, score records
and review flags are derived from the stored payloads, weighted under the
requested policy and aggregated. Nothing is mutated in place. Results may be
cached under (policy fingerprint, query fingerprint, log watermark); a newer
watermark evicts older entries.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ..core.constants import DEFAULT_PAGE_SIZE
from ..core.types import LeaderboardEntry, format_timestamp, parse_timestamp
from ..data.records import build_prompt_catalog, flagged_submission_ids, score_records_from
from ..ingestion.log import SubmissionLog
from ..integrity.content_id import canonical_bytes
from ..weighting.engine import weight_records
from ..weighting.policy import WeightingPolicy
from .leaderboard import (
    Pagination,
    aggregate,
    consensus_agreement,
    coverage_by_entity,
    entity_key_for,
    paginate,
)

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------------------------
# Query & result
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class LeaderboardQuery:
    """Inputs of a leaderboard request.

    Weighting fields left as None inherit the service's base policy.
    ``access_reason`` and ``requested_by_user_id`` are recorded for audit
    logging only.
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    group_by: str = "model"
    owner_id: Optional[str] = None
    entity_id: Optional[str] = None
    provider: Optional[str] = None
    prompt_set_id: Optional[str] = None
    access_reason: Optional[str] = None
    requested_by_user_id: Optional[str] = None
    user_scoring_algorithm: Optional[str] = None
    user_weight_multiplier: Optional[float] = None
    min_coverage: Optional[float] = None
    prompt_age_weighting: Optional[str] = None
    response_delay_weighting: Optional[str] = None
    exclude_submission_ids: FrozenSet[str] = field(default_factory=frozenset)
    as_of: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LeaderboardQuery":
        """Build a query from its wire form (camelCase, filters nested under ``filters``)."""
        filters = data.get("filters") or {}
        return cls(
            page=int(data.get("page", 1)),
            page_size=int(data.get("pageSize", DEFAULT_PAGE_SIZE)),
            group_by=str(data.get("groupBy", "model")),
            owner_id=filters.get("ownerId"),
            entity_id=filters.get("id"),
            provider=filters.get("provider"),
            prompt_set_id=filters.get("promptSetId"),
            access_reason=data.get("accessReason"),
            requested_by_user_id=data.get("requestedByUserId"),
            user_scoring_algorithm=data.get("userScoringAlgorithm"),
            user_weight_multiplier=data.get("userWeightMultiplier"),
            min_coverage=data.get("minCoverage"),
            prompt_age_weighting=data.get("promptAgeWeighting"),
            response_delay_weighting=data.get("responseDelayWeighting"),
            exclude_submission_ids=frozenset(data.get("excludeSubmissionIds") or ()),
            as_of=parse_timestamp(data.get("asOf")),
        )

    def policy_overrides(self) -> Dict[str, Any]:
        return {
            "user_scoring_algorithm": self.user_scoring_algorithm,
            "user_weight_multiplier": self.user_weight_multiplier,
            "min_coverage": self.min_coverage,
            "prompt_age_weighting": self.prompt_age_weighting,
            "response_delay_weighting": self.response_delay_weighting,
        }

    def fingerprint(self) -> str:
        """Hash of the fields that shape the result (audit fields excluded)."""
        shape = {
            "page": self.page,
            "pageSize": self.page_size,
            "groupBy": self.group_by,
            "ownerId": self.owner_id,
            "id": self.entity_id,
            "provider": self.provider,
            "promptSetId": self.prompt_set_id,
            "exclude": sorted(self.exclude_submission_ids),
            "asOf": format_timestamp(self.as_of),
        }
        return hashlib.sha256(canonical_bytes(shape)).hexdigest()


@dataclass(frozen=True)
class LeaderboardPage:
    """One page of a leaderboard plus statistics for the whole result."""

    data: Tuple[LeaderboardEntry, ...]
    stats: Dict[str, Any]
    prompt_set_distribution: Dict[str, int]
    pagination: Pagination
    watermark: int
    policy_fingerprint: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [entry.to_dict() for entry in self.data],
            "stats": dict(self.stats),
            "promptSetDistribution": dict(self.prompt_set_distribution),
            "pagination": self.pagination.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


# ------------------------------------------------------------------------------------------------
# Cache
# ------------------------------------------------------------------------------------------------


class LeaderboardCache:
    """Results keyed by (policy fingerprint, query fingerprint, watermark)."""

    def __init__(self, max_entries: int = 128) -> None:
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: "OrderedDict[Tuple[str, str, int], LeaderboardPage]" = OrderedDict()
        self._watermark = 0

    def get(self, key: Tuple[str, str, int]) -> Optional[LeaderboardPage]:
        with self._lock:
            page = self._entries.get(key)
            if page is not None:
                self._entries.move_to_end(key)
            return page

    def put(self, key: Tuple[str, str, int], page: LeaderboardPage) -> None:
        watermark = key[2]
        with self._lock:
            if watermark < self._watermark:
                return
            if watermark > self._watermark:
                self._entries = OrderedDict((k, v) for k, v in self._entries.items() if k[2] >= watermark)
                self._watermark = watermark
            self._entries[key] = page
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ------------------------------------------------------------------------------------------------
# Service
# ------------------------------------------------------------------------------------------------


class LeaderboardService:
    """Answers leaderboard queries from a submission log.

    ``trusted_reviewers`` are signer addresses whose reviews may retract any
    submission; other signed reviews only retract their signer's own.
    """

    def __init__(self, log: SubmissionLog, policy: Optional[WeightingPolicy] = None,
                 cache: Optional[LeaderboardCache] = None, max_workers: Optional[int] = None,
                 trusted_reviewers: Iterable[str] = ()) -> None:
        self.log = log
        self.policy = policy or WeightingPolicy()
        self.cache = cache if cache is not None else LeaderboardCache()
        self.max_workers = max_workers
        self.trusted_reviewers = frozenset(trusted_reviewers)

    def query(self, query: Optional[LeaderboardQuery] = None) -> LeaderboardPage:
        """
        Compute one page of the leaderboard.

        Args:
            query (Optional[LeaderboardQuery]): Request; defaults to page 1 by model

        Returns:
            LeaderboardPage: Entries, stats, prompt set distribution and pagination

        Raises:
            PolicyConfigError: If the requested weighting or grouping is invalid
            ValueError: If the pagination arguments are out of range
        """
        query = query or LeaderboardQuery()
        policy = self.policy.with_overrides(**query.policy_overrides())
        entity_key_for(query.group_by)

        snapshot = self.log.snapshot()
        cache_key = (policy.fingerprint(), query.fingerprint(), snapshot.watermark)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        if query.requested_by_user_id or query.access_reason:
            logger.info(
                f"Leaderboard requested by '{query.requested_by_user_id}' ({query.access_reason}) "
                f"at watermark {snapshot.watermark}"
            )

        submissions = snapshot.submissions
        catalog = build_prompt_catalog(submissions)
        excluded = (flagged_submission_ids(submissions, trusted_reviewers=self.trusted_reviewers)
                    | set(query.exclude_submission_ids))

        eligible = {
            prompt_id: prompt
            for prompt_id, prompt in catalog.items()
            if query.prompt_set_id is None or prompt.prompt_set_id == query.prompt_set_id
        }

        records = [
            record
            for stored in submissions
            if stored.cid not in excluded
            for record in score_records_from(stored)
            if record.prompt_id in eligible
        ]
        records = [
            record for record in records
            if (query.owner_id is None or record.uploader_id == query.owner_id)
            and (query.provider is None or record.provider_id == query.provider)
        ]
        if query.entity_id is not None:
            key = entity_key_for(query.group_by)
            records = [record for record in records if key(record) == query.entity_id]
        records = [
            record if record.prompt_set_id else replace(record, prompt_set_id=eligible[record.prompt_id].prompt_set_id)
            for record in records
        ]

        now = query.as_of or max((stored.created_at for stored in submissions), default=datetime.now(UTC))
        coverage = coverage_by_entity(records, query.group_by, eligible)
        key = entity_key_for(query.group_by)
        weighted = weight_records(
            records,
            policy,
            prompts=eligible,
            now=now,
            coverage_pass=lambda record: coverage.get(key(record), 0.0) * 100.0 >= policy.min_coverage,
        )
        if query.group_by == "validator":
            weighted = consensus_agreement(weighted)

        report = aggregate(
            weighted,
            query.group_by,
            eligible_prompts=eligible,
            min_coverage=policy.min_coverage,
            max_workers=self.max_workers,
        )
        window, pagination = paginate(report.entries, query.page, query.page_size)
        page = LeaderboardPage(
            data=window,
            stats=report.stats(),
            prompt_set_distribution=report.prompt_set_distribution,
            pagination=pagination,
            watermark=snapshot.watermark,
            policy_fingerprint=policy.fingerprint(),
        )
        self.cache.put(cache_key, page)
        return page


__all__ = ["LeaderboardCache", "LeaderboardPage", "LeaderboardQuery", "LeaderboardService"]
