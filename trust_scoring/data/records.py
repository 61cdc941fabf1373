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
Folding of stored submissions into typed records.

The submission log keeps payloads verbatim; prompts, score records and
review targets are derived from them on read.
"""

from typing import AbstractSet, Dict, Iterable, List, Set

from ..core.constants import PAYLOAD_PROMPTS, PAYLOAD_REVIEW, PAYLOAD_SCORES
from ..core.types import Prompt, ScoreRecord, StoredSubmission, parse_timestamp
from .validators import payload_entries


def prompts_from(stored: StoredSubmission) -> List[Prompt]:
    if stored.kind != PAYLOAD_PROMPTS:
        return []
    return [Prompt.from_dict(entry) for entry in payload_entries(stored.payload)]


def score_records_from(stored: StoredSubmission) -> List[ScoreRecord]:
    """Flatten a ``scores`` submission into one ScoreRecord per entry."""
    if stored.kind != PAYLOAD_SCORES:
        return []
    records = []
    for index, entry in enumerate(payload_entries(stored.payload)):
        value = entry.get("value")
        records.append(ScoreRecord(
            submission_cid=stored.cid,
            sequence=stored.sequence,
            index=index,
            prompt_id=str(entry["promptId"]),
            response_id=str(entry.get("responseId", "")),
            provider_id=str(entry.get("providerId", "")),
            model_id=str(entry["modelId"]),
            scorer_identifier=str(entry.get("scorerIdentifier", "")),
            value=None if value is None else float(value),
            responded_at=parse_timestamp(entry.get("respondedAt")),
            uploader_id=stored.uploader_id,
            source=stored.source,
            signer_address=stored.signer_address,
            prompt_set_id=str(entry.get("promptSetId", "")),
        ))
    return records


def review_targets_from(stored: StoredSubmission) -> List[str]:
    if stored.kind != PAYLOAD_REVIEW:
        return []
    data = stored.payload.get("data") or {}
    return [str(target) for target in data.get("targets", [])]


def build_prompt_catalog(submissions: Iterable[StoredSubmission]) -> Dict[str, Prompt]:
    """Map prompt id to prompt. The first registration of an id wins; prompts are immutable."""
    catalog: Dict[str, Prompt] = {}
    for stored in submissions:
        for prompt in prompts_from(stored):
            catalog.setdefault(prompt.id, prompt)
    return catalog


def flagged_submission_ids(submissions: Iterable[StoredSubmission], *,
                           trusted_reviewers: AbstractSet[str] = frozenset(),
                           verified_only: bool = True) -> Set[str]:
    """Collect CIDs retracted by review submissions.

    A signed review retracts a target only when its signer also signed the
    target or is one of ``trusted_reviewers``. With ``verified_only`` False
    every review counts.
    """
    submissions = list(submissions)
    target_signers = {stored.cid: stored.signer_address for stored in submissions}
    flagged: Set[str] = set()
    for stored in submissions:
        if stored.kind != PAYLOAD_REVIEW:
            continue
        if not verified_only:
            flagged.update(review_targets_from(stored))
            continue
        reviewer = stored.signer_address
        if not reviewer:
            continue
        for target in review_targets_from(stored):
            if reviewer in trusted_reviewers or target_signers.get(target) == reviewer:
                flagged.add(target)
    return flagged
