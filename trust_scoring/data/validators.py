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
Data validation utilities for submissions.

This module checks that submission envelopes and their payloads have the
expected structure before anything is written to the submission log.
"""

from typing import Any, Dict, List, Mapping
import logging
import math

from ..core.constants import PAYLOAD_PROMPTS, PAYLOAD_RESPONSES, PAYLOAD_REVIEW, PAYLOAD_SCORES, PAYLOAD_TYPES, PROMPT_TYPES, SCORE_BOUNDS
from ..core.exceptions import SubmissionValidationError
from ..core.types import Submission, parse_timestamp

logger = logging.getLogger(__name__)

REQUIRED_ENTRY_FIELDS = {
    PAYLOAD_PROMPTS: ("id", "question"),
    PAYLOAD_RESPONSES: ("id", "promptId"),
    PAYLOAD_SCORES: ("promptId", "modelId"),
}

TIMESTAMP_FIELDS = {
    PAYLOAD_PROMPTS: "createdAt",
    PAYLOAD_RESPONSES: "respondedAt",
    PAYLOAD_SCORES: "respondedAt",
}


def payload_entries(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Return the payload's ``data`` as a list of entries.

    A single object is wrapped into a one-element list. Entry-level
    ``promptSetId`` defaults to the payload-level one.
    """
    data = payload.get("data")
    if data is None:
        return []
    items = data if isinstance(data, list) else [data]
    prompt_set_id = payload.get("promptSetId")
    entries = []
    for item in items:
        entry = dict(item) if isinstance(item, Mapping) else item
        if isinstance(entry, dict) and prompt_set_id and "promptSetId" not in entry:
            entry["promptSetId"] = prompt_set_id
        entries.append(entry)
    return entries


class SubmissionValidator:
    """Class to handle submission validation"""

    @staticmethod
    def validate_envelope(submission: Submission) -> None:
        """
        Validates the envelope fields of a submission.

        Args:
            submission (Submission): Submission as received

        Raises:
            SubmissionValidationError: If the CID, uploader or chunk fields are missing or invalid
        """
        if not submission.cid:
            raise SubmissionValidationError("Submission has no claimed CID")
        if not submission.uploader_id:
            raise SubmissionValidationError(f"Submission '{submission.cid}' has no uploaderId")
        if not isinstance(submission.payload, dict) or not submission.payload:
            raise SubmissionValidationError(f"Submission '{submission.cid}' has an empty payload")
        if submission.signature and not submission.signer_address:
            raise SubmissionValidationError(f"Submission '{submission.cid}' is signed but has no signerAddress")
        if submission.merge_id is not None and submission.chunk_index < 0:
            raise SubmissionValidationError(
                f"Chunk index must be non-negative in series '{submission.merge_id}', got {submission.chunk_index}"
            )

    @staticmethod
    def validate_payload(payload: Mapping[str, Any]) -> None:
        """
        Validates a submission payload.

        Args:
            payload (Mapping[str, Any]): The ``payload`` object of a submission

        Raises:
            SubmissionValidationError: If any validation check fails:
                - Unknown payload type
                - Missing or empty ``data``
                - Entry missing a required field
                - Unparseable timestamp
                - Score value outside [0, 1]
                - Review without target CIDs

        Notes:
            - A score ``value`` may be null, meaning the pair was not scorable
        """
        kind = payload.get("type")
        if kind not in PAYLOAD_TYPES:
            raise SubmissionValidationError(f"Unknown payload type '{kind}'; expected one of {PAYLOAD_TYPES}")

        if kind == PAYLOAD_REVIEW:
            SubmissionValidator._validate_review(payload.get("data"))
            return

        entries = payload_entries(payload)
        if not entries:
            raise SubmissionValidationError(f"Payload of type '{kind}' carries no data")

        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise SubmissionValidationError(f"Entry {position} of '{kind}' payload must be an object")
            for field in REQUIRED_ENTRY_FIELDS[kind]:
                if entry.get(field) in (None, ""):
                    raise SubmissionValidationError(f"Entry {position} of '{kind}' payload is missing '{field}'")
            try:
                parse_timestamp(entry.get(TIMESTAMP_FIELDS[kind]))
            except ValueError as exc:
                raise SubmissionValidationError(f"Entry {position} of '{kind}' payload: {exc}") from exc

            if kind == PAYLOAD_PROMPTS:
                prompt_type = entry.get("type", "free-form")
                if prompt_type not in PROMPT_TYPES:
                    raise SubmissionValidationError(f"Prompt '{entry['id']}' has unknown type '{prompt_type}'")
                if entry.get("options") is not None and not isinstance(entry["options"], dict):
                    raise SubmissionValidationError(f"Prompt '{entry['id']}' options must be a mapping")
            elif kind == PAYLOAD_SCORES:
                SubmissionValidator._validate_score_value(entry.get("value"), position)

    @staticmethod
    def _validate_score_value(value: Any, position: int) -> None:
        if value is None:
            return
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SubmissionValidationError(
                f"Invalid score type in entry {position}: expected number, got {type(value).__name__}"
            )
        if not math.isfinite(value) or value < SCORE_BOUNDS["MIN"] or value > SCORE_BOUNDS["MAX"]:
            raise SubmissionValidationError(
                f"Score in entry {position} must be between {SCORE_BOUNDS['MIN']} and {SCORE_BOUNDS['MAX']}, got {value}"
            )

    @staticmethod
    def _validate_review(data: Any) -> None:
        if not isinstance(data, dict):
            raise SubmissionValidationError("Review payload data must be an object")
        targets = data.get("targets")
        if not isinstance(targets, list) or not targets:
            raise SubmissionValidationError("Review payload must name at least one target CID")
        if not all(isinstance(target, str) and target for target in targets):
            raise SubmissionValidationError("Review targets must be non-empty CID strings")


def validate_submission(submission: Submission) -> None:
    """
    Validate a submission envelope and its payload.

    Raises:
        SubmissionValidationError: If the submission is malformed
    """
    SubmissionValidator.validate_envelope(submission)
    SubmissionValidator.validate_payload(submission.payload)
    logger.debug(f"Submission '{submission.cid}' passed validation")
