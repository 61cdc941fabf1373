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
Submission ingestion.

A submission moves from Received to IntegrityChecked and then to Accepted or
Rejected. Rejections are returned as a structured ``IngestResult`` and are
never raised to the submitter. Storing a CID that is already present is an
idempotent success.

Chunked uploads (``mergeId`` series) are serialized with one lock per series
key. Unrelated submissions never wait on each other here.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from ..core.constants import (
    INGESTION_MODE_OPEN,
    INGESTION_MODE_VALIDATOR,
    INGESTION_MODES,
    PAYLOAD_REVIEW,
    REASON_CHUNK_STORED,
    REASON_DUPLICATE,
    SOURCE_USER,
    SOURCE_VALIDATOR,
)
from ..core.exceptions import (
    IntegrityError,
    OwnershipError,
    PolicyConfigError,
    SignatureError,
    SubmissionValidationError,
)
from ..core.types import Submission
from ..data.validators import SubmissionValidator, payload_entries
from ..integrity.content_id import compute_cid
from ..integrity.signing import verify
from .log import SeriesChunk, SubmissionLog

logger = logging.getLogger(__name__)

REJECTIONS = (IntegrityError, SignatureError, OwnershipError, SubmissionValidationError)

# ------------------------------------------------------------------------------------------------
# Policy & results
# ------------------------------------------------------------------------------------------------

@dataclass(frozen=True)
class IngestionPolicy:
    """
    Signature policy for incoming submissions.

    ``open`` accepts unsigned submissions into the user tier; ``validator``
    rejects them. When ``trusted_signers`` is non-empty only those addresses
    count as validators: in ``open`` mode other verified signers fall into the
    user tier, in ``validator`` mode they are rejected.
    """

    mode: str = INGESTION_MODE_OPEN
    trusted_signers: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.mode not in INGESTION_MODES:
            raise PolicyConfigError(f"Unknown ingestion mode '{self.mode}'; expected one of {INGESTION_MODES}")

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "IngestionPolicy":
        config = config or {}
        return cls(
            mode=str(config.get("mode", INGESTION_MODE_OPEN)),
            trusted_signers=frozenset(config.get("trusted_signers", config.get("trustedSigners", ())) or ()),
        )

@dataclass(frozen=True)
class IngestResult:
    """Outcome of one ``ingest`` call."""

    accepted: bool
    cid: str
    reason: Optional[str] = None
    detail: Optional[str] = None
    sequence: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"accepted": self.accepted, "cid": self.cid}
        if self.reason is not None:
            result["reason"] = self.reason
        if self.detail is not None:
            result["detail"] = self.detail
        return result

class SeriesLocks:
    """Hands out one lock per ``mergeId``."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def lock_for(self, merge_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(merge_id)
            if lock is None:
                lock = self._locks[merge_id] = threading.Lock()
            return lock

# ------------------------------------------------------------------------------------------------
# Ingestor
# ------------------------------------------------------------------------------------------------

class SubmissionIngestor:
    """Validates, deduplicates and persists submissions into a submission log."""

    def __init__(self, log: SubmissionLog, policy: Optional[IngestionPolicy] = None,
                 clock: Optional[Callable[[], datetime]] = None) -> None:
        self.log = log
        self.policy = policy or IngestionPolicy()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._series_locks = SeriesLocks()

    def ingest(self, submission: Union[Submission, Mapping[str, Any]]) -> IngestResult:
        """
        Ingest one submission.

        Args:
            submission: A ``Submission`` or its wire dictionary

        Returns:
            IngestResult: ``accepted=False`` with the error class name as
            ``reason`` for rejections, ``reason="duplicate"`` for a CID
            that is already stored
        """
        if not isinstance(submission, Submission):
            try:
                submission = Submission.from_dict(submission)
            except (TypeError, ValueError) as exc:
                return self._reject("", SubmissionValidationError(f"Unreadable submission: {exc}"))

        try:
            SubmissionValidator.validate_envelope(submission)
            self._check_integrity(submission)
            if submission.merge_id is None and self.log.contains(submission.cid):
                logger.info(f"[*] Submission '{submission.cid}' already stored, skipping")
                return IngestResult(accepted=True, cid=submission.cid, reason=REASON_DUPLICATE)
            SubmissionValidator.validate_payload(submission.payload)
            signer = self._check_signature(submission)
            if submission.merge_id is not None:
                return self._ingest_chunk(submission, signer)
            return self._store(submission.cid, submission.payload, submission, signer,
                               submission.signature if signer else None)
        except REJECTIONS as exc:
            return self._reject(submission.cid, exc)

    def ingest_many(self, submissions: Iterable[Union[Submission, Mapping[str, Any]]]) -> List[IngestResult]:
        return [self.ingest(submission) for submission in submissions]

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    @staticmethod
    def _check_integrity(submission: Submission) -> None:
        try:
            recomputed = compute_cid(submission.payload)
        except (TypeError, ValueError) as exc:
            raise SubmissionValidationError(f"Payload cannot be canonicalized: {exc}") from exc
        if recomputed != submission.cid:
            raise IntegrityError(f"Claimed CID '{submission.cid}' does not match payload CID '{recomputed}'")

    def _check_signature(self, submission: Submission) -> Optional[str]:
        """Return the verified signer address, or None for an accepted unsigned submission."""
        if submission.signature is None:
            if self.policy.mode == INGESTION_MODE_VALIDATOR:
                raise SignatureError(f"Submission '{submission.cid}' is unsigned; validator mode requires a signature")
            return None
        if not verify(submission.payload, submission.signature, submission.signer_address):
            raise SignatureError(f"Signature on '{submission.cid}' does not verify against '{submission.signer_address}'")
        signer = submission.signer_address
        if (
            self.policy.mode == INGESTION_MODE_VALIDATOR
            and self.policy.trusted_signers
            and signer not in self.policy.trusted_signers
        ):
            raise SignatureError(f"Signer '{signer}' is not a registered validator")
        return signer

    def _source_for(self, signer: Optional[str]) -> str:
        if signer is None:
            return SOURCE_USER
        if self.policy.trusted_signers and signer not in self.policy.trusted_signers:
            return SOURCE_USER
        return SOURCE_VALIDATOR

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _received_at(self, submission: Submission) -> datetime:
        """Creation time of a submission: the envelope value, capped at the ingestion clock."""
        now = self._clock()
        if submission.created_at is None or submission.created_at > now:
            return now
        return submission.created_at

    def _store(self, cid: str, payload: Dict[str, Any], submission: Submission,
               signer: Optional[str], signature: Optional[str]) -> IngestResult:
        stored = self.log.append(
            cid=cid,
            uploader_id=submission.uploader_id,
            source=self._source_for(signer),
            kind=str(payload["type"]),
            payload=payload,
            created_at=self._received_at(submission),
            signature=signature,
            signer_address=signer,
        )
        if stored is None:
            logger.info(f"[*] Submission '{cid}' already stored, skipping")
            return IngestResult(accepted=True, cid=cid, reason=REASON_DUPLICATE)
        logger.info(f"[+] Accepted submission '{cid}' ({stored.kind}, {stored.source}) at #{stored.sequence}")
        return IngestResult(accepted=True, cid=cid, sequence=stored.sequence)

    def _ingest_chunk(self, submission: Submission, signer: Optional[str]) -> IngestResult:
        """
        Append one chunk to its series and combine the series on the final chunk.

        Every chunk of a series must be signed by the same signer, or all must be
        unsigned. The combined submission carries that signer's address but no
        signature of its own; the per-chunk signatures stay with the series.
        Re-sending the final chunk of a series that never finalized runs the
        combine again.
        """
        merge_id = submission.merge_id
        if submission.payload.get("type") == PAYLOAD_REVIEW:
            raise SubmissionValidationError("Review submissions cannot be chunked")
        with self._series_locks.lock_for(merge_id):
            state = self.log.series(merge_id)
            chunks = dict(state.chunks) if state else {}
            if state is not None:
                if state.owner_id != submission.uploader_id:
                    raise OwnershipError(
                        f"Series '{merge_id}' belongs to '{state.owner_id}', not '{submission.uploader_id}'"
                    )
                if state.finalized:
                    raise SubmissionValidationError(f"Series '{merge_id}' is already finalized")

            signers = {chunk.signer_address for chunk in chunks.values()}
            if signers and signers != {signer}:
                raise SignatureError(f"Chunks of series '{merge_id}' must all carry the same signer")

            existing = chunks.get(submission.chunk_index)
            if existing is not None and existing.cid != submission.cid:
                raise SubmissionValidationError(
                    f"Chunk {submission.chunk_index} of series '{merge_id}' was already uploaded with different content"
                )
            if existing is None:
                kinds = {chunk.payload.get("type") for chunk in chunks.values()}
                if kinds and kinds != {submission.payload.get("type")}:
                    raise SubmissionValidationError(f"Chunks of series '{merge_id}' must share one payload type")
                chunks[submission.chunk_index] = SeriesChunk(
                    submission.chunk_index,
                    submission.cid,
                    submission.payload,
                    signature=submission.signature if signer else None,
                    signer_address=signer,
                )
            if submission.final and sorted(chunks) != list(range(len(chunks))):
                raise SubmissionValidationError(
                    f"Series '{merge_id}' cannot be finalized with chunks {sorted(chunks)}"
                )

            if existing is None:
                self.log.append_chunk(merge_id, submission.uploader_id, chunks[submission.chunk_index])
            elif not submission.final:
                return IngestResult(accepted=True, cid=submission.cid, reason=REASON_DUPLICATE)
            if not submission.final:
                logger.info(f"[*] Stored chunk {submission.chunk_index} of series '{merge_id}'")
                return IngestResult(accepted=True, cid=submission.cid, reason=REASON_CHUNK_STORED)

            combined = self._combine(chunks)
            result = self._store(compute_cid(combined), combined, submission, signer, None)
            self.log.finalize_series(merge_id)
            logger.info(f"[+] Finalized series '{merge_id}' from {len(chunks)} chunk(s)")
            return result

    @staticmethod
    def _combine(chunks: Mapping[int, SeriesChunk]) -> Dict[str, Any]:
        ordered = [chunks[index] for index in sorted(chunks)]
        combined = {key: value for key, value in ordered[0].payload.items() if key != "data"}
        data: List[Any] = []
        for chunk in ordered:
            data.extend(payload_entries(chunk.payload))
        combined["data"] = data
        return combined

    def _reject(self, cid: str, exc: Exception) -> IngestResult:
        reason = type(exc).__name__
        logger.warning(f"[-] Rejected submission '{cid}': {reason}: {exc}")
        return IngestResult(accepted=False, cid=cid, reason=reason, detail=str(exc))


__all__ = ["IngestResult", "IngestionPolicy", "SeriesLocks", "SubmissionIngestor"]
