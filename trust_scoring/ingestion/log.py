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
The submission log contract and its in-memory implementation.

Production ingestion (``SqlSubmissionLog``) and simulation runs
(``InMemorySubmissionLog``) implement the same ``SubmissionLog`` protocol,
so the weighting and aggregation code never knows which one it reads.

The log is append-only. Readers take a ``LogSnapshot``: an immutable tuple of
stored submissions up to a watermark, which later appends never change.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..core.types import StoredSubmission


@dataclass(frozen=True)
class LogSnapshot:
    """Consistent read view of the log."""

    submissions: Tuple[StoredSubmission, ...]
    watermark: int

    def __len__(self) -> int:
        return len(self.submissions)


@dataclass(frozen=True)
class SeriesChunk:
    """One uploaded chunk together with the signature that covers its payload."""

    index: int
    cid: str
    payload: Dict[str, Any]
    signature: Optional[str] = None
    signer_address: Optional[str] = None


@dataclass
class SeriesState:
    merge_id: str
    owner_id: str
    chunks: Dict[int, SeriesChunk] = field(default_factory=dict)
    finalized: bool = False


class SubmissionLog(Protocol):
    """Read/write contract every submission log implements."""

    @property
    def watermark(self) -> int:
        ...

    def contains(self, cid: str) -> bool:
        ...

    def append(self, *, cid: str, uploader_id: str, source: str, kind: str, payload: Dict[str, Any],
               created_at: datetime, signature: Optional[str] = None,
               signer_address: Optional[str] = None) -> Optional[StoredSubmission]:
        """Append one submission atomically. Returns None when the CID is already present."""
        ...

    def snapshot(self) -> LogSnapshot:
        ...

    def series(self, merge_id: str) -> Optional[SeriesState]:
        ...

    def append_chunk(self, merge_id: str, owner_id: str, chunk: SeriesChunk) -> None:
        ...

    def finalize_series(self, merge_id: str) -> None:
        ...


class InMemorySubmissionLog:
    """Submission log held in process memory; used by simulations and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[StoredSubmission] = []
        self._by_cid: Dict[str, StoredSubmission] = {}
        self._series: Dict[str, SeriesState] = {}

    @property
    def watermark(self) -> int:
        with self._lock:
            return len(self._entries)

    def contains(self, cid: str) -> bool:
        with self._lock:
            return cid in self._by_cid

    def get(self, cid: str) -> Optional[StoredSubmission]:
        with self._lock:
            return self._by_cid.get(cid)

    def append(self, *, cid: str, uploader_id: str, source: str, kind: str, payload: Dict[str, Any],
               created_at: datetime, signature: Optional[str] = None,
               signer_address: Optional[str] = None) -> Optional[StoredSubmission]:
        with self._lock:
            if cid in self._by_cid:
                return None
            stored = StoredSubmission(
                sequence=len(self._entries) + 1,
                cid=cid,
                uploader_id=uploader_id,
                source=source,
                kind=kind,
                payload=payload,
                created_at=created_at,
                signature=signature,
                signer_address=signer_address,
            )
            self._entries.append(stored)
            self._by_cid[cid] = stored
            return stored

    def snapshot(self) -> LogSnapshot:
        with self._lock:
            return LogSnapshot(submissions=tuple(self._entries), watermark=len(self._entries))

    # ------------------------------------------------------------------
    # Chunked series
    # ------------------------------------------------------------------
    def series(self, merge_id: str) -> Optional[SeriesState]:
        with self._lock:
            state = self._series.get(merge_id)
            if state is None:
                return None
            return SeriesState(state.merge_id, state.owner_id, dict(state.chunks), state.finalized)

    def append_chunk(self, merge_id: str, owner_id: str, chunk: SeriesChunk) -> None:
        with self._lock:
            state = self._series.setdefault(merge_id, SeriesState(merge_id=merge_id, owner_id=owner_id))
            state.chunks[chunk.index] = chunk

    def finalize_series(self, merge_id: str) -> None:
        with self._lock:
            state = self._series.get(merge_id)
            if state is not None:
                state.finalized = True


__all__ = ["InMemorySubmissionLog", "LogSnapshot", "SeriesChunk", "SeriesState", "SubmissionLog"]
