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
SQLite-backed submission log.

Each accepted submission is one row written in a single transaction, so a
multi-entry submission is visible completely or not at all. The autoincrement
``sequence`` column doubles as the log watermark.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, UniqueConstraint, func
from sqlalchemy.exc import IntegrityError as SQLIntegrityError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..core.constants import DATABASE_FILE
from ..core.types import StoredSubmission
from .log import LogSnapshot, SeriesChunk, SeriesState

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


class SubmissionModel(SQLModel, table=True):
    """Append-only table of accepted submissions."""

    __tablename__ = "submissions"

    sequence: Optional[int] = Field(default=None, primary_key=True)
    cid: str = Field(index=True, unique=True)
    uploader_id: str = Field(index=True)
    source: str
    kind: str = Field(index=True)
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
    signature: Optional[str] = Field(default=None, nullable=True)
    signer_address: Optional[str] = Field(default=None, nullable=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MergeSeriesModel(SQLModel, table=True):
    """Owner tag and state of a chunked upload series."""

    __tablename__ = "merge_series"

    merge_id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    finalized: bool = Field(default=False)


class MergeChunkModel(SQLModel, table=True):
    """One chunk of a series, kept until the series is finalized."""

    __tablename__ = "merge_chunks"
    __table_args__ = (UniqueConstraint("merge_id", "chunk_index"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    merge_id: str = Field(index=True, foreign_key="merge_series.merge_id")
    chunk_index: int
    cid: str
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
    signature: Optional[str] = Field(default=None, nullable=True)
    signer_address: Optional[str] = Field(default=None, nullable=True)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SqlSubmissionLog:
    """SQLite submission log implementing the ``SubmissionLog`` protocol."""

    def __init__(self, path: Optional[Path] = None, *, url: Optional[str] = None,
                 schema_version: int = SCHEMA_VERSION) -> None:
        if url is None:
            self.path = Path(path or DATABASE_FILE).expanduser()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self.path}"
        else:
            self.path = None
        self.schema_version = schema_version
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.engine = create_engine(url, echo=False, connect_args=connect_args)
        self._initialize_database()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    def _initialize_database(self) -> None:
        if self.engine.dialect.name != "sqlite":
            SQLModel.metadata.create_all(self.engine)
            return
        with self.engine.connect() as connection:
            current = connection.exec_driver_sql("PRAGMA user_version").scalar() or 0
            if current > self.schema_version:
                raise RuntimeError("Submission database schema version is newer than supported.")
            SQLModel.metadata.create_all(self.engine)
            if 1 <= current < 2 <= self.schema_version:
                self._migrate_to_v2(connection)
            if current < self.schema_version:
                connection.exec_driver_sql(f"PRAGMA user_version = {self.schema_version}")
                connection.commit()

    def _migrate_to_v2(self, connection) -> None:
        """Record the signature of every stored chunk."""

        for column in ("signature", "signer_address"):
            connection.exec_driver_sql(f"ALTER TABLE merge_chunks ADD COLUMN {column} VARCHAR")
        logger.info("Migrated submission database to schema version 2")

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------
    @property
    def watermark(self) -> int:
        with Session(self.engine) as session:
            return session.exec(select(func.max(SubmissionModel.sequence))).one() or 0

    def contains(self, cid: str) -> bool:
        with Session(self.engine) as session:
            return session.exec(select(SubmissionModel.sequence).where(SubmissionModel.cid == cid)).first() is not None

    def append(self, *, cid: str, uploader_id: str, source: str, kind: str, payload: Dict[str, Any],
               created_at: datetime, signature: Optional[str] = None,
               signer_address: Optional[str] = None) -> Optional[StoredSubmission]:
        model = SubmissionModel(
            cid=cid,
            uploader_id=uploader_id,
            source=source,
            kind=kind,
            payload=payload,
            signature=signature,
            signer_address=signer_address,
            created_at=created_at,
        )
        with Session(self.engine) as session:
            session.add(model)
            try:
                session.commit()
            except SQLIntegrityError:
                session.rollback()
                logger.debug(f"Submission '{cid}' already stored")
                return None
            session.refresh(model)
            return self._to_stored(model)

    def snapshot(self) -> LogSnapshot:
        with Session(self.engine) as session:
            models = session.exec(select(SubmissionModel).order_by(SubmissionModel.sequence)).all()
            submissions = tuple(self._to_stored(model) for model in models)
        watermark = submissions[-1].sequence if submissions else 0
        return LogSnapshot(submissions=submissions, watermark=watermark)

    # ------------------------------------------------------------------
    # Chunked series
    # ------------------------------------------------------------------
    def series(self, merge_id: str) -> Optional[SeriesState]:
        with Session(self.engine) as session:
            head = session.get(MergeSeriesModel, merge_id)
            if head is None:
                return None
            chunks = session.exec(
                select(MergeChunkModel).where(MergeChunkModel.merge_id == merge_id)
            ).all()
            return SeriesState(
                merge_id=head.merge_id,
                owner_id=head.owner_id,
                chunks={
                    chunk.chunk_index: SeriesChunk(
                        chunk.chunk_index,
                        chunk.cid,
                        dict(chunk.payload),
                        signature=chunk.signature,
                        signer_address=chunk.signer_address,
                    )
                    for chunk in chunks
                },
                finalized=head.finalized,
            )

    def append_chunk(self, merge_id: str, owner_id: str, chunk: SeriesChunk) -> None:
        with Session(self.engine) as session:
            if session.get(MergeSeriesModel, merge_id) is None:
                session.add(MergeSeriesModel(merge_id=merge_id, owner_id=owner_id))
                session.flush()
            session.add(MergeChunkModel(
                merge_id=merge_id,
                chunk_index=chunk.index,
                cid=chunk.cid,
                payload=chunk.payload,
                signature=chunk.signature,
                signer_address=chunk.signer_address,
            ))
            session.commit()

    def finalize_series(self, merge_id: str) -> None:
        with Session(self.engine) as session:
            head = session.get(MergeSeriesModel, merge_id)
            if head is None:
                return
            head.finalized = True
            session.add(head)
            session.commit()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_stored(model: SubmissionModel) -> StoredSubmission:
        return StoredSubmission(
            sequence=int(model.sequence or 0),
            cid=model.cid,
            uploader_id=model.uploader_id,
            source=model.source,
            kind=model.kind,
            payload=dict(model.payload or {}),
            created_at=_as_utc(model.created_at),
            signature=model.signature,
            signer_address=model.signer_address,
        )


__all__ = ["MergeChunkModel", "MergeSeriesModel", "SqlSubmissionLog", "SubmissionModel"]
