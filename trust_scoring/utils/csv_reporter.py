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

"""Utilities for exporting leaderboard pages to CSV reports."""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations
import csv
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence

from ..core.constants import RESULTS_DIR
from ..core.types import LeaderboardEntry

DEFAULT_REPORTS_SUBDIR = "Reports"
DEFAULT_PROJECT_NAME = "peerBench"

LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS: Sequence[str] = (
    "rank",
    "entity_id",
    "weighted_mean_score",
    "sample_count",
    "coverage",
    "distinct_prompts",
    "total_weight",
)


@dataclass(slots=True)
class ReportRow:
    """Flat representation of one leaderboard entry."""

    rank: int
    entity_id: str
    weighted_mean_score: float
    sample_count: int
    coverage: float
    distinct_prompts: int
    total_weight: float

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> "ReportRow":
        return cls(
            rank=entry.rank,
            entity_id=entry.entity_id,
            weighted_mean_score=round(entry.weighted_mean_score, 6),
            sample_count=entry.sample_count,
            coverage=round(entry.coverage, 6),
            distinct_prompts=entry.distinct_prompts,
            total_weight=round(entry.total_weight, 6),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "entity_id": self.entity_id,
            "weighted_mean_score": self.weighted_mean_score,
            "sample_count": self.sample_count,
            "coverage": self.coverage,
            "distinct_prompts": self.distinct_prompts,
            "total_weight": self.total_weight,
        }


def _write_csv(path: Path, headers: Sequence[str], rows: Iterable[ReportRow]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=headers, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row.as_dict())


def export_leaderboard_csv(
    entries: Sequence[LeaderboardEntry],
    *,
    results_dir: Path | str = RESULTS_DIR,
    output_path: Optional[Path | str] = None,
    headers: Sequence[str] = DEFAULT_HEADERS,
    project_name: str = DEFAULT_PROJECT_NAME,
) -> Path:
    """Write leaderboard entries to a CSV file.

    Args:
        entries: Ranked entries, usually ``LeaderboardPage.data``.
        results_dir: Base directory for the default output location.
        output_path: Explicit output location. When omitted a timestamped file
            is created inside ``results_dir / Reports``.
        headers: Column order; a subset of :data:`DEFAULT_HEADERS`.
        project_name: Name used in the default filename.

    Returns:
        Path to the generated CSV file.

    Raises:
        ValueError: When the headers are empty or name an unknown column.
    """

    if not headers:
        raise ValueError("CSV headers cannot be empty.")
    unknown = [header for header in headers if header not in DEFAULT_HEADERS]
    if unknown:
        raise ValueError(f"Unknown CSV columns: {unknown}")

    if output_path is None:
        reports_directory = Path(results_dir) / DEFAULT_REPORTS_SUBDIR
        reports_directory.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        output_path = reports_directory / f"{project_name}_leaderboard_{timestamp}.csv"
    else:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

    _write_csv(output_path, headers, (ReportRow.from_entry(entry) for entry in entries))
    LOGGER.info("CSV report generated at %s", output_path)
    return output_path


__all__ = ["DEFAULT_HEADERS", "ReportRow", "export_leaderboard_csv"]
