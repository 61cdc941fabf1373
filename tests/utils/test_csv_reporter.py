"""Tests for the csv_reporter module."""

from __future__ import annotations

import csv
from pathlib import Path

import pytest

from trust_scoring.core.types import LeaderboardEntry
from trust_scoring.utils.csv_reporter import DEFAULT_HEADERS, ReportRow, export_leaderboard_csv


@pytest.fixture()
def entries() -> tuple[LeaderboardEntry, ...]:
    """Two ranked leaderboard entries."""

    return (
        LeaderboardEntry("model-a", 0.91234567, 40, 1.0, 1, distinct_prompts=20, total_weight=31.5),
        LeaderboardEntry("model-b", 0.5, 12, 0.3, 2, distinct_prompts=6, total_weight=12.0),
    )


def _read_rows(path: Path) -> list[dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


def test_default_location(tmp_path: Path, entries) -> None:
    output = export_leaderboard_csv(entries, results_dir=tmp_path / "Results")

    assert output.parent == tmp_path / "Results" / "Reports"
    assert output.name.startswith("peerBench_leaderboard_")
    assert output.suffix == ".csv"

    rows = _read_rows(output)
    assert list(rows[0]) == list(DEFAULT_HEADERS)
    assert rows[0]["entity_id"] == "model-a"
    assert rows[0]["weighted_mean_score"] == "0.912346"
    assert rows[1]["rank"] == "2"
    assert rows[1]["coverage"] == "0.3"


def test_explicit_output_path_and_headers(tmp_path: Path, entries) -> None:
    target = tmp_path / "nested" / "board.csv"

    output = export_leaderboard_csv(entries, output_path=target, headers=["rank", "entity_id"])

    assert output == target
    assert _read_rows(output) == [
        {"rank": "1", "entity_id": "model-a"},
        {"rank": "2", "entity_id": "model-b"},
    ]


def test_empty_leaderboard_writes_header_only(tmp_path: Path) -> None:
    output = export_leaderboard_csv((), output_path=tmp_path / "empty.csv")
    assert output.read_text(encoding="utf-8").strip() == ",".join(DEFAULT_HEADERS)


@pytest.mark.parametrize("headers", [[], ["rank", "final_score"]])
def test_invalid_headers(tmp_path: Path, entries, headers) -> None:
    with pytest.raises(ValueError):
        export_leaderboard_csv(entries, output_path=tmp_path / "x.csv", headers=headers)


def test_report_row_from_entry(entries) -> None:
    row = ReportRow.from_entry(entries[0])
    assert row.as_dict() == {
        "rank": 1,
        "entity_id": "model-a",
        "weighted_mean_score": 0.912346,
        "sample_count": 40,
        "coverage": 1.0,
        "distinct_prompts": 20,
        "total_weight": 31.5,
    }
