"""Shared fixtures for CLI tests."""
from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner


@pytest.fixture(scope="session")
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated working directory with its own database and signing key."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PB_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("PB_PRIVATE_KEY", (bytes([9]) * 32).hex())
    monkeypatch.delenv("PB_INGESTION_MODE", raising=False)
    monkeypatch.delenv("PB_JUDGE_API_KEY", raising=False)
    return tmp_path
