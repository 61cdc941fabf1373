"""Runtime settings for the peerBench CLI.

Settings come from an optional YAML file with the sections ``database``,
``ingestion``, ``weighting``, ``scorers`` and ``judge``, overlaid by the
``PB_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from config.scoring_config import INGESTION_DEFAULTS, SCORER_DEFAULTS
from trust_scoring.core.constants import DATABASE_FILE
from trust_scoring.core.exceptions import PolicyConfigError
from trust_scoring.ingestion.ingest import IngestionPolicy
from trust_scoring.ingestion.store import SqlSubmissionLog
from trust_scoring.weighting.policy import WeightingPolicy

from .utils.logging import get_logger

LOGGER = get_logger("peerbench.settings")

DEFAULT_SETTINGS_FILE = Path("peerbench.yaml")

ENV_PRIVATE_KEY = "PB_PRIVATE_KEY"
ENV_DATABASE_URL = "PB_DATABASE_URL"
ENV_INGESTION_MODE = "PB_INGESTION_MODE"
ENV_JUDGE_API_KEY = "PB_JUDGE_API_KEY"


@dataclass(slots=True)
class Settings:
    """Resolved CLI settings."""

    database_url: str = f"sqlite:///{DATABASE_FILE}"
    ingestion: Dict[str, Any] = field(default_factory=lambda: dict(INGESTION_DEFAULTS))
    weighting: Dict[str, Any] = field(default_factory=dict)
    scorers: List[str] = field(default_factory=lambda: list(SCORER_DEFAULTS["scorers"]))
    judge: Dict[str, Any] = field(default_factory=lambda: dict(SCORER_DEFAULTS["judge"]))
    private_key: str | None = None
    judge_api_key: str | None = None
    source: Path | None = None

    def weighting_policy(self) -> WeightingPolicy:
        return WeightingPolicy.from_config(self.weighting)

    def ingestion_policy(self) -> IngestionPolicy:
        return IngestionPolicy.from_config(self.ingestion)

    def open_log(self) -> SqlSubmissionLog:
        return SqlSubmissionLog(url=self.database_url)


def _section(document: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = document.get(name) or {}
    if not isinstance(value, Mapping):
        raise PolicyConfigError(f"Settings section '{name}' must be a mapping")
    return dict(value)


def _load_document(path: Path) -> Dict[str, Any]:
    document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(document, Mapping):
        raise PolicyConfigError(f"Settings file {path} must contain a mapping")
    return dict(document)


def load_settings(path: Path | str | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """Load settings from YAML and the environment.

    Args:
        path: Settings file. When omitted ``peerbench.yaml`` in the working
            directory is used if it exists.
        env: Environment mapping; ``os.environ`` by default.

    Returns:
        Resolved settings. Environment variables win over the file.

    Raises:
        FileNotFoundError: When an explicit ``path`` does not exist.
        PolicyConfigError: When the file or a section is not a mapping.
    """

    env = os.environ if env is None else env
    settings = Settings()

    source: Path | None = None
    if path is not None:
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"Settings file not found: {source}")
    elif DEFAULT_SETTINGS_FILE.exists():
        source = DEFAULT_SETTINGS_FILE

    if source is not None:
        document = _load_document(source)
        database = _section(document, "database")
        if database.get("url"):
            settings.database_url = str(database["url"])
        elif database.get("path"):
            settings.database_url = f"sqlite:///{Path(database['path']).expanduser()}"
        settings.ingestion.update(_section(document, "ingestion"))
        settings.weighting.update(_section(document, "weighting"))
        settings.judge.update(_section(document, "judge"))
        if document.get("scorers"):
            settings.scorers = [str(name) for name in document["scorers"]]
        settings.source = source
        LOGGER.debug("Loaded settings from %s", source)

    if env.get(ENV_DATABASE_URL):
        settings.database_url = env[ENV_DATABASE_URL]
    if env.get(ENV_INGESTION_MODE):
        settings.ingestion["mode"] = env[ENV_INGESTION_MODE]
    settings.private_key = env.get(ENV_PRIVATE_KEY) or None
    settings.judge_api_key = env.get(ENV_JUDGE_API_KEY) or None
    return settings


__all__ = ["Settings", "load_settings"]
