"""Trust aggregation and weighted leaderboard engine for peerBench."""

from .aggregation.query import LeaderboardQuery, LeaderboardService
from .core.exceptions import TrustScoringError
from .ingestion.ingest import IngestionPolicy, SubmissionIngestor
from .ingestion.log import InMemorySubmissionLog
from .weighting.policy import WeightingPolicy

__version__ = "0.1.0"

__all__ = [
    "InMemorySubmissionLog",
    "IngestionPolicy",
    "LeaderboardQuery",
    "LeaderboardService",
    "SubmissionIngestor",
    "TrustScoringError",
    "WeightingPolicy",
]
