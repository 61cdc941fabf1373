"""
Constants for the trust scoring engine.

This module defines the identifiers, bounds and defaults shared by the
ingestion, weighting, aggregation and simulation layers.
"""

# Score bounds (scores are always normalized to the unit interval)
SCORE_BOUNDS = {
    "MIN": 0.0,
    "MAX": 1.0
}

# Judge verdicts are reported on a 0..100 scale
JUDGE_SCORE_SCALE = 100

# Weighting knob bounds
MIN_COVERAGE_BOUNDS = {
    "MIN": 0,
    "MAX": 100
}

USER_WEIGHT_MULTIPLIER_BOUNDS = {
    "MIN": 0,
    "MAX": 2
}

# Decay shapes and versioned composite algorithms
DECAY_SHAPES = ("none", "linear", "exponential")
SCORING_ALGORITHMS = ("simScores001", "simScores002")

# Entity groupings supported by the leaderboard
GROUP_BY_KEYS = ("model", "provider", "validator")

# Submission payload kinds
PAYLOAD_PROMPTS = "prompts"
PAYLOAD_RESPONSES = "responses"
PAYLOAD_SCORES = "scores"
PAYLOAD_REVIEW = "review"
PAYLOAD_TYPES = (PAYLOAD_PROMPTS, PAYLOAD_RESPONSES, PAYLOAD_SCORES, PAYLOAD_REVIEW)

# Prompt types
PROMPT_TYPES = (
    "multiple-choice",
    "text-replacement",
    "sentence-reorder",
    "typo",
    "free-form",
)

# Source tiers
SOURCE_VALIDATOR = "validator"
SOURCE_USER = "user"

# Ingestion modes
INGESTION_MODE_OPEN = "open"
INGESTION_MODE_VALIDATOR = "validator"
INGESTION_MODES = (INGESTION_MODE_OPEN, INGESTION_MODE_VALIDATOR)

# Rejection / acceptance reasons
REASON_DUPLICATE = "duplicate"
REASON_CHUNK_STORED = "chunk-stored"

# Side-file suffixes written next to every signed artifact
CID_SUFFIX = ".cid"
SIGNATURE_SUFFIX = ".signature"

# Validator consensus needs at least this many other opinions per (prompt, model)
MIN_CONSENSUS_PEERS = 2

# Default pagination
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

# Directory and file constants
SUBMISSIONS_DIR = "Submissions"
RESULTS_DIR = "Results"
DATABASE_FILE = "peerbench.db"
