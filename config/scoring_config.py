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
Scoring configuration for the trust scoring engine.

This module contains the default weighting policy, decay parameters, scorer
settings and ingestion mode used when no configuration file overrides them.
"""

# Default leaderboard weighting policy
WEIGHTING_DEFAULTS = {
    'user_scoring_algorithm': 'simScores001',  # Versioned composite formula
    'user_weight_multiplier': 1.0,             # 0 disables user data, 1 is neutral, up to 2
    'min_coverage': 0,                         # Percentage of the eligible prompt set
    'prompt_age_weighting': 'none',            # none | linear | exponential
    'response_delay_weighting': 'none',        # none | linear | exponential
}

# Shape parameters for the decay curves
DECAY_PARAMS = {
    'prompt_age': {
        'horizon': '180d',    # Linear decay reaches zero here
        'half_life': '30d',   # Exponential decay halves here
    },
    'response_delay': {
        'horizon': '30d',
        'half_life': '7d',
    },
}

# Scorers enabled for a scoring run and the judge endpoint settings
SCORER_DEFAULTS = {
    'scorers': ['exact-match', 'multiple-choice'],
    'judge': {
        'base_url': 'https://openrouter.ai/api/v1',
        'model': 'openai/gpt-4o-mini',
        'timeout': 60,
        'max_retries': 3,
        'backoff_factor': 2.0,
        'max_concurrency': 4,   # Concurrent judge calls
    },
}

# Signature policy for incoming submissions
INGESTION_DEFAULTS = {
    'mode': 'open',           # open | validator
    'trusted_signers': [],    # Empty means every verified signer is a validator
}

# Default persona mix for simulations (percent of participants)
SIMULATION_DEFAULTS = {
    'num_personas': 20,
    'prompt_set_size': 40,
    'rounds': 3,
    'seed': 42,
    'tolerance': 0.05,
    'distribution': {
        'altruistic': 40,
        'greedy': 20,
        'cabal': 20,
        'random': 15,
        'malicious': 5,
    },
    'cabal_size': 3,
}
