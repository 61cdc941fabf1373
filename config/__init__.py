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
Configuration module for the trust scoring engine.

This module provides centralized defaults for weighting policies, decay
curves, scorers, ingestion and simulations.
"""

from .scoring_config import (
    WEIGHTING_DEFAULTS,
    DECAY_PARAMS,
    SCORER_DEFAULTS,
    INGESTION_DEFAULTS,
    SIMULATION_DEFAULTS
) 
