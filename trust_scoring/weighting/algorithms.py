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
Versioned composite weighting formulas.

Each version combines the age, delay and source weights of a score into the
single weight the aggregation engine uses. A published version's arithmetic
is frozen; a new formula gets a new version tag.

Inputs and outputs all lie in [0, 1].
"""

import math
from typing import Callable, Dict

from ..core.constants import SOURCE_USER
from ..core.exceptions import PolicyConfigError

CompositeFn = Callable[[float, float, float], float]


def sim_scores_001(age_weight: float, delay_weight: float, source_weight: float) -> float:
    """Product of the three components."""
    return age_weight * delay_weight * source_weight


def sim_scores_002(age_weight: float, delay_weight: float, source_weight: float) -> float:
    """Geometric mean of the temporal components, scaled by the source weight."""
    return math.sqrt(age_weight * delay_weight) * source_weight


ALGORITHMS: Dict[str, CompositeFn] = {
    "simScores001": sim_scores_001,
    "simScores002": sim_scores_002,
}


def resolve_algorithm(version: str) -> CompositeFn:
    """
    Look up a composite formula by version tag.

    Raises:
        PolicyConfigError: If the version is unknown
    """
    try:
        return ALGORITHMS[version]
    except KeyError:
        raise PolicyConfigError(f"Unknown user scoring algorithm '{version}'") from None


def source_weight(source: str, user_weight_multiplier: float) -> float:
    """
    Relative weight of user-tier versus validator-tier data.

    Users get ``m / max(1, m)`` and validators ``1 / max(1, m)``: the
    user:validator ratio is ``m`` and both stay within [0, 1].
    """
    scale = max(1.0, user_weight_multiplier)
    if source == SOURCE_USER:
        return user_weight_multiplier / scale
    return 1.0 / scale
