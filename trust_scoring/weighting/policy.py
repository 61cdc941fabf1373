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

"""Weighting policy: the knobs that turn stored scores into weighted scores."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping

from config.scoring_config import DECAY_PARAMS, WEIGHTING_DEFAULTS

from ..core.constants import MIN_COVERAGE_BOUNDS, SCORING_ALGORITHMS, USER_WEIGHT_MULTIPLIER_BOUNDS
from ..core.exceptions import PolicyConfigError
from ..integrity.content_id import canonical_bytes
from .decay import DecayCurve, parse_duration

__all__ = ["WeightingPolicy", "default_curve"]

# camelCase wire names accepted alongside the snake_case attribute names
_ALIASES = {
    "userScoringAlgorithm": "user_scoring_algorithm",
    "userWeightMultiplier": "user_weight_multiplier",
    "minCoverage": "min_coverage",
    "promptAgeWeighting": "prompt_age_weighting",
    "responseDelayWeighting": "response_delay_weighting",
    "promptAgeHorizon": "prompt_age_horizon",
    "promptAgeHalfLife": "prompt_age_half_life",
    "responseDelayHorizon": "response_delay_horizon",
    "responseDelayHalfLife": "response_delay_half_life",
}


def default_curve(kind: str, shape: str = "none") -> DecayCurve:
    params = DECAY_PARAMS[kind]
    return DecayCurve(
        shape=shape,
        horizon=parse_duration(params["horizon"]),
        half_life=parse_duration(params["half_life"]),
    )


def _as_float(name: str, raw: Any) -> float:
    if isinstance(raw, bool):
        raise PolicyConfigError(f"'{name}' must be a number, got {raw!r}")
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise PolicyConfigError(f"'{name}' must be a number, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class WeightingPolicy:
    """Immutable weighting configuration.

    Every knob is validated on construction; an unknown algorithm version or
    an out-of-range value raises PolicyConfigError instead of defaulting.
    """

    user_scoring_algorithm: str = WEIGHTING_DEFAULTS["user_scoring_algorithm"]
    user_weight_multiplier: float = WEIGHTING_DEFAULTS["user_weight_multiplier"]
    min_coverage: float = WEIGHTING_DEFAULTS["min_coverage"]
    prompt_age: DecayCurve = field(default_factory=lambda: default_curve("prompt_age"))
    response_delay: DecayCurve = field(default_factory=lambda: default_curve("response_delay"))

    def __post_init__(self) -> None:
        if self.user_scoring_algorithm not in SCORING_ALGORITHMS:
            raise PolicyConfigError(
                f"Unknown user scoring algorithm '{self.user_scoring_algorithm}'; expected one of {SCORING_ALGORITHMS}"
            )
        low, high = USER_WEIGHT_MULTIPLIER_BOUNDS["MIN"], USER_WEIGHT_MULTIPLIER_BOUNDS["MAX"]
        if not low <= self.user_weight_multiplier <= high:
            raise PolicyConfigError(f"userWeightMultiplier must be between {low} and {high}, got {self.user_weight_multiplier}")
        low, high = MIN_COVERAGE_BOUNDS["MIN"], MIN_COVERAGE_BOUNDS["MAX"]
        if not low <= self.min_coverage <= high:
            raise PolicyConfigError(f"minCoverage must be between {low} and {high}, got {self.min_coverage}")

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "WeightingPolicy":
        """Create a policy from a raw configuration mapping (camelCase or snake_case keys).

        Unset keys fall back to ``WEIGHTING_DEFAULTS`` and ``DECAY_PARAMS``.
        """

        values: Dict[str, Any] = dict(WEIGHTING_DEFAULTS)
        for key, raw in (config or {}).items():
            name = _ALIASES.get(key, key)
            if raw is None:
                continue
            values[name] = raw

        known = set(_ALIASES.values())
        unknown = sorted(set(values) - known)
        if unknown:
            raise PolicyConfigError(f"Unknown weighting option(s): {', '.join(unknown)}")

        age = default_curve("prompt_age", str(values["prompt_age_weighting"]))
        delay = default_curve("response_delay", str(values["response_delay_weighting"]))
        if "prompt_age_horizon" in values:
            age = replace(age, horizon=parse_duration(values["prompt_age_horizon"]))
        if "prompt_age_half_life" in values:
            age = replace(age, half_life=parse_duration(values["prompt_age_half_life"]))
        if "response_delay_horizon" in values:
            delay = replace(delay, horizon=parse_duration(values["response_delay_horizon"]))
        if "response_delay_half_life" in values:
            delay = replace(delay, half_life=parse_duration(values["response_delay_half_life"]))

        return cls(
            user_scoring_algorithm=str(values["user_scoring_algorithm"]),
            user_weight_multiplier=_as_float("userWeightMultiplier", values["user_weight_multiplier"]),
            min_coverage=_as_float("minCoverage", values["min_coverage"]),
            prompt_age=age,
            response_delay=delay,
        )

    def with_overrides(self, **overrides: Any) -> "WeightingPolicy":
        """Return a new policy with camelCase or snake_case knobs replaced."""

        config = self.to_dict()
        for key, raw in overrides.items():
            if raw is not None:
                config[_ALIASES.get(key, key)] = raw
        return WeightingPolicy.from_config(config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_scoring_algorithm": self.user_scoring_algorithm,
            "user_weight_multiplier": self.user_weight_multiplier,
            "min_coverage": self.min_coverage,
            "prompt_age_weighting": self.prompt_age.shape,
            "prompt_age_horizon": self.prompt_age.horizon.total_seconds(),
            "prompt_age_half_life": self.prompt_age.half_life.total_seconds(),
            "response_delay_weighting": self.response_delay.shape,
            "response_delay_horizon": self.response_delay.horizon.total_seconds(),
            "response_delay_half_life": self.response_delay.half_life.total_seconds(),
        }

    def fingerprint(self) -> str:
        """Stable hash of the policy, used as a cache key component."""

        return hashlib.sha256(canonical_bytes(self.to_dict())).hexdigest()
