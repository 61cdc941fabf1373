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

"""Decay curves applied to prompt age and response delay."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import timedelta

from ..core.constants import DECAY_SHAPES
from ..core.exceptions import PolicyConfigError

_DURATION_RE = re.compile(r"^(?P<value>\d+)(?P<unit>[smhdw])$")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}


def parse_duration(raw: object) -> timedelta:
    """Parse a duration from configuration formats.

    Supported formats:
      * ``timedelta``
      * Integer/float => seconds
      * String with suffix (s, m, h, d, w), e.g. ``"30d"``
    """

    if isinstance(raw, timedelta):
        return raw
    if isinstance(raw, bool):
        raise PolicyConfigError(f"Unsupported duration value: {raw!r}")
    if isinstance(raw, (int, float)):
        return timedelta(seconds=float(raw))
    if isinstance(raw, str):
        match = _DURATION_RE.match(raw.strip().lower())
        if not match:
            raise PolicyConfigError(
                f"Unsupported duration format '{raw}'. Expected formats like '30d', '12h', or seconds as integer."
            )
        return timedelta(seconds=int(match.group("value")) * _UNIT_SECONDS[match.group("unit")])
    raise PolicyConfigError(f"Cannot parse duration from object of type {type(raw)!r}: {raw!r}")


@dataclass(frozen=True, slots=True)
class DecayCurve:
    """Maps an elapsed duration to a weight in [0, 1].

    ``linear``: ``max(0, 1 - age / horizon)``;
    ``exponential``: ``2 ** (-age / half_life)``; ``none``: always 1.
    Negative durations count as zero.
    """

    shape: str = "none"
    horizon: timedelta = timedelta(days=180)
    half_life: timedelta = timedelta(days=30)

    def __post_init__(self) -> None:
        if self.shape not in DECAY_SHAPES:
            raise PolicyConfigError(f"Unknown decay shape '{self.shape}'; expected one of {DECAY_SHAPES}")
        if self.horizon <= timedelta(0):
            raise PolicyConfigError("Decay horizon must be positive")
        if self.half_life <= timedelta(0):
            raise PolicyConfigError("Decay half-life must be positive")

    def weight(self, elapsed: timedelta) -> float:
        seconds = max(0.0, elapsed.total_seconds())
        if self.shape == "linear":
            return max(0.0, 1.0 - seconds / self.horizon.total_seconds())
        if self.shape == "exponential":
            return math.pow(2.0, -seconds / self.half_life.total_seconds())
        return 1.0

    def to_dict(self) -> dict:
        return {
            "shape": self.shape,
            "horizon": self.horizon.total_seconds(),
            "halfLife": self.half_life.total_seconds(),
        }


__all__ = ["DecayCurve", "parse_duration"]
