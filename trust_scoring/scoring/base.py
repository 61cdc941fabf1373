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
Base class for response scorers.

A scorer turns one (prompt, response) pair into a value in [0, 1], or None
when the pair cannot be scored. ``can_score`` is cheap and side-effect free so
callers can filter large batches before expensive scoring.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..core.constants import SCORE_BOUNDS
from ..core.exceptions import ScoringUnavailable
from ..core.types import PromptResponse, Score

logger = logging.getLogger(__name__)


class Scorer(ABC):
    """Common interface for all scorers."""

    identifier: str = ""

    def can_score(self, response: PromptResponse) -> bool:
        """Return True when ``response`` carries enough data for this scorer."""
        return response.data is not None and response.prompt is not None

    @abstractmethod
    def score_one(self, response: PromptResponse) -> Optional[float]:
        """
        Score a single response.

        Args:
            response (PromptResponse): Response with its prompt attached

        Returns:
            Optional[float]: Score in [0, 1], or None when the pair is not scorable

        Raises:
            ScoringUnavailable: Implementations may raise it; ``score`` converts it to None
        """

    def score(self, response: PromptResponse) -> Score:
        """
        Score a response and wrap the outcome in a Score record.

        Malformed input never raises here: it produces a Score whose value is None.
        """
        value: Optional[float] = None
        try:
            if self.can_score(response):
                value = self.score_one(response)
        except ScoringUnavailable as exc:
            logger.debug(f"{self.identifier}: response '{response.id}' not scorable: {exc}")
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.warning(f"{self.identifier}: malformed response '{response.id}': {exc}")

        if value is not None:
            value = max(SCORE_BOUNDS["MIN"], min(SCORE_BOUNDS["MAX"], float(value)))

        return Score(
            scorer_identifier=self.identifier,
            prompt_id=response.prompt_id,
            response_id=response.id,
            value=value,
            provider_id=response.provider_id,
            model_id=response.model_id,
            responded_at=response.responded_at,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(identifier={self.identifier!r})"
