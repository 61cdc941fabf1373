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

"""Exact-match scorer for multiple-choice and free-form prompts."""

from typing import Optional

from ..core.types import PromptResponse
from .base import Scorer


class ExactMatchScorer(Scorer):
    """
    Compares the raw response with the expected answer.

    When the prompt has options the expected value is ``answer_key``,
    otherwise ``answer``. Returns None if either side is missing.
    """

    identifier = "exact-match"

    def score_one(self, response: PromptResponse) -> Optional[float]:
        prompt = response.prompt
        if prompt is None or response.data is None:
            return None

        expected = prompt.answer_key if prompt.options else prompt.answer
        if expected is None:
            return None

        return 1.0 if response.data == expected else 0.0
