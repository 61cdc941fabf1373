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
Multiple-choice scorer.

The response is first compared with the answer key after case and whitespace
normalization. Failing that, the chosen answer is extracted from free text
with an ordered list of patterns, from most to least specific. For the first
pattern that matches, the last occurrence in the text is used. An extracted
option text is mapped back to its letter.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

import re
from typing import List, Optional, Pattern

from ..core.types import Prompt, PromptResponse
from .base import Scorer

NO_ANSWER_MARKER = "<!NO ANSWER!>"


def normalize_choice(text: Optional[str]) -> str:
    """Collapse whitespace and case so ``" b "`` and ``"B"`` compare equal."""
    if text is None:
        return ""
    return " ".join(str(text).split()).casefold()


def _answer_patterns(answer_text: str) -> List[Pattern[str]]:
    patterns: List[Pattern[str]] = []
    if answer_text:
        escaped = re.escape(answer_text)
        patterns.extend([
            re.compile(r"[Aa]nswer is \$\\boxed\{(" + escaped + r")\}\$"),
            re.compile(r"[Aa]nswer is\s+(" + escaped + r")"),
            re.compile(r"[Aa]nswer is\s+\**(" + escaped + r")\**"),
        ])
    patterns.extend([
        re.compile(r"[Aa]nswer is \$\\boxed\{([A-Z])\}\$\.?"),
        re.compile(r"[Aa]nswer is\s+([A-Z])(?![A-Za-z])"),
        re.compile(r"[Aa]nswer is\s+\**([A-Z])(?![A-Za-z])\**"),
        re.compile(r"\b([A-Z]):.+"),
        re.compile(r"\b([A-Z])\)\s*.+"),
        re.compile(r"\b([A-Z])\)"),
    ])
    return patterns


class MultipleChoiceScorer(Scorer):
    """Scores multiple-choice responses against the prompt's answer key."""

    identifier = "multiple-choice"

    def can_score(self, response: PromptResponse) -> bool:
        prompt = response.prompt
        return (
            response.data is not None
            and prompt is not None
            and bool(prompt.options)
            and bool(prompt.answer_key)
        )

    def extract_answer(self, text: str, prompt: Prompt) -> Optional[str]:
        """
        Extract the chosen answer from free text.

        Args:
            text (str): Raw response text
            prompt (Prompt): Prompt the response answers

        Returns:
            Optional[str]: Extracted letter or option text, None when nothing
            matches or the model declared it cannot answer
        """
        if NO_ANSWER_MARKER in text:
            return None

        answer_text = prompt.answer or prompt.options.get(prompt.answer_key or "", "")
        for pattern in _answer_patterns(answer_text):
            matches = pattern.findall(text)
            if matches:
                return matches[-1]
        return None

    def _letter_for(self, candidate: str, prompt: Prompt) -> Optional[str]:
        wanted = normalize_choice(candidate)
        for letter in prompt.options:
            if normalize_choice(letter) == wanted:
                return letter
        for letter, option_text in prompt.options.items():
            if normalize_choice(option_text) == wanted:
                return letter
        return None

    def score_one(self, response: PromptResponse) -> Optional[float]:
        prompt = response.prompt
        if prompt is None or response.data is None or not prompt.answer_key:
            return None

        expected = normalize_choice(prompt.answer_key)
        text = str(response.data)

        # Direct answer, possibly the option text itself
        direct = self._letter_for(text, prompt)
        if direct is not None:
            return 1.0 if normalize_choice(direct) == expected else 0.0

        extracted = self.extract_answer(text, prompt)
        if extracted is None:
            return 0.0

        letter = self._letter_for(extracted, prompt)
        if letter is None:
            return 1.0 if normalize_choice(extracted) == expected else 0.0
        return 1.0 if normalize_choice(letter) == expected else 0.0
