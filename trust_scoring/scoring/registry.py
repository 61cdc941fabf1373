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
Closed registry mapping scorer identifiers to scorer instances.

The set of scorer kinds is fixed. A registry is built once from configuration
and an unknown identifier raises PolicyConfigError at that point instead of
falling back to some default at scoring time.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Callable, Dict, Iterable, Iterator, Optional

from ..core.exceptions import PolicyConfigError
from .base import Scorer
from .exact_match import ExactMatchScorer
from .llm_judge import JudgeClient, LLMJudgeScorer
from .multiple_choice import MultipleChoiceScorer

SCORER_FACTORIES: Dict[str, Callable[[Optional[JudgeClient]], Scorer]] = {
    ExactMatchScorer.identifier: lambda judge: ExactMatchScorer(),
    MultipleChoiceScorer.identifier: lambda judge: MultipleChoiceScorer(),
    LLMJudgeScorer.identifier: lambda judge: _build_judge(judge),
}


def _build_judge(judge: Optional[JudgeClient]) -> Scorer:
    if judge is None:
        raise PolicyConfigError("Scorer 'llm-judge' requires a judge client")
    return LLMJudgeScorer(judge)


class ScorerRegistry:
    """Stores the scorers available to a scoring run."""

    def __init__(self) -> None:
        self._scorers: Dict[str, Scorer] = OrderedDict()

    @classmethod
    def from_config(cls, identifiers: Iterable[str], *, judge: Optional[JudgeClient] = None) -> "ScorerRegistry":
        """Build a registry for the given identifiers.

        Raises:
            PolicyConfigError: If an identifier is unknown or a scorer cannot be built.
        """
        registry = cls()
        for identifier in identifiers:
            factory = SCORER_FACTORIES.get(identifier)
            if factory is None:
                raise PolicyConfigError(
                    f"Unknown scorer '{identifier}'; expected one of {sorted(SCORER_FACTORIES)}"
                )
            registry.register(factory(judge))
        return registry

    def register(self, scorer: Scorer, *, replace: bool = False) -> None:
        identifier = scorer.identifier
        if identifier not in SCORER_FACTORIES:
            raise PolicyConfigError(f"Unknown scorer '{identifier}'")
        if not replace and identifier in self._scorers:
            raise ValueError(f"Scorer '{identifier}' already registered")
        self._scorers[identifier] = scorer

    def get(self, identifier: str) -> Scorer:
        try:
            return self._scorers[identifier]
        except KeyError:
            raise PolicyConfigError(f"Scorer '{identifier}' is not configured") from None

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._scorers

    def __iter__(self) -> Iterator[Scorer]:
        return iter(self._scorers.values())

    def names(self) -> Iterable[str]:
        return self._scorers.keys()


__all__ = ["SCORER_FACTORIES", "ScorerRegistry"]
