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
Batch scoring with bounded concurrency.

Judge-backed scorers are rate limited upstream, so at most
``max_concurrency`` ``score`` calls are in flight at once. Results keep the
input order.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from ..core.types import PromptResponse, Score
from .base import Scorer

logger = logging.getLogger(__name__)


def score_responses(responses: Sequence[PromptResponse], scorer: Scorer,
                    max_concurrency: int = 4) -> List[Score]:
    """
    Score a batch of responses.

    Args:
        responses (Sequence[PromptResponse]): Responses with their prompts attached
        scorer (Scorer): Scorer to apply
        max_concurrency (int): Upper bound on concurrent scorer calls

    Returns:
        List[Score]: One Score per response ``can_score`` accepted, in input order

    Notes:
        - Responses rejected by ``can_score`` are skipped before any expensive work
        - Unscorable pairs yield a Score with value None, never an exception
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    eligible = [response for response in responses if scorer.can_score(response)]
    skipped = len(responses) - len(eligible)
    if skipped:
        logger.info(f"[*] {scorer.identifier}: skipping {skipped} response(s) it cannot score")
    if not eligible:
        return []

    gate = threading.Semaphore(max_concurrency)

    def _score(response: PromptResponse) -> Score:
        with gate:
            return scorer.score(response)

    with ThreadPoolExecutor(max_workers=max_concurrency) as pool:
        scores = list(pool.map(_score, eligible))

    unscored = sum(1 for score in scores if score.value is None)
    logger.info(f"[+] {scorer.identifier}: scored {len(scores) - unscored}/{len(scores)} response(s)")
    return scores
