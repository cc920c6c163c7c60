"""Scoring policy: star ratings, usage bonus and block penalty.

Adjusted scores live on an expanded points scale::

    adjusted = raw_similarity * 100 + source_weight + usage_bonus - blocks * 50

floored at 0. With the default weights an exact official match scores 200
(three stars) and a 0.80 fuzzy match scores 120 (two stars).
"""

from __future__ import annotations

from gmatch.config import SourceWeights

STAR_3_THRESHOLD = 200
STAR_2_THRESHOLD = 120
USAGE_BONUS_PER_USE = 15
USAGE_BONUS_MAX = 75
BLOCK_PENALTY = 50
SIMILARITY_POINTS = 100


def star_rating(adjusted_score: float) -> int:
    if adjusted_score >= STAR_3_THRESHOLD:
        return 3
    if adjusted_score >= STAR_2_THRESHOLD:
        return 2
    return 1


def usage_bonus(usage_count: int) -> int:
    return min(max(usage_count, 0) * USAGE_BONUS_PER_USE, USAGE_BONUS_MAX)


def block_penalty(block_count: int) -> int:
    return max(block_count, 0) * BLOCK_PENALTY


def adjusted_score(
    raw_score: float,
    source: str,
    usage_count: int = 0,
    block_count: int = 0,
    weights: SourceWeights | None = None,
) -> float:
    """Points for one candidate; never below zero."""
    weights = weights or SourceWeights()
    base = raw_score * SIMILARITY_POINTS + weights.for_source(source)
    return max(0.0, base + usage_bonus(usage_count) - block_penalty(block_count))
