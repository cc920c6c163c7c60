"""String similarity between canonical keys.

Three signals, each in [0, 1]:

- edit ratio: ``1 - levenshtein(a, b) / max(len(a), len(b))`` catches typos;
- token Jaccard: ``|A & B| / |A | B|`` over whitespace tokens, insensitive to
  word order ("trading and contracting" vs "contracting and trading");
- containment: a flat bonus when one key is a substring of the other, for
  truncated names.

The combined score is the maximum of the three.
"""

from __future__ import annotations

from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

MAX_EDIT_LENGTH = 255
CONTAINMENT_BONUS = 0.75


@dataclass(frozen=True)
class SimilarityBreakdown:
    edit_ratio: float
    token_jaccard: float
    containment: float

    @property
    def combined(self) -> float:
        return max(self.edit_ratio, self.token_jaccard, self.containment)


def token_jaccard(a: str, b: str) -> float:
    ta = set(a.split())
    tb = set(b.split())
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)


def edit_ratio(a: str, b: str) -> float:
    """Bounded Levenshtein ratio.

    Inputs longer than MAX_EDIT_LENGTH fall back to token Jaccard instead of
    being truncated, so long legitimate names are still compared in full.
    """
    if not a or not b:
        return 0.0
    if len(a) > MAX_EDIT_LENGTH or len(b) > MAX_EDIT_LENGTH:
        return token_jaccard(a, b)
    dist = Levenshtein.distance(a, b)
    return max(0.0, 1.0 - dist / max(len(a), len(b)))


def containment_bonus(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return CONTAINMENT_BONUS if (a in b or b in a) else 0.0


def breakdown(a: str, b: str) -> SimilarityBreakdown:
    return SimilarityBreakdown(
        edit_ratio=edit_ratio(a, b),
        token_jaccard=token_jaccard(a, b),
        containment=containment_bonus(a, b),
    )


def combined_similarity(a: str, b: str) -> float:
    """Best of edit ratio, token Jaccard and containment; 0 for empty input."""
    if not a or not b:
        return 0.0
    return breakdown(a, b).combined
