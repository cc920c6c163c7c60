"""Core types for the gmatch candidate matching engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Domain = Literal["supplier", "bank"]
DOMAINS: tuple[Domain, ...] = ("supplier", "bank")

Source = Literal["official", "confirmed_alias", "learned_alias", "fuzzy"]

# Lower value wins when adjusted scores tie.
SOURCE_PRIORITY: dict[str, int] = {
    "official": 0,
    "confirmed_alias": 1,
    "learned_alias": 2,
    "fuzzy": 3,
}

MatchStatus = Literal["ready", "needs_review"]

DecisionResult = Literal["confirmed", "rejected", "skipped"]


@dataclass
class NormalizedName:
    original: str
    domain: Domain
    canonical_key: str
    tokens: list[str]
    removed_stop_words: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        """Space-free join, used only for duplicate detection."""
        return "".join(self.tokens)


@dataclass(frozen=True)
class AlternativeName:
    entity_id: int
    raw_name: str
    canonical_key: str


@dataclass(frozen=True)
class CatalogEntity:
    id: int
    official_name: str
    canonical_key: str
    alternative_names: tuple[AlternativeName, ...] = ()
    short_code: str | None = None


@dataclass
class LearningRecord:
    canonical_key: str
    entity_id: int
    usage_count: int = 0
    block_count: int = 0
    last_used_at: datetime | None = None


@dataclass
class Candidate:
    entity_id: int
    display_name: str
    raw_score: float
    source: Source
    adjusted_score: float = 0.0
    star_rating: int = 1
    usage_count: int = 0
    block_count: int = 0
    matched_on: str | None = None

    @property
    def is_blocked_this_round(self) -> bool:
        return self.block_count > 0

    @property
    def score(self) -> int:
        """Similarity as a rounded 0-100 integer for display."""
        # Halves round up; the inner round absorbs float noise such as 92.49999999999999.
        return math.floor(round(self.raw_score * 100, 9) + 0.5)

    @property
    def normalized_score(self) -> float:
        return self.adjusted_score / 100.0


@dataclass
class CandidateResult:
    canonical_key: str
    candidates: list[Candidate] = field(default_factory=list)
    learning_degraded: bool = False

    @property
    def is_empty_input(self) -> bool:
        return self.canonical_key == ""

    @property
    def top(self) -> Candidate | None:
        return self.candidates[0] if self.candidates else None


@dataclass
class MatchDecision:
    raw_name: str
    canonical_key: str
    status: MatchStatus
    chosen_entity_id: int | None = None
    top_candidates: list[Candidate] = field(default_factory=list)
    is_conflicted: bool = False
    learning_degraded: bool = False
    reasons: list[str] = field(default_factory=list)

    @property
    def can_propagate(self) -> bool:
        """Whether the decision may be copied to other rows with the same raw name."""
        return self.status == "ready" and not self.is_conflicted


@dataclass
class FeedbackResult:
    canonical_key: str
    confirmed: int | None = None
    blocked: list[int] = field(default_factory=list)


@dataclass
class LearningLogEntry:
    """One operator decision as it was submitted, kept for audit."""

    domain: Domain
    raw_input: str
    normalized_input: str
    decision_result: DecisionResult
    suggested_entity_id: int | None = None
    chosen_entity_id: int | None = None
    rejected_entity_ids: list[int] = field(default_factory=list)
    created_at: datetime | None = None
