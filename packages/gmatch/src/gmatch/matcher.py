"""Threshold decisions and conflict detection on top of ranked candidates."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

import structlog

from gmatch.candidates import CandidateService
from gmatch.config import Settings, Thresholds
from gmatch.normalize import normalize
from gmatch.types import Candidate, MatchDecision

log = structlog.get_logger()


@dataclass
class MatcherStats:
    """Statistics collected during matching."""

    rows: int = 0
    unique_keys: int = 0
    memo_hits: int = 0
    empty_input: int = 0
    no_candidates: int = 0
    conflicted: int = 0
    learning_degraded: int = 0
    decisions: dict[str, int] = field(default_factory=lambda: {
        "ready": 0, "needs_review": 0
    })


def is_conflicted(scores: list[float], delta: float) -> bool:
    """True when the two best normalized scores are closer than ``delta``."""
    if len(scores) < 2:
        return False
    return scores[0] - scores[1] < delta


class MatchingService:
    """Turns a ranked candidate list into a ready / needs_review decision."""

    def __init__(self, candidates: CandidateService, settings: Settings | None = None) -> None:
        self.candidates = candidates
        self.settings = settings or candidates.settings
        self.stats = MatcherStats()

    def match(self, raw_name: str) -> MatchDecision:
        config = self.settings.current()
        result = self.candidates.candidates(raw_name, config=config)
        self.stats.rows += 1

        if result.is_empty_input:
            self.stats.empty_input += 1
            return self._record(MatchDecision(
                raw_name=raw_name,
                canonical_key="",
                status="needs_review",
                reasons=["empty_input"],
            ))

        reasons: list[str] = []
        if result.learning_degraded:
            self.stats.learning_degraded += 1
            reasons.append("learning_degraded")

        if not result.candidates:
            self.stats.no_candidates += 1
            return self._record(MatchDecision(
                raw_name=raw_name,
                canonical_key=result.canonical_key,
                status="needs_review",
                learning_degraded=result.learning_degraded,
                reasons=reasons + ["no_candidates"],
            ))

        ranked = result.candidates
        conflicted = is_conflicted(
            [c.normalized_score for c in ranked[:2]], config.thresholds.conflict_delta
        )
        status, chosen, shown, decide_reasons = self._decide(
            ranked, config.thresholds, config.candidates.max_decision_candidates
        )
        reasons.extend(decide_reasons)
        if conflicted:
            self.stats.conflicted += 1
            reasons.append("conflict")

        decision = MatchDecision(
            raw_name=raw_name,
            canonical_key=result.canonical_key,
            status=status,
            chosen_entity_id=chosen,
            top_candidates=shown,
            is_conflicted=conflicted,
            learning_degraded=result.learning_degraded,
            reasons=reasons,
        )
        log.debug(
            "match_decided",
            raw_name=raw_name,
            key=result.canonical_key,
            status=status,
            chosen=chosen,
            top_raw=round(ranked[0].raw_score, 4),
            conflicted=conflicted,
        )
        return self._record(decision)

    def match_many(self, raw_names: list[str]) -> list[MatchDecision]:
        """Match a batch, computing each distinct canonical key only once.

        Output is deterministic for a fixed catalog and learning snapshot, so
        rows sharing a key get a copy of the first row's decision.
        """
        memo: dict[str, MatchDecision] = {}
        decisions: list[MatchDecision] = []
        for i, raw_name in enumerate(raw_names):
            key = normalize(raw_name, self.candidates.domain)
            cached = memo.get(key) if key else None
            if cached is not None:
                self.stats.rows += 1
                self.stats.memo_hits += 1
                self._count_reasons(cached)
                decisions.append(dataclasses.replace(
                    cached,
                    raw_name=raw_name,
                    top_candidates=list(cached.top_candidates),
                    reasons=list(cached.reasons),
                ))
            else:
                decision = self.match(raw_name)
                if key:
                    memo[key] = decision
                decisions.append(decision)
            if (i + 1) % 1000 == 0:
                log.info("match_progress", processed=i + 1, total=len(raw_names))
        self.stats.unique_keys += len(memo)
        return decisions

    def _decide(
        self,
        ranked: list[Candidate],
        thresholds: Thresholds,
        max_shown: int,
    ) -> tuple[str, int | None, list[Candidate], list[str]]:
        """Apply the decision bands to the top-ranked candidate."""
        top = ranked[0]
        qualifying = [c for c in ranked if c.raw_score >= thresholds.review]
        if max_shown > 0:
            qualifying = qualifying[:max_shown]

        if top.raw_score >= thresholds.auto_accept:
            if not top.is_blocked_this_round:
                return "ready", top.entity_id, qualifying, ["auto_accept"]
            return "needs_review", None, qualifying, ["blocked_top"]

        if top.raw_score >= thresholds.review:
            return "needs_review", None, qualifying, ["below_auto_threshold"]

        return "needs_review", None, [], ["below_review_threshold"]

    def _record(self, decision: MatchDecision) -> MatchDecision:
        self.stats.decisions[decision.status] += 1
        return decision

    def _count_reasons(self, decision: MatchDecision) -> None:
        """Count a reused decision as if it had been computed for this row."""
        self.stats.decisions[decision.status] += 1
        reasons = set(decision.reasons)
        if "no_candidates" in reasons:
            self.stats.no_candidates += 1
        if "conflict" in reasons:
            self.stats.conflicted += 1
        if "learning_degraded" in reasons:
            self.stats.learning_degraded += 1
