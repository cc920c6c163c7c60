"""Caller-facing facade used by the decision UI and the row-processing pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from gmatch.candidates import CandidateService
from gmatch.config import Settings
from gmatch.feedback import DecisionFeedback
from gmatch.matcher import MatchingService
from gmatch.stores import CatalogStore, InMemoryLearningStore, LearningLog, LearningStore
from gmatch.types import DOMAINS, Candidate, CandidateResult, Domain, MatchDecision, MatchStatus, Source

log = structlog.get_logger()


class CandidateOut(BaseModel):
    """One ranked candidate as shown to the operator."""

    entity_id: int
    display_name: str
    score: int
    star_rating: int
    source: Source
    usage_count: int
    is_blocked: bool = False
    matched_on: str | None = None

    @classmethod
    def from_candidate(cls, c: Candidate) -> CandidateOut:
        return cls(
            entity_id=c.entity_id,
            display_name=c.display_name,
            score=c.score,
            star_rating=c.star_rating,
            source=c.source,
            usage_count=c.usage_count,
            is_blocked=c.is_blocked_this_round,
            matched_on=c.matched_on,
        )


class CandidateListOut(BaseModel):
    """Ranked candidates for one raw name."""

    canonical_key: str
    candidates: list[CandidateOut]
    learning_degraded: bool = False


class MatchDecisionOut(BaseModel):
    """Automatic decision for one raw name."""

    status: MatchStatus
    chosen_entity_id: int | None = None
    is_conflicted: bool = False
    learning_degraded: bool = False
    candidates: list[CandidateOut] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)


class SubmitDecisionRequest(BaseModel):
    """Operator decision for one raw name."""

    raw_name: str
    domain: Domain
    chosen_entity_id: int | None = None
    rejected_entity_ids: list[int] = Field(default_factory=list)
    suggested_entity_id: int | None = None


class SubmitDecisionOut(BaseModel):
    canonical_key: str
    confirmed: int | None = None
    blocked: list[int] = Field(default_factory=list)


class UsageStatOut(BaseModel):
    """How often one canonical key was confirmed or rejected for an entity."""

    canonical_key: str
    usage_count: int
    block_count: int
    last_used_at: datetime | None = None


class MatchingEngine:
    """Candidate, decision and feedback services for suppliers and banks.

    The caller owns the catalog, the learning stores (one per domain) and
    their lifecycle; the engine keeps nothing between calls except counters.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        learning: Mapping[Domain, LearningStore] | None = None,
        settings: Settings | None = None,
        audit: LearningLog | None = None,
    ) -> None:
        self.settings = settings or Settings()
        learning = dict(learning or {})
        self._candidates: dict[str, CandidateService] = {}
        self._matchers: dict[str, MatchingService] = {}
        self._feedback: dict[str, DecisionFeedback] = {}
        self._learning: dict[str, LearningStore] = {}
        for domain in DOMAINS:
            store = learning.get(domain)
            if store is None:
                log.debug("learning_store_defaulted", domain=domain)
                store = InMemoryLearningStore()
            service = CandidateService(domain, catalog, store, self.settings)
            self._candidates[domain] = service
            self._matchers[domain] = MatchingService(service, self.settings)
            self._learning[domain] = store
            self._feedback[domain] = DecisionFeedback(domain, store, audit)

    def supplier_candidates(self, raw_name: str) -> CandidateResult:
        return self._candidates["supplier"].candidates(raw_name)

    def bank_candidates(self, raw_name: str) -> CandidateResult:
        return self._candidates["bank"].candidates(raw_name)

    def matcher(self, domain: Domain) -> MatchingService:
        return self._matchers[_check_domain(domain)]

    def get_candidates(self, raw_name: str, domain: Domain) -> CandidateListOut:
        result = self._candidates[_check_domain(domain)].candidates(raw_name)
        return CandidateListOut(
            canonical_key=result.canonical_key,
            candidates=[CandidateOut.from_candidate(c) for c in result.candidates],
            learning_degraded=result.learning_degraded,
        )

    def get_match_decision(self, raw_name: str, domain: Domain) -> MatchDecisionOut:
        return _decision_out(self._matchers[_check_domain(domain)].match(raw_name))

    def match_many(self, raw_names: list[str], domain: Domain) -> list[MatchDecision]:
        return self._matchers[_check_domain(domain)].match_many(raw_names)

    def submit_decision(
        self,
        raw_name: str,
        domain: Domain,
        chosen_entity_id: int | None,
        rejected_entity_ids: list[int] | None = None,
        suggested_entity_id: int | None = None,
    ) -> SubmitDecisionOut:
        req = SubmitDecisionRequest(
            raw_name=raw_name,
            domain=domain,
            chosen_entity_id=chosen_entity_id,
            rejected_entity_ids=rejected_entity_ids or [],
            suggested_entity_id=suggested_entity_id,
        )
        return self.submit(req)

    def submit(self, req: SubmitDecisionRequest) -> SubmitDecisionOut:
        result = self._feedback[req.domain].record_decision(
            req.raw_name, req.chosen_entity_id, req.rejected_entity_ids, req.suggested_entity_id
        )
        return SubmitDecisionOut(
            canonical_key=result.canonical_key,
            confirmed=result.confirmed,
            blocked=result.blocked,
        )

    def usage_stats(self, entity_id: int, domain: Domain) -> list[UsageStatOut]:
        """Learned keys for one entity, most used first."""
        records = self._learning[_check_domain(domain)].list_records_for_entity(entity_id)
        return [
            UsageStatOut(
                canonical_key=r.canonical_key,
                usage_count=r.usage_count,
                block_count=r.block_count,
                last_used_at=r.last_used_at,
            )
            for r in records
        ]


def _check_domain(domain: str) -> str:
    if domain not in DOMAINS:
        raise ValueError(f"unknown domain '{domain}', expected one of {', '.join(DOMAINS)}")
    return domain


def _decision_out(decision: MatchDecision) -> MatchDecisionOut:
    return MatchDecisionOut(
        status=decision.status,
        chosen_entity_id=decision.chosen_entity_id,
        is_conflicted=decision.is_conflicted,
        learning_degraded=decision.learning_degraded,
        candidates=[CandidateOut.from_candidate(c) for c in decision.top_candidates],
        reasons=decision.reasons,
    )
