"""Candidate generation: exact, alias, learned and fuzzy sources, ranked."""

from __future__ import annotations

from collections import defaultdict

import structlog

from gmatch.config import MatchConfig, Settings
from gmatch.errors import CatalogUnavailable
from gmatch.normalize import normalize_name, normalize_short_code
from gmatch.scoring import adjusted_score, star_rating
from gmatch.similarity import combined_similarity
from gmatch.stores import CatalogStore, LearningStore
from gmatch.types import (
    SOURCE_PRIORITY,
    AlternativeName,
    Candidate,
    CandidateResult,
    CatalogEntity,
    Domain,
    LearningRecord,
    Source,
)

log = structlog.get_logger()


def rank_key(candidate: Candidate) -> tuple[float, int, int]:
    """Sort key: adjusted score desc, then source priority, then entity id."""
    return (-candidate.adjusted_score, SOURCE_PRIORITY[candidate.source], candidate.entity_id)


class CandidateService:
    """Ranked catalog candidates for raw names of one domain.

    Holds no state between calls: the catalog, learning counters and settings
    are read on every call.
    """

    def __init__(
        self,
        domain: Domain,
        catalog: CatalogStore,
        learning: LearningStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.domain = domain
        self.catalog = catalog
        self.learning = learning
        self.settings = settings or Settings()

    def candidates(self, raw_name: str, config: MatchConfig | None = None) -> CandidateResult:
        """Ranked candidates for ``raw_name``.

        ``config`` lets a caller that already read the settings for this call
        reuse the same snapshot.
        """
        config = config or self.settings.current()
        name = normalize_name(raw_name, self.domain)
        key = name.canonical_key

        if not key:
            log.debug("candidates_empty_key", domain=self.domain, raw_name=raw_name)
            return CandidateResult(canonical_key="")

        entities, alternatives = self._read_catalog()
        records, degraded = self._read_learning(key)
        stats = {r.entity_id: r for r in records}
        by_id = {e.id: e for e in entities}

        found: list[Candidate] = []
        exact_ids: set[int] = set()

        # 1. Official names (and bank short codes)
        short_code = normalize_short_code(raw_name) if self.domain == "bank" else ""
        for entity in entities:
            if entity.canonical_key == key or (short_code and entity.short_code == short_code):
                found.append(self._candidate(entity, 1.0, "official", entity.official_name))
                exact_ids.add(entity.id)

        # 2. Confirmed alternative names
        for alt in alternatives:
            if alt.canonical_key != key:
                continue
            entity = by_id.get(alt.entity_id)
            if entity is None:
                log.warning("alternative_name_orphaned", domain=self.domain, entity_id=alt.entity_id)
                continue
            found.append(self._candidate(entity, 1.0, "confirmed_alias", alt.raw_name))
            exact_ids.add(entity.id)

        # 3. Learned aliases: keys the operator confirmed at least once
        for record in records:
            if record.usage_count <= 0:
                continue
            entity = by_id.get(record.entity_id)
            if entity is None:
                log.warning("learned_entity_missing", domain=self.domain, entity_id=record.entity_id, key=key)
                continue
            found.append(self._candidate(entity, 1.0, "learned_alias", raw_name))
            exact_ids.add(entity.id)

        # 4. Fuzzy scan over everything not matched exactly
        found.extend(self._fuzzy(key, entities, alternatives, exact_ids, config))

        ranked = self._rank(found, stats, config)
        log.debug(
            "candidates_ranked",
            domain=self.domain,
            key=key,
            count=len(ranked),
            exact=len(exact_ids),
            learning_degraded=degraded,
            top=[(c.entity_id, c.source, c.adjusted_score) for c in ranked[:3]],
        )
        return CandidateResult(canonical_key=key, candidates=ranked, learning_degraded=degraded)

    def _read_catalog(self) -> tuple[list[CatalogEntity], list[AlternativeName]]:
        try:
            entities = self.catalog.list_entities(self.domain)
            alternatives = self.catalog.list_alternative_names(self.domain)
        except Exception as e:
            log.error("catalog_read_failed", domain=self.domain, error=str(e))
            raise CatalogUnavailable(self.domain, e) from e
        return entities, alternatives

    def _read_learning(self, key: str) -> tuple[list[LearningRecord], bool]:
        if self.learning is None:
            return [], False
        try:
            return self.learning.list_learning_records(key), False
        except Exception as e:
            log.warning("learning_read_failed", domain=self.domain, key=key, error=str(e))
            return [], True

    def _fuzzy(
        self,
        key: str,
        entities: list[CatalogEntity],
        alternatives: list[AlternativeName],
        exact_ids: set[int],
        config: MatchConfig,
    ) -> list[Candidate]:
        alts_by_entity: dict[int, list[AlternativeName]] = defaultdict(list)
        for alt in alternatives:
            alts_by_entity[alt.entity_id].append(alt)

        floor = config.candidates.weak_match_floor
        fuzzy: list[Candidate] = []
        for entity in entities:
            if entity.id in exact_ids:
                continue
            best = combined_similarity(key, entity.canonical_key)
            matched_on = entity.official_name
            for alt in alts_by_entity[entity.id]:
                score = combined_similarity(key, alt.canonical_key)
                if score > best:
                    best, matched_on = score, alt.raw_name
            if best >= floor:
                fuzzy.append(self._candidate(entity, best, "fuzzy", matched_on))
        return fuzzy

    def _rank(
        self,
        found: list[Candidate],
        stats: dict[int, LearningRecord],
        config: MatchConfig,
    ) -> list[Candidate]:
        for cand in found:
            record = stats.get(cand.entity_id)
            if record is not None:
                cand.usage_count = record.usage_count
                cand.block_count = record.block_count
            cand.adjusted_score = adjusted_score(
                cand.raw_score,
                cand.source,
                cand.usage_count,
                cand.block_count,
                config.weights,
            )
            cand.star_rating = star_rating(cand.adjusted_score)

        best: dict[int, Candidate] = {}
        for cand in found:
            current = best.get(cand.entity_id)
            if current is None or rank_key(cand) < rank_key(current):
                best[cand.entity_id] = cand

        ranked = sorted(best.values(), key=rank_key)
        limit = config.candidates.max_candidates
        return ranked[:limit] if limit > 0 else ranked

    @staticmethod
    def _candidate(entity: CatalogEntity, raw_score: float, source: Source, matched_on: str) -> Candidate:
        return Candidate(
            entity_id=entity.id,
            display_name=entity.official_name,
            raw_score=raw_score,
            source=source,
            matched_on=matched_on,
        )
