"""Catalog and learning store contracts, with in-memory implementations."""

from __future__ import annotations

import dataclasses
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Protocol

import structlog

from gmatch.errors import DuplicateEntityError
from gmatch.normalize import make_key, normalize, normalize_short_code
from gmatch.types import AlternativeName, CatalogEntity, Domain, LearningLogEntry, LearningRecord

log = structlog.get_logger()


class CatalogStore(Protocol):
    """Read access to confirmed catalog entities."""

    def list_entities(self, domain: Domain) -> list[CatalogEntity]: ...

    def list_alternative_names(self, domain: Domain) -> list[AlternativeName]: ...


class LearningStore(Protocol):
    """Per-(canonical key, entity) usage and block counters for one domain.

    ``upsert_usage`` and ``upsert_block`` must be atomic increments: two
    concurrent confirmations of the same pair always add two.
    """

    def find_learning_record(self, canonical_key: str, entity_id: int) -> LearningRecord | None: ...

    def list_learning_records(self, canonical_key: str) -> list[LearningRecord]: ...

    def list_records_for_entity(self, entity_id: int) -> list[LearningRecord]: ...

    def upsert_usage(self, canonical_key: str, entity_id: int) -> LearningRecord: ...

    def upsert_block(self, canonical_key: str, entity_id: int) -> LearningRecord: ...


class LearningLog(Protocol):
    """Append-only record of submitted operator decisions."""

    def append(self, entry: LearningLogEntry) -> None: ...


class InMemoryCatalog:
    """Catalog held in process memory, keyed by domain."""

    def __init__(self) -> None:
        self._entities: dict[str, dict[int, CatalogEntity]] = defaultdict(dict)
        self._alternatives: dict[str, list[AlternativeName]] = defaultdict(list)
        self._next_id = 1

    def add_entity(
        self,
        domain: Domain,
        official_name: str,
        entity_id: int | None = None,
        short_code: str | None = None,
    ) -> CatalogEntity:
        """Add an entity, refusing names whose space-free key already exists."""
        key = make_key(official_name, domain)
        if not key:
            raise ValueError(f"'{official_name}' has no usable name after normalization")
        existing = self.find_by_key(domain, official_name)
        if existing is not None:
            raise DuplicateEntityError(official_name, existing.id)

        if entity_id is None:
            entity_id = self._next_id
        if entity_id in self._entities[domain]:
            raise ValueError(f"{domain} entity id {entity_id} already exists")
        self._next_id = max(self._next_id, entity_id + 1)

        entity = CatalogEntity(
            id=entity_id,
            official_name=official_name,
            canonical_key=normalize(official_name, domain),
            short_code=normalize_short_code(short_code) if short_code else None,
        )
        self._entities[domain][entity_id] = entity
        log.debug("catalog_entity_added", domain=domain, entity_id=entity_id, name=official_name)
        return entity

    def add_alternative_name(self, domain: Domain, entity_id: int, raw_name: str) -> AlternativeName:
        if entity_id not in self._entities[domain]:
            raise KeyError(f"unknown {domain} entity {entity_id}")
        canonical_key = normalize(raw_name, domain)
        if not canonical_key:
            raise ValueError(f"'{raw_name}' has no usable name after normalization")
        for alt in self._alternatives[domain]:
            if alt.entity_id == entity_id and alt.canonical_key == canonical_key:
                return alt
        alt = AlternativeName(entity_id=entity_id, raw_name=raw_name, canonical_key=canonical_key)
        self._alternatives[domain].append(alt)
        return alt

    def find_by_key(self, domain: Domain, name: str) -> CatalogEntity | None:
        key = make_key(name, domain)
        for entity in self._entities[domain].values():
            if entity.canonical_key.replace(" ", "") == key:
                return entity
        return None

    def get(self, domain: Domain, entity_id: int) -> CatalogEntity | None:
        return self._entities[domain].get(entity_id)

    def list_entities(self, domain: Domain) -> list[CatalogEntity]:
        alts_by_entity: dict[int, list[AlternativeName]] = defaultdict(list)
        for alt in self._alternatives[domain]:
            alts_by_entity[alt.entity_id].append(alt)
        return [
            dataclasses.replace(entity, alternative_names=tuple(alts_by_entity[entity.id]))
            for _, entity in sorted(self._entities[domain].items())
        ]

    def list_alternative_names(self, domain: Domain) -> list[AlternativeName]:
        return list(self._alternatives[domain])


class InMemoryLearningStore:
    """Thread-safe learning counters for a single domain."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, int], LearningRecord] = {}
        self._lock = threading.Lock()

    def find_learning_record(self, canonical_key: str, entity_id: int) -> LearningRecord | None:
        with self._lock:
            record = self._records.get((canonical_key, entity_id))
            return dataclasses.replace(record) if record else None

    def list_learning_records(self, canonical_key: str) -> list[LearningRecord]:
        with self._lock:
            return [
                dataclasses.replace(r)
                for (key, _), r in sorted(self._records.items())
                if key == canonical_key
            ]

    def list_records_for_entity(self, entity_id: int) -> list[LearningRecord]:
        """Records for one entity, most used first."""
        with self._lock:
            records = [dataclasses.replace(r) for (_, eid), r in self._records.items() if eid == entity_id]
        return sorted(records, key=usage_order)

    def upsert_usage(self, canonical_key: str, entity_id: int) -> LearningRecord:
        with self._lock:
            record = self._get_or_create(canonical_key, entity_id)
            record.usage_count += 1
            record.last_used_at = datetime.now(timezone.utc)
            return dataclasses.replace(record)

    def upsert_block(self, canonical_key: str, entity_id: int) -> LearningRecord:
        with self._lock:
            record = self._get_or_create(canonical_key, entity_id)
            record.block_count += 1
            return dataclasses.replace(record)

    def _get_or_create(self, canonical_key: str, entity_id: int) -> LearningRecord:
        record = self._records.get((canonical_key, entity_id))
        if record is None:
            record = LearningRecord(canonical_key=canonical_key, entity_id=entity_id)
            self._records[(canonical_key, entity_id)] = record
        return record


def usage_order(record: LearningRecord) -> tuple[int, float, str]:
    """Sort key: usage desc, then most recently used, then canonical key."""
    last = record.last_used_at.timestamp() if record.last_used_at else float("-inf")
    return (-record.usage_count, -last, record.canonical_key)


class InMemoryLearningLog:
    def __init__(self) -> None:
        self._entries: list[LearningLogEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: LearningLogEntry) -> None:
        if entry.created_at is None:
            entry = dataclasses.replace(entry, created_at=datetime.now(timezone.utc))
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> list[LearningLogEntry]:
        with self._lock:
            return list(self._entries)
