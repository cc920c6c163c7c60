"""Operator confirmations and rejections written back as learning counters."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from gmatch.errors import LearningStoreDegraded
from gmatch.normalize import normalize
from gmatch.stores import LearningLog, LearningStore
from gmatch.types import Domain, FeedbackResult, LearningLogEntry

log = structlog.get_logger()


class DecisionFeedback:
    """The only path through which the engine mutates persistent state.

    When ``audit`` is given, every submitted decision is also appended to it,
    including the ones that teach nothing.
    """

    def __init__(self, domain: Domain, learning: LearningStore, audit: LearningLog | None = None) -> None:
        self.domain = domain
        self.learning = learning
        self.audit = audit

    def record_decision(
        self,
        raw_name: str,
        chosen_entity_id: int | None,
        rejected_entity_ids: Iterable[int] = (),
        suggested_entity_id: int | None = None,
    ) -> FeedbackResult:
        """Count a confirmation for the chosen entity and a block for each rejected one.

        Every write is attempted. If any fail, LearningStoreDegraded is raised
        after the others have gone through; the operator's decision itself is
        recorded elsewhere and is not rolled back.
        """
        key = normalize(raw_name, self.domain)
        result = FeedbackResult(canonical_key=key)
        failures: list[tuple[str, str, int | None, Exception]] = []

        if not key:
            log.info("feedback_skipped_empty_key", domain=self.domain, raw_name=raw_name)
        else:
            self._write(key, chosen_entity_id, rejected_entity_ids, result, failures)

        if self.audit is not None:
            self._audit(raw_name, result, chosen_entity_id, suggested_entity_id, failures)

        if failures:
            raise LearningStoreDegraded(failures)
        return result

    def _write(
        self,
        key: str,
        chosen_entity_id: int | None,
        rejected_entity_ids: Iterable[int],
        result: FeedbackResult,
        failures: list[tuple[str, str, int | None, Exception]],
    ) -> None:
        if chosen_entity_id is not None:
            try:
                record = self.learning.upsert_usage(key, chosen_entity_id)
                result.confirmed = chosen_entity_id
                log.info(
                    "learning_usage_recorded",
                    domain=self.domain,
                    key=key,
                    entity_id=chosen_entity_id,
                    usage_count=record.usage_count,
                )
            except Exception as e:
                log.error("learning_usage_failed", domain=self.domain, key=key, entity_id=chosen_entity_id, error=str(e))
                failures.append(("upsert_usage", key, chosen_entity_id, e))

        for entity_id in dict.fromkeys(rejected_entity_ids):
            if entity_id == chosen_entity_id:
                log.warning("feedback_reject_ignored_chosen", domain=self.domain, key=key, entity_id=entity_id)
                continue
            try:
                record = self.learning.upsert_block(key, entity_id)
                result.blocked.append(entity_id)
                log.info(
                    "learning_block_recorded",
                    domain=self.domain,
                    key=key,
                    entity_id=entity_id,
                    block_count=record.block_count,
                )
            except Exception as e:
                log.error("learning_block_failed", domain=self.domain, key=key, entity_id=entity_id, error=str(e))
                failures.append(("upsert_block", key, entity_id, e))

    def _audit(
        self,
        raw_name: str,
        result: FeedbackResult,
        chosen_entity_id: int | None,
        suggested_entity_id: int | None,
        failures: list[tuple[str, str, int | None, Exception]],
    ) -> None:
        if result.confirmed is not None:
            outcome = "confirmed"
        elif result.blocked:
            outcome = "rejected"
        else:
            outcome = "skipped"
        entry = LearningLogEntry(
            domain=self.domain,
            raw_input=raw_name,
            normalized_input=result.canonical_key,
            decision_result=outcome,
            suggested_entity_id=suggested_entity_id,
            chosen_entity_id=chosen_entity_id,
            rejected_entity_ids=list(result.blocked),
        )
        try:
            self.audit.append(entry)
        except Exception as e:
            log.error("learning_log_failed", domain=self.domain, key=result.canonical_key, error=str(e))
            failures.append(("append_log", result.canonical_key, chosen_entity_id, e))
