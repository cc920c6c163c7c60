"""Tests for operator feedback."""

import pytest

from gmatch.errors import LearningStoreDegraded
from gmatch.feedback import DecisionFeedback
from gmatch.stores import InMemoryLearningLog, InMemoryLearningStore


class FlakyLearningStore(InMemoryLearningStore):
    def upsert_block(self, canonical_key, entity_id):
        if entity_id == 2:
            raise RuntimeError("write failed")
        return super().upsert_block(canonical_key, entity_id)


def test_confirm_and_reject():
    store = InMemoryLearningStore()
    result = DecisionFeedback("supplier", store).record_decision("ABC Trading Co.", 1, [2, 3])

    assert result.canonical_key == "abc"
    assert result.confirmed == 1
    assert result.blocked == [2, 3]

    chosen = store.find_learning_record("abc", 1)
    assert chosen.usage_count == 1
    assert chosen.block_count == 0
    assert chosen.last_used_at is not None

    rejected = store.find_learning_record("abc", 2)
    assert rejected.usage_count == 0
    assert rejected.block_count == 1
    assert rejected.last_used_at is None


def test_repeated_confirmations_accumulate():
    store = InMemoryLearningStore()
    feedback = DecisionFeedback("supplier", store)
    feedback.record_decision("ABC", 1)
    feedback.record_decision("abc co", 1)
    assert store.find_learning_record("abc", 1).usage_count == 2


def test_duplicate_rejections_counted_once():
    store = InMemoryLearningStore()
    result = DecisionFeedback("supplier", store).record_decision("ABC", None, [2, 2])
    assert result.confirmed is None
    assert result.blocked == [2]
    assert store.find_learning_record("abc", 2).block_count == 1


def test_reject_of_chosen_ignored():
    store = InMemoryLearningStore()
    result = DecisionFeedback("supplier", store).record_decision("ABC", 1, [1])
    assert result.blocked == []
    assert store.find_learning_record("abc", 1).block_count == 0


def test_empty_key_learns_nothing():
    store = InMemoryLearningStore()
    result = DecisionFeedback("supplier", store).record_decision("Co. Ltd.", 1, [2])
    assert result.canonical_key == ""
    assert result.confirmed is None
    assert store.list_learning_records("") == []


def test_write_failure_raised_after_other_writes():
    store = FlakyLearningStore()
    with pytest.raises(LearningStoreDegraded) as exc:
        DecisionFeedback("supplier", store).record_decision("ABC", 1, [2, 3])

    failures = exc.value.failures
    assert len(failures) == 1
    op, key, entity_id, error = failures[0]
    assert (op, key, entity_id) == ("upsert_block", "abc", 2)
    assert isinstance(error, RuntimeError)

    assert store.find_learning_record("abc", 1).usage_count == 1
    assert store.find_learning_record("abc", 3).block_count == 1
    assert store.find_learning_record("abc", 2) is None


class BrokenLog(InMemoryLearningLog):
    def append(self, entry):
        raise OSError("log disk full")


def test_decision_written_to_learning_log():
    audit = InMemoryLearningLog()
    feedback = DecisionFeedback("supplier", InMemoryLearningStore(), audit)
    feedback.record_decision("ABC Trading Co.", 1, [2], suggested_entity_id=2)

    [entry] = audit.entries()
    assert entry.domain == "supplier"
    assert entry.raw_input == "ABC Trading Co."
    assert entry.normalized_input == "abc"
    assert entry.suggested_entity_id == 2
    assert entry.chosen_entity_id == 1
    assert entry.rejected_entity_ids == [2]
    assert entry.decision_result == "confirmed"
    assert entry.created_at is not None


def test_rejection_only_and_empty_key_logged():
    audit = InMemoryLearningLog()
    feedback = DecisionFeedback("supplier", InMemoryLearningStore(), audit)
    feedback.record_decision("ABC", None, [3])
    feedback.record_decision("Co. Ltd.", 1)

    assert [e.decision_result for e in audit.entries()] == ["rejected", "skipped"]
    assert audit.entries()[1].normalized_input == ""


def test_log_failure_reported_after_counters_written():
    store = InMemoryLearningStore()
    with pytest.raises(LearningStoreDegraded) as exc:
        DecisionFeedback("supplier", store, BrokenLog()).record_decision("ABC", 1)

    assert [f[0] for f in exc.value.failures] == ["append_log"]
    assert store.find_learning_record("abc", 1).usage_count == 1


def test_usage_stats_per_entity():
    store = InMemoryLearningStore()
    feedback = DecisionFeedback("supplier", store)
    for _ in range(3):
        feedback.record_decision("ABC Foods", 1)
    feedback.record_decision("ABC", 1)
    feedback.record_decision("Abc Markets", None, [1])
    feedback.record_decision("ABC", 2)

    records = store.list_records_for_entity(1)
    assert [(r.canonical_key, r.usage_count, r.block_count) for r in records] == [
        ("abc foods", 3, 0),
        ("abc", 1, 0),
        ("abc markets", 0, 1),
    ]
