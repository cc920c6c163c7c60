"""Tests for the SQLite learning store."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from gmatch.candidates import CandidateService
from gmatch.sqlite_store import SQLiteLearningLog, SQLiteLearningStore, init_learning_db
from gmatch.stores import InMemoryCatalog
from gmatch.types import LearningLogEntry


def test_usage_and_block_counters(tmp_path):
    store = SQLiteLearningStore("supplier", tmp_path / "learning.db")
    assert store.find_learning_record("abc", 1) is None

    store.upsert_usage("abc", 1)
    record = store.upsert_usage("abc", 1)
    assert record.usage_count == 2
    assert record.block_count == 0
    assert isinstance(record.last_used_at, datetime)

    record = store.upsert_block("abc", 1)
    assert record.usage_count == 2
    assert record.block_count == 1


def test_block_does_not_touch_last_used(tmp_path):
    store = SQLiteLearningStore("supplier", tmp_path / "learning.db")
    record = store.upsert_block("abc", 2)
    assert record.last_used_at is None
    assert record.usage_count == 0


def test_list_records_ordered_by_entity(tmp_path):
    store = SQLiteLearningStore("supplier", tmp_path / "learning.db")
    store.upsert_usage("abc", 9)
    store.upsert_block("abc", 3)
    store.upsert_usage("other", 1)
    assert [r.entity_id for r in store.list_learning_records("abc")] == [3, 9]


def test_domains_share_file_not_counters(tmp_path):
    db = tmp_path / "learning.db"
    suppliers = SQLiteLearningStore("supplier", db)
    banks = SQLiteLearningStore("bank", db)
    suppliers.upsert_usage("abc", 1)
    assert banks.find_learning_record("abc", 1) is None
    assert suppliers.find_learning_record("abc", 1).usage_count == 1


def test_counters_survive_reopen(tmp_path):
    db = tmp_path / "learning.db"
    SQLiteLearningStore("supplier", db).upsert_usage("abc", 1)
    assert SQLiteLearningStore("supplier", db).find_learning_record("abc", 1).usage_count == 1


def test_creates_parent_directory(tmp_path):
    db = tmp_path / "nested" / "dir" / "learning.db"
    SQLiteLearningStore("bank", db).upsert_block("rjhi", 7)
    assert db.exists()


def test_init_is_idempotent(tmp_path):
    db = tmp_path / "learning.db"
    init_learning_db(db)
    init_learning_db(db)
    assert SQLiteLearningStore("supplier", db).list_learning_records("abc") == []


def test_concurrent_confirmations_not_lost(tmp_path):
    store = SQLiteLearningStore("supplier", tmp_path / "learning.db", timeout=30.0)

    def confirm(_):
        store.upsert_usage("abc", 1)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(confirm, range(40)))

    assert store.find_learning_record("abc", 1).usage_count == 40


def test_drives_candidate_ranking(tmp_path):
    catalog = InMemoryCatalog()
    catalog.add_entity("supplier", "Northern Pipes", entity_id=130)
    store = SQLiteLearningStore("supplier", tmp_path / "learning.db")
    for _ in range(3):
        store.upsert_usage("zimmmo", 130)

    top = CandidateService("supplier", catalog, store).candidates("Zimmmo Trading").top
    assert top.entity_id == 130
    assert top.source == "learned_alias"
    assert top.usage_count == 3


def test_records_for_entity_most_used_first(tmp_path):
    store = SQLiteLearningStore("supplier", tmp_path / "learning.db")
    store.upsert_block("abc markets", 1)
    store.upsert_usage("abc", 1)
    for _ in range(2):
        store.upsert_usage("abc foods", 1)
    store.upsert_usage("abc", 2)

    records = store.list_records_for_entity(1)
    assert [(r.canonical_key, r.usage_count) for r in records] == [
        ("abc foods", 2),
        ("abc", 1),
        ("abc markets", 0),
    ]
    assert SQLiteLearningStore("bank", tmp_path / "learning.db").list_records_for_entity(1) == []


def test_learning_log_persists_entries(tmp_path):
    db = tmp_path / "learning.db"
    SQLiteLearningLog(db).append(LearningLogEntry(
        domain="bank",
        raw_input="RJHI",
        normalized_input="rjhi",
        decision_result="confirmed",
        suggested_entity_id=7,
        chosen_entity_id=7,
        rejected_entity_ids=[8, 9],
    ))

    reopened = SQLiteLearningLog(db)
    [entry] = reopened.entries()
    assert (entry.domain, entry.raw_input, entry.normalized_input) == ("bank", "RJHI", "rjhi")
    assert entry.rejected_entity_ids == [8, 9]
    assert entry.suggested_entity_id == 7
    assert isinstance(entry.created_at, datetime)
    assert reopened.entries("supplier") == []
