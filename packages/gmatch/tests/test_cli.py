"""Tests for the command line interface."""

import pandas as pd

from gmatch.cli import main
from gmatch.sqlite_store import SQLiteLearningLog, SQLiteLearningStore


def _store_args(tmp_path):
    catalog = tmp_path / "catalog.csv"
    catalog.write_text(
        "id,name,domain,short_code\n"
        "1,ABC,supplier,\n"
        "2,Gulf Star Contracting,supplier,\n"
        "7,Al Rajhi Bank,bank,RJHI\n",
        encoding="utf-8",
    )
    return ["--catalog", str(catalog), "--db", str(tmp_path / "learning.db")]


def test_normalize(capsys):
    main(["normalize", "ABC Trading Co."])
    out = capsys.readouterr().out
    assert "'abc'" in out
    assert "removed: trading, co" in out


def test_candidates(tmp_path, capsys):
    main(["candidates", "ABC Trading Co.", *_store_args(tmp_path)])
    out = capsys.readouterr().out
    assert "Canonical key: abc" in out
    assert "official" in out


def test_candidates_bank(tmp_path, capsys):
    main(["candidates", "RJHI", "--domain", "bank", *_store_args(tmp_path)])
    assert "Al Rajhi Bank" in capsys.readouterr().out


def test_match(tmp_path, capsys):
    names = tmp_path / "names.csv"
    names.write_text("name\nABC Trading\nabc\nGulf Star Contractor\n", encoding="utf-8")
    output = tmp_path / "results.csv"

    main(["match", "--input", str(names), "--output", str(output), "--show", *_store_args(tmp_path)])

    out = capsys.readouterr().out
    assert "READY=2" in out
    assert "Memo hits: 1" in out
    df = pd.read_csv(output)
    assert list(df["status"]) == ["ready", "ready", "needs_review"]


def test_confirm(tmp_path, capsys):
    args = _store_args(tmp_path)
    main(["confirm", "ABC Trading Co.", "--entity", "1", "--reject", "2", *args])

    out = capsys.readouterr().out
    assert "Confirmed: 1" in out
    assert "Blocked: 2" in out

    store = SQLiteLearningStore("supplier", tmp_path / "learning.db")
    assert store.find_learning_record("abc", 1).usage_count == 1
    assert store.find_learning_record("abc", 2).block_count == 1


def test_log_json_flag(capsys):
    main(["normalize", "--log-json", "--log-level", "ERROR", "Gulf Star Co"])
    assert "'gulf star'" in capsys.readouterr().out


def test_confirm_logs_decision_and_usage_lists_it(tmp_path, capsys):
    args = _store_args(tmp_path)
    main(["confirm", "ABC Trading Co.", "--entity", "1", "--suggested", "2", *args])
    capsys.readouterr()

    [entry] = SQLiteLearningLog(tmp_path / "learning.db").entries()
    assert entry.chosen_entity_id == 1
    assert entry.suggested_entity_id == 2
    assert entry.decision_result == "confirmed"

    main(["usage", "1", "--db", str(tmp_path / "learning.db")])
    out = capsys.readouterr().out
    assert "abc" in out
    assert "usage_count" in out


def test_usage_without_records(tmp_path, capsys):
    main(["usage", "5", "--db", str(tmp_path / "learning.db")])
    assert "No learned names for entity 5." in capsys.readouterr().out
