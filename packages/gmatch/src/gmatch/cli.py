"""CLI for candidate lookup, batch matching and operator feedback."""

from __future__ import annotations

import argparse

import pandas as pd
import structlog

from gmatch.api import MatchingEngine
from gmatch.config import Settings
from gmatch.errors import MatchError
from gmatch.io import decisions_frame, read_catalog, read_names
from gmatch.logging import configure_logging
from gmatch.matcher import MatcherStats
from gmatch.normalize import make_key, normalize_name
from gmatch.sqlite_store import SQLiteLearningLog, SQLiteLearningStore


def _build_engine(args: argparse.Namespace) -> MatchingEngine:
    log = structlog.get_logger()
    log.info("build_engine_start", catalog=args.catalog, aliases=args.aliases, db=args.db)
    catalog = read_catalog(args.catalog, args.aliases)
    learning = {
        "supplier": SQLiteLearningStore("supplier", args.db),
        "bank": SQLiteLearningStore("bank", args.db),
    }
    return MatchingEngine(catalog, learning, Settings(args.settings), audit=SQLiteLearningLog(args.db))


def cmd_normalize(args: argparse.Namespace) -> None:
    for raw in args.names:
        n = normalize_name(raw, args.domain)
        print(f"{raw!r} -> {n.canonical_key!r} (key={make_key(raw, args.domain)!r})")
        if n.removed_stop_words:
            print(f"    removed: {', '.join(n.removed_stop_words)}")


def cmd_candidates(args: argparse.Namespace) -> None:
    engine = _build_engine(args)
    out = engine.get_candidates(args.name, args.domain)
    if not out.canonical_key:
        print("Nothing left after normalization.")
        return
    print(f"Canonical key: {out.canonical_key}")
    if out.learning_degraded:
        print("Warning: learning store unavailable, rankings ignore past decisions.")
    if not out.candidates:
        print("No candidates.")
        return
    df = pd.DataFrame([c.model_dump() for c in out.candidates])
    print(df.to_string(index=False))


def cmd_match(args: argparse.Namespace) -> None:
    engine = _build_engine(args)
    names = read_names(args.input, args.column)
    print(f"Rows: {len(names)}")

    matcher = engine.matcher(args.domain)
    decisions = matcher.match_many(names)
    df = decisions_frame(decisions)

    if args.show and not df.empty:
        ready = df[df["status"] == "ready"]
        print(f"\n=== Ready ({len(ready)}) ===")
        if not ready.empty:
            print(ready[["raw_name", "top_name", "top_score", "is_conflicted"]].to_string(index=False))

    _print_summary(df)
    _print_stats(matcher.stats)
    df.to_csv(args.output, index=False)
    print(f"\nSaved to: {args.output}")


def cmd_confirm(args: argparse.Namespace) -> None:
    engine = _build_engine(args)
    out = engine.submit_decision(args.name, args.domain, args.entity, args.reject or [], args.suggested)
    if not out.canonical_key:
        print("Nothing left after normalization; nothing learned.")
        return
    print(f"Key: {out.canonical_key}")
    if out.confirmed is not None:
        print(f"Confirmed: {out.confirmed}")
    if out.blocked:
        print(f"Blocked: {', '.join(str(b) for b in out.blocked)}")


def cmd_usage(args: argparse.Namespace) -> None:
    store = SQLiteLearningStore(args.domain, args.db)
    records = store.list_records_for_entity(args.entity)
    if not records:
        print(f"No learned names for entity {args.entity}.")
        return
    df = pd.DataFrame([
        {
            "canonical_key": r.canonical_key,
            "usage_count": r.usage_count,
            "block_count": r.block_count,
            "last_used_at": r.last_used_at,
        }
        for r in records
    ])
    print(df.to_string(index=False))


def _print_summary(df: pd.DataFrame) -> None:
    if df.empty:
        print("\nResults: none")
        return
    ready = (df["status"] == "ready").sum()
    review = (df["status"] == "needs_review").sum()
    conflicted = df["is_conflicted"].sum()
    print(f"\nResults: READY={ready}, NEEDS_REVIEW={review}, CONFLICTED={conflicted}")


def _print_stats(stats: MatcherStats) -> None:
    print("\n--- Statistics ---")
    print(f"Rows: {stats.rows}")
    print(f"Unique keys: {stats.unique_keys}")
    print(f"Memo hits: {stats.memo_hits}")
    print(f"Empty input: {stats.empty_input}")
    print(f"No candidates: {stats.no_candidates}")
    if stats.learning_degraded:
        print(f"Learning degraded: {stats.learning_degraded}")


def main(argv: list[str] | None = None) -> None:
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level (default: WARNING)",
    )
    parent_parser.add_argument("--log-json", action="store_true", help="Emit log events as JSON lines")
    parent_parser.add_argument(
        "--domain",
        choices=["supplier", "bank"],
        default="supplier",
        help="Catalog domain (default: supplier)",
    )

    store_parser = argparse.ArgumentParser(add_help=False)
    store_parser.add_argument("--catalog", default="localdata/catalog.csv", help="Catalog CSV (id,name,domain[,short_code])")
    store_parser.add_argument("--aliases", default=None, help="Confirmed alternative names CSV (entity_id,name,domain)")
    store_parser.add_argument("--db", default="localdata/learning.db", help="SQLite learning database")
    store_parser.add_argument("--settings", default=None, help="JSON settings overrides")

    parser = argparse.ArgumentParser(description="Supplier and bank candidate matching CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    norm_parser = subparsers.add_parser("normalize", parents=[parent_parser], help="Show canonical keys")
    norm_parser.add_argument("names", nargs="+", help="Raw names")
    norm_parser.set_defaults(func=cmd_normalize)

    cand_parser = subparsers.add_parser("candidates", parents=[parent_parser, store_parser], help="Rank candidates for one name")
    cand_parser.add_argument("name", help="Raw name")
    cand_parser.set_defaults(func=cmd_candidates)

    match_parser = subparsers.add_parser("match", parents=[parent_parser, store_parser], help="Match a CSV column of names")
    match_parser.add_argument("--input", required=True, help="CSV with raw names")
    match_parser.add_argument("--column", default="name", help="Column holding raw names")
    match_parser.add_argument("--output", default="localdata/match_results.csv", help="Output CSV path")
    match_parser.add_argument("--show", action="store_true", help="Display ready rows on screen")
    match_parser.set_defaults(func=cmd_match)

    confirm_parser = subparsers.add_parser("confirm", parents=[parent_parser, store_parser], help="Record an operator decision")
    confirm_parser.add_argument("name", help="Raw name")
    confirm_parser.add_argument("--entity", type=int, default=None, help="Confirmed entity id")
    confirm_parser.add_argument("--reject", type=int, action="append", metavar="ID", help="Rejected entity id (repeatable)")
    confirm_parser.add_argument("--suggested", type=int, default=None, help="Entity id the engine had suggested")
    confirm_parser.set_defaults(func=cmd_confirm)

    usage_parser = subparsers.add_parser("usage", parents=[parent_parser], help="Show learned names for one entity")
    usage_parser.add_argument("entity", type=int, help="Entity id")
    usage_parser.add_argument("--db", default="localdata/learning.db", help="SQLite learning database")
    usage_parser.set_defaults(func=cmd_usage)

    args = parser.parse_args(argv)
    configure_logging(args.log_level, json_output=args.log_json)
    try:
        args.func(args)
    except MatchError as e:
        structlog.get_logger().error("command_failed", command=args.command, error=str(e))
        raise SystemExit(f"Error: {e}") from e


if __name__ == "__main__":
    main()
