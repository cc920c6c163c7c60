"""Legal-entity stop words for supplier and bank names."""

from __future__ import annotations

import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("GMATCH_CONFIG_DATA") or "config_data")

# Raw forms; normalize.py unifies them with the same letter map as the input.
SUPPLIER_STOP_WORDS: frozenset[str] = frozenset({
    "شركة", "شركه", "مؤسسة", "مؤسسه", "مكتب", "مصنع", "مقاولات",
    "trading", "est", "establishment", "company", "co", "ltd",
    "limited", "llc", "inc", "international", "global",
})

BANK_STOP_WORDS: frozenset[str] = frozenset({
    "the", "co", "company", "ltd", "limited", "plc", "psc", "pjsc", "sjsc",
    "شركة", "شركه",
})


def _load_word_list(filename: str) -> set[str]:
    path = DATA_DIR / filename
    if not path.exists():
        return set()
    return {line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()}


def raw_stop_words(domain: str) -> set[str]:
    """Built-in stop words for a domain plus any from ``stopwords_<domain>.txt``."""
    if domain == "supplier":
        words = set(SUPPLIER_STOP_WORDS)
    elif domain == "bank":
        words = set(BANK_STOP_WORDS)
    else:
        raise ValueError(f"unknown domain '{domain}'")
    words.update(_load_word_list(f"stopwords_{domain}.txt"))
    return words


def strip_stop_words(tokens: list[str], stop_words: frozenset[str] | set[str]) -> tuple[list[str], list[str]]:
    """Drop whole tokens that are stop words.

    Returns:
        Tuple of (kept_tokens, removed_tokens). Unlike legal designator
        stripping for display, nothing is reverted when every token is removed:
        an input made only of stop words has no canonical key.
    """
    kept: list[str] = []
    removed: list[str] = []
    for token in tokens:
        if token in stop_words:
            removed.append(token)
        else:
            kept.append(token)
    return kept, removed
