"""Supplier and bank name normalization."""

from __future__ import annotations

import unicodedata
from functools import lru_cache

from gmatch.stopwords import raw_stop_words, strip_stop_words
from gmatch.types import Domain, NormalizedName

# Arabic letter variants folded to one form. Tatweel is a letter modifier
# (category Lm), so it has to be dropped here rather than by the filter below.
_LETTER_MAP = str.maketrans({
    "أ": "ا",
    "إ": "ا",
    "آ": "ا",
    "ٱ": "ا",
    "ة": "ه",
    "ى": "ي",
    "ئ": "ي",
    "ؤ": "و",
    "ـ": None,
})


def _keep(ch: str) -> bool:
    return ch.isspace() or unicodedata.category(ch)[0] in ("L", "N")


def _clean_tokens(text: str) -> list[str]:
    # NFKC -> casefold -> NFKC, then fold letter variants and drop everything
    # that is not a letter, digit or whitespace (harakat included).
    s = unicodedata.normalize("NFKC", text)
    s = unicodedata.normalize("NFKC", s.casefold())
    s = s.translate(_LETTER_MAP)
    s = "".join(ch for ch in s if _keep(ch))
    return s.split()


@lru_cache(maxsize=None)
def stop_words(domain: Domain) -> frozenset[str]:
    """Stop words for a domain, run through the same cleaning as names."""
    words: set[str] = set()
    for word in raw_stop_words(domain):
        words.update(_clean_tokens(word))
    return frozenset(words)


def normalize_name(raw: str, domain: Domain = "supplier") -> NormalizedName:
    """Normalize a raw name and keep track of what was removed."""
    tokens = _clean_tokens(raw or "")
    core, removed = strip_stop_words(tokens, stop_words(domain))
    return NormalizedName(
        original=raw,
        domain=domain,
        canonical_key=" ".join(core),
        tokens=core,
        removed_stop_words=removed,
    )


def normalize(raw: str, domain: Domain = "supplier") -> str:
    """Canonical comparison key for a raw name; ``""`` when nothing is left."""
    return normalize_name(raw, domain).canonical_key


def make_key(raw: str, domain: Domain = "supplier") -> str:
    """Space-free canonical key, used for exact duplicate detection only."""
    return normalize_name(raw, domain).key


def normalize_short_code(raw: str) -> str:
    """Bank short code form: upper-cased alphanumerics (``al-rajhi`` -> ``ALRAJHI``)."""
    s = unicodedata.normalize("NFKC", raw or "")
    return "".join(ch for ch in s if ch.isalnum()).upper()
