"""CSV input and output for batch matching."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import structlog

from gmatch.errors import DuplicateEntityError
from gmatch.stores import InMemoryCatalog
from gmatch.types import DOMAINS, MatchDecision

log = structlog.get_logger()


def _cell(value: object) -> str | None:
    if pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def read_catalog(catalog_path: str | Path, aliases_path: str | Path | None = None) -> InMemoryCatalog:
    """Load a catalog from CSV.

    The catalog file needs ``id``, ``name`` and ``domain`` columns and may have
    ``short_code``. The optional aliases file needs ``entity_id``, ``name`` and
    ``domain``. Rows that duplicate an existing entity are skipped.
    """
    catalog = InMemoryCatalog()
    df = pd.read_csv(catalog_path, dtype=str)
    for _, row in df.iterrows():
        name = _cell(row.get("name"))
        domain = _cell(row.get("domain")) or "supplier"
        if name is None:
            continue
        if domain not in DOMAINS:
            log.warning("catalog_row_bad_domain", name=name, domain=domain)
            continue
        try:
            entity_id = int(row["id"]) if _cell(row.get("id")) else None
            catalog.add_entity(domain, name, entity_id=entity_id, short_code=_cell(row.get("short_code")))
        except DuplicateEntityError as e:
            log.warning("catalog_row_duplicate", name=name, domain=domain, existing_id=e.existing_id)
        except ValueError as e:
            log.warning("catalog_row_skipped", name=name, domain=domain, error=str(e))

    if aliases_path is not None:
        alias_df = pd.read_csv(aliases_path, dtype=str)
        for _, row in alias_df.iterrows():
            name = _cell(row.get("name"))
            entity_id = _cell(row.get("entity_id"))
            domain = _cell(row.get("domain")) or "supplier"
            if name is None or entity_id is None:
                continue
            try:
                catalog.add_alternative_name(domain, int(entity_id), name)
            except (KeyError, ValueError) as e:
                log.warning("alias_row_skipped", name=name, entity_id=entity_id, error=str(e))

    log.info(
        "catalog_loaded",
        suppliers=len(catalog.list_entities("supplier")),
        banks=len(catalog.list_entities("bank")),
    )
    return catalog


def read_names(path: str | Path, column: str = "name") -> list[str]:
    """Raw names from one CSV column, blanks kept as empty strings."""
    df = pd.read_csv(path, dtype=str)
    if column not in df.columns:
        raise KeyError(f"column '{column}' not found in {path}")
    return [_cell(v) or "" for v in df[column].tolist()]


def decisions_frame(decisions: list[MatchDecision]) -> pd.DataFrame:
    rows = []
    for d in decisions:
        top = d.top_candidates[0] if d.top_candidates else None
        rows.append({
            "raw_name": d.raw_name,
            "canonical_key": d.canonical_key,
            "status": d.status,
            "chosen_entity_id": d.chosen_entity_id,
            "top_entity_id": top.entity_id if top else None,
            "top_name": top.display_name if top else None,
            "top_score": top.score if top else None,
            "top_source": top.source if top else None,
            "is_conflicted": d.is_conflicted,
            "reasons": "; ".join(d.reasons),
        })
    return pd.DataFrame(rows)


def write_decisions(decisions: list[MatchDecision], path: str | Path) -> None:
    decisions_frame(decisions).to_csv(path, index=False)
