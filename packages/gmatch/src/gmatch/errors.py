"""Exceptions raised by the matching engine.

Empty or unnormalizable input is not an error: it yields an empty candidate
result. Everything else the caller may want to react to has its own class.
"""

from __future__ import annotations


class MatchError(Exception):
    """Base class for gmatch errors."""


class CatalogUnavailable(MatchError):
    """The catalog store could not be read; candidates cannot be generated."""

    def __init__(self, domain: str, cause: Exception | None = None) -> None:
        self.domain = domain
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"catalog unavailable for domain '{domain}'{detail}")


class LearningStoreDegraded(MatchError):
    """One or more learning store writes failed.

    ``failures`` holds ``(operation, canonical_key, entity_id, error)`` tuples
    for every write that did not go through.
    """

    def __init__(self, failures: list[tuple[str, str, int | None, Exception]]) -> None:
        self.failures = failures
        ops = ", ".join(f"{op}({key!r}, {eid})" for op, key, eid, _ in failures)
        super().__init__(f"learning store write failed: {ops}")


class DuplicateEntityError(MatchError):
    """A catalog entity with the same space-free key already exists."""

    def __init__(self, name: str, existing_id: int) -> None:
        self.name = name
        self.existing_id = existing_id
        super().__init__(f"'{name}' duplicates catalog entity {existing_id}")
