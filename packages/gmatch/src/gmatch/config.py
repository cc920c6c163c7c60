"""Configuration for the gmatch matching engine."""

from __future__ import annotations

import copy
import json
import threading
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger()


@dataclass
class Thresholds:
    auto_accept: float = 0.90
    review: float = 0.70
    conflict_delta: float = 0.10


@dataclass
class SourceWeights:
    official: float = 100.0
    confirmed_alias: float = 100.0
    learned_alias: float = 80.0
    fuzzy: float = 40.0

    def for_source(self, source: str) -> float:
        return float(getattr(self, source))


@dataclass
class CandidateConfig:
    weak_match_floor: float = 0.70
    max_candidates: int = 20
    max_decision_candidates: int = 5


@dataclass
class MatchConfig:
    thresholds: Thresholds = field(default_factory=Thresholds)
    weights: SourceWeights = field(default_factory=SourceWeights)
    candidates: CandidateConfig = field(default_factory=CandidateConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatchConfig:
        """Build a config from nested overrides, keeping defaults for missing keys."""
        config = cls()
        _apply_overrides(config, data)
        return config


def _apply_overrides(target: Any, data: dict[str, Any]) -> None:
    known = {f.name for f in fields(target)}
    for key, value in data.items():
        if key not in known:
            log.warning("settings_unknown_key", key=key, section=type(target).__name__)
            continue
        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ValueError(f"settings section '{key}' must be an object")
            _apply_overrides(current, value)
        else:
            setattr(target, key, type(current)(value))


class Settings:
    """Runtime-configurable MatchConfig backed by an optional JSON file.

    The file holds nested overrides, e.g.::

        {"thresholds": {"auto_accept": 0.95}, "candidates": {"max_candidates": 10}}

    ``current()`` is called once per engine call. The parsed file is cached
    until its modification time changes or ``invalidate()`` is called, so
    edits take effect without restarting the process.
    """

    def __init__(self, path: str | Path | None = None, base: MatchConfig | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self.base = base or MatchConfig()
        self._lock = threading.Lock()
        self._cached: MatchConfig | None = None
        self._cached_mtime: float | None = None

    def current(self) -> MatchConfig:
        with self._lock:
            if self.path is None:
                return self.base
            mtime = self.path.stat().st_mtime if self.path.exists() else None
            if self._cached is None or mtime != self._cached_mtime:
                self._cached = self._load()
                self._cached_mtime = mtime
            return self._cached

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._cached_mtime = None

    def save(self, overrides: dict[str, Any]) -> MatchConfig:
        """Merge overrides into the settings file and return the new config."""
        if self.path is None:
            raise ValueError("settings have no backing file")
        data = self._read_overrides()
        _deep_merge(data, overrides)
        # Validate before writing.
        config = self._build(data)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False))
        self.invalidate()
        log.info("settings_saved", path=str(self.path), keys=sorted(overrides))
        return config

    def _load(self) -> MatchConfig:
        data = self._read_overrides()
        try:
            config = self._build(data)
        except (TypeError, ValueError) as e:
            # Keep serving the last good config until the file is fixed.
            log.error("settings_invalid", path=str(self.path), error=str(e))
            return self._cached or self.base
        log.debug("settings_loaded", path=str(self.path), overrides=data)
        return config

    def _build(self, data: dict[str, Any]) -> MatchConfig:
        config = copy.deepcopy(self.base)
        _apply_overrides(config, data)
        return config

    def _read_overrides(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            log.error("settings_load_error", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            log.error("settings_not_an_object", path=str(self.path))
            return {}
        return data


def _deep_merge(target: dict[str, Any], updates: dict[str, Any]) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value
