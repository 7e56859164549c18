"""Injected configuration for the signal pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .runtime import resolve_data_dir


def _default_claude_dir() -> Path:
    return Path.home() / ".claude"


def _positive_int(data: dict, key: str, default: int) -> int:
    raw = data.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


@dataclass
class PulseConfig:
    """Paths and limits for one pipeline run.

    Nothing in the core reads global state; callers build one of these
    and hand it to ``SignalCollector`` and the stores.
    """

    claude_dir: Path = field(default_factory=_default_claude_dir)
    data_dir: Path | None = None
    hours_back: int = 168
    max_action_items: int = 10
    max_quick_wins: int = 10

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    def resolved_data_dir(self) -> Path:
        """Return a writable data directory, caching the resolved path."""
        self.data_dir = resolve_data_dir(self.data_dir)
        return self.data_dir

    @classmethod
    def from_dict(cls, data: dict) -> PulseConfig:
        claude_dir = data.get("claude_dir") or data.get("log_path")
        data_dir = data.get("data_dir")
        return cls(
            claude_dir=Path(claude_dir).expanduser() if claude_dir else _default_claude_dir(),
            data_dir=Path(data_dir).expanduser() if data_dir else None,
            hours_back=_positive_int(data, "hours_back", 168),
            max_action_items=_positive_int(data, "max_action_items", 10),
            max_quick_wins=_positive_int(data, "max_quick_wins", 10),
        )

    @classmethod
    def load(cls, path: Path) -> PulseConfig:
        """Load config from a JSON file; a missing file gives defaults."""
        if not path.exists():
            return cls()
        try:
            raw = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")
        return cls.from_dict(raw)

    def to_dict(self) -> dict:
        return {
            "claude_dir": str(self.claude_dir),
            "data_dir": str(self.data_dir) if self.data_dir else None,
            "hours_back": self.hours_back,
            "max_action_items": self.max_action_items,
            "max_quick_wins": self.max_quick_wins,
        }
