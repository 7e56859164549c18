"""Todo snapshots and cross-session todo aggregation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .sessions import Session

TodoStatus = Literal["pending", "in_progress", "completed"]

_VALID_STATUSES = ("pending", "in_progress", "completed")


@dataclass
class TodoItem:
    """A todo from a session snapshot, optionally enriched across sessions."""

    content: str
    status: TodoStatus = "pending"
    active_form: str | None = None  # Present continuous form

    # Session context, filled in during aggregation
    session_id: str | None = None
    project: str | None = None
    project_path: str | None = None
    related_files: list[str] = field(default_factory=list)

    # Recurrence tracking
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    occurrence_count: int = 1

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    @property
    def is_in_progress(self) -> bool:
        return self.status == "in_progress"

    @property
    def is_recurring(self) -> bool:
        return self.occurrence_count > 1

    @classmethod
    def from_dict(cls, data: dict) -> TodoItem:
        """Create a TodoItem from a raw snapshot entry."""
        status = data.get("status", "pending")
        if status not in _VALID_STATUSES:
            status = "pending"
        active_form = data.get("activeForm") or data.get("active_form")
        return cls(
            content=str(data.get("content", "")),
            status=status,
            active_form=active_form if isinstance(active_form, str) else None,
        )

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "status": self.status,
            "active_form": self.active_form,
            "session_id": self.session_id,
            "project": self.project,
            "project_path": self.project_path,
            "related_files": list(self.related_files),
            "first_seen": self.first_seen.isoformat() if self.first_seen else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "occurrence_count": self.occurrence_count,
        }


def aggregate_open_todos(sessions: Iterable[Session]) -> list[TodoItem]:
    """Merge non-completed todos across sessions by exact content.

    Each occurrence adds one to ``occurrence_count`` and unions the owning
    session's modified files into ``related_files``. The first occurrence
    fixes the owning session and project; ``status`` follows the most
    recent occurrence. The result is ordered by descending occurrence count,
    since recurrence is the signal, not recency.
    """
    merged: dict[str, TodoItem] = {}

    for session in sessions:
        seen_at = session.end_time or session.start_time
        counted: set[str] = set()
        for todo in session.todo_items:
            if todo.is_completed or not todo.content or todo.content in counted:
                continue
            counted.add(todo.content)

            existing = merged.get(todo.content)
            if existing is None:
                merged[todo.content] = replace(
                    todo,
                    session_id=session.session_id,
                    project=session.project,
                    project_path=session.project_path,
                    related_files=list(session.files_modified),
                    first_seen=session.start_time,
                    last_seen=seen_at,
                    occurrence_count=1,
                )
                continue

            existing.occurrence_count += 1
            for path in session.files_modified:
                if path not in existing.related_files:
                    existing.related_files.append(path)
            if session.start_time and (
                existing.first_seen is None or session.start_time < existing.first_seen
            ):
                existing.first_seen = session.start_time
            if seen_at and (existing.last_seen is None or seen_at >= existing.last_seen):
                existing.last_seen = seen_at
                existing.status = todo.status
                existing.active_form = todo.active_form or existing.active_form

    return sorted(merged.values(), key=lambda t: t.occurrence_count, reverse=True)


def recurring_todos(todos: Iterable[TodoItem]) -> list[TodoItem]:
    """Todos seen non-completed in two or more sessions."""
    return [todo for todo in todos if todo.is_recurring]
