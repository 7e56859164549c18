"""Session log parsing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from ..utils import JSONLParser, parse_iso
from .todos import TodoItem

logger = logging.getLogger(__name__)

# Tool invocations that write to a file, and the input keys naming it
FILE_EDIT_TOOLS: dict[str, tuple[str, ...]] = {
    "Write": ("file_path",),
    "Edit": ("file_path",),
    "MultiEdit": ("file_path",),
    "NotebookEdit": ("notebook_path", "file_path"),
}
SHELL_TOOLS = frozenset({"Bash"})

MAX_ERRORS_PER_MESSAGE = 3
MAX_SESSION_ERRORS = 10
MAX_UNRESOLVED_ERRORS = 20


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation made by the assistant."""

    tool: str
    input: dict = field(default_factory=dict)
    call_id: str | None = None
    output: str | None = None
    is_error: bool = False

    @property
    def succeeded(self) -> bool:
        """Best-effort success signal: explicit error flag or "error" in output."""
        if self.is_error:
            return False
        if self.output:
            return "error" not in self.output.lower()
        return True


@dataclass(frozen=True)
class SessionMessage:
    """A user or assistant turn."""

    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime | None = None
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class Session:
    """A fully parsed session log. Never persisted; only derived signals are."""

    session_id: str
    project: str
    project_path: str
    start_time: datetime
    end_time: datetime | None = None
    messages: tuple[SessionMessage, ...] = ()
    todo_items: tuple[TodoItem, ...] = ()
    files_modified: tuple[str, ...] = ()
    commands_run: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    log_path: Path | None = None

    @property
    def duration_minutes(self) -> float:
        """Session duration in minutes, 0 when there is no end time."""
        if self.end_time is None:
            return 0.0
        return max(0.0, (self.end_time - self.start_time).total_seconds() / 60)

    @property
    def user_messages(self) -> list[SessionMessage]:
        return [m for m in self.messages if m.role == "user"]


@dataclass
class SessionFileInfo:
    """A session log located on disk, before parsing."""

    session_id: str
    project_dir_name: str
    log_path: Path
    modified_time: datetime


def get_project_name(project_path: str) -> str:
    """Last component of a real path or of an encoded project dir name."""
    separator = "/" if "/" in project_path else "-"
    parts = [part for part in project_path.split(separator) if part]
    return parts[-1] if parts else "unknown"


def _text_from_content(content: object) -> str:
    """Flatten string or block-list message content to its text blocks."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    texts = [
        block.get("text") or ""
        for block in content
        if isinstance(block, dict) and block.get("type") == "text"
    ]
    return "\n".join(texts)


def _error_lines(text: str) -> list[str]:
    lines = []
    for line in text.split("\n"):
        lowered = line.lower()
        if "error" in lowered and "no error" not in lowered:
            lines.append(line)
    return lines[:MAX_ERRORS_PER_MESSAGE]


class _SessionAccumulator:
    """Mutable state while walking one log file."""

    def __init__(self) -> None:
        self.session_id = ""
        self.project_path = ""
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.last_timestamp: datetime | None = None
        self.pending_messages: list[tuple[str, str, datetime | None, list[dict]]] = []
        self.tool_results: dict[str, tuple[str, bool]] = {}
        self.todo_items: list[TodoItem] = []
        self.files_modified: dict[str, None] = {}
        self.commands_run: list[str] = []
        self.errors: list[str] = []

    def observe_timestamp(self, raw: object) -> datetime | None:
        timestamp = parse_iso(raw) if isinstance(raw, str) else None
        if timestamp is None:
            return self.last_timestamp
        if self.start_time is None or timestamp < self.start_time:
            self.start_time = timestamp
        if self.end_time is None or timestamp > self.end_time:
            self.end_time = timestamp
        self.last_timestamp = timestamp
        return timestamp

    def add_user(self, content: object, timestamp: datetime | None) -> None:
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type") == "tool_result":
                    self._add_tool_result(block)
        text = _text_from_content(content)
        if text:
            self.pending_messages.append(("user", text, timestamp, []))

    def _add_tool_result(self, block: dict) -> None:
        call_id = block.get("tool_use_id")
        if not isinstance(call_id, str):
            return
        output = _text_from_content(block.get("content"))
        self.tool_results[call_id] = (output, bool(block.get("is_error", False)))

    def add_assistant(self, content: object, timestamp: datetime | None) -> None:
        if not isinstance(content, list):
            return

        text = _text_from_content(content)
        tool_blocks = [
            block for block in content
            if isinstance(block, dict) and block.get("type") == "tool_use"
        ]

        for block in tool_blocks:
            tool = block.get("name") or "unknown"
            tool_input = block.get("input") if isinstance(block.get("input"), dict) else {}
            for key in FILE_EDIT_TOOLS.get(tool, ()):
                path = tool_input.get(key)
                if isinstance(path, str) and path:
                    self.files_modified.setdefault(path, None)
                    break
            if tool in SHELL_TOOLS:
                command = tool_input.get("command")
                if isinstance(command, str):
                    self.commands_run.append(command)

        self.errors.extend(_error_lines(text))

        if text or tool_blocks:
            self.pending_messages.append(("assistant", text, timestamp, tool_blocks))

    def replace_todos(self, raw_todos: list) -> None:
        self.todo_items = [
            TodoItem.from_dict(item) for item in raw_todos if isinstance(item, dict)
        ]

    def build(self, log_path: Path, fallback_project: str) -> Session | None:
        if self.start_time is None:
            return None

        messages = []
        for role, text, timestamp, tool_blocks in self.pending_messages:
            calls = []
            for block in tool_blocks:
                call_id = block.get("id") if isinstance(block.get("id"), str) else None
                output, is_error = self.tool_results.get(call_id, (None, False)) if call_id else (None, False)
                calls.append(
                    ToolCall(
                        tool=block.get("name") or "unknown",
                        input=block.get("input") if isinstance(block.get("input"), dict) else {},
                        call_id=call_id,
                        output=output,
                        is_error=is_error,
                    )
                )
            messages.append(
                SessionMessage(
                    role=role,
                    content=text,
                    timestamp=timestamp or self.start_time,
                    tool_calls=tuple(calls),
                )
            )

        project = get_project_name(self.project_path) if self.project_path else fallback_project
        return Session(
            session_id=self.session_id or log_path.stem,
            project=project,
            project_path=self.project_path,
            start_time=self.start_time,
            end_time=self.end_time,
            messages=tuple(messages),
            todo_items=tuple(self.todo_items),
            files_modified=tuple(self.files_modified),
            commands_run=tuple(self.commands_run),
            errors=tuple(dict.fromkeys(self.errors))[:MAX_SESSION_ERRORS],
            log_path=log_path,
        )


class SessionParser:
    """Parser for Claude Code session logs under ``<claude_dir>/projects``."""

    def __init__(self, claude_dir: Path | None = None):
        self.claude_dir = claude_dir or Path.home() / ".claude"
        self.projects_dir = self.claude_dir / "projects"

    def list_session_files(self, since: datetime | None = None) -> list[SessionFileInfo]:
        """Find session logs, optionally only those modified at or after ``since``.

        Most recently modified first.
        """
        if not self.projects_dir.is_dir():
            return []

        found: list[SessionFileInfo] = []
        for project_dir in self.projects_dir.iterdir():
            if not project_dir.is_dir():
                continue
            for log_file in project_dir.glob("*.jsonl"):
                try:
                    modified = datetime.fromtimestamp(log_file.stat().st_mtime)
                except OSError:
                    continue
                if since is not None and modified < since:
                    continue
                found.append(
                    SessionFileInfo(
                        session_id=log_file.stem,
                        project_dir_name=project_dir.name,
                        log_path=log_file,
                        modified_time=modified,
                    )
                )

        found.sort(key=lambda info: info.modified_time, reverse=True)
        return found

    def parse_session(self, log_path: Path) -> Session | None:
        """Parse one log file into a Session.

        Malformed records are skipped one by one. Returns None when the
        file is missing or unreadable, or when no record carries a valid
        timestamp.
        """
        state = _SessionAccumulator()
        parser = JSONLParser(log_path)

        try:
            for entry in parser.iter_entries():
                try:
                    self._apply_record(state, entry.data)
                except (AttributeError, TypeError, ValueError) as e:
                    logger.debug("Skipping record %s:%d: %s", log_path, entry.line_number, e)
        except OSError as e:
            logger.warning("Failed to read session log %s: %s", log_path, e)
            return None

        return state.build(log_path, fallback_project=get_project_name(log_path.parent.name))

    @staticmethod
    def _apply_record(state: _SessionAccumulator, record: dict) -> None:
        timestamp = state.observe_timestamp(record.get("timestamp"))

        if not state.session_id and isinstance(record.get("sessionId"), str):
            state.session_id = record["sessionId"]
        if not state.project_path and isinstance(record.get("cwd"), str):
            state.project_path = record["cwd"]

        todos = record.get("todos")
        if isinstance(todos, list) and todos:
            state.replace_todos(todos)

        message = record.get("message")
        if not isinstance(message, dict):
            return

        record_type = record.get("type")
        if record_type == "user":
            state.add_user(message.get("content"), timestamp)
        elif record_type == "assistant":
            state.add_assistant(message.get("content"), timestamp)

    def get_recent_sessions(
        self,
        hours_back: int = 168,
        now: datetime | None = None,
    ) -> list[Session]:
        """Parse every session modified within the last ``hours_back`` hours."""
        since = (now or datetime.now()) - timedelta(hours=hours_back)
        sessions = []
        for info in self.list_session_files(since=since):
            session = self.parse_session(info.log_path)
            if session is not None:
                sessions.append(session)
        logger.debug("Parsed %d session(s) from %s", len(sessions), self.projects_dir)
        return sessions


def extract_active_projects(sessions: list[Session]) -> list[str]:
    """Distinct project names in first-seen order."""
    return list(dict.fromkeys(s.project for s in sessions if s.project))


def extract_unresolved_errors(sessions: list[Session]) -> list[str]:
    """Deduplicated error lines across sessions, capped."""
    seen = dict.fromkeys(error for session in sessions for error in session.errors)
    return list(seen)[:MAX_UNRESOLVED_ERRORS]
