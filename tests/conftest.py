"""Pytest configuration and shared fixtures."""

import json
import shutil
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from src.core.sessions import Session, SessionMessage
from src.core.todos import TodoItem


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    path = Path(tempfile.mkdtemp())
    yield path
    shutil.rmtree(path, ignore_errors=True)


def write_jsonl(path: Path, records: list) -> Path:
    """Write records as JSON lines; strings are written verbatim."""
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def sample_session_records():
    """A realistic session log with tool calls, todo snapshots and junk lines."""
    return [
        {
            "type": "user",
            "sessionId": "session-001",
            "cwd": "/home/dev/cocos-story",
            "timestamp": "2026-02-10T10:00:00Z",
            "message": {"role": "user", "content": "How do I wire up the login endpoint?"},
        },
        {
            "type": "assistant",
            "timestamp": "2026-02-10T10:05:00Z",
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Let me look.\nError: ImportError in auth module"},
                    {
                        "type": "tool_use",
                        "id": "tu-1",
                        "name": "Edit",
                        "input": {"file_path": "/home/dev/cocos-story/src/auth.py"},
                    },
                    {"type": "tool_use", "id": "tu-2", "name": "Bash", "input": {"command": "pytest"}},
                ],
            },
        },
        {
            "type": "user",
            "timestamp": "2026-02-10T10:06:00Z",
            "message": {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "tu-2", "content": "1 failed", "is_error": True},
                ],
            },
        },
        "{not valid json",
        "[1, 2, 3]",
        {
            "type": "user",
            "timestamp": "2026-02-10T10:10:00Z",
            "todos": [
                {"content": "Fix typo in README", "status": "pending", "activeForm": "Fixing typo"},
                {"content": "Add login tests", "status": "in_progress", "activeForm": "Adding tests"},
            ],
        },
        {
            "type": "user",
            "timestamp": "2026-02-10T10:30:00Z",
            "todos": [
                {"content": "Fix typo in README", "status": "pending"},
                {"content": "Add login tests", "status": "completed"},
            ],
        },
    ]


@pytest.fixture
def mock_claude_dir(temp_dir, sample_session_records):
    """Create a mock ~/.claude directory with one project and one session."""
    claude_dir = temp_dir / ".claude"
    project_dir = claude_dir / "projects" / "-home-dev-cocos-story"
    project_dir.mkdir(parents=True)
    write_jsonl(project_dir / "session-001.jsonl", sample_session_records)
    return claude_dir


@pytest.fixture
def make_session():
    """Factory for Session objects built directly, without a log file.

    ``messages`` items are either plain strings (user turns) or
    ``(role, text)`` tuples. Consecutive messages are a minute apart.
    """

    def _make(
        session_id="s1",
        project="proj",
        project_path="",
        start=datetime(2026, 2, 10, 9, 0),
        minutes=30,
        messages=(),
        todos=(),
        files=(),
    ):
        built = []
        for index, item in enumerate(messages):
            role, text = ("user", item) if isinstance(item, str) else item
            built.append(
                SessionMessage(role=role, content=text, timestamp=start + timedelta(minutes=index))
            )
        todo_items = tuple(
            t if isinstance(t, TodoItem) else TodoItem(content=t) for t in todos
        )
        return Session(
            session_id=session_id,
            project=project,
            project_path=project_path,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            messages=tuple(built),
            todo_items=todo_items,
            files_modified=tuple(files),
        )

    return _make


@pytest.fixture
def write_log():
    """The write_jsonl helper, as a fixture."""
    return write_jsonl


@pytest.fixture(autouse=True)
def utc_local_time(monkeypatch):
    """Run every test with the process timezone pinned to UTC."""
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def pacific_local_time(monkeypatch, utc_local_time):
    """Switch the process timezone to US Pacific for the rest of the test."""
    monkeypatch.setenv("TZ", "America/Los_Angeles")
    time.tzset()
