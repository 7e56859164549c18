"""Habit analysis over recent sessions.

Aggregates what the user touches and how they work: most-edited files,
most active parent projects (worktrees merged), recurring conversation
topics, tool usage with a success proxy and an hour-of-day histogram.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime

from .sessions import Session
from .worktree import ParentProjectResolver

MAX_FILES = 20
MAX_PROJECTS = 10
MAX_TOPICS = 15
MAX_TOPIC_CONTEXTS = 5
CONTEXT_SNIPPET_LENGTH = 100

# Keywords are matched at the start of a word, so "test" also hits "testing".
TOPIC_KEYWORDS: dict[str, list[str]] = {
    "testing": ["test", "spec", "jest", "vitest", "pytest", "unittest", "coverage", "mock"],
    "debugging": ["debug", "error", "bug", "fix", "issue", "crash", "exception", "stack trace"],
    "refactoring": ["refactor", "cleanup", "reorganize", "restructure", "optimize"],
    "documentation": ["docs", "readme", "comment", "document", "jsdoc", "docstring"],
    "deployment": ["deploy", "release", "build", "ci", "cd", "pipeline", "docker", "kubernetes"],
    "database": ["database", "sql", "query", "migration", "schema", "postgres", "mysql", "mongo"],
    "api": ["api", "endpoint", "rest", "graphql", "request", "response", "fetch"],
    "authentication": ["auth", "login", "token", "jwt", "session", "password", "oauth"],
    "performance": ["performance", "optimize", "slow", "fast", "cache", "memory", "cpu"],
    "security": ["security", "vulnerability", "xss", "csrf", "injection", "sanitize"],
    "typescript": ["typescript", "types", "interface", "generic", "type error"],
    "react": ["react", "component", "hook", "usestate", "useeffect", "jsx"],
    "styling": ["css", "style", "tailwind", "scss", "sass", "theme", "design"],
}

_TOPIC_RES = {
    topic: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + ")", re.IGNORECASE)
    for topic, keywords in TOPIC_KEYWORDS.items()
}


@dataclass
class FilePattern:
    path: str
    edit_count: int
    last_edited: datetime
    projects: list[str] = field(default_factory=list)


@dataclass
class ProjectPattern:
    name: str
    path: str
    session_count: int
    total_minutes: float
    last_active: datetime
    files_modified: list[str] = field(default_factory=list)
    worktrees: list[str] | None = None  # only when more than one was seen


@dataclass
class TopicPattern:
    topic: str
    frequency: int
    last_mentioned: datetime
    contexts: list[str] = field(default_factory=list)


@dataclass
class ToolUsagePattern:
    tool: str
    count: int
    success_rate: float


@dataclass
class PatternAnalysis:
    """Habit summary handed to the briefing collaborators."""

    frequent_files: list[FilePattern] = field(default_factory=list)
    active_projects: list[ProjectPattern] = field(default_factory=list)
    recurring_topics: list[TopicPattern] = field(default_factory=list)
    tool_usage: list[ToolUsagePattern] = field(default_factory=list)
    working_hours: list[int] = field(default_factory=lambda: [0] * 24)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("frequent_files", "active_projects", "recurring_topics"):
            for item in data[key]:
                for name, value in item.items():
                    if isinstance(value, datetime):
                        item[name] = value.isoformat()
        data["working_hours"] = [
            {"hour": hour, "count": count} for hour, count in enumerate(self.working_hours)
        ]
        return data


def analyze_file_patterns(sessions: Sequence[Session]) -> list[FilePattern]:
    files: dict[str, FilePattern] = {}
    for session in sessions:
        edited_at = session.end_time or session.start_time
        for path in session.files_modified:
            pattern = files.get(path)
            if pattern is None:
                files[path] = FilePattern(
                    path=path, edit_count=1, last_edited=edited_at, projects=[session.project]
                )
                continue
            pattern.edit_count += 1
            if edited_at > pattern.last_edited:
                pattern.last_edited = edited_at
            if session.project not in pattern.projects:
                pattern.projects.append(session.project)

    ranked = sorted(files.values(), key=lambda f: f.edit_count, reverse=True)
    return ranked[:MAX_FILES]


def analyze_project_patterns(
    sessions: Sequence[Session],
    resolver: ParentProjectResolver | None = None,
) -> list[ProjectPattern]:
    resolver = resolver or ParentProjectResolver()
    projects: dict[str, ProjectPattern] = {}
    worktrees: dict[str, dict[str, None]] = {}

    for session in sessions:
        parent = resolver.resolve(session.project_path, session.project)
        active_at = session.end_time or session.start_time
        pattern = projects.get(parent)
        if pattern is None:
            projects[parent] = ProjectPattern(
                name=parent,
                path=session.project_path or session.project,
                session_count=1,
                total_minutes=session.duration_minutes,
                last_active=active_at,
                files_modified=list(session.files_modified),
            )
            worktrees[parent] = {session.project: None}
            continue

        pattern.session_count += 1
        pattern.total_minutes += session.duration_minutes
        if active_at > pattern.last_active:
            pattern.last_active = active_at
        for path in session.files_modified:
            if path not in pattern.files_modified:
                pattern.files_modified.append(path)
        worktrees[parent].setdefault(session.project, None)

    for parent, pattern in projects.items():
        if len(worktrees[parent]) > 1:
            pattern.worktrees = list(worktrees[parent])

    ranked = sorted(projects.values(), key=lambda p: p.session_count, reverse=True)
    return ranked[:MAX_PROJECTS]


def analyze_topic_patterns(sessions: Sequence[Session]) -> list[TopicPattern]:
    topics: dict[str, TopicPattern] = {}
    for session in sessions:
        for message in session.user_messages:
            timestamp = message.timestamp or session.start_time
            for topic, regex in _TOPIC_RES.items():
                if not regex.search(message.content):
                    continue
                snippet = message.content[:CONTEXT_SNIPPET_LENGTH]
                pattern = topics.get(topic)
                if pattern is None:
                    topics[topic] = TopicPattern(
                        topic=topic, frequency=1, last_mentioned=timestamp, contexts=[snippet]
                    )
                    continue
                pattern.frequency += 1
                if timestamp > pattern.last_mentioned:
                    pattern.last_mentioned = timestamp
                if len(pattern.contexts) < MAX_TOPIC_CONTEXTS:
                    pattern.contexts.append(snippet)

    ranked = sorted(topics.values(), key=lambda t: t.frequency, reverse=True)
    return ranked[:MAX_TOPICS]


def analyze_tool_usage(sessions: Sequence[Session]) -> list[ToolUsagePattern]:
    counts: dict[str, list[int]] = {}  # tool -> [count, successes]
    for session in sessions:
        for message in session.messages:
            if message.role != "assistant":
                continue
            for call in message.tool_calls:
                totals = counts.setdefault(call.tool, [0, 0])
                totals[0] += 1
                if call.succeeded:
                    totals[1] += 1

    usage = [
        ToolUsagePattern(tool=tool, count=count, success_rate=successes / count)
        for tool, (count, successes) in counts.items()
    ]
    return sorted(usage, key=lambda u: u.count, reverse=True)


def analyze_working_hours(sessions: Sequence[Session]) -> list[int]:
    """Session starts per local hour of day, index 0..23."""
    hours = [0] * 24
    for session in sessions:
        hours[session.start_time.hour] += 1
    return hours


def analyze_patterns(
    sessions: Sequence[Session],
    resolver: ParentProjectResolver | None = None,
) -> PatternAnalysis:
    return PatternAnalysis(
        frequent_files=analyze_file_patterns(sessions),
        active_projects=analyze_project_patterns(sessions, resolver=resolver),
        recurring_topics=analyze_topic_patterns(sessions),
        tool_usage=analyze_tool_usage(sessions),
        working_hours=analyze_working_hours(sessions),
    )
