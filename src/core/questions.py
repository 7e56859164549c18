"""Open question detection in session conversations."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from ..utils import any_match
from .sessions import Session, SessionMessage

QuestionStatus = Literal["open", "resolved", "deferred"]

# Interrogative phrasing in a user message
QUESTION_PATTERNS = [
    re.compile(r"\?$", re.MULTILINE),
    re.compile(
        r"^(how|what|why|when|where|can|should|would|could|is|are|do|does)\s",
        re.IGNORECASE | re.MULTILINE,
    ),
    re.compile(r"^(explain|describe|help me understand)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"not sure (how|why|what|if)", re.IGNORECASE),
    re.compile(r"wondering (if|how|why|what)", re.IGNORECASE),
    re.compile(r"any (ideas|suggestions|thoughts)", re.IGNORECASE),
]

# Explicit deferral in the question itself
DEFERRAL_PATTERNS = [
    re.compile(r"TODO", re.IGNORECASE),
    re.compile(r"FIXME", re.IGNORECASE),
    re.compile(r"\blater\b", re.IGNORECASE),
    re.compile(r"come back to", re.IGNORECASE),
    re.compile(r"revisit", re.IGNORECASE),
    re.compile(r"need to figure out", re.IGNORECASE),
    re.compile(r"not sure yet", re.IGNORECASE),
    re.compile(r"decide later", re.IGNORECASE),
    re.compile(r"\bTBD\b", re.IGNORECASE),
    re.compile(r"blocked", re.IGNORECASE),
]

# Closure or affirmation in a follow-up user message
RESOLUTION_PATTERNS = [
    re.compile(r"that (works|worked|fixed|solved)", re.IGNORECASE),
    re.compile(r"\bperfect\b", re.IGNORECASE),
    re.compile(r"\bthanks\b", re.IGNORECASE),
    re.compile(r"got it", re.IGNORECASE),
    re.compile(r"makes sense", re.IGNORECASE),
    re.compile(r"\bunderstood\b", re.IGNORECASE),
    re.compile(r"all set", re.IGNORECASE),
    re.compile(r"\bdone\b", re.IGNORECASE),
]

_FIRST_QUESTION_RE = re.compile(r"[^.!?]*\?")
_AFFIRMATIVE_RE = re.compile(r"^(ok|okay|yes|no|sure|right)\?$", re.IGNORECASE)

RESOLUTION_WINDOW = 4
MIN_QUESTION_LENGTH = 15
MAX_QUESTION_LENGTH = 500
DEDUP_PREFIX_LENGTH = 50


@dataclass
class OpenQuestion:
    """A question the user asked that shows no sign of being answered."""

    id: str
    question: str
    context: str
    project: str
    session_id: str
    timestamp: datetime
    status: QuestionStatus = "open"

    @property
    def dedup_key(self) -> str:
        return self.question.lower()[:DEDUP_PREFIX_LENGTH]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "context": self.context,
            "project": self.project,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
        }


def _extract_context(messages: tuple[SessionMessage, ...], index: int) -> str:
    if index == 0:
        return ""
    previous = messages[index - 1]
    if len(previous.content) >= 200:
        return ""
    return previous.content[:300]


def _is_resolved(messages: tuple[SessionMessage, ...], index: int) -> bool:
    window = messages[index + 1 : index + 1 + RESOLUTION_WINDOW]
    return any(
        any_match(RESOLUTION_PATTERNS, message.content)
        for message in window
        if message.role == "user"
    )


def extract_questions(session: Session) -> list[OpenQuestion]:
    """Unresolved or explicitly deferred questions from one session."""
    questions: list[OpenQuestion] = []

    for index, message in enumerate(session.messages):
        if message.role != "user":
            continue
        if not any_match(QUESTION_PATTERNS, message.content):
            continue

        deferred = any_match(DEFERRAL_PATTERNS, message.content)
        if _is_resolved(session.messages, index) and not deferred:
            continue

        first = _FIRST_QUESTION_RE.search(message.content)
        text = first.group(0).strip() if first else message.content.strip()

        if len(text) < MIN_QUESTION_LENGTH or _AFFIRMATIVE_RE.match(text):
            continue

        questions.append(
            OpenQuestion(
                id=f"q-{session.session_id}-{index}",
                question=text[:MAX_QUESTION_LENGTH],
                context=_extract_context(session.messages, index),
                project=session.project,
                session_id=session.session_id,
                timestamp=message.timestamp or session.start_time,
                status="deferred" if deferred else "open",
            )
        )

    return questions


def extract_all_questions(sessions: Iterable[Session]) -> list[OpenQuestion]:
    """Questions across sessions, most recent first, deduplicated by prefix."""
    collected = [q for session in sessions for q in extract_questions(session)]
    collected.sort(key=lambda q: q.timestamp, reverse=True)

    seen: set[str] = set()
    unique = []
    for question in collected:
        if question.dedup_key in seen:
            continue
        seen.add(question.dedup_key)
        unique.append(question)
    return unique


def group_questions_by_project(questions: Iterable[OpenQuestion]) -> dict[str, list[OpenQuestion]]:
    grouped: dict[str, list[OpenQuestion]] = {}
    for question in questions:
        grouped.setdefault(question.project, []).append(question)
    return grouped
