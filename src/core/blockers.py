"""Blocker detection: work stalled on something outside the session."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from ..utils import PatternRule, first_match
from .sessions import Session

BlockerKind = Literal["blocked_by", "waiting_on"]

# Evaluated in order; the first rule with a usable capture wins.
BLOCKER_RULES = [
    # Explicit blocking statements
    PatternRule.compile(r"blocked by (?P<match>.+?)(?:\.|,|$)", "blocked_by"),
    PatternRule.compile(r"blocking on (?P<match>.+?)(?:\.|,|$)", "blocked_by"),
    PatternRule.compile(r"stuck on (?P<match>.+?)(?:\.|,|$)", "blocked_by"),
    PatternRule.compile(r"can'?t proceed (?:until|without) (?P<match>.+?)(?:\.|,|$)", "blocked_by"),
    # Waiting
    PatternRule.compile(r"waiting (?:on|for) (?P<match>.+?)(?:\.|,|$)", "waiting_on"),
    PatternRule.compile(r"depends on (?P<match>.+?)(?:\.|,|$)", "waiting_on"),
    PatternRule.compile(r"need(?:s|ing)? (?P<match>.+?) (?:to continue|before|first)", "waiting_on"),
    PatternRule.compile(r"pending (?P<match>.+?) (?:review|approval|response)", "waiting_on"),
    # External dependencies
    PatternRule.compile(
        r"waiting for (?P<match>(?:api|team|review|approval|merge).+?)(?:\.|,|$)", "waiting_on"
    ),
    PatternRule.compile(r"(?P<match>pr #?\d+) (?:needs|requires|is blocking)", "blocked_by"),
]

MIN_MESSAGE_LENGTH = 20
MIN_SUBJECT_LENGTH = 3
MAX_SUBJECT_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 200
DEDUP_PREFIX_LENGTH = 50


@dataclass
class BlockerInfo:
    """Something the user said is blocking or delaying their work."""

    description: str
    project: str
    session_id: str
    detected_at: datetime
    blocked_by: str | None = None
    waiting_on: str | None = None

    @property
    def subject(self) -> str:
        return self.blocked_by or self.waiting_on or "unknown"

    @property
    def dedup_key(self) -> str:
        return self.description[:DEDUP_PREFIX_LENGTH].lower()

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "project": self.project,
            "session_id": self.session_id,
            "blocked_by": self.blocked_by,
            "waiting_on": self.waiting_on,
            "detected_at": self.detected_at.isoformat(),
        }


def extract_session_blockers(session: Session) -> list[BlockerInfo]:
    """At most one blocker per user message."""
    blockers = []
    for message in session.user_messages:
        if len(message.content) < MIN_MESSAGE_LENGTH:
            continue

        result = first_match(
            BLOCKER_RULES,
            message.content,
            group="match",
            min_length=MIN_SUBJECT_LENGTH,
            max_length=MAX_SUBJECT_LENGTH,
        )
        if result is None:
            continue

        subject = result.group("match")
        blockers.append(
            BlockerInfo(
                description=message.content[:MAX_DESCRIPTION_LENGTH],
                project=session.project,
                session_id=session.session_id,
                detected_at=message.timestamp or session.start_time,
                blocked_by=subject if result.label == "blocked_by" else None,
                waiting_on=subject if result.label == "waiting_on" else None,
            )
        )
    return blockers


def extract_blockers(sessions: Iterable[Session]) -> list[BlockerInfo]:
    """Blockers across sessions, most recent first, deduplicated by description prefix."""
    collected = [b for session in sessions for b in extract_session_blockers(session)]
    collected.sort(key=lambda b: b.detected_at, reverse=True)

    seen: set[str] = set()
    unique = []
    for blocker in collected:
        if blocker.dedup_key in seen:
            continue
        seen.add(blocker.dedup_key)
        unique.append(blocker)
    return unique


def group_blockers_by_source(blockers: Iterable[BlockerInfo]) -> dict[str, list[BlockerInfo]]:
    grouped: dict[str, list[BlockerInfo]] = {}
    for blocker in blockers:
        grouped.setdefault(blocker.subject, []).append(blocker)
    return grouped
