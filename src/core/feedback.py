"""Briefing feedback persistence and adaptive card selection.

Two files live in the data directory:

- ``feedback.jsonl``: one rating per line, append-only.
- ``priorities.json``: flat list of topic priorities, rewritten whole.

Appends and rewrites hold ``fcntl.LOCK_EX``; reads hold ``LOCK_SH``. A
priority update is a read-modify-write done under a single exclusive lock
so overlapping invocations cannot lose each other's changes.
"""

from __future__ import annotations

import fcntl
import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Literal

from ..utils import JSONLParser, parse_iso

logger = logging.getLogger(__name__)

CardType = Literal[
    "project_continuity",
    "code_review",
    "learning",
    "open_questions",
    "suggestions",
    "patterns",
    "weekly_summary",
    "post_merge_feedback",
    "challenge_insights",
    "cost_optimization",
]
Rating = Literal["helpful", "not_helpful", "snoozed"]
PriorityLevel = Literal["high", "normal", "low", "ignored"]
PriorityReason = Literal["user_set", "feedback_derived"]

CARD_TYPES: tuple[str, ...] = (
    "project_continuity",
    "code_review",
    "learning",
    "open_questions",
    "suggestions",
    "patterns",
    "weekly_summary",
    "post_merge_feedback",
    "challenge_insights",
    "cost_optimization",
)
RATINGS = ("helpful", "not_helpful", "snoozed")
PRIORITY_LEVELS = ("high", "normal", "low", "ignored")
PRIORITY_REASONS = ("user_set", "feedback_derived")

FEEDBACK_FILE = "feedback.jsonl"
PRIORITIES_FILE = "priorities.json"

# Card-type inclusion gate
MIN_RATINGS_FOR_EXCLUSION = 5
EXCLUSION_HELPFUL_RATE = 0.2

# Topic priority derivation
MIN_RATINGS_FOR_PRIORITY = 3
LOW_PRIORITY_RATE = 0.3
HIGH_PRIORITY_RATE = 0.8

TREND_WINDOW = timedelta(days=7)
TREND_DEADBAND = 0.1


@dataclass
class FeedbackEntry:
    """One rating of one briefing card. Never mutated once written."""

    briefing_id: str
    card_type: str
    card_title: str
    rating: Rating
    timestamp: datetime
    metadata: dict | None = None

    def to_dict(self) -> dict:
        return {
            "briefing_id": self.briefing_id,
            "card_type": self.card_type,
            "card_title": self.card_title,
            "rating": self.rating,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FeedbackEntry:
        """Build an entry from a stored record (snake_case or camelCase keys).

        Raises ValueError for records missing required fields or carrying an
        unknown rating.
        """
        rating = data.get("rating")
        if rating not in RATINGS:
            raise ValueError(f"unknown rating {rating!r}")
        timestamp = parse_iso(data.get("timestamp"))
        if timestamp is None:
            raise ValueError("missing or invalid timestamp")
        card_type = data.get("card_type", data.get("cardType"))
        card_title = data.get("card_title", data.get("cardTitle"))
        if not isinstance(card_type, str) or not isinstance(card_title, str):
            raise ValueError("missing card type or title")
        metadata = data.get("metadata")
        return cls(
            briefing_id=str(data.get("briefing_id", data.get("briefingId", ""))),
            card_type=card_type,
            card_title=card_title,
            rating=rating,
            timestamp=timestamp,
            metadata=metadata if isinstance(metadata, dict) else None,
        )


@dataclass
class RatingCounts:
    helpful: int = 0
    not_helpful: int = 0
    snoozed: int = 0

    @property
    def rated(self) -> int:
        """Helpful plus not-helpful; snoozes carry no opinion."""
        return self.helpful + self.not_helpful

    @property
    def helpful_rate(self) -> float:
        return self.helpful / self.rated if self.rated else 0.0

    def add(self, rating: str) -> None:
        if rating == "helpful":
            self.helpful += 1
        elif rating == "not_helpful":
            self.not_helpful += 1
        else:
            self.snoozed += 1


@dataclass
class FeedbackStats:
    total_feedback: int = 0
    by_card_type: dict[str, RatingCounts] = field(default_factory=dict)
    by_topic: dict[str, RatingCounts] = field(default_factory=dict)
    recent_trend: Literal["improving", "declining", "stable"] = "stable"


@dataclass
class TopicPriority:
    topic: str
    priority: PriorityLevel = "normal"
    reason: PriorityReason = "user_set"
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "priority": self.priority,
            "reason": self.reason,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> TopicPriority:
        priority = data.get("priority")
        reason = data.get("reason")
        if priority not in PRIORITY_LEVELS or reason not in PRIORITY_REASONS:
            raise ValueError(f"invalid priority record: {data!r}")
        updated = parse_iso(data.get("last_updated", data.get("lastUpdated")))
        return cls(
            topic=str(data["topic"]),
            priority=priority,
            reason=reason,
            last_updated=updated or datetime.now(),
        )


@dataclass
class BriefingCard:
    """A unit of briefing content, rated as a whole."""

    type: str
    title: str
    content: str = ""
    priority: int = 0
    metadata: dict | None = None


def _helpful_rate(entries: list[FeedbackEntry]) -> float:
    if not entries:
        return 0.0
    return sum(1 for e in entries if e.rating == "helpful") / len(entries)


def compute_feedback_stats(
    entries: Sequence[FeedbackEntry],
    now: datetime | None = None,
) -> FeedbackStats:
    """Aggregate ratings per card type and per topic (case-folded title).

    The trend compares the helpful rate of the trailing seven days with the
    seven days before that, with a ten-point deadband around "stable".
    """
    stats = FeedbackStats(total_feedback=len(entries))
    for entry in entries:
        stats.by_card_type.setdefault(entry.card_type, RatingCounts()).add(entry.rating)
        topic = stats.by_topic.setdefault(entry.card_title.lower(), RatingCounts())
        if entry.rating != "snoozed":
            topic.add(entry.rating)

    now = now or datetime.now()
    week_ago = now - TREND_WINDOW
    two_weeks_ago = week_ago - TREND_WINDOW
    recent = [e for e in entries if e.timestamp > week_ago]
    previous = [e for e in entries if two_weeks_ago < e.timestamp <= week_ago]

    recent_rate = _helpful_rate(recent)
    previous_rate = _helpful_rate(previous)
    if recent_rate > previous_rate + TREND_DEADBAND:
        stats.recent_trend = "improving"
    elif recent_rate < previous_rate - TREND_DEADBAND:
        stats.recent_trend = "declining"
    return stats


def card_type_admitted(counts: RatingCounts | None) -> bool:
    """Inclusion gate: too little data always admits the card type."""
    if counts is None or counts.rated < MIN_RATINGS_FOR_EXCLUSION:
        return True
    return counts.helpful_rate > EXCLUSION_HELPFUL_RATE


class FeedbackStore:
    """Feedback log and topic priorities in one data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.feedback_path = data_dir / FEEDBACK_FILE
        self.priorities_path = data_dir / PRIORITIES_FILE

    # Feedback log

    def save_feedback(self, entry: FeedbackEntry) -> bool:
        """Append one rating. Returns False if the write failed."""
        line = json.dumps(entry.to_dict()) + "\n"
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.feedback_path, "a", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.write(line)
                    f.flush()
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            logger.warning("Failed to save feedback: %s", e)
            return False
        return True

    def load_feedback(self) -> list[FeedbackEntry]:
        """All readable ratings in file order; corrupt lines are skipped."""
        parser = JSONLParser(self.feedback_path, shared_lock=True)
        entries = []
        try:
            for record in parser.iter_entries():
                try:
                    entries.append(FeedbackEntry.from_dict(record.data))
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug("Skipping feedback line %d: %s", record.line_number, e)
        except OSError as e:
            logger.warning("Failed to load feedback: %s", e)
            return []
        return entries

    def stats(self, now: datetime | None = None) -> FeedbackStats:
        return compute_feedback_stats(self.load_feedback(), now=now)

    def should_include_card_type(self, card_type: str) -> bool:
        return card_type_admitted(self.stats().by_card_type.get(card_type))

    def record_briefing_feedback(
        self,
        briefing_id: str,
        cards: Sequence[BriefingCard],
        ratings: Mapping[int | str, Rating],
        submitted_at: datetime | None = None,
    ) -> int:
        """Record per-card ratings keyed by card index, then re-derive priorities.

        Indexes that do not name a card are ignored. Returns the number of
        ratings written.
        """
        submitted_at = submitted_at or datetime.now()
        written = 0
        for key, rating in ratings.items():
            try:
                index = int(key)
            except (TypeError, ValueError):
                continue
            if not 0 <= index < len(cards) or rating not in RATINGS:
                continue
            card = cards[index]
            entry = FeedbackEntry(
                briefing_id=briefing_id,
                card_type=card.type,
                card_title=card.title,
                rating=rating,
                timestamp=submitted_at,
                metadata=card.metadata,
            )
            if self.save_feedback(entry):
                written += 1

        self.derive_priorities_from_feedback(now=submitted_at)
        return written

    # Topic priorities

    def load_priorities(self) -> list[TopicPriority]:
        if not self.priorities_path.exists():
            return []
        try:
            with open(self.priorities_path, encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    content = f.read()
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            logger.warning("Failed to load topic priorities: %s", e)
            return []
        return _parse_priorities(content)

    def save_priorities(self, priorities: Iterable[TopicPriority]) -> bool:
        """Replace the whole priority list."""
        replacement = list(priorities)

        def replace_all(current: list[TopicPriority]) -> bool:
            current[:] = replacement
            return True

        return self._modify_priorities(replace_all)

    def update_topic_priority(
        self,
        topic: str,
        priority: PriorityLevel,
        reason: PriorityReason = "user_set",
        now: datetime | None = None,
    ) -> bool:
        """Set one topic's priority. A user-set priority is never replaced
        by a feedback-derived one; returns False when the update was refused
        or could not be written.
        """
        changed = False

        def apply(current: list[TopicPriority]) -> bool:
            nonlocal changed
            changed = _apply_priority(current, topic, priority, reason, now or datetime.now())
            return changed

        return self._modify_priorities(apply) and changed

    def get_topic_priority(self, topic: str) -> PriorityLevel:
        lowered = topic.lower()
        for item in self.load_priorities():
            if item.topic.lower() == lowered:
                return item.priority
        return "normal"

    def derive_priorities_from_feedback(self, now: datetime | None = None) -> list[TopicPriority]:
        """Demote consistently unhelpful topics and promote helpful ones.

        Returns the priorities that were changed.
        """
        now = now or datetime.now()
        updates: list[tuple[str, PriorityLevel]] = []
        for topic, counts in self.stats(now=now).by_topic.items():
            if counts.rated < MIN_RATINGS_FOR_PRIORITY:
                continue
            if counts.helpful_rate < LOW_PRIORITY_RATE:
                updates.append((topic, "low"))
            elif counts.helpful_rate > HIGH_PRIORITY_RATE:
                updates.append((topic, "high"))

        if not updates:
            return []

        changed: list[TopicPriority] = []

        def apply(current: list[TopicPriority]) -> bool:
            for topic, level in updates:
                if _apply_priority(current, topic, level, "feedback_derived", now):
                    changed.append(_find_priority(current, topic))
            return bool(changed)

        self._modify_priorities(apply)
        if changed:
            logger.info("Derived %d topic priority change(s) from feedback", len(changed))
        return changed

    def _modify_priorities(self, mutate: Callable[[list[TopicPriority]], bool]) -> bool:
        """Read, mutate and rewrite the priority list under one exclusive lock.

        ``mutate`` returns whether anything changed; unchanged lists are not
        rewritten.
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.priorities_path, "a+", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.seek(0)
                    current = _parse_priorities(f.read())
                    if not mutate(current):
                        return True
                    f.seek(0)
                    f.truncate()
                    f.write(json.dumps([p.to_dict() for p in current], indent=2))
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            logger.warning("Failed to save topic priorities: %s", e)
            return False
        return True


def _parse_priorities(content: str) -> list[TopicPriority]:
    if not content.strip():
        return []
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring corrupt topic priorities: %s", e)
        return []
    if not isinstance(data, list):
        return []

    priorities = []
    for record in data:
        if not isinstance(record, dict):
            continue
        try:
            priorities.append(TopicPriority.from_dict(record))
        except (KeyError, ValueError) as e:
            logger.debug("Skipping topic priority record: %s", e)
    return priorities


def _find_priority(priorities: list[TopicPriority], topic: str) -> TopicPriority | None:
    lowered = topic.lower()
    for item in priorities:
        if item.topic.lower() == lowered:
            return item
    return None


def _apply_priority(
    priorities: list[TopicPriority],
    topic: str,
    priority: PriorityLevel,
    reason: PriorityReason,
    now: datetime,
) -> bool:
    existing = _find_priority(priorities, topic)
    if existing is None:
        priorities.append(TopicPriority(topic=topic, priority=priority, reason=reason, last_updated=now))
        return True
    if existing.reason == "user_set" and reason == "feedback_derived":
        return False
    if existing.priority == priority and existing.reason == reason:
        return False
    existing.priority = priority
    existing.reason = reason
    existing.last_updated = now
    return True


class AdaptiveSelector:
    """Decides which card types run and in what order topics appear."""

    PRIORITY_ORDER = {"high": 0, "normal": 1, "low": 2}

    def __init__(self, store: FeedbackStore):
        self.store = store
        self._stats: FeedbackStats | None = None

    @property
    def stats(self) -> FeedbackStats:
        if self._stats is None:
            self._stats = self.store.stats()
        return self._stats

    def include(self, card_type: str) -> bool:
        return card_type_admitted(self.stats.by_card_type.get(card_type))

    def select_card_types(self, candidates: Iterable[str] = CARD_TYPES) -> list[str]:
        candidates = list(candidates)
        selected = [card_type for card_type in candidates if self.include(card_type)]
        excluded = [card_type for card_type in candidates if card_type not in selected]
        if excluded:
            logger.info("Excluding card type(s) with poor feedback: %s", ", ".join(excluded))
        return selected

    def order_cards(self, cards: Iterable[BriefingCard]) -> list[BriefingCard]:
        """Drop ignored topics, then order high > normal > low.

        Card priority breaks ties within a level; the sort is stable.
        """
        levels = {p.topic.lower(): p.priority for p in self.store.load_priorities()}
        kept = []
        for card in cards:
            level = levels.get(card.title.lower(), "normal")
            if level == "ignored":
                continue
            kept.append((self.PRIORITY_ORDER[level], card.priority, card))
        kept.sort(key=lambda row: (row[0], row[1]))
        return [card for _, _, card in kept]
