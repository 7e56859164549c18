"""Tests for the feedback store and adaptive selector."""

import json
from datetime import datetime, timedelta

from src.core.feedback import (
    AdaptiveSelector,
    BriefingCard,
    FeedbackEntry,
    FeedbackStore,
    TopicPriority,
    compute_feedback_stats,
)

NOW = datetime(2026, 2, 20, 12, 0)


def _entry(rating, card_type="learning", title="Rust lifetimes", when=NOW, briefing_id="b1"):
    return FeedbackEntry(
        briefing_id=briefing_id,
        card_type=card_type,
        card_title=title,
        rating=rating,
        timestamp=when,
    )


def _record(store, ratings, **kwargs):
    for rating in ratings:
        store.save_feedback(_entry(rating, **kwargs))


class TestFeedbackLog:
    """Tests for feedback persistence."""

    def test_append_and_load(self, temp_dir):
        store = FeedbackStore(temp_dir / "data")

        assert store.save_feedback(_entry("helpful"))
        assert store.save_feedback(_entry("snoozed"))

        entries = store.load_feedback()
        assert [e.rating for e in entries] == ["helpful", "snoozed"]
        assert entries[0].timestamp == NOW

    def test_missing_log_is_empty(self, temp_dir):
        assert FeedbackStore(temp_dir).load_feedback() == []

    def test_corrupt_lines_skipped(self, temp_dir):
        store = FeedbackStore(temp_dir)
        store.save_feedback(_entry("helpful"))
        with open(store.feedback_path, "a") as f:
            f.write("{broken\n")
            f.write(json.dumps({"rating": "meh", "timestamp": NOW.isoformat()}) + "\n")
        store.save_feedback(_entry("not_helpful"))

        assert [e.rating for e in store.load_feedback()] == ["helpful", "not_helpful"]

    def test_camel_case_records(self, temp_dir):
        store = FeedbackStore(temp_dir)
        store.feedback_path.write_text(
            json.dumps(
                {
                    "briefingId": "b9",
                    "cardType": "patterns",
                    "cardTitle": "Habits",
                    "rating": "helpful",
                    "timestamp": "2026-02-19T08:00:00.000Z",
                }
            )
            + "\n"
        )

        [entry] = store.load_feedback()

        assert entry.briefing_id == "b9"
        assert entry.card_type == "patterns"


class TestComputeFeedbackStats:
    """Tests for stats aggregation."""

    def test_counts(self):
        entries = [
            _entry("helpful"),
            _entry("not_helpful", title="RUST LIFETIMES"),
            _entry("snoozed"),
            _entry("helpful", card_type="patterns", title="Habits"),
        ]

        stats = compute_feedback_stats(entries, now=NOW)

        assert stats.total_feedback == 4
        learning = stats.by_card_type["learning"]
        assert (learning.helpful, learning.not_helpful, learning.snoozed) == (1, 1, 1)
        topic = stats.by_topic["rust lifetimes"]
        assert (topic.helpful, topic.not_helpful, topic.snoozed) == (1, 1, 0)

    def test_trend_improving(self):
        entries = [
            _entry("not_helpful", when=NOW - timedelta(days=10)),
            _entry("helpful", when=NOW - timedelta(days=1)),
        ]

        assert compute_feedback_stats(entries, now=NOW).recent_trend == "improving"

    def test_trend_declining(self):
        entries = [
            _entry("helpful", when=NOW - timedelta(days=10)),
            _entry("not_helpful", when=NOW - timedelta(days=1)),
        ]

        assert compute_feedback_stats(entries, now=NOW).recent_trend == "declining"

    def test_trend_deadband(self):
        entries = [_entry("helpful", when=NOW - timedelta(days=10))] * 10 + [
            _entry("helpful", when=NOW - timedelta(days=1))
        ] * 19 + [_entry("not_helpful", when=NOW - timedelta(days=1))]

        assert compute_feedback_stats(entries, now=NOW).recent_trend == "stable"


class TestInclusionGate:
    """Tests for should_include_card_type."""

    def test_few_ratings_always_included(self, temp_dir):
        store = FeedbackStore(temp_dir)
        _record(store, ["not_helpful"] * 4)

        assert store.should_include_card_type("learning") is True

    def test_unhelpful_excluded(self, temp_dir):
        store = FeedbackStore(temp_dir)
        _record(store, ["helpful"] + ["not_helpful"] * 4)

        assert store.should_include_card_type("learning") is False

    def test_snoozes_do_not_count(self, temp_dir):
        store = FeedbackStore(temp_dir)
        _record(store, ["not_helpful"] * 4 + ["snoozed"] * 6)

        assert store.should_include_card_type("learning") is True

    def test_helpful_enough_included(self, temp_dir):
        store = FeedbackStore(temp_dir)
        _record(store, ["helpful"] * 2 + ["not_helpful"] * 3)

        assert store.should_include_card_type("learning") is True

    def test_unknown_type_included(self, temp_dir):
        assert FeedbackStore(temp_dir).should_include_card_type("weekly_summary") is True


class TestTopicPriorities:
    """Tests for topic priority storage and derivation."""

    def test_default_normal(self, temp_dir):
        assert FeedbackStore(temp_dir).get_topic_priority("anything") == "normal"

    def test_update_case_insensitive(self, temp_dir):
        store = FeedbackStore(temp_dir)

        store.update_topic_priority("Rust", "high")
        store.update_topic_priority("rust", "ignored")

        assert store.get_topic_priority("RUST") == "ignored"
        assert len(store.load_priorities()) == 1

    def test_derive_low_and_high(self, temp_dir):
        store = FeedbackStore(temp_dir)
        _record(store, ["not_helpful"] * 3, title="Noise")
        _record(store, ["helpful"] * 3, title="Signal")
        _record(store, ["helpful", "not_helpful"], title="Unclear")

        changed = store.derive_priorities_from_feedback(now=NOW)

        assert {p.topic for p in changed} == {"noise", "signal"}
        assert store.get_topic_priority("Noise") == "low"
        assert store.get_topic_priority("Signal") == "high"
        assert store.get_topic_priority("Unclear") == "normal"

    def test_user_set_never_overwritten(self, temp_dir):
        store = FeedbackStore(temp_dir)
        store.update_topic_priority("Noise", "high", reason="user_set")
        _record(store, ["not_helpful"] * 5, title="Noise")

        store.derive_priorities_from_feedback(now=NOW)

        assert store.get_topic_priority("noise") == "high"
        [priority] = store.load_priorities()
        assert priority.reason == "user_set"

    def test_feedback_derived_refused_directly(self, temp_dir):
        store = FeedbackStore(temp_dir)
        store.update_topic_priority("Noise", "high")

        assert store.update_topic_priority("Noise", "low", reason="feedback_derived") is False

    def test_corrupt_priorities_read_as_empty(self, temp_dir):
        store = FeedbackStore(temp_dir)
        store.priorities_path.write_text("not json")

        assert store.load_priorities() == []
        assert store.get_topic_priority("x") == "normal"

    def test_save_priorities(self, temp_dir):
        store = FeedbackStore(temp_dir)

        store.save_priorities([TopicPriority(topic="a", priority="low", last_updated=NOW)])

        [loaded] = store.load_priorities()
        assert (loaded.topic, loaded.priority, loaded.last_updated) == ("a", "low", NOW)


class TestRecordBriefingFeedback:
    """Tests for recording a whole briefing's ratings."""

    def test_maps_indexes_to_cards(self, temp_dir):
        store = FeedbackStore(temp_dir)
        cards = [
            BriefingCard(type="learning", title="Async Rust"),
            BriefingCard(type="patterns", title="Habits", metadata={"k": 1}),
        ]

        written = store.record_briefing_feedback(
            "b1", cards, {"0": "helpful", 1: "not_helpful", 5: "helpful"}, submitted_at=NOW
        )

        assert written == 2
        entries = store.load_feedback()
        assert [(e.card_title, e.rating) for e in entries] == [
            ("Async Rust", "helpful"),
            ("Habits", "not_helpful"),
        ]
        assert entries[1].metadata == {"k": 1}

    def test_derives_priorities(self, temp_dir):
        store = FeedbackStore(temp_dir)
        cards = [BriefingCard(type="learning", title="Noise")]

        for i in range(3):
            store.record_briefing_feedback(f"b{i}", cards, {0: "not_helpful"}, submitted_at=NOW)

        assert store.get_topic_priority("noise") == "low"


class TestAdaptiveSelector:
    """Tests for card selection and ordering."""

    def test_select_card_types(self, temp_dir):
        store = FeedbackStore(temp_dir)
        _record(store, ["not_helpful"] * 5, card_type="patterns")

        selected = AdaptiveSelector(store).select_card_types(["patterns", "open_questions"])

        assert selected == ["open_questions"]

    def test_order_cards(self, temp_dir):
        store = FeedbackStore(temp_dir)
        store.update_topic_priority("Low one", "low")
        store.update_topic_priority("Top one", "high")
        store.update_topic_priority("Hidden", "ignored")
        cards = [
            BriefingCard(type="learning", title="Low one", priority=1),
            BriefingCard(type="learning", title="Plain B", priority=2),
            BriefingCard(type="learning", title="Hidden", priority=0),
            BriefingCard(type="learning", title="Plain A", priority=1),
            BriefingCard(type="learning", title="Top one", priority=9),
        ]

        ordered = AdaptiveSelector(store).order_cards(cards)

        assert [c.title for c in ordered] == ["Top one", "Plain A", "Plain B", "Low one"]
