"""Tests for todo models and cross-session aggregation."""

from datetime import datetime, timedelta

from src.core.todos import TodoItem, aggregate_open_todos, recurring_todos


class TestTodoItem:
    """Tests for TodoItem."""

    def test_from_dict(self):
        """Snapshot entries map onto TodoItem fields."""
        item = TodoItem.from_dict(
            {"content": "Add unit tests", "status": "in_progress", "activeForm": "Adding unit tests"}
        )

        assert item.content == "Add unit tests"
        assert item.is_in_progress
        assert item.active_form == "Adding unit tests"

    def test_unknown_status_defaults_to_pending(self):
        """Unrecognized statuses are treated as pending."""
        item = TodoItem.from_dict({"content": "x", "status": "blocked"})

        assert item.is_pending

    def test_to_dict(self):
        item = TodoItem(content="x", first_seen=datetime(2026, 2, 10, 9, 0))

        data = item.to_dict()

        assert data["first_seen"] == "2026-02-10T09:00:00"
        assert data["occurrence_count"] == 1


class TestAggregateOpenTodos:
    """Tests for aggregate_open_todos."""

    def test_counts_occurrences_and_unions_files(self, make_session):
        """A todo open in k sessions has count k and the union of their files."""
        start = datetime(2026, 2, 10, 9, 0)
        sessions = [
            make_session("s1", start=start, todos=["Write docs"], files=["a.py", "b.py"]),
            make_session("s2", start=start + timedelta(days=1), todos=["Write docs"], files=["b.py", "c.py"]),
            make_session("s3", start=start + timedelta(days=2), todos=["Write docs"], files=["d.py"]),
        ]

        [todo] = aggregate_open_todos(sessions)

        assert todo.occurrence_count == 3
        assert todo.related_files == ["a.py", "b.py", "c.py", "d.py"]
        assert todo.first_seen == start
        assert todo.last_seen == start + timedelta(days=2, minutes=30)
        assert todo.session_id == "s1"

    def test_completed_todos_excluded(self, make_session):
        """Completed todos are never aggregated."""
        session = make_session(todos=[TodoItem(content="Done thing", status="completed"), "Open thing"])

        todos = aggregate_open_todos([session])

        assert [t.content for t in todos] == ["Open thing"]

    def test_sorted_by_occurrence(self, make_session):
        """Recurring todos sort ahead of newer one-off todos."""
        start = datetime(2026, 2, 10)
        sessions = [
            make_session("s1", start=start, todos=["Recurring"]),
            make_session("s2", start=start + timedelta(days=1), todos=["Recurring"]),
            make_session("s3", start=start + timedelta(days=2), todos=["Fresh"]),
        ]

        todos = aggregate_open_todos(sessions)

        assert [t.content for t in todos] == ["Recurring", "Fresh"]
        assert [t.content for t in recurring_todos(todos)] == ["Recurring"]

    def test_exact_match_only(self, make_session):
        """Near-duplicate phrasing does not merge."""
        sessions = [
            make_session("s1", todos=["Fix the build"]),
            make_session("s2", todos=["fix the build."]),
        ]

        assert len(aggregate_open_todos(sessions)) == 2

    def test_status_follows_latest_occurrence(self, make_session):
        """The most recent occurrence decides the status."""
        start = datetime(2026, 2, 10)
        sessions = [
            make_session("s1", start=start, todos=[TodoItem(content="Ship", status="pending")]),
            make_session(
                "s2",
                start=start + timedelta(days=1),
                todos=[TodoItem(content="Ship", status="in_progress")],
            ),
        ]

        [todo] = aggregate_open_todos(sessions)

        assert todo.status == "in_progress"

    def test_duplicate_within_session_counted_once(self, make_session):
        """A snapshot repeating a todo still counts one occurrence."""
        session = make_session(todos=["Same", "Same"])

        [todo] = aggregate_open_todos([session])

        assert todo.occurrence_count == 1

    def test_source_items_not_mutated(self, make_session):
        """Aggregation works on copies of the session's todo items."""
        item = TodoItem(content="Keep me")
        sessions = [make_session("s1", todos=[item]), make_session("s2", todos=[item])]

        aggregate_open_todos(sessions)

        assert item.occurrence_count == 1
        assert item.session_id is None
