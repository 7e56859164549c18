"""Tests for the end-to-end signal pipeline."""

import json
from dataclasses import replace
from datetime import datetime, timedelta

from src.core.config import PulseConfig
from src.core.feedback import FeedbackEntry, FeedbackStore
from src.core.github import GitHubActivity, PostMergeComment
from src.core.sessions import SessionMessage, ToolCall
from src.core.signals import SignalCollector
from src.core.todos import TodoItem

NOW = datetime(2026, 2, 20, 12, 0)


def _collector(temp_dir, claude_dir=None):
    config = PulseConfig(claude_dir=claude_dir or temp_dir / "claude", data_dir=temp_dir / "data")
    return SignalCollector(config)


class TestSignalCollector:
    """Tests for SignalCollector.collect."""

    def test_from_log_files(self, temp_dir, mock_claude_dir):
        bundle = _collector(temp_dir, mock_claude_dir).collect()

        assert [s.session_id for s in bundle.sessions] == ["session-001"]
        assert [t.content for t in bundle.open_todos] == ["Fix typo in README"]
        assert bundle.quick_wins[0].estimated_effort == "trivial"
        assert bundle.open_questions[0].question == "How do I wire up the login endpoint?"
        assert bundle.active_projects == ["cocos-story"]
        assert "cocos-story" in bundle.project_groups
        assert bundle.unresolved_errors == ["Error: ImportError in auth module"]

    def test_explicit_sessions_and_github(self, temp_dir, make_session):
        start = NOW - timedelta(days=2)
        sessions = [
            make_session(
                "a",
                project="api",
                start=start,
                messages=["I am blocked by the API team not responding."],
                todos=["Wire up metrics"],
            ),
            make_session(
                "b",
                project="api-feature-metrics",
                start=start + timedelta(days=1),
                todos=["Wire up metrics"],
            ),
        ]
        github = GitHubActivity(
            post_merge_comments=[
                PostMergeComment(
                    id=1,
                    pr_number=2,
                    repo="acme/api",
                    body="security hole",
                    created_at=NOW,
                    severity="critical",
                )
            ]
        )

        bundle = _collector(temp_dir).collect(github=github, sessions=sessions, now=NOW)

        assert [a.category for a in bundle.action_items] == ["post_merge", "blocker", "todo"]
        assert bundle.start_here.id == "pmc-critical-1"
        assert bundle.open_todos[0].occurrence_count == 2
        assert bundle.project_groups["api"].worktrees == {"api", "api-feature-metrics"}
        assert bundle.patterns.active_projects[0].session_count == 2

    def test_gated_detectors_skipped(self, temp_dir, make_session):
        store = FeedbackStore(temp_dir / "data")
        for card_type in ("open_questions", "patterns", "challenge_insights", "cost_optimization"):
            for _ in range(5):
                store.save_feedback(
                    FeedbackEntry(
                        briefing_id="b",
                        card_type=card_type,
                        card_title=card_type,
                        rating="not_helpful",
                        timestamp=NOW,
                    )
                )
        sessions = [make_session(messages=["Why is the nightly build so slow?"])]

        bundle = _collector(temp_dir).collect(sessions=sessions, now=NOW)

        assert bundle.open_questions == []
        assert bundle.patterns is None
        assert bundle.challenges is None
        assert bundle.cost_insights == []

    def test_challenges_and_costs(self, temp_dir, make_session):
        session = replace(
            make_session(),
            errors=("SyntaxError: unexpected token", "SyntaxError: missing paren"),
            messages=(
                SessionMessage(
                    role="assistant",
                    content="",
                    tool_calls=(ToolCall(tool="Write", input={"content": "minInstances: 1"}),),
                ),
            ),
        )
        github = GitHubActivity(
            post_merge_comments=[
                PostMergeComment(id=i, pr_number=i, repo="acme/api", body="Add a test", created_at=NOW)
                for i in (1, 2)
            ]
        )

        bundle = _collector(temp_dir).collect(github=github, sessions=[session], now=NOW)
        data = bundle.to_dict()

        assert [p.description for p in bundle.challenges.patterns] == ["Test coverage"]
        assert bundle.challenges.error_patterns[0].type == "SyntaxError"
        assert [c.pattern for c in bundle.cost_insights] == ["Cloud Run minimum instances > 0"]
        assert data["challenges"]["analyzed_prs"] == 2
        assert data["cost_insights"][0]["service"] == "Cloud Run"

    def test_empty_run(self, temp_dir):
        bundle = _collector(temp_dir).collect(now=NOW)

        assert bundle.sessions == []
        assert bundle.action_items == []
        assert bundle.start_here is None

    def test_to_dict_is_json_ready(self, temp_dir, make_session):
        sessions = [make_session(todos=[TodoItem(content="Rename helper")], files=["a.py"])]

        bundle = _collector(temp_dir).collect(sessions=sessions, now=NOW)
        data = json.loads(json.dumps(bundle.to_dict()))

        assert data["generated_at"] == "2026-02-20T12:00:00"
        assert data["quick_wins"][0]["content"] == "Rename helper"
        assert data["project_groups"]["proj"]["display_name"] == "proj"
        assert data["github"]["pull_requests"] == []
