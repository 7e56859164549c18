"""One pass of the signal pipeline: logs in, ranked signals out."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from .actions import ActionItem, ActionPrioritizer
from .blockers import BlockerInfo, extract_blockers
from .challenges import ChallengeAnalysis, analyze_challenges
from .config import PulseConfig
from .costs import CostInsight, detect_cost_patterns
from .feedback import AdaptiveSelector, FeedbackStore
from .github import GitHubActivity
from .patterns import PatternAnalysis, analyze_patterns
from .questions import OpenQuestion, extract_all_questions
from .sessions import (
    Session,
    SessionParser,
    extract_active_projects,
    extract_unresolved_errors,
)
from .todos import TodoItem, aggregate_open_todos
from .worktree import ParentProjectResolver, ProjectGroup

logger = logging.getLogger(__name__)

QUESTIONS_CARD = "open_questions"
PATTERNS_CARD = "patterns"
CHALLENGES_CARD = "challenge_insights"
COSTS_CARD = "cost_optimization"


@dataclass
class SignalBundle:
    """Everything the briefing collaborators consume from one run."""

    generated_at: datetime
    sessions: list[Session] = field(default_factory=list)
    open_todos: list[TodoItem] = field(default_factory=list)
    open_questions: list[OpenQuestion] = field(default_factory=list)
    blockers: list[BlockerInfo] = field(default_factory=list)
    patterns: PatternAnalysis | None = None
    challenges: ChallengeAnalysis | None = None
    cost_insights: list[CostInsight] = field(default_factory=list)
    action_items: list[ActionItem] = field(default_factory=list)
    quick_wins: list[ActionItem] = field(default_factory=list)
    unresolved_errors: list[str] = field(default_factory=list)
    active_projects: list[str] = field(default_factory=list)
    project_groups: dict[str, ProjectGroup[Session]] = field(default_factory=dict)
    github: GitHubActivity = field(default_factory=GitHubActivity)

    @property
    def start_here(self) -> ActionItem | None:
        return next((item for item in self.action_items if item.is_start_here), None)

    def to_dict(self) -> dict:
        """JSON-ready summary; sessions are reduced to their identifying fields."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "sessions": [
                {
                    "session_id": s.session_id,
                    "project": s.project,
                    "project_path": s.project_path,
                    "start_time": s.start_time.isoformat(),
                    "end_time": s.end_time.isoformat() if s.end_time else None,
                    "duration_minutes": round(s.duration_minutes, 1),
                    "files_modified": list(s.files_modified),
                }
                for s in self.sessions
            ],
            "open_todos": [t.to_dict() for t in self.open_todos],
            "open_questions": [q.to_dict() for q in self.open_questions],
            "blockers": [b.to_dict() for b in self.blockers],
            "patterns": self.patterns.to_dict() if self.patterns else None,
            "challenges": self.challenges.to_dict() if self.challenges else None,
            "cost_insights": [c.to_dict() for c in self.cost_insights],
            "action_items": [a.to_dict() for a in self.action_items],
            "quick_wins": [q.to_dict() for q in self.quick_wins],
            "unresolved_errors": list(self.unresolved_errors),
            "active_projects": list(self.active_projects),
            "project_groups": {
                parent: {
                    "display_name": group.display_name,
                    "worktrees": sorted(group.worktrees),
                    "session_ids": [s.session_id for s in group.items],
                }
                for parent, group in self.project_groups.items()
            },
            "github": self.github.model_dump(mode="json"),
        }


class SignalCollector:
    """Runs parsing, detection and prioritization against one configuration."""

    def __init__(
        self,
        config: PulseConfig,
        resolver: ParentProjectResolver | None = None,
        store: FeedbackStore | None = None,
    ):
        self.config = config
        self.resolver = resolver or ParentProjectResolver()
        self.store = store or FeedbackStore(config.resolved_data_dir())
        self.parser = SessionParser(config.claude_dir)
        self.prioritizer = ActionPrioritizer(
            max_items=config.max_action_items,
            max_quick_wins=config.max_quick_wins,
        )

    def collect(
        self,
        github: GitHubActivity | None = None,
        sessions: Sequence[Session] | None = None,
        now: datetime | None = None,
    ) -> SignalBundle:
        """Build a signal bundle.

        ``sessions`` overrides log discovery; otherwise sessions modified in
        the last ``config.hours_back`` hours are parsed.
        """
        now = now or datetime.now()
        github = github or GitHubActivity()
        if sessions is None:
            sessions = self.parser.get_recent_sessions(self.config.hours_back, now=now)
        sessions = list(sessions)
        logger.info("Parsed %d session(s) from the last %d hour(s)", len(sessions), self.config.hours_back)

        selector = AdaptiveSelector(self.store)
        bundle = SignalBundle(generated_at=now, sessions=sessions, github=github)

        bundle.open_todos = aggregate_open_todos(sessions)
        bundle.blockers = extract_blockers(sessions)
        if selector.include(QUESTIONS_CARD):
            bundle.open_questions = extract_all_questions(sessions)
        if selector.include(PATTERNS_CARD):
            bundle.patterns = analyze_patterns(sessions, resolver=self.resolver)
        if selector.include(CHALLENGES_CARD):
            bundle.challenges = analyze_challenges(github.post_merge_comments, sessions)
        if selector.include(COSTS_CARD):
            bundle.cost_insights = detect_cost_patterns(sessions)
        logger.info(
            "Detected %d open todo(s), %d question(s), %d blocker(s), %d cost pattern(s)",
            len(bundle.open_todos),
            len(bundle.open_questions),
            len(bundle.blockers),
            len(bundle.cost_insights),
        )

        bundle.unresolved_errors = extract_unresolved_errors(sessions)
        bundle.active_projects = extract_active_projects(sessions)
        bundle.project_groups = self.resolver.group(sessions)

        bundle.action_items = self.prioritizer.extract_action_items(
            bundle.open_todos, bundle.blockers, github
        )
        bundle.quick_wins = self.prioritizer.extract_quick_wins(bundle.open_todos, github)
        logger.info(
            "Ranked %d action item(s) and %d quick win(s)",
            len(bundle.action_items),
            len(bundle.quick_wins),
        )
        return bundle
