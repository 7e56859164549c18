"""Core signal extraction and prioritization for devpulse."""

from .actions import ActionItem, ActionPrioritizer, ActionSource, extract_action_items, extract_quick_wins
from .blockers import BlockerInfo, extract_blockers, group_blockers_by_source
from .challenges import ChallengeAnalysis, analyze_challenges
from .config import PulseConfig
from .costs import CostInsight, detect_cost_patterns
from .feedback import (
    AdaptiveSelector,
    BriefingCard,
    FeedbackEntry,
    FeedbackStats,
    FeedbackStore,
    TopicPriority,
    compute_feedback_stats,
)
from .github import (
    GitHubActivity,
    GitHubCommit,
    GitHubPR,
    PostMergeComment,
    calculate_pr_urgency,
    classify_comment_severity,
    load_github_activity,
)
from .patterns import PatternAnalysis, analyze_patterns
from .questions import OpenQuestion, extract_all_questions, group_questions_by_project
from .runtime import resolve_data_dir
from .sessions import Session, SessionMessage, SessionParser, ToolCall
from .signals import SignalBundle, SignalCollector
from .todos import TodoItem, aggregate_open_todos
from .worktree import (
    ParentProjectResolver,
    ProjectGroup,
    get_parent_project,
    group_by_parent_project,
    infer_parent_project_from_name,
)

__all__ = [
    "ActionItem",
    "ActionPrioritizer",
    "ActionSource",
    "AdaptiveSelector",
    "BlockerInfo",
    "BriefingCard",
    "ChallengeAnalysis",
    "CostInsight",
    "FeedbackEntry",
    "FeedbackStats",
    "FeedbackStore",
    "GitHubActivity",
    "GitHubCommit",
    "GitHubPR",
    "OpenQuestion",
    "ParentProjectResolver",
    "PatternAnalysis",
    "PostMergeComment",
    "ProjectGroup",
    "PulseConfig",
    "Session",
    "SessionMessage",
    "SessionParser",
    "SignalBundle",
    "SignalCollector",
    "TodoItem",
    "ToolCall",
    "TopicPriority",
    "aggregate_open_todos",
    "analyze_challenges",
    "analyze_patterns",
    "calculate_pr_urgency",
    "classify_comment_severity",
    "compute_feedback_stats",
    "detect_cost_patterns",
    "extract_action_items",
    "extract_all_questions",
    "extract_blockers",
    "extract_quick_wins",
    "get_parent_project",
    "group_blockers_by_source",
    "group_by_parent_project",
    "group_questions_by_project",
    "infer_parent_project_from_name",
    "load_github_activity",
    "resolve_data_dir",
]
