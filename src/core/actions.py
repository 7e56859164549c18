"""Action item prioritization.

Merges heterogeneous signals into one ranked list of things to do, plus a
separate list of quick wins (tasks estimated under ~15 minutes).
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .blockers import BlockerInfo
from .github import GitHubActivity, GitHubPR, PostMergeComment
from .todos import TodoItem

ActionCategory = Literal["pr_review", "todo", "post_merge", "question", "quick_win", "blocker"]
ActionSourceType = Literal["session", "pr", "comment"]
Effort = Literal["trivial", "small", "medium", "large"]

COMPLEXITY_KEYWORDS = ("refactor", "rewrite", "implement", "create")
TRIVIAL_KEYWORDS = (
    "typo",
    "rename",
    "update comment",
    "remove unused",
    "fix lint",
    "add import",
)
MAX_QUICK_WIN_TODO_LENGTH = 100
REVIEW_BOOST_DAYS = 3

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class ActionSource:
    type: ActionSourceType
    ref: str
    project: str | None = None


@dataclass
class ActionItem:
    """One entry in the ranked action list. Lower priority is more urgent."""

    id: str
    content: str
    category: ActionCategory
    priority: int
    source: ActionSource
    is_start_here: bool = False
    estimated_effort: Effort | None = None
    deep_link: str | None = None
    context: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "category": self.category,
            "priority": self.priority,
            "source": {
                "type": self.source.type,
                "ref": self.source.ref,
                "project": self.source.project,
            },
            "is_start_here": self.is_start_here,
            "estimated_effort": self.estimated_effort,
            "deep_link": self.deep_link,
            "context": self.context,
        }


def _slug(text: str, length: int = 30) -> str:
    return _WHITESPACE_RE.sub("-", text[:length])


def _truncate(text: str, length: int) -> str:
    return text[:length] + ("..." if len(text) > length else "")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


def is_quick_win_todo(todo: TodoItem) -> bool:
    """Short todos without complexity keywords."""
    lowered = todo.content.lower()
    if any(keyword in lowered for keyword in COMPLEXITY_KEYWORDS):
        return False
    return len(todo.content) < MAX_QUICK_WIN_TODO_LENGTH


def is_trivial_todo(todo: TodoItem) -> bool:
    lowered = todo.content.lower()
    return any(keyword in lowered for keyword in TRIVIAL_KEYWORDS)


class ActionPrioritizer:
    """Ranks signals into action items and quick wins."""

    # Category priority (lower = more urgent) and per-category caps
    PRIORITIES = {
        "critical_comment": 1,
        "blocker": 2,
        "review_request_overdue": 2,
        "review_request": 3,
        "recurring_todo": 4,
        "question_comment": 5,
        "quick_win_todo": 10,
        "quick_win_suggestion": 11,
        "quick_win_own_pr": 12,
    }
    LIMITS = {
        "critical_comment": 3,
        "blocker": 3,
        "review_request": 3,
        "recurring_todo": 3,
        "question_comment": 2,
        "quick_win_todo": 5,
        "quick_win_suggestion": 3,
        "quick_win_own_pr": 2,
    }

    def __init__(self, max_items: int | None = None, max_quick_wins: int | None = None):
        self.max_items = max_items
        self.max_quick_wins = max_quick_wins

    def extract_action_items(
        self,
        open_todos: Sequence[TodoItem],
        blockers: Sequence[BlockerInfo],
        github: GitHubActivity | None = None,
    ) -> list[ActionItem]:
        """Ranked action items; the first one is flagged as Start Here."""
        github = github or GitHubActivity()
        items: list[ActionItem] = []

        critical = github.comments_with_severity("critical")[: self.LIMITS["critical_comment"]]
        items.extend(self._critical_comment_item(c) for c in critical)

        items.extend(self._blocker_item(b) for b in blockers[: self.LIMITS["blocker"]])

        reviews = sorted(
            github.review_requests,
            key=lambda pr: pr.review_age_in_days or 0,
            reverse=True,
        )
        items.extend(self._review_item(pr) for pr in reviews[: self.LIMITS["review_request"]])

        recurring = [t for t in open_todos if t.is_recurring][: self.LIMITS["recurring_todo"]]
        items.extend(self._recurring_todo_item(t) for t in recurring)

        questions = github.comments_with_severity("question")[: self.LIMITS["question_comment"]]
        items.extend(self._question_comment_item(c) for c in questions)

        items.sort(key=lambda item: item.priority)
        if self.max_items is not None:
            items = items[: self.max_items]
        if items:
            items[0].is_start_here = True
        return items

    def extract_quick_wins(
        self,
        open_todos: Sequence[TodoItem],
        github: GitHubActivity | None = None,
    ) -> list[ActionItem]:
        github = github or GitHubActivity()
        wins: list[ActionItem] = []

        small = [t for t in open_todos if is_quick_win_todo(t)][: self.LIMITS["quick_win_todo"]]
        for todo in small:
            wins.append(
                ActionItem(
                    id=f"qw-todo-{_slug(todo.content)}",
                    content=todo.content,
                    category="quick_win",
                    priority=self.PRIORITIES["quick_win_todo"],
                    source=ActionSource("session", todo.session_id or "", todo.project),
                    estimated_effort="trivial" if is_trivial_todo(todo) else "small",
                    deep_link=f"code {todo.related_files[0]}" if todo.related_files else None,
                )
            )

        suggestions = github.comments_with_severity("suggestion")[
            : self.LIMITS["quick_win_suggestion"]
        ]
        for comment in suggestions:
            wins.append(
                ActionItem(
                    id=f"qw-suggestion-{comment.id}",
                    content=f"Address suggestion: {_truncate(comment.body, 60)}",
                    category="quick_win",
                    priority=self.PRIORITIES["quick_win_suggestion"],
                    source=ActionSource("comment", str(comment.id), comment.repo),
                    estimated_effort="small",
                    deep_link=comment.url,
                )
            )

        own_prs = [
            pr for pr in github.pull_requests
            if not pr.is_review_requested and 0 < pr.review_comments < 5
        ][: self.LIMITS["quick_win_own_pr"]]
        for pr in own_prs:
            wins.append(
                ActionItem(
                    id=f"qw-pr-{pr.repo}-{pr.number}",
                    content=f"Address {_plural(pr.review_comments, 'comment')} on your PR #{pr.number}",
                    category="quick_win",
                    priority=self.PRIORITIES["quick_win_own_pr"],
                    source=ActionSource("pr", str(pr.number), pr.repo),
                    estimated_effort="small",
                    deep_link=pr.html_url,
                )
            )

        if self.max_quick_wins is not None:
            wins = wins[: self.max_quick_wins]
        return wins

    def _critical_comment_item(self, comment: PostMergeComment) -> ActionItem:
        return ActionItem(
            id=f"pmc-critical-{comment.id}",
            content=(
                f"Address critical feedback on {comment.repo}#{comment.pr_number}: "
                f"{comment.pr_title}"
            ),
            category="post_merge",
            priority=self.PRIORITIES["critical_comment"],
            source=ActionSource("comment", str(comment.id), comment.repo),
            estimated_effort="medium",
            deep_link=comment.url,
            context=comment.severity_reason or "Critical issue in production code",
        )

    def _blocker_item(self, blocker: BlockerInfo) -> ActionItem:
        if blocker.blocked_by:
            content = f"Unblock: {blocker.blocked_by}"
        else:
            content = f"Follow up: waiting on {blocker.waiting_on}"
        return ActionItem(
            id=f"blocker-{blocker.session_id}-{int(blocker.detected_at.timestamp() * 1000)}",
            content=content,
            category="blocker",
            priority=self.PRIORITIES["blocker"],
            source=ActionSource("session", blocker.session_id, blocker.project),
            estimated_effort="medium",
            context=blocker.description[:100],
        )

    def _review_item(self, pr: GitHubPR) -> ActionItem:
        waiting_days = pr.review_age_in_days or pr.age_in_days or 0
        overdue = waiting_days > REVIEW_BOOST_DAYS
        return ActionItem(
            id=f"review-{pr.repo}-{pr.number}",
            content=f"Review {pr.repo}#{pr.number}: {pr.title}",
            category="pr_review",
            priority=self.PRIORITIES["review_request_overdue" if overdue else "review_request"],
            source=ActionSource("pr", str(pr.number), pr.repo),
            estimated_effort="small",
            deep_link=pr.html_url,
            context=(
                f"Waiting {_plural(waiting_days, 'day')} for your review" if waiting_days > 0 else None
            ),
        )

    def _recurring_todo_item(self, todo: TodoItem) -> ActionItem:
        return ActionItem(
            id=f"todo-recurring-{_slug(todo.content)}",
            content=todo.content,
            category="todo",
            priority=self.PRIORITIES["recurring_todo"],
            source=ActionSource("session", todo.session_id or "", todo.project),
            estimated_effort="small",
            deep_link=f"cd {todo.project_path}" if todo.project_path else None,
            context=f"Appeared {todo.occurrence_count} times across sessions",
        )

    def _question_comment_item(self, comment: PostMergeComment) -> ActionItem:
        return ActionItem(
            id=f"pmc-question-{comment.id}",
            content=f"Reply to question on {comment.repo}#{comment.pr_number}",
            category="question",
            priority=self.PRIORITIES["question_comment"],
            source=ActionSource("comment", str(comment.id), comment.repo),
            estimated_effort="trivial",
            deep_link=comment.url,
            context=_truncate(comment.body, 80),
        )


def extract_action_items(
    open_todos: Sequence[TodoItem],
    blockers: Sequence[BlockerInfo],
    github: GitHubActivity | None = None,
) -> list[ActionItem]:
    return ActionPrioritizer().extract_action_items(open_todos, blockers, github)


def extract_quick_wins(
    open_todos: Sequence[TodoItem],
    github: GitHubActivity | None = None,
) -> list[ActionItem]:
    return ActionPrioritizer().extract_quick_wins(open_todos, github)
