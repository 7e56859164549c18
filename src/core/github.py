"""Pre-fetched GitHub activity and its heuristic classification.

Activity arrives as JSON produced by an external fetcher. Field names are
accepted in either snake_case or the fetcher's camelCase. Classification
fields (PR urgency, comment severity) are filled in only where the input
leaves them empty.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..utils import PatternRule, any_match, first_match, to_naive, whole_days_between

logger = logging.getLogger(__name__)

PRState = Literal["open", "closed", "merged"]
PRUrgency = Literal["low", "medium", "high", "critical"]
CommentSeverity = Literal["critical", "suggestion", "question", "info"]

CRITICAL_COMMENT_RULES = [
    PatternRule.compile(r"security|vulnerability|exploit|injection|xss|csrf", "security"),
    PatternRule.compile(r"\bbug\b|broken|crash|fail(?:s|ed|ing)?|exception", "bug"),
    PatternRule.compile(r"breaking change|regression|reverted", "breaking change"),
    PatternRule.compile(r"urgent|asap|critical|blocker", "urgent"),
]

SUGGESTION_PATTERNS = [
    re.compile(r"suggest|consider|might want|could also|alternative", re.IGNORECASE),
    re.compile(r"nit:?|minor:?|style:?|formatting", re.IGNORECASE),
    re.compile(r"future|later|follow-up|next time", re.IGNORECASE),
    re.compile(r"\bimo\b|\bfyi\b|for your information", re.IGNORECASE),
]

MAX_QUESTION_COMMENT_LENGTH = 500


class _ActivityModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GitHubCommit(_ActivityModel):
    sha: str
    message: str = ""
    author: str = ""
    date: datetime
    repo: str
    files_changed: int = 0
    additions: int = 0
    deletions: int = 0

    @field_validator("date")
    @classmethod
    def strip_timezone(cls, value: datetime) -> datetime:
        return to_naive(value)


class GitHubPR(_ActivityModel):
    number: int
    title: str
    state: PRState = "open"
    repo: str
    created_at: datetime
    updated_at: datetime
    merged_at: datetime | None = None
    review_comments: int = Field(default=0, ge=0)
    is_draft: bool = False
    url: str | None = None

    # Derived, filled by calculate_pr_urgency when absent
    age_in_days: int | None = None
    urgency: PRUrgency | None = None
    is_review_requested: bool = False
    review_age_in_days: int | None = None

    @field_validator("created_at", "updated_at", "merged_at")
    @classmethod
    def strip_timezone(cls, value: datetime | None) -> datetime | None:
        return to_naive(value) if value is not None else None

    @property
    def html_url(self) -> str:
        return self.url or f"https://github.com/{self.repo}/pull/{self.number}"


class PostMergeComment(_ActivityModel):
    """Feedback left on a pull request after it was merged."""

    id: int
    pr_number: int
    pr_title: str = ""
    repo: str
    author: str = ""
    body: str = ""
    created_at: datetime
    merged_at: datetime | None = None
    url: str | None = None
    is_review_comment: bool = False
    path: str | None = None
    line: int | None = None

    # Derived, filled by classify_comment_severity when absent
    severity: CommentSeverity | None = None
    severity_reason: str | None = None
    requires_follow_up: bool | None = None
    suggested_action: str | None = None

    @field_validator("created_at", "merged_at")
    @classmethod
    def strip_timezone(cls, value: datetime | None) -> datetime | None:
        return to_naive(value) if value is not None else None


class GitHubActivity(_ActivityModel):
    commits: list[GitHubCommit] = Field(default_factory=list)
    pull_requests: list[GitHubPR] = Field(default_factory=list)
    stale_branches: list[str] = Field(default_factory=list)
    post_merge_comments: list[PostMergeComment] = Field(default_factory=list)

    def classify(self, now: datetime | None = None) -> GitHubActivity:
        """Fill in missing urgency and severity fields in place."""
        now = now or datetime.now()
        for pr in self.pull_requests:
            calculate_pr_urgency(pr, now=now)
        for comment in self.post_merge_comments:
            if comment.severity is None:
                result = classify_comment_severity(comment.body)
                comment.severity = result.severity
                comment.severity_reason = comment.severity_reason or result.reason
                if comment.requires_follow_up is None:
                    comment.requires_follow_up = result.requires_follow_up
                comment.suggested_action = comment.suggested_action or result.suggested_action
        return self

    @property
    def review_requests(self) -> list[GitHubPR]:
        return [pr for pr in self.pull_requests if pr.is_review_requested]

    def comments_with_severity(self, severity: CommentSeverity) -> list[PostMergeComment]:
        return [c for c in self.post_merge_comments if c.severity == severity]


@dataclass(frozen=True)
class SeverityResult:
    severity: CommentSeverity
    reason: str
    requires_follow_up: bool
    suggested_action: str | None = None


def classify_comment_severity(body: str) -> SeverityResult:
    """Heuristic severity of a post-merge comment body."""
    critical = first_match(CRITICAL_COMMENT_RULES, body)
    if critical is not None:
        return SeverityResult(
            severity="critical",
            reason=f"Contains {critical.label} indicator",
            requires_follow_up=True,
            suggested_action="Create hotfix or issue immediately",
        )

    if "?" in body and len(body) < MAX_QUESTION_COMMENT_LENGTH:
        return SeverityResult(
            severity="question",
            reason="Contains question requiring response",
            requires_follow_up=True,
            suggested_action="Reply to comment",
        )

    if any_match(SUGGESTION_PATTERNS, body):
        return SeverityResult(
            severity="suggestion",
            reason="Contains improvement suggestion",
            requires_follow_up=False,
            suggested_action="Add to backlog for consideration",
        )

    return SeverityResult(severity="info", reason="General feedback", requires_follow_up=False)


def calculate_pr_urgency(pr: GitHubPR, now: datetime | None = None) -> GitHubPR:
    """Fill age, urgency and review wait on ``pr`` where missing.

    Urgency grows with age and review activity. Review wait uses the last
    update as a proxy for when the review was requested.
    """
    now = now or datetime.now()
    if pr.age_in_days is None:
        pr.age_in_days = whole_days_between(now, pr.created_at)

    if pr.urgency is None:
        if pr.age_in_days > 14 or pr.review_comments > 5:
            pr.urgency = "critical"
        elif pr.age_in_days > 7 or pr.review_comments > 2:
            pr.urgency = "high"
        elif pr.age_in_days > 3:
            pr.urgency = "medium"
        else:
            pr.urgency = "low"

    if pr.is_review_requested and pr.review_age_in_days is None:
        pr.review_age_in_days = whole_days_between(now, pr.updated_at)
    return pr


def load_github_activity(path: Path, now: datetime | None = None) -> GitHubActivity:
    """Load and classify a pre-fetched activity file.

    A missing file is an empty activity. Invalid JSON raises ValueError and
    a structurally invalid document raises pydantic's ValidationError.
    """
    if not path.exists():
        logger.debug("No GitHub activity at %s", path)
        return GitHubActivity()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid GitHub activity JSON in {path}: {e}") from e

    activity = GitHubActivity.model_validate(data)
    logger.debug(
        "Loaded %d PR(s) and %d post-merge comment(s) from %s",
        len(activity.pull_requests),
        len(activity.post_merge_comments),
        path,
    )
    return activity.classify(now=now)
