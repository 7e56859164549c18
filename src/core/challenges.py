"""Recurring review feedback and session errors.

Post-merge comments are tagged with every issue theme they mention and a
coarse category; session error lines are bucketed into error types. Only
themes and error types seen at least twice are reported.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Literal

from ..utils import PatternRule, all_matches, first_match
from .github import PostMergeComment
from .sessions import Session

ChallengeCategory = Literal["bug", "security", "performance", "style", "architecture"]

MAX_CHALLENGE_PATTERNS = 10
MAX_ERROR_PATTERNS = 5
MAX_EXAMPLES = 3
MIN_OCCURRENCES = 2
COMMENT_EXAMPLE_LENGTH = 150
ERROR_EXAMPLE_LENGTH = 200
DEFAULT_CATEGORY: ChallengeCategory = "style"
OTHER_ERROR = "Other error"


def _keywords(*words: str) -> str:
    return "|".join(re.escape(word) for word in words)


# First category with any keyword present wins; keywords match as substrings.
CATEGORY_RULES = [
    PatternRule.compile(
        _keywords(
            "bug", "broken", "crash", "error", "fail", "wrong", "incorrect",
            "undefined", "null", "exception", "race condition", "memory leak",
        ),
        "bug",
    ),
    PatternRule.compile(
        _keywords(
            "security", "vulnerability", "injection", "xss", "csrf", "auth",
            "permission", "escape", "sanitize", "secret", "credential", "token",
        ),
        "security",
    ),
    PatternRule.compile(
        _keywords(
            "performance", "slow", "optimize", "cache", "memory", "n+1",
            "inefficient", "bottleneck", "latency", "timeout", "blocking",
        ),
        "performance",
    ),
    PatternRule.compile(
        _keywords(
            "style", "naming", "convention", "format", "lint", "typo",
            "spelling", "readability", "clarity", "comment", "documentation",
        ),
        "style",
    ),
    PatternRule.compile(
        _keywords(
            "architecture", "design", "pattern", "coupling", "abstraction",
            "refactor", "structure", "separation", "responsibility", "solid",
        ),
        "architecture",
    ),
]

# Every matching theme is counted for a comment.
ISSUE_RULES = [
    PatternRule.compile(r"null|undefined|optional chaining|\?\.", "Null/undefined handling"),
    PatternRule.compile(r"error handling|try.?catch|exception", "Error handling"),
    PatternRule.compile(r"test|coverage|spec|unit test", "Test coverage"),
    PatternRule.compile(r"edge case|corner case|boundary", "Edge case handling"),
    PatternRule.compile(r"validation|validate|check|verify", "Input validation"),
    PatternRule.compile(r"type|typing|typescript|any type", "Type safety"),
    PatternRule.compile(r"async|await|promise|callback", "Async handling"),
    PatternRule.compile(r"log|logging|debug|trace", "Logging"),
    PatternRule.compile(r"doc|comment|jsdoc|readme", "Documentation"),
    PatternRule.compile(r"magic number|hardcod|constant", "Magic values"),
]

ERROR_RULES = [
    PatternRule.compile(r"typeerror|cannot read prop", "TypeError (null/undefined access)"),
    PatternRule.compile(r"syntaxerror", "SyntaxError"),
    PatternRule.compile(r"referenceerror", "ReferenceError (undefined variable)"),
    PatternRule.compile(r"timeout|timed out", "Timeout (async operations)"),
    PatternRule.compile(r"enoent|no such file", "File not found"),
    PatternRule.compile(r"econnrefused|network", "Network/connection error"),
    PatternRule.compile(r"permission|eacces", "Permission error"),
    PatternRule.compile(r"assertion|expect", "Test assertion failure"),
    PatternRule.compile(r"^(?=.*ts)(?=.*error)", "TypeScript type error", re.IGNORECASE | re.DOTALL),
    PatternRule.compile(r"eslint|lint", "Lint error"),
]


@dataclass
class ChallengePattern:
    category: ChallengeCategory
    description: str
    occurrences: int
    examples: list[str] = field(default_factory=list)


@dataclass
class ErrorPattern:
    type: str
    count: int
    examples: list[str] = field(default_factory=list)


@dataclass
class ChallengeAnalysis:
    patterns: list[ChallengePattern] = field(default_factory=list)
    error_patterns: list[ErrorPattern] = field(default_factory=list)
    analyzed_prs: int = 0
    analyzed_sessions: int = 0

    @property
    def has_data(self) -> bool:
        """Enough signal for a challenge card: one theme or two error types."""
        return len(self.patterns) >= 1 or len(self.error_patterns) >= 2

    def to_dict(self) -> dict:
        return asdict(self)


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def detect_comment_category(text: str) -> ChallengeCategory:
    result = first_match(CATEGORY_RULES, text)
    return result.label if result else DEFAULT_CATEGORY


def categorize_error(error: str) -> str:
    result = first_match(ERROR_RULES, error)
    return result.label if result else OTHER_ERROR


def analyze_challenges(
    comments: Sequence[PostMergeComment],
    sessions: Sequence[Session],
) -> ChallengeAnalysis:
    """Find review themes and error types that keep coming back.

    A theme takes the category of its first example. Themes are ranked by
    occurrence count (ties keep first-seen order) before the minimum
    occurrence filter is applied.
    """
    analysis = ChallengeAnalysis(analyzed_sessions=len(sessions))

    reviewed_prs: set[str] = set()
    theme_counts: Counter[str] = Counter()
    theme_examples: dict[str, list[tuple[ChallengeCategory, str]]] = {}
    for comment in comments:
        pr_ref = f"{comment.repo}#{comment.pr_number}"
        reviewed_prs.add(pr_ref)
        category = detect_comment_category(comment.body)
        for match in all_matches(ISSUE_RULES, comment.body):
            theme_counts[match.label] += 1
            examples = theme_examples.setdefault(match.label, [])
            if len(examples) < MAX_EXAMPLES:
                text = _truncate(comment.body, COMMENT_EXAMPLE_LENGTH)
                examples.append((category, f'{pr_ref}: "{text}"'))
    analysis.analyzed_prs = len(reviewed_prs)

    for description, count in theme_counts.most_common(MAX_CHALLENGE_PATTERNS):
        if count < MIN_OCCURRENCES:
            continue
        examples = theme_examples[description]
        analysis.patterns.append(
            ChallengePattern(
                category=examples[0][0],
                description=description,
                occurrences=count,
                examples=[text for _, text in examples],
            )
        )

    error_counts: Counter[str] = Counter()
    error_examples: dict[str, list[str]] = {}
    for session in sessions:
        for error in session.errors:
            error_type = categorize_error(error)
            error_counts[error_type] += 1
            examples = error_examples.setdefault(error_type, [])
            if len(examples) < MAX_EXAMPLES:
                examples.append(_truncate(error, ERROR_EXAMPLE_LENGTH))

    for error_type, count in error_counts.most_common(MAX_ERROR_PATTERNS):
        if count >= MIN_OCCURRENCES:
            analysis.error_patterns.append(
                ErrorPattern(type=error_type, count=count, examples=error_examples[error_type])
            )

    return analysis
