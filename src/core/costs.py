"""Cost-inefficient code patterns in code the assistant wrote.

Only the code carried by file-writing tool calls is scanned (``content``
for writes, ``new_string`` for edits). Some patterns only count when the
same snippet also contains a loop, or when it lacks a query limit.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Literal

from ..utils import PatternRule, all_matches
from .sessions import Session

CostImpact = Literal["significant", "moderate", "minor"]

MAX_COST_INSIGHTS = 5
IMPACT_ORDER = {"significant": 0, "moderate": 1, "minor": 2}
CODE_INPUT_KEYS = ("content", "new_string")

LOOP_RE = re.compile(r"for\s*\(|\.forEach|\.map\s*\(|\bfor\s+\w+(?:\s*,\s*\w+)*\s+in\b")
LIMIT_MARKER = ".limit("


@dataclass(frozen=True)
class CostPattern:
    rule: PatternRule
    category: str
    impact: CostImpact
    suggestion: str
    service: str
    in_loop: bool = False
    no_limit: bool = False


def _cost(pattern: str, description: str, flags: int = 0, **details) -> CostPattern:
    return CostPattern(rule=PatternRule.compile(pattern, description, flags), **details)


COST_PATTERNS = [
    _cost(
        r"\.doc\([^)]+\)\.get\(\)",
        "Individual Firestore reads in a loop",
        category="storage",
        impact="moderate",
        suggestion="Use getAll() for batch reads to reduce read operations",
        service="Firestore",
        in_loop=True,
    ),
    _cost(
        r"\.collection\([^)]+\)\.get\(\)",
        "Firestore collection query without limit",
        category="storage",
        impact="significant",
        suggestion="Add .limit() to prevent reading entire collections",
        service="Firestore",
        no_limit=True,
    ),
    _cost(
        r"\.set\(|\.update\(",
        "Individual Firestore writes in a loop",
        category="storage",
        impact="moderate",
        suggestion="Use batch writes or transactions for multiple writes",
        service="Firestore",
        in_loop=True,
    ),
    _cost(
        r"onSnapshot",
        "Firestore real-time listener",
        category="storage",
        impact="minor",
        suggestion=(
            "Real-time listeners incur read costs on every change. "
            "Consider polling for less frequent updates."
        ),
        service="Firestore",
    ),
    _cost(
        r"memory:\s*['\"]?(?:1|2|4|8)G",
        "High memory allocation in Cloud Run",
        flags=re.IGNORECASE,
        category="compute",
        impact="moderate",
        suggestion="Review if high memory is necessary. Lower memory = lower cost per request.",
        service="Cloud Run",
    ),
    _cost(
        r"minInstances:\s*[1-9]\d*",
        "Cloud Run minimum instances > 0",
        category="compute",
        impact="significant",
        suggestion=(
            "Minimum instances incur cost even without traffic. "
            "Use 0 for scale-to-zero unless latency is critical."
        ),
        service="Cloud Run",
    ),
    _cost(
        r"concurrency:\s*[1-9](?![0-9])",
        "Low concurrency setting in Cloud Run",
        category="compute",
        impact="moderate",
        suggestion="Higher concurrency (up to 80-250) means fewer instances needed per request volume.",
        service="Cloud Run",
    ),
    _cost(
        r"anthropic|openai|claude",
        "AI API calls in a loop",
        flags=re.IGNORECASE,
        category="api",
        impact="significant",
        suggestion="Batch prompts or use streaming to reduce API calls. Consider caching responses.",
        service="AI API",
        in_loop=True,
    ),
    _cost(
        r"max_tokens[\"']?\s*[:=]\s*\d{4,}",
        "High max_tokens for AI API calls",
        category="api",
        impact="minor",
        suggestion="Lower max_tokens when possible. You pay for generated tokens.",
        service="AI API",
    ),
    _cost(
        r"fetch\(|axios\.|http\.|requests\.(?:get|post|put|patch|delete)\(",
        "HTTP requests in a loop",
        flags=re.IGNORECASE,
        category="network",
        impact="minor",
        suggestion="Batch requests or issue them concurrently to reduce network overhead.",
        service="Network",
        in_loop=True,
    ),
    _cost(
        r"JSON\.parse|JSON\.stringify|json\.loads|json\.dumps",
        "JSON serialization in a loop",
        category="storage",
        impact="minor",
        suggestion="Parse/stringify once outside the loop if possible.",
        service="Compute",
        in_loop=True,
    ),
]


@dataclass
class CostInsight:
    category: str
    pattern: str
    impact: CostImpact
    suggestion: str
    service: str
    code_locations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _code_from_input(tool_input: dict) -> str:
    for key in CODE_INPUT_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def _applies(pattern: CostPattern, code: str) -> bool:
    if pattern.in_loop and not LOOP_RE.search(code):
        return False
    if pattern.no_limit and LIMIT_MARKER in code:
        return False
    return True


def detect_cost_patterns(sessions: Sequence[Session]) -> list[CostInsight]:
    """Report each cost pattern once, at the first project it shows up in.

    Ordered significant > moderate > minor and capped.
    """
    by_label = {pattern.rule.label: pattern for pattern in COST_PATTERNS}
    insights: dict[str, CostInsight] = {}

    for session in sessions:
        for message in session.messages:
            if message.role != "assistant":
                continue
            for call in message.tool_calls:
                code = _code_from_input(call.input)
                if not code:
                    continue
                remaining = [p.rule for p in COST_PATTERNS if p.rule.label not in insights]
                for match in all_matches(remaining, code):
                    pattern = by_label[match.label]
                    if not _applies(pattern, code):
                        continue
                    insights[match.label] = CostInsight(
                        category=pattern.category,
                        pattern=match.label,
                        impact=pattern.impact,
                        suggestion=pattern.suggestion,
                        service=pattern.service,
                        code_locations=[session.project],
                    )

    ranked = sorted(insights.values(), key=lambda insight: IMPACT_ORDER[insight.impact])
    return ranked[:MAX_COST_INSIGHTS]
