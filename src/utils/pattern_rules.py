"""Ordered regex batteries evaluated to the first match."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class PatternRule:
    """One (pattern, label) pair in an ordered battery."""

    pattern: re.Pattern[str]
    label: str

    @classmethod
    def compile(cls, pattern: str, label: str, flags: int = re.IGNORECASE) -> PatternRule:
        return cls(pattern=re.compile(pattern, flags), label=label)


@dataclass(frozen=True)
class RuleMatch:
    """Result of evaluating a battery against some text."""

    rule: PatternRule
    match: re.Match[str]

    @property
    def label(self) -> str:
        return self.rule.label

    def group(self, name: str) -> str | None:
        try:
            value = self.match.group(name)
        except IndexError:
            return None
        return value.strip() if value is not None else None


def first_match(
    rules: Iterable[PatternRule],
    text: str,
    group: str | None = None,
    min_length: int = 0,
    max_length: int | None = None,
) -> RuleMatch | None:
    """Return the first rule that matches ``text``.

    When ``group`` is given, a rule only counts if that named group was
    captured with a stripped length within ``[min_length, max_length]``;
    otherwise evaluation continues with the next rule.
    """
    for rule in rules:
        match = rule.pattern.search(text)
        if match is None:
            continue
        result = RuleMatch(rule=rule, match=match)
        if group is not None:
            captured = result.group(group)
            if not captured or len(captured) < min_length:
                continue
            if max_length is not None and len(captured) > max_length:
                continue
        return result
    return None


def all_matches(rules: Iterable[PatternRule], text: str) -> list[RuleMatch]:
    """Every rule that matches ``text``, in battery order."""
    results = []
    for rule in rules:
        match = rule.pattern.search(text)
        if match is not None:
            results.append(RuleMatch(rule=rule, match=match))
    return results


def any_match(patterns: Iterable[re.Pattern[str]], text: str) -> bool:
    """True if any compiled pattern is found in ``text``."""
    return any(pattern.search(text) for pattern in patterns)
