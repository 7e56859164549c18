"""Shared utilities for devpulse."""

from .datetime_utils import parse_iso, to_naive, whole_days_between
from .jsonl_parser import JSONLEntry, JSONLParser
from .pattern_rules import PatternRule, RuleMatch, all_matches, any_match, first_match

__all__ = [
    "JSONLEntry",
    "JSONLParser",
    "PatternRule",
    "RuleMatch",
    "all_matches",
    "any_match",
    "first_match",
    "parse_iso",
    "to_naive",
    "whole_days_between",
]
