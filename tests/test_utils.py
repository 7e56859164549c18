"""Tests for shared utilities."""

import re
from datetime import datetime, timedelta, timezone

from src.utils import (
    JSONLParser,
    PatternRule,
    any_match,
    first_match,
    parse_iso,
    whole_days_between,
)


class TestJSONLParser:
    """Tests for the JSONL reader."""

    def test_skips_bad_lines(self, temp_dir, write_log):
        path = write_log(
            temp_dir / "log.jsonl",
            [{"type": "user", "n": 1}, "", "{broken", "[1, 2]", '"text"', {"type": "assistant", "n": 2}],
        )
        parser = JSONLParser(path)

        entries = list(parser.iter_entries())

        assert [e.data["n"] for e in entries] == [1, 2]
        assert [e.line_number for e in entries] == [1, 6]
        assert parser.skipped_lines == 3

    def test_missing_file(self, temp_dir):
        parser = JSONLParser(temp_dir / "nope.jsonl")

        assert list(parser.iter_entries()) == []

    def test_shared_lock_reads(self, temp_dir, write_log):
        path = write_log(temp_dir / "log.jsonl", [{"a": 1}])

        assert next(JSONLParser(path, shared_lock=True).iter_entries()).data == {"a": 1}


class TestFirstMatch:
    """Tests for ordered regex batteries."""

    RULES = [
        PatternRule.compile(r"blocked by (?P<what>[^.]+)", "blocked"),
        PatternRule.compile(r"waiting (?:on|for) (?P<what>[^.]+)", "waiting"),
    ]

    def test_first_rule_wins(self):
        result = first_match(self.RULES, "Blocked by ops. Waiting on legal.", group="what")

        assert result.label == "blocked"
        assert result.group("what") == "ops"

    def test_out_of_range_capture_falls_through(self):
        result = first_match(self.RULES, "blocked by x. waiting on legal.", group="what", min_length=3)

        assert result.label == "waiting"
        assert result.group("what") == "legal"

    def test_max_length(self):
        assert first_match(self.RULES, "blocked by " + "z" * 50, group="what", max_length=10) is None

    def test_missing_group_name(self):
        result = first_match(self.RULES, "blocked by ops")

        assert result.group("other") is None

    def test_any_match(self):
        patterns = [re.compile(r"\bnit\b"), re.compile(r"consider")]

        assert any_match(patterns, "nit: spacing")
        assert not any_match(patterns, "looks good")


class TestDatetimeUtils:
    """Tests for timestamp helpers."""

    def test_parse_variants(self):
        expected = datetime(2026, 2, 12, 10, 30)

        assert parse_iso("2026-02-12T10:30:00") == expected
        assert parse_iso("2026-02-12T10:30:00Z") == expected
        assert parse_iso("2026-02-12T10:30:00+00:00") == expected
        assert parse_iso(datetime(2026, 2, 12, 10, 30, tzinfo=timezone.utc)) == expected

    def test_offsets_converted_to_local_time(self, pacific_local_time):
        assert parse_iso("2026-02-12T18:30:00Z") == datetime(2026, 2, 12, 10, 30)
        assert parse_iso("2026-02-12T10:30:00+05:00") == datetime(2026, 2, 11, 21, 30)
        assert parse_iso("2026-02-12T10:30:00") == datetime(2026, 2, 12, 10, 30)

    def test_parse_invalid(self):
        assert parse_iso(None) is None
        assert parse_iso("") is None
        assert parse_iso("yesterday") is None
        assert parse_iso(12) is None

    def test_whole_days_between(self):
        start = datetime(2026, 2, 1, 12, 0)

        assert whole_days_between(start + timedelta(days=2, hours=23), start) == 2
        assert whole_days_between(start, start + timedelta(days=1)) == 0
