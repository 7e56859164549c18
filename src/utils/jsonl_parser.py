"""JSONL (JSON Lines) reader for session logs and the feedback log."""

import fcntl
import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class JSONLEntry:
    """A single record from a JSONL file."""

    data: dict
    line_number: int


class JSONLParser:
    """Parser for JSONL files.

    Each line is parsed on its own. Blank lines, lines that are not valid
    JSON and lines whose top-level value is not an object are skipped, so
    one corrupt record never hides the rest of the file. The number of
    skipped lines from the last full pass is kept in ``skipped_lines``.

    With ``shared_lock`` the file is held under ``fcntl.LOCK_SH`` while it is
    read, for files other writers append to under ``LOCK_EX``.
    """

    def __init__(self, path: Path, shared_lock: bool = False):
        self.path = path
        self.shared_lock = shared_lock
        self.skipped_lines = 0

    def iter_entries(self) -> Iterator[JSONLEntry]:
        """Iterate over valid records in the file.

        Raises OSError if the file exists but cannot be read; a missing
        file yields nothing.
        """
        self.skipped_lines = 0
        if not self.path.exists():
            return

        with open(self.path, encoding="utf-8", errors="replace") as f:
            if self.shared_lock:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            try:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue

                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        self.skipped_lines += 1
                        continue

                    if not isinstance(data, dict):
                        self.skipped_lines += 1
                        continue

                    yield JSONLEntry(data=data, line_number=line_num)
            finally:
                if self.shared_lock:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        if self.skipped_lines:
            logger.debug("Skipped %d malformed line(s) in %s", self.skipped_lines, self.path)
