"""Data directory resolution for persisted briefing state."""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "DEVPULSE_HOME"
DEFAULT_HOME_NAME = ".devpulse"
FALLBACK_DIR_NAME = "devpulse-runtime"


def _is_writable_dir(path: Path) -> bool:
    """Return whether path exists and accepts create/write/delete operations."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        probe = path / f".dp-write-probe-{uuid.uuid4().hex}"
        probe.write_text("ok")
        probe.unlink(missing_ok=True)
        return True
    except OSError:
        return False


def resolve_data_dir(
    configured: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> Path:
    """Resolve the data directory holding feedback and priority files.

    Order: explicit value, ``$DEVPULSE_HOME``, ``~/.devpulse``, then a
    directory under the system temp dir for restricted environments.
    """
    env = os.environ if environ is None else environ

    candidates: list[Path] = []
    if configured:
        candidates.append(Path(configured).expanduser())
    if env.get(HOME_ENV_VAR):
        candidates.append(Path(env[HOME_ENV_VAR]).expanduser())
    candidates.append(Path.home() / DEFAULT_HOME_NAME)

    for candidate in candidates:
        if _is_writable_dir(candidate):
            return candidate
        logger.warning("Data directory %s is not writable, trying next candidate", candidate)

    fallback = Path(tempfile.gettempdir()) / FALLBACK_DIR_NAME
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback
