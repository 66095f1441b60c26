"""Revision metadata of the vendored native sources.

Purely diagnostic. A failed query falls back to a literal value and is
never reported as an error.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from ggml_build.models import BuildMetadata

logger = logging.getLogger(__name__)

UNKNOWN_REVISION = "unknown"


def _git_query(git: str, source_dir: Path, fmt: str) -> Optional[str]:
    """Run one ``git log`` query scoped to ``source_dir``. None on failure."""
    cmd = [git, "log", "-1", f"--format={fmt}", "--", "."]
    try:
        proc = subprocess.run(
            cmd, cwd=source_dir, capture_output=True, text=True, check=False
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        logger.debug("git query %s unavailable: %s", fmt, e)
        return None
    if proc.returncode != 0:
        logger.debug("git query %s failed (%d): %s", fmt, proc.returncode, proc.stderr.strip())
        return None
    value = proc.stdout.strip()
    return value or None


def extract_metadata(
    source_dir: Path,
    git: str = "git",
    clock: Callable[[], float] = time.time,
) -> BuildMetadata:
    """Read the short revision and ISO-8601 commit time of ``source_dir``.

    Each query is tried once. A failed revision query yields ``"unknown"``;
    a failed timestamp query yields the current epoch seconds as a string.
    """
    source_dir = Path(source_dir)
    revision = _git_query(git, source_dir, "%h")
    timestamp = _git_query(git, source_dir, "%cI")

    if revision is None:
        revision = UNKNOWN_REVISION
    if timestamp is None:
        timestamp = str(int(clock()))
        logger.debug("Using wall-clock fallback timestamp %s", timestamp)

    return BuildMetadata(revision=revision, timestamp=timestamp)
