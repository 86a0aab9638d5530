"""Log viewer launcher — finds a test log on disk and opens it."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_VIEWER = "ict_lr"

_DATE_FIELD = re.compile(r"(\d{4})(\d{2})(\d{2})")


def _to_path(reference: str) -> Path:
    # Log names are recorded by Windows testers.
    if os.name != "nt":
        reference = reference.replace("\\", "/")
    return Path(reference)


def date_bucket(filename: str) -> Optional[tuple[str, str, str]]:
    """Return ``(YYYY, MM, DD)`` from a ``<pos>-<YYYYMMDD>-...`` file name."""
    fields = filename.split("-")
    if len(fields) < 2:
        return None
    match = _DATE_FIELD.match(fields[1])
    if match is None:
        return None
    return match.group(1), match.group(2), match.group(3)


def resolve_log_path(reference: str, log_root: Optional[str] = None) -> Optional[Path]:
    """Locate the log file for a reference.

    Tries the literal path, then ``<dir>/<YYYY>/<MM>/<DD>/<file>`` using
    the date encoded in the file name. Relative references are taken
    from ``log_root`` when given.
    """
    if not reference:
        return None

    path = _to_path(reference)
    if log_root and not path.is_absolute():
        path = Path(log_root) / path

    if path.is_file():
        return path

    bucket = date_bucket(path.name)
    if bucket is not None:
        candidate = path.parent.joinpath(*bucket, path.name)
        if candidate.is_file():
            return candidate

    logger.debug("Log %r not found at %s", reference, path)
    return None


def launch_viewer(
    reference: str,
    viewer: str = DEFAULT_VIEWER,
    log_root: Optional[str] = None,
) -> subprocess.Popen:
    """Open a log in the external viewer without waiting for it to exit."""
    path = resolve_log_path(reference, log_root)
    if path is None:
        raise FileNotFoundError(f"Log file not found: {reference}")
    logger.debug("Opening %s with %s", path, viewer)
    return subprocess.Popen([viewer, str(path)])
