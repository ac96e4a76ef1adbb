"""DailySink retention of rotated log files."""
from __future__ import annotations
import contextlib
import glob
import logging
import os

logger = logging.getLogger("dailysink.retention")


def collect_garbage(pattern: str, max_files: int) -> list[str]:
    """Delete the oldest files matching ``pattern`` beyond the newest ``max_files``.

    Names sort newest-first because dates render most significant field first.
    Deletion is best effort: another process rotating the same files may have
    removed them already, so failures are ignored. Returns the paths removed.
    """
    if max_files <= 0:
        return []
    matches = glob.glob(pattern)
    if len(matches) <= max_files:
        return []

    matches.sort(reverse=True)
    deleted = []
    for path in matches[max_files:]:
        if not os.access(path, os.W_OK):
            continue
        with contextlib.suppress(OSError):
            os.unlink(path)
            deleted.append(path)
    if deleted:
        logger.debug("Removed %d old log file(s) matching %s", len(deleted), pattern)
    return deleted
