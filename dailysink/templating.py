"""DailySink filename templating for dated log files.

A filename template such as ``{filename}-{date}`` is applied to a base path
like ``/var/log/app.log``: ``{filename}`` becomes the stem (``app``), ``{date}``
becomes the day rendered with a date format (``Y-m-d`` -> ``2026-01-31``), and
the base path's directory and extension are put back
(``/var/log/app-2026-01-31.log``).

Date formats use ``Y``, ``m`` and ``d`` and must run from the most significant
field to the least, so that sorting the rendered names sorts them by date.
"""
from __future__ import annotations
import datetime
import os
import re
from dataclasses import dataclass

from dailysink.errors import InvalidFormat

DATE_TOKEN = "{date}"
FILENAME_TOKEN = "{filename}"

FILE_PER_DAY = "Y-m-d"
FILE_PER_MONTH = "Y-m"
FILE_PER_YEAR = "Y"

DEFAULT_FILENAME_FORMAT = "{filename}-{date}"
DEFAULT_DATE_FORMAT = FILE_PER_DAY

_DATE_FORMAT_RE = re.compile(r"^Y(([/_.-]?m)([/_.-]?d)?)?$")
_STRFTIME = {"Y": "%Y", "m": "%m", "d": "%d"}


def validate_date_format(date_format: str) -> None:
    if not _DATE_FORMAT_RE.match(date_format or ""):
        raise InvalidFormat(
            f"Invalid date format {date_format!r}: must be {FILE_PER_DAY!r} (one file per day), "
            f"{FILE_PER_MONTH!r} (per month) or {FILE_PER_YEAR!r} (per year), optionally "
            "using slashes, underscores or dots instead of dashes"
        )


def validate_filename_format(filename_format: str) -> None:
    if DATE_TOKEN not in (filename_format or ""):
        raise InvalidFormat(
            f"Invalid filename format {filename_format!r}: must contain {DATE_TOKEN}, "
            "otherwise rotating is impossible"
        )


def render_date(date_format: str, day: datetime.date) -> str:
    return day.strftime("".join(_STRFTIME.get(ch, ch) for ch in date_format))


@dataclass(frozen=True)
class FilenameTemplate:
    base_filename: str
    filename_format: str = DEFAULT_FILENAME_FORMAT
    date_format: str = DEFAULT_DATE_FORMAT

    def __post_init__(self) -> None:
        validate_date_format(self.date_format)
        validate_filename_format(self.filename_format)

    def timed_filename(self, day: datetime.date) -> str:
        """Path of the log file for ``day``."""
        return self._substitute(render_date(self.date_format, day))

    def glob_pattern(self) -> str:
        """Pattern matching every dated file sharing this base name."""
        return self._substitute("*")

    def _substitute(self, date_text: str) -> str:
        directory, name = os.path.split(self.base_filename)
        stem, ext = split_extension(name)
        result = self.filename_format.replace(FILENAME_TOKEN, stem).replace(DATE_TOKEN, date_text)
        if directory:
            result = os.path.join(directory, result)
        return result + ext


def split_extension(name: str) -> tuple[str, str]:
    """Split at the last dot, so ``.log`` is an empty stem with extension ``.log``.

    Unlike ``os.path.splitext`` a leading dot is not part of the stem. A
    trailing dot gives no extension.
    """
    stem, dot, ext = name.rpartition(".")
    if not dot:
        return name, ""
    return stem, f".{ext}" if ext else ""
