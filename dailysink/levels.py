"""DailySink severity levels."""
from __future__ import annotations
import logging
from enum import IntEnum


class Severity(IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


_ALIASES = {
    "WARN": Severity.WARNING,
    "FATAL": Severity.CRITICAL,
}


def parse_level(value) -> Severity:
    """Accepts a Severity, a level name ("info", "WARN") or a numeric level."""
    if isinstance(value, Severity):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid level: {value!r}")
    if isinstance(value, int):
        return Severity(value)
    if isinstance(value, str):
        name = value.strip().upper()
        if name in _ALIASES:
            return _ALIASES[name]
        try:
            return Severity[name]
        except KeyError:
            raise ValueError(f"Unknown level: {value!r}") from None
    raise ValueError(f"Invalid level: {value!r}")


def levels_at_or_above(min_level: Severity) -> frozenset[Severity]:
    return frozenset(s for s in Severity if s >= min_level)
