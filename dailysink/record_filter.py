"""DailySink severity filtering and formatting of incoming records."""
from __future__ import annotations
import datetime
import logging
from typing import Iterable, Optional

from dailysink.formatting import Formatter
from dailysink.levels import Severity, levels_at_or_above
from dailysink.records import LogRecord, as_local_naive

logger = logging.getLogger("dailysink.filter")


def resolve_levels(levels: Iterable[Severity] = (), min_level: Severity = Severity.DEBUG) -> frozenset[Severity]:
    """Explicit levels win; otherwise a threshold above DEBUG becomes the set of levels it admits.

    An empty result means every level is handled.
    """
    explicit = frozenset(levels)
    if explicit:
        return explicit
    if min_level > min(Severity):
        return levels_at_or_above(min_level)
    return frozenset()


class RecordFilter:
    def __init__(self, formatter: Formatter, levels: Iterable[Severity] = ()):
        self.formatter = formatter
        self.levels = frozenset(levels)

    def is_handling(self, record: LogRecord) -> bool:
        if not self.levels:
            return True
        return record.level in self.levels

    def filter_and_format(self, records: Iterable[LogRecord]) -> list[LogRecord]:
        kept: list[LogRecord] = []
        dropped = 0
        for record in records:
            if record.level is None or not self.is_handling(record):
                dropped += 1
                continue
            kept.append(record.with_formatted(self.formatter.format(record)))
        if dropped:
            logger.debug("Dropped %d record(s), kept %d", dropped, len(kept))
        return kept


def batch_timestamp(records: list[LogRecord]) -> Optional[datetime.datetime]:
    """Latest timestamp in a filtered batch as naive local time, or None for an empty one."""
    if not records:
        return None
    return max(as_local_naive(r.timestamp) for r in records)
