"""DailySink log record model."""
from __future__ import annotations
import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from dailysink.levels import Severity, parse_level


@dataclass(frozen=True)
class LogRecord:
    level: Optional[Severity]  # None means the source sent no level
    timestamp: datetime.datetime
    payload: dict[str, Any] = field(default_factory=dict)
    formatted: Optional[str] = None

    @property
    def message(self) -> str:
        return str(self.payload.get("message", ""))

    def with_formatted(self, text: str) -> LogRecord:
        return replace(self, formatted=text)

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> LogRecord:
        """Build a record from a wire mapping.

        ``level`` may be a name or a number and may be missing. ``timestamp``
        is an ISO-8601 string or epoch milliseconds; missing means now.
        Every other key ends up in the payload.
        """
        data = dict(raw)
        level_raw = data.pop("level", None)
        level = parse_level(level_raw) if level_raw is not None else None
        return cls(level=level, timestamp=_parse_timestamp(data.pop("timestamp", None)), payload=data)

    def to_payload(self) -> dict[str, Any]:
        data = dict(self.payload)
        if self.level is not None:
            data["level"] = self.level.name
        data["timestamp"] = self.timestamp.isoformat()
        return data


def _parse_timestamp(value) -> datetime.datetime:
    if value is None:
        return datetime.datetime.now()
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value / 1000.0)
    if isinstance(value, str):
        return datetime.datetime.fromisoformat(value)
    raise ValueError(f"Invalid timestamp: {value!r}")


def as_local_naive(value: datetime.datetime) -> datetime.datetime:
    """Aware datetimes become naive local time; naive ones are assumed local already."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
