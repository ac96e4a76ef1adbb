"""DailySink record formatters."""
from __future__ import annotations
import json
from typing import Protocol

from dailysink.records import LogRecord


class Formatter(Protocol):
    def format(self, record: LogRecord) -> str: ...


class LineFormatter:
    """Renders ``[2026-01-01 12:00:00] INFO: message {"extra": ...}``."""

    def __init__(self, datefmt: str = "%Y-%m-%d %H:%M:%S", include_context: bool = True):
        self.datefmt = datefmt
        self.include_context = include_context

    def format(self, record: LogRecord) -> str:
        level = record.level.name if record.level is not None else "-"
        line = f"[{record.timestamp.strftime(self.datefmt)}] {level}: {record.message}"
        context = {k: v for k, v in record.payload.items() if k != "message"}
        if self.include_context and context:
            line += " " + json.dumps(context, default=str, sort_keys=True)
        return line


class JsonLineFormatter:
    """One JSON object per line (JSONL)."""

    def format(self, record: LogRecord) -> str:
        return json.dumps(record.to_payload(), default=str)
