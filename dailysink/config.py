"""DailySink configuration file (TOML) parsing and validation."""
from __future__ import annotations
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dailysink.errors import InvalidFormat
from dailysink.levels import Severity, parse_level
from dailysink.templating import (
    DEFAULT_DATE_FORMAT, DEFAULT_FILENAME_FORMAT,
    validate_date_format, validate_filename_format,
)
from dailysink.writer import RetryPolicy

DEFAULT_PORT = 9430


@dataclass(frozen=True)
class SinkConfig:
    filename: str = "logs/app.log"
    max_files: int = 0  # 0 keeps every rotated file
    min_level: Severity = Severity.DEBUG
    levels: tuple[Severity, ...] = ()
    bubble: bool = True
    file_permission: Optional[int] = None
    use_locking: bool = False
    filename_format: str = DEFAULT_FILENAME_FORMAT
    date_format: str = DEFAULT_DATE_FORMAT
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def validate(self) -> list[str]:
        errors = []
        if not self.filename:
            errors.append("sink.filename is required")
        if self.max_files < 0:
            errors.append("sink.max_files must be >= 0")
        if self.file_permission is not None and not (0 <= self.file_permission <= 0o7777):
            errors.append(f"sink.file_permission out of range: {self.file_permission:o}")
        for check, value in ((validate_filename_format, self.filename_format),
                             (validate_date_format, self.date_format)):
            try:
                check(value)
            except InvalidFormat as e:
                errors.append(str(e))
        errors.extend(self.retry.validate())
        return errors


@dataclass(frozen=True)
class AppenderConfig:
    queue_size: int = 1024


@dataclass(frozen=True)
class CollectorSettings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_dir: str = "logs/collector"


@dataclass(frozen=True)
class CollectorConfig:
    sink: SinkConfig = field(default_factory=SinkConfig)
    appender: AppenderConfig = field(default_factory=AppenderConfig)
    collector: CollectorSettings = field(default_factory=CollectorSettings)

    def validate(self) -> list[str]:
        errors = self.sink.validate()
        if self.appender.queue_size <= 0:
            errors.append("appender.queue_size must be > 0")
        if not (0 <= self.collector.port <= 65535):
            errors.append(f"collector.port out of range: {self.collector.port}")
        return errors


def _parse_permission(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 8)
    return int(value)


def _parse_retry(raw: dict) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=raw.get("max_attempts", 50),
        base_delay=raw.get("base_delay", 0.001),
        max_delay=raw.get("max_delay", 0.1),
    )


def _parse_sink(raw: dict) -> SinkConfig:
    return SinkConfig(
        filename=raw.get("filename", "logs/app.log"),
        max_files=raw.get("max_files", 0),
        min_level=parse_level(raw.get("min_level", "DEBUG")),
        levels=tuple(parse_level(lv) for lv in raw.get("levels", [])),
        bubble=raw.get("bubble", True),
        file_permission=_parse_permission(raw.get("file_permission")),
        use_locking=raw.get("use_locking", False),
        filename_format=raw.get("filename_format", DEFAULT_FILENAME_FORMAT),
        date_format=raw.get("date_format", DEFAULT_DATE_FORMAT),
        retry=_parse_retry(raw.get("retry", {})),
    )


def parse_config(data: dict) -> CollectorConfig:
    appender_raw = data.get("appender", {})
    collector_raw = data.get("collector", {})
    return CollectorConfig(
        sink=_parse_sink(data.get("sink", {})),
        appender=AppenderConfig(queue_size=appender_raw.get("queue_size", 1024)),
        collector=CollectorSettings(
            host=collector_raw.get("host", "0.0.0.0"),
            port=collector_raw.get("port", DEFAULT_PORT),
            log_dir=collector_raw.get("log_dir", "logs/collector"),
        ),
    )


def load_config(path: Path) -> CollectorConfig:
    """Load a dailysink TOML file. Unknown level names raise ValueError."""
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return parse_config(data)
