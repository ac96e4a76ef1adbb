"""DailySink diagnostics logging for the collector process itself."""
from __future__ import annotations
import logging
import logging.handlers
from pathlib import Path

DIAGNOSTIC_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_rotating_logger(name: str, log_dir: Path, level: int = logging.INFO,
                          console_level: int = logging.INFO,
                          max_bytes: int = 5 * 1024 * 1024, backup_count: int = 5) -> logging.Logger:
    """Attach a size-rotated file handler and a console handler to ``name``.

    Calling it again for the same logger adds nothing.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    fmt = logging.Formatter(DIAGNOSTIC_FORMAT)
    fh = logging.handlers.RotatingFileHandler(
        log_dir / f"{name}.log", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)
    return logger
