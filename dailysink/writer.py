"""DailySink writer: the blocking and the non-blocking append paths."""
from __future__ import annotations
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dailysink.appender import AsyncAppender
from dailysink.errors import AppendError

try:
    import fcntl
except ImportError:  # Windows has no flock; use_locking becomes a no-op there.
    fcntl = None

logger = logging.getLogger("dailysink.writer")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff for submissions the appender refuses because its queue is full."""
    max_attempts: int = 50
    base_delay: float = 0.001
    max_delay: float = 0.1

    def delay(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** attempt))

    def validate(self) -> list[str]:
        errors = []
        if self.max_attempts < 1:
            errors.append("retry.max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            errors.append("retry delays must be >= 0")
        return errors


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines) + "\n"


class FileWriter:
    def __init__(self, use_locking: bool = False, file_permission: Optional[int] = None,
                 appender: Optional[AsyncAppender] = None, retry: Optional[RetryPolicy] = None,
                 queue_size: int = 1024):
        self.use_locking = use_locking
        self.file_permission = file_permission
        self.retry = retry or RetryPolicy()
        self._queue_size = queue_size
        self._appender = appender
        self._owns_appender = appender is None

    @property
    def appender(self) -> AsyncAppender:
        # Started on first use so purely blocking sinks never spawn a thread.
        if self._appender is None:
            self._appender = AsyncAppender(self._queue_size)
        return self._appender

    def write_blocking(self, path: str, text: str) -> None:
        """Append ``text`` to ``path`` under an exclusive lock when locking is enabled."""
        try:
            created = not os.path.exists(path)
            with open(path, "a", encoding="utf-8") as f:
                if created and self.file_permission is not None:
                    os.chmod(path, self.file_permission)
                locked = self.use_locking and fcntl is not None
                if locked:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.write(text)
                    f.flush()
                finally:
                    if locked:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise AppendError(f"Unable to append to log file: {path}") from e

    async def write_async(self, path: str, text: str) -> int:
        """Submit ``text`` to the appender, backing off while it refuses.

        Returns the number of submissions it took. Raises AppendError once the
        retry policy is exhausted.
        """
        policy = self.retry
        for attempt in range(policy.max_attempts):
            if self.appender.try_append(path, text, self.file_permission):
                if attempt:
                    logger.debug("Append to %s accepted after %d attempts", path, attempt + 1)
                return attempt + 1
            if attempt + 1 < policy.max_attempts:
                await asyncio.sleep(policy.delay(attempt))
        logger.warning("Appender refused %s %d times, giving up", path, policy.max_attempts)
        raise AppendError(f"Unable to append to log file: {path}: appender queue full "
                          f"after {policy.max_attempts} attempts")

    def flush(self) -> None:
        if self._appender is not None:
            self._appender.flush()

    def close(self) -> None:
        if self._appender is not None and self._owns_appender:
            self._appender.stop()
            self._appender = None
