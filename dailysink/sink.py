"""DailySink rotating file sink.

``RotatingFileSink`` filters and formats record batches, then appends them to
a dated file such as ``app-2026-01-31.log``. The active file changes at most
once per calendar day: the first batch stamped at or after midnight is still
written to the old file, then the sink swaps to the new date straight away.
Old files beyond ``max_files`` are removed when it does.

Each write asks the runtime oracle how to persist the batch: inline with an
exclusive file lock (BLOCKING), or through the queued appender without ever
blocking the event loop (COOPERATIVE).
"""
from __future__ import annotations
import asyncio
import datetime
import logging
from typing import Iterable, Optional, Protocol, TYPE_CHECKING

from dailysink.appender import AsyncAppender
from dailysink.formatting import Formatter, LineFormatter
from dailysink.levels import Severity, parse_level
from dailysink.record_filter import RecordFilter, batch_timestamp, resolve_levels
from dailysink.records import LogRecord
from dailysink.rotation import Clock, RotationPhase, RotationScheduler, RotationState
from dailysink.runtime import EventLoopOracle, RuntimeMode, RuntimeOracle
from dailysink.templating import DEFAULT_DATE_FORMAT, DEFAULT_FILENAME_FORMAT, FilenameTemplate
from dailysink.writer import FileWriter, RetryPolicy, join_lines

if TYPE_CHECKING:
    from dailysink.config import SinkConfig

logger = logging.getLogger("dailysink.sink")


class BatchSink(Protocol):
    def handle_batch(self, records: Iterable[LogRecord]) -> bool: ...

    def close(self) -> None: ...

    def is_handling(self, record: LogRecord) -> bool: ...


class RotatingFileSink:
    def __init__(self, filename: str, max_files: int = 0, min_level=Severity.DEBUG,
                 bubble: bool = True, file_permission: Optional[int] = None,
                 use_locking: bool = False, *,
                 levels: Iterable = (),
                 filename_format: str = DEFAULT_FILENAME_FORMAT,
                 date_format: str = DEFAULT_DATE_FORMAT,
                 formatter: Optional[Formatter] = None,
                 runtime: Optional[RuntimeOracle] = None,
                 appender: Optional[AsyncAppender] = None,
                 retry: Optional[RetryPolicy] = None,
                 queue_size: int = 1024,
                 clock: Clock = datetime.datetime.now):
        self.min_level = parse_level(min_level)
        self.bubble = bubble  # carried for callers chaining sinks; no effect here
        self.filter = RecordFilter(
            formatter or LineFormatter(),
            resolve_levels([parse_level(lv) for lv in levels], self.min_level),
        )
        self.runtime = runtime or EventLoopOracle()
        self._writer = FileWriter(
            use_locking=use_locking,
            file_permission=file_permission,
            appender=appender,
            retry=retry,
            queue_size=queue_size,
        )
        self._scheduler = RotationScheduler(
            FilenameTemplate(filename, filename_format, date_format), int(max_files), clock
        )
        self._tail: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        self._failures: list[BaseException] = []

    @classmethod
    def from_config(cls, config: SinkConfig, **kwargs) -> RotatingFileSink:
        return cls(
            config.filename,
            max_files=config.max_files,
            min_level=config.min_level,
            bubble=config.bubble,
            file_permission=config.file_permission,
            use_locking=config.use_locking,
            levels=config.levels,
            filename_format=config.filename_format,
            date_format=config.date_format,
            retry=config.retry,
            **kwargs,
        )

    @property
    def state(self) -> RotationState:
        return self._scheduler.state

    @property
    def phase(self) -> RotationPhase:
        return self._scheduler.phase

    @property
    def active_file_path(self) -> str:
        return self._scheduler.active_file_path

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def is_handling(self, record: LogRecord) -> bool:
        return self.filter.is_handling(record)

    def handle_batch(self, records: Iterable[LogRecord]) -> bool:
        """Filter, format and persist a batch.

        In COOPERATIVE mode on a running loop the append is scheduled as a task
        and this returns at once; await ``drain()`` or ``aclose()`` to observe
        its outcome.
        """
        prepared = self._prepare(records)
        if prepared is None:
            return True
        path, text, crossed = prepared
        if self.runtime.mode() is RuntimeMode.BLOCKING:
            self._writer.write_blocking(path, text)
        else:
            # The task already holds the old path, so swapping now is safe.
            self._schedule_async(path, text)
        if crossed:
            self._scheduler.rotate_if_pending()
        return True

    async def handle_batch_async(self, records: Iterable[LogRecord]) -> bool:
        """Like ``handle_batch`` but awaits the non-blocking append, so AppendError surfaces here."""
        prepared = self._prepare(records)
        if prepared is None:
            return True
        path, text, crossed = prepared
        if self.runtime.mode() is RuntimeMode.BLOCKING:
            self._writer.write_blocking(path, text)
        else:
            await self._wait_for_tail()
            await self._writer.write_async(path, text)
            if crossed:
                # Retention counts files on disk, so the old file has to exist first.
                await asyncio.to_thread(self._writer.flush)
        if crossed:
            self._scheduler.rotate_if_pending()
        return True

    def set_filename_format(self, filename_format: str, date_format: str) -> None:
        """Switch templates. Raises InvalidFormat and keeps the old state on bad input."""
        template = FilenameTemplate(self.state.base_filename, filename_format, date_format)
        self._scheduler.reconfigure(template)
        logger.info("Filename format set to %r / %r, active file %s",
                    filename_format, date_format, self.active_file_path)
        self.close()

    def set_filename(self, filename: str) -> None:
        template = FilenameTemplate(filename, self.state.filename_format, self.state.date_format)
        self._scheduler.reconfigure(template)
        self.close()

    def close(self) -> None:
        """Run any pending rotation.

        Off an event loop this also stops the sink-owned appender once it has
        drained. On a running loop the appender is left alone, since stopping
        it would block the loop; ``aclose()`` stops it from a worker thread.
        """
        if not _on_running_loop():
            self._writer.close()
        self._scheduler.rotate_if_pending()

    async def drain(self) -> None:
        """Wait for scheduled appends, then for the appender to write them out."""
        while self._pending:
            await asyncio.wait(list(self._pending))
        await asyncio.to_thread(self._writer.flush)
        if self._failures:
            first = self._failures[0]
            self._failures.clear()
            raise first

    async def aclose(self) -> None:
        try:
            await self.drain()
        finally:
            await asyncio.to_thread(self._writer.close)
            self._scheduler.rotate_if_pending()

    def _prepare(self, records: Iterable[LogRecord]) -> Optional[tuple[str, str, bool]]:
        """Filter and format; returns (path, blob, crossed midnight) or None."""
        kept = self.filter.filter_and_format(records)
        if not kept:
            return None
        crossed = self._scheduler.check_boundary(batch_timestamp(kept))
        return self.active_file_path, join_lines([r.formatted for r in kept]), crossed

    def _schedule_async(self, path: str, text: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop on this thread, so nothing can be stalled by waiting here.
            asyncio.run(self._writer.write_async(path, text))
            return
        previous = self._tail if self._tail is not None and self._tail.get_loop() is loop else None
        task = loop.create_task(self._chained_write(previous, path, text))
        self._tail = task
        self._pending.add(task)
        task.add_done_callback(self._on_write_done)

    async def _chained_write(self, previous: Optional[asyncio.Task], path: str, text: str) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await self._writer.write_async(path, text)

    async def _wait_for_tail(self) -> None:
        tail = self._tail
        if tail is not None and not tail.done() and tail.get_loop() is asyncio.get_running_loop():
            await asyncio.wait([tail])

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled append failed: %s", exc)
            self._failures.append(exc)


def _on_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
