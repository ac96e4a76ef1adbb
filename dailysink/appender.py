"""DailySink non-blocking append primitive.

``AsyncAppender.try_append`` hands a blob to a background thread and returns
immediately: True when the blob was queued, False when the queue is full.
Appends are performed one at a time in submission order, so writes to the
same path never interleave within this process.
"""
from __future__ import annotations
import logging
import os
import queue
import threading
from typing import Optional

logger = logging.getLogger("dailysink.appender")

_STOP = object()


class AsyncAppender:
    def __init__(self, queue_size: int = 1024, name: str = "dailysink-appender"):
        if queue_size <= 0:
            raise ValueError("queue_size must be > 0")
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._stopped = False
        self.failures = 0
        self._thread.start()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive() and not self._stopped

    def try_append(self, path: str, text: str, file_permission: Optional[int] = None) -> bool:
        if self._stopped:
            return False
        try:
            self._queue.put_nowait((path, text, file_permission))
        except queue.Full:
            return False
        return True

    def flush(self) -> None:
        """Block until everything queued so far has been written."""
        self._queue.join()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._queue.put(_STOP)
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._append(*item)
            finally:
                self._queue.task_done()

    def _append(self, path: str, text: str, file_permission: Optional[int]) -> None:
        try:
            created = not os.path.exists(path)
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
            if created and file_permission is not None:
                os.chmod(path, file_permission)
        except OSError as e:
            # Accepted writes have no error channel back to the submitter.
            self.failures += 1
            logger.error("Async append to %s failed: %s", path, e)
