"""DailySink rotation state machine.

A batch whose timestamp crosses the midnight boundary marks a rotation as
pending and is still written to the current file. The new dated file is
picked once that batch has been handed off, or on the next close for a fresh
file. One calendar day therefore maps to one file and a batch is never split
across two files.

Timestamps are compared as naive local time, so aware and naive values can
be mixed freely.
"""
from __future__ import annotations
import datetime
import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from dailysink.records import as_local_naive
from dailysink.retention import collect_garbage
from dailysink.templating import FilenameTemplate

logger = logging.getLogger("dailysink.rotation")

Clock = Callable[[], datetime.datetime]


class RotationPhase(Enum):
    FRESH = "fresh"
    OPEN = "open"
    PENDING_ROTATION = "pending_rotation"
    ROTATING = "rotating"


def next_midnight(now: datetime.datetime) -> datetime.datetime:
    """Start of the calendar day after ``now``, in ``now``'s timezone."""
    return datetime.datetime.combine(now.date() + datetime.timedelta(days=1), datetime.time.min, tzinfo=now.tzinfo)


@dataclass(frozen=True)
class RotationState:
    base_filename: str
    active_file_path: str
    next_rotation: datetime.datetime
    must_rotate: Optional[bool] = None  # None until the first write
    max_files: int = 0
    filename_format: str = "{filename}-{date}"
    date_format: str = "Y-m-d"

    @property
    def template(self) -> FilenameTemplate:
        return FilenameTemplate(self.base_filename, self.filename_format, self.date_format)


class RotationScheduler:
    """Owns the RotationState; every transition swaps in a new state value."""

    def __init__(self, template: FilenameTemplate, max_files: int = 0,
                 clock: Clock = datetime.datetime.now):
        if max_files < 0:
            raise ValueError("max_files must be >= 0")
        self.clock = clock
        now = clock()
        self._rotating = False
        self._state = RotationState(
            base_filename=template.base_filename,
            active_file_path=template.timed_filename(now.date()),
            next_rotation=next_midnight(now),
            max_files=max_files,
            filename_format=template.filename_format,
            date_format=template.date_format,
        )

    @property
    def state(self) -> RotationState:
        return self._state

    @property
    def active_file_path(self) -> str:
        return self._state.active_file_path

    @property
    def phase(self) -> RotationPhase:
        if self._rotating:
            return RotationPhase.ROTATING
        if self._state.must_rotate is None:
            return RotationPhase.FRESH
        if self._state.must_rotate:
            return RotationPhase.PENDING_ROTATION
        return RotationPhase.OPEN

    def check_boundary(self, batch_time: datetime.datetime) -> bool:
        """Run the write-time checks. Returns True when the day boundary was crossed."""
        state = self._state
        if state.must_rotate is None:
            # A leftover file from an earlier run is not appended to as if it were fresh.
            state = replace(state, must_rotate=not os.path.exists(state.active_file_path))
        crossed = as_local_naive(batch_time) >= as_local_naive(state.next_rotation)
        if crossed:
            logger.debug("Batch at %s crossed rotation boundary %s", batch_time, state.next_rotation)
            state = replace(state, must_rotate=True)
        self._state = state
        return crossed

    def rotate_if_pending(self) -> list[str]:
        """Swap to a freshly dated file if a rotation is pending. Returns deleted paths."""
        if self._state.must_rotate is not True:
            return []
        self._rotating = True
        try:
            now = self.clock()
            template = self._state.template
            new_path = template.timed_filename(now.date())
            if new_path != self._state.active_file_path:
                logger.info("Rotated %s -> %s", self._state.active_file_path, new_path)
            self._state = replace(
                self._state,
                active_file_path=new_path,
                next_rotation=next_midnight(now),
                must_rotate=False,
            )
            if self._state.max_files > 0:
                return collect_garbage(template.glob_pattern(), self._state.max_files)
            return []
        finally:
            self._rotating = False

    def reconfigure(self, template: FilenameTemplate) -> None:
        """Adopt a new template and recompute the active path from today's date."""
        now = self.clock()
        self._state = replace(
            self._state,
            base_filename=template.base_filename,
            filename_format=template.filename_format,
            date_format=template.date_format,
            active_file_path=template.timed_filename(now.date()),
        )
