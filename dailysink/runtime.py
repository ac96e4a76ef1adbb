"""DailySink runtime-mode oracles.

A sink asks its oracle on every write whether blocking I/O is acceptable.
COOPERATIVE means the caller runs on an event loop that a blocking file lock
would stall, so the non-blocking append path is used instead.
"""
from __future__ import annotations
import asyncio
from enum import Enum
from typing import Protocol


class RuntimeMode(Enum):
    BLOCKING = "blocking"
    COOPERATIVE = "cooperative"


class RuntimeOracle(Protocol):
    def mode(self) -> RuntimeMode: ...


class EventLoopOracle:
    """COOPERATIVE whenever the calling thread is running an asyncio loop."""

    def mode(self) -> RuntimeMode:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return RuntimeMode.BLOCKING
        return RuntimeMode.COOPERATIVE


class FixedMode:
    """Always answers the same mode; switch it with ``set``."""

    def __init__(self, mode: RuntimeMode = RuntimeMode.BLOCKING):
        self._mode = mode

    def set(self, mode: RuntimeMode) -> None:
        self._mode = mode

    def mode(self) -> RuntimeMode:
        return self._mode
