"""DailySink shipper: sends record batches to a collector over WebSocket."""
from __future__ import annotations
import asyncio
import itertools
import logging
import socket
import uuid
from typing import Any, Iterable, Optional

import websockets

from dailysink.protocol import (
    make_envelope, parse_envelope,
    MSG_HELLO, MSG_LOG_BATCH, MSG_HEARTBEAT,
    MSG_HELLO_ACK, MSG_ACK, MSG_ERROR,
)
from dailysink.records import LogRecord

logger = logging.getLogger("dailysink.shipper.connection")


class ShipperError(Exception):
    """The collector refused a message or answered out of turn."""


class LogShipper:
    """One connection to a collector. Batches are sent and acknowledged one at a time."""

    def __init__(self, uri: str, source_id: Optional[str] = None, ack_timeout: float = 10.0):
        self.uri = uri
        self.source_id = source_id or str(uuid.uuid4())
        self.hostname = socket.gethostname()
        self.ack_timeout = ack_timeout
        self.collector_id: Optional[str] = None
        self._ws = None
        self._batch_ids = itertools.count(1)
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        logger.info("Connecting to %s", self.uri)
        self._ws = await websockets.connect(self.uri)
        await self._ws.send(make_envelope(MSG_HELLO, {
            "source_id": self.source_id,
            "hostname": self.hostname,
        }))
        payload = await self._expect(MSG_HELLO_ACK)
        self.collector_id = payload.get("collector_id")
        logger.info("Connected to collector %s as %s", self.collector_id, self.source_id)

    async def send_batch(self, records: Iterable[LogRecord | dict[str, Any]]) -> dict[str, Any]:
        """Send one batch and return the collector's ACK payload."""
        if self._ws is None:
            raise ShipperError("Not connected")
        batch = [r.to_payload() if isinstance(r, LogRecord) else dict(r) for r in records]
        async with self._lock:
            batch_id = next(self._batch_ids)
            await self._ws.send(make_envelope(MSG_LOG_BATCH, {"batch_id": batch_id, "records": batch}))
            return await self._expect(MSG_ACK)

    async def heartbeat(self) -> None:
        if self._ws is not None:
            await self._ws.send(make_envelope(MSG_HEARTBEAT, {}))

    async def close(self) -> None:
        if self._ws is not None:
            try:
                await self._ws.close()
            finally:
                self._ws = None
            logger.info("Disconnected from collector")

    async def __aenter__(self) -> LogShipper:
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _expect(self, expected: str) -> dict[str, Any]:
        raw = await asyncio.wait_for(self._ws.recv(), self.ack_timeout)
        msg_type, _ts, payload = parse_envelope(raw)
        if msg_type == MSG_ERROR:
            raise ShipperError(payload.get("reason", "collector error"))
        if msg_type != expected:
            raise ShipperError(f"Expected {expected}, got {msg_type}")
        return payload
