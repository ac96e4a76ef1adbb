"""DailySink collector WebSocket server."""
from __future__ import annotations
import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Optional

import websockets

from dailysink.errors import AppendError
from dailysink.protocol import (
    make_envelope, parse_envelope,
    MSG_HELLO, MSG_LOG_BATCH, MSG_HEARTBEAT,
    MSG_HELLO_ACK, MSG_ACK, MSG_ERROR,
)
from dailysink.records import LogRecord
from dailysink.sink import RotatingFileSink

logger = logging.getLogger("dailysink.collector.server")


class SourceSession:
    """A connected log source."""

    def __init__(self, ws, source_id: str, hostname: str):
        self.ws = ws
        self.source_id = source_id
        self.hostname = hostname
        self.connected_at: float = time.time()
        self.last_heartbeat: float = self.connected_at
        self.batches: int = 0
        self.records: int = 0

    @property
    def heartbeat_age(self) -> float:
        return time.time() - self.last_heartbeat

    async def send(self, msg_type: str, payload: dict) -> None:
        try:
            await self.ws.send(make_envelope(msg_type, payload))
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Failed to send to %s: %s", self.source_id, e)


class CollectorServer:
    """Receives LOG_BATCH messages from sources and appends them to one sink."""

    def __init__(self, sink: RotatingFileSink, host: str = "0.0.0.0", port: int = 9430,
                 heartbeat_timeout: float = 30.0):
        self.sink = sink
        self.host = host
        self.port = port
        self.heartbeat_timeout = heartbeat_timeout
        self.collector_id = str(uuid.uuid4())
        self._sources: dict[str, SourceSession] = {}
        self._ws_server = None
        self._running = False
        self._watch_task: Optional[asyncio.Task] = None
        self._warned: set[str] = set()

        self.on_batch: Optional[Callable[[SourceSession, int], Any]] = None

    @property
    def sources(self) -> dict[str, SourceSession]:
        return self._sources

    @property
    def bound_port(self) -> int:
        """Actual listening port (useful when started with port 0)."""
        if self._ws_server is None:
            return self.port
        return self._ws_server.sockets[0].getsockname()[1]

    def stale_sources(self) -> list[SourceSession]:
        """Sources that have not sent anything for longer than ``heartbeat_timeout``."""
        return [s for s in self._sources.values() if s.heartbeat_age > self.heartbeat_timeout]

    async def start(self) -> None:
        self._running = True
        self._ws_server = await websockets.serve(self._handle_source, self.host, self.port)
        logger.info("Collector listening on %s:%d, writing to %s",
                    self.host, self.bound_port, self.sink.active_file_path)
        self._watch_task = asyncio.create_task(self._watch_loop())

    async def stop(self, close_sink: bool = True) -> None:
        self._running = False
        if self._watch_task:
            self._watch_task.cancel()
            self._watch_task = None
        if self._ws_server:
            self._ws_server.close()
            await self._ws_server.wait_closed()
            self._ws_server = None
        if close_sink:
            await self.sink.aclose()
        logger.info("Collector stopped")

    async def _watch_loop(self) -> None:
        """Periodically warn about sources that went quiet."""
        while self._running:
            await asyncio.sleep(self.heartbeat_timeout / 2)
            self.check_heartbeats()

    def check_heartbeats(self) -> list[SourceSession]:
        stale = self.stale_sources()
        for session in stale:
            if session.source_id not in self._warned:
                logger.warning("Source %s silent for %.0fs", session.source_id, session.heartbeat_age)
                self._warned.add(session.source_id)
        return stale

    def _touch(self, session: SourceSession) -> None:
        session.last_heartbeat = time.time()
        self._warned.discard(session.source_id)

    async def _handle_source(self, ws) -> None:
        session: Optional[SourceSession] = None
        try:
            async for raw in ws:
                try:
                    msg_type, _ts, payload = parse_envelope(raw)
                except ValueError as e:
                    logger.warning("Bad envelope: %s", e)
                    await ws.send(make_envelope(MSG_ERROR, {"reason": str(e)}))
                    continue
                if msg_type == MSG_HELLO:
                    session = await self._on_hello(ws, payload)
                elif session is None:
                    await ws.send(make_envelope(MSG_ERROR, {"reason": f"{msg_type} before HELLO"}))
                elif msg_type == MSG_LOG_BATCH:
                    await self._on_batch(session, payload)
                elif msg_type == MSG_HEARTBEAT:
                    self._touch(session)
                else:
                    await session.send(MSG_ERROR, {"reason": f"Unknown message type: {msg_type}"})
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if session and self._sources.get(session.source_id) is session:
                self._warned.discard(session.source_id)
                del self._sources[session.source_id]
                logger.info("Source disconnected: %s (%d batches, %d records)",
                            session.source_id, session.batches, session.records)

    async def _on_hello(self, ws, payload: dict) -> SourceSession:
        source_id = payload.get("source_id") or str(uuid.uuid4())
        session = SourceSession(ws, source_id, payload.get("hostname", "unknown"))
        self._sources[source_id] = session
        await session.send(MSG_HELLO_ACK, {"collector_id": self.collector_id, "source_id": source_id})
        logger.info("Source connected: %s (%s)", source_id, session.hostname)
        return session

    async def _on_batch(self, session: SourceSession, payload: dict) -> None:
        batch_id = payload.get("batch_id")
        raw_records = payload.get("records", [])
        if not isinstance(raw_records, list):
            await session.send(MSG_ERROR, {"batch_id": batch_id, "reason": "records must be a list"})
            return
        try:
            records = [LogRecord.from_payload(r) for r in raw_records if isinstance(r, dict)]
        except ValueError as e:
            await session.send(MSG_ERROR, {"batch_id": batch_id, "reason": str(e)})
            return
        try:
            await self.sink.handle_batch_async(records)
        except AppendError as e:
            logger.error("Batch %s from %s not written: %s", batch_id, session.source_id, e)
            await session.send(MSG_ERROR, {"batch_id": batch_id, "reason": str(e)})
            return
        self._touch(session)
        session.batches += 1
        session.records += len(records)
        logger.debug("Batch %s from %s: %d record(s)", batch_id, session.source_id, len(records))
        if self.on_batch:
            self.on_batch(session, len(records))
        await session.send(MSG_ACK, {"batch_id": batch_id, "accepted": len(records)})
