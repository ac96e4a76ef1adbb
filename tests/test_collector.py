"""Tests for the collector server and the shipper talking over a real socket."""
import asyncio
import datetime
import json
from pathlib import Path

import pytest
import websockets
from collector.server import CollectorServer
from dailysink.formatting import LineFormatter
from dailysink.sink import RotatingFileSink
from dailysink.writer import RetryPolicy
from shipper.connection import LogShipper, ShipperError

FIXED = datetime.datetime(2026, 3, 1, 9, 0, 0)


def _sink(tmp_path: Path, **kwargs) -> RotatingFileSink:
    return RotatingFileSink(str(tmp_path / "app.log"), clock=lambda: FIXED,
                            formatter=LineFormatter(include_context=False), **kwargs)


def test_batches_are_acked_and_written(tmp_path):
    sink = _sink(tmp_path)
    batches_seen = []

    async def scenario():
        server = CollectorServer(sink, "127.0.0.1", 0)
        server.on_batch = lambda session, n: batches_seen.append((session.source_id, n))
        await server.start()
        try:
            uri = f"ws://127.0.0.1:{server.bound_port}"
            async with LogShipper(uri, source_id="src-1") as shipper:
                assert shipper.collector_id == server.collector_id
                ack = await shipper.send_batch([
                    {"level": "INFO", "message": "hello", "timestamp": "2026-03-01T10:00:00"},
                    {"message": "no level", "timestamp": "2026-03-01T10:00:01"},
                ])
                assert ack == {"batch_id": 1, "accepted": 2}
                ack = await shipper.send_batch([
                    {"level": "error", "message": "boom", "timestamp": "2026-03-01T10:00:02"},
                ])
                assert ack["batch_id"] == 2
                assert "src-1" in server.sources
                assert server.sources["src-1"].records == 3
        finally:
            await server.stop()

    asyncio.run(scenario())
    assert batches_seen == [("src-1", 2), ("src-1", 1)]
    assert (tmp_path / "app-2026-03-01.log").read_text().splitlines() == [
        "[2026-03-01 10:00:00] INFO: hello",
        "[2026-03-01 10:00:02] ERROR: boom",
    ]


def test_protocol_errors_keep_connection_open(tmp_path):
    sink = _sink(tmp_path)

    async def scenario():
        server = CollectorServer(sink, "127.0.0.1", 0)
        await server.start()
        try:
            async with websockets.connect(f"ws://127.0.0.1:{server.bound_port}") as ws:
                await ws.send("not json")
                assert json.loads(await ws.recv())["type"] == "ERROR"

                await ws.send(json.dumps({"type": "LOG_BATCH", "payload": {"records": []}}))
                reply = json.loads(await ws.recv())
                assert reply["type"] == "ERROR"
                assert "before HELLO" in reply["payload"]["reason"]

                await ws.send(json.dumps({"type": "HELLO", "payload": {"source_id": "raw"}}))
                assert json.loads(await ws.recv())["type"] == "HELLO_ACK"

                await ws.send(json.dumps({"type": "LOG_BATCH", "payload": {"records": [{"level": "LOUD"}]}}))
                assert json.loads(await ws.recv())["type"] == "ERROR"
        finally:
            await server.stop()

    asyncio.run(scenario())
    assert not (tmp_path / "app-2026-03-01.log").exists()


class FullAppender:
    def try_append(self, path, text, file_permission=None):
        return False

    def flush(self):
        pass

    def stop(self, timeout=None):
        pass


def test_write_failure_is_reported_to_shipper(tmp_path):
    sink = _sink(tmp_path, appender=FullAppender(), retry=RetryPolicy(max_attempts=2, base_delay=0, max_delay=0))

    async def scenario():
        server = CollectorServer(sink, "127.0.0.1", 0)
        await server.start()
        try:
            async with LogShipper(f"ws://127.0.0.1:{server.bound_port}") as shipper:
                with pytest.raises(ShipperError):
                    await shipper.send_batch([{"level": "INFO", "message": "x"}])
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_send_without_connect():
    async def scenario():
        with pytest.raises(ShipperError):
            await LogShipper("ws://127.0.0.1:1").send_batch([])

    asyncio.run(scenario())


def test_collector_rotates_across_days(tmp_path, clock):
    sink = RotatingFileSink(str(tmp_path / "app.log"), max_files=1, clock=clock,
                            formatter=LineFormatter(include_context=False))
    active = []

    async def scenario():
        server = CollectorServer(sink, "127.0.0.1", 0)
        await server.start()
        try:
            async with LogShipper(f"ws://127.0.0.1:{server.bound_port}", source_id="src-1") as shipper:
                for day in range(1, 5):
                    clock.set_day(2026, 3, day, hour=10)
                    ack = await shipper.send_batch([
                        {"level": "INFO", "message": f"day{day}", "timestamp": f"2026-03-0{day}T10:00:00"},
                    ])
                    assert ack["accepted"] == 1
                    active.append(Path(sink.active_file_path).name)
        finally:
            await server.stop()

    asyncio.run(scenario())
    assert active == ["app-2026-03-01.log", "app-2026-03-02.log", "app-2026-03-03.log", "app-2026-03-04.log"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["app-2026-03-03.log"]
    assert (tmp_path / "app-2026-03-03.log").read_text() == "[2026-03-04 10:00:00] INFO: day4\n"


def test_aware_timestamps_are_acked_and_written(tmp_path):
    sink = _sink(tmp_path)

    async def scenario():
        server = CollectorServer(sink, "127.0.0.1", 0)
        await server.start()
        try:
            async with LogShipper(f"ws://127.0.0.1:{server.bound_port}") as shipper:
                ack = await shipper.send_batch([
                    {"level": "INFO", "message": "utc", "timestamp": "2026-03-01T06:00:00+00:00"},
                    {"level": "INFO", "message": "naive", "timestamp": "2026-03-01T07:00:00"},
                ])
                assert ack["accepted"] == 2
        finally:
            await server.stop()

    asyncio.run(scenario())
    lines = (tmp_path / "app-2026-03-01.log").read_text().splitlines()
    assert [line.rsplit(" ", 1)[-1] for line in lines] == ["utc", "naive"]


def test_silent_sources_are_reported_until_they_speak(tmp_path):
    sink = _sink(tmp_path)

    async def scenario():
        server = CollectorServer(sink, "127.0.0.1", 0, heartbeat_timeout=30.0)
        await server.start()
        try:
            async with LogShipper(f"ws://127.0.0.1:{server.bound_port}", source_id="quiet") as shipper:
                await shipper.send_batch([])
                session = server.sources["quiet"]
                assert server.stale_sources() == []

                session.last_heartbeat -= 60
                assert server.check_heartbeats() == [session]
                assert session.heartbeat_age >= 60

                await shipper.heartbeat()
                await shipper.send_batch([])
                assert server.stale_sources() == []
        finally:
            await server.stop()

    asyncio.run(scenario())
