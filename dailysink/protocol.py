"""DailySink ingest protocol: JSON envelopes over WebSocket text frames."""
from __future__ import annotations
import json
import time
from typing import Any


def _now_ms() -> int:
    return int(time.time() * 1000)


def make_envelope(msg_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"type": msg_type, "ts_utc_ms": _now_ms(), "payload": payload}, default=str)


def parse_envelope(raw: str | bytes) -> tuple[str, int, dict[str, Any]]:
    """Decode an envelope. Raises ValueError for anything that is not one."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed envelope: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ValueError("Envelope must be an object with a string 'type'")
    payload = data.get("payload", {})
    if not isinstance(payload, dict):
        raise ValueError("Envelope payload must be an object")
    return data["type"], data.get("ts_utc_ms", 0), payload


# ---- Source → Collector message types ----
MSG_HELLO = "HELLO"
MSG_LOG_BATCH = "LOG_BATCH"
MSG_HEARTBEAT = "HEARTBEAT"

# ---- Collector → Source message types ----
MSG_HELLO_ACK = "HELLO_ACK"
MSG_ACK = "ACK"
MSG_ERROR = "ERROR"

SOURCE_MESSAGES = {MSG_HELLO, MSG_LOG_BATCH, MSG_HEARTBEAT}
