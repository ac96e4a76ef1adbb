"""DailySink collector entry point: ``python -m collector [config.toml]``."""
from __future__ import annotations
import asyncio
import logging
import sys
from pathlib import Path

from collector.server import CollectorServer
from dailysink.config import CollectorConfig, load_config
from dailysink.logging_utils import setup_rotating_logger
from dailysink.sink import RotatingFileSink


async def _serve(server: CollectorServer) -> None:
    await server.start()
    try:
        await asyncio.Future()
    finally:
        await server.stop()


def main() -> None:
    config = load_config(Path(sys.argv[1])) if len(sys.argv) > 1 else CollectorConfig()

    setup_rotating_logger("dailysink", Path(config.collector.log_dir))
    logger = logging.getLogger("dailysink.collector")

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Config error: %s", err)
        sys.exit(2)

    sink = RotatingFileSink.from_config(config.sink, queue_size=config.appender.queue_size)
    server = CollectorServer(sink, config.collector.host, config.collector.port)
    logger.info("DailySink collector starting")
    try:
        asyncio.run(_serve(server))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
