"""UHF RFID Capture Service - entry point.

Reads captured reader frames (hex text, one per line) from a file or stdin,
decodes them into scans, saves them and optionally publishes them over MQTT.

Usage:
    python main.py [--config conf/capture-config.json] [frames.txt]
"""

import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, TextIO

from config import CaptureConfig, get_app_dir, get_settings, load_config
from database import close_db, get_recent_scans, get_scan_counts, init_db
from mqtt_client import ScanPublisher
from services.decoder import FrameDecoder
from services.dialects import get_profile
from services.gateway import DatabaseGateway
from services.ingest import IngestStats, ingest_lines
from services.recorder import ScanRecorder

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Log to stdout and to a rotating file in the app directory."""
    log_dir = get_app_dir() / "logs"
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / "capture-service.log"

    handlers = [
        logging.StreamHandler(sys.stdout),
        RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ]

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    logger.info(f"Logging to file: {log_file}")


async def run(config: CaptureConfig, source: TextIO) -> IngestStats:
    """Run one ingestion pass over ``source`` with the given configuration."""
    logger.info(
        f"Starting capture: device={config.device.unique_id}, "
        f"protocol={config.device.protocol}, mode={config.device.mode}"
    )

    gateway = DatabaseGateway()
    decoder = FrameDecoder(config.device, gateway)

    await init_db(config.storage.sqlite_path)

    publisher: Optional[ScanPublisher] = None
    if config.mqtt.enabled:
        publisher = ScanPublisher(config.mqtt, config.device)
        publisher.connect()

    recorder = ScanRecorder(decoder, gateway, config.persist, sink=publisher)

    try:
        stats = await ingest_lines(source, recorder)

        counts = await get_scan_counts()
        logger.info(
            f"Store holds {counts['reader_count']} readers, "
            f"{counts['tag_count']} tags, {counts['scan_count']} scans"
        )
        for row in await get_recent_scans(limit=5):
            logger.info(
                f"Recent scan {row['capture_time']}: reader={row['reader_unique_id']} "
                f"tag={row['tag_unique_id'] or '-'} type={row['tag_type'] or '-'}"
            )
        return stats
    finally:
        if publisher is not None:
            publisher.disconnect()
        await close_db()
        logger.info("Capture service stopped")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Decode captured UHF RFID reader frames")
    parser.add_argument("frames", nargs="?", help="File with one hex frame per line (default: stdin)")
    parser.add_argument("--config", help="Path to JSON configuration file")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        config = load_config(args.config)
        get_profile(config.device.protocol)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if args.frames:
        with open(args.frames, encoding="utf-8") as source:
            stats = asyncio.run(run(config, source))
    else:
        stats = asyncio.run(run(config, sys.stdin))

    return 0 if stats.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
