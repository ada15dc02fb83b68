"""Frame ingestion loop.

Reads captured frames as hex text, one frame per line, and hands them to the
recorder. The loop keeps going past unparseable lines, dropped frames and
failed saves.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from services.recorder import ScanRecorder
from services.tag_codec import parse_hex_frame

logger = logging.getLogger(__name__)


@dataclass
class IngestStats:
    """Counters for one ingestion run."""

    frames: int = 0
    saved: int = 0
    failed: int = 0
    skipped_lines: int = 0


async def ingest_lines(lines: Iterable[str], recorder: ScanRecorder) -> IngestStats:
    """Decode and record every frame in ``lines``.

    Blank lines and ``#`` comments are ignored.

    Returns:
        Counters of frames seen, saved and failed, and lines skipped.
    """
    stats = IngestStats()
    logger.info("Frame ingestion started")

    for line_no, line in enumerate(lines, start=1):
        text = line.split("#", 1)[0].strip()
        if not text:
            continue

        try:
            frame = parse_hex_frame(text)
        except ValueError as e:
            logger.error(f"Line {line_no}: cannot parse frame: {e}")
            stats.skipped_lines += 1
            continue

        stats.frames += 1
        try:
            saved = await recorder.handle_frame(frame)
        except Exception as e:
            logger.error(f"Line {line_no}: error handling frame: {e}", exc_info=True)
            saved = False

        if saved:
            stats.saved += 1
        else:
            stats.failed += 1

    logger.info(
        f"Frame ingestion finished: {stats.frames} frames, {stats.saved} saved, "
        f"{stats.failed} failed, {stats.skipped_lines} lines skipped"
    )
    return stats
