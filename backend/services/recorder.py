"""Scan recorder: decode, persist, log and publish.

Persistence is awaited. A scan is only logged as received, and published,
after the gateway confirmed the save. Saves are bounded by a timeout and
retried with exponential backoff; exhausting the attempts is reported to the
caller as False, never raised, so one bad frame cannot stop a read loop.
"""

import asyncio
import logging
from typing import Optional, Protocol

from config import PersistConfig
from models import Scan, ScanEvent
from services.decoder import DecodeError, DecodeOutcome, DecodeResult, FrameDecoder
from services.gateway import PersistError, PersistTimeout, ScanGateway
from services.tag_codec import format_frame

logger = logging.getLogger(__name__)


class ScanSink(Protocol):
    """Receives scans after they were saved."""

    def publish_scan(self, event: ScanEvent) -> bool:
        ...


class ScanRecorder:
    """Sequences decode, persist and log for the frames of one device."""

    def __init__(
        self,
        decoder: FrameDecoder,
        gateway: ScanGateway,
        persist: PersistConfig,
        sink: Optional[ScanSink] = None,
    ) -> None:
        self.decoder = decoder
        self.gateway = gateway
        self.persist_config = persist
        self.sink = sink

    async def persist(self, scan: Scan) -> None:
        """Save a scan, retrying transient failures.

        Raises:
            PersistTimeout: If the last attempt timed out.
            PersistError: If the last attempt failed.
        """
        config = self.persist_config
        delay = config.backoff_seconds
        attempt = 1

        while True:
            try:
                await asyncio.wait_for(self.gateway.save_scan(scan), timeout=config.timeout_seconds)
                return
            except asyncio.TimeoutError:
                error: PersistError = PersistTimeout(
                    f"Saving scan {scan.id} timed out after {config.timeout_seconds}s"
                )
            except PersistError as e:
                error = e

            if attempt >= config.max_attempts:
                raise error

            logger.warning(
                f"Save attempt {attempt}/{config.max_attempts} failed: {error}; "
                f"retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
            delay = min(delay * 2, config.max_backoff_seconds)
            attempt += 1

    async def log_and_persist(self, outcome: DecodeOutcome) -> bool:
        """Persist a decode outcome and log it.

        Returns:
            True if a scan was saved, False otherwise.
        """
        if isinstance(outcome, DecodeError):
            logger.warning(f"Dropped frame ({outcome.reason}): {format_frame(outcome.frame)}")
            return False

        try:
            await self.persist(outcome.scan)
        except PersistTimeout as e:
            logger.error(f"Issues persisting data, save timed out: {e}")
            return False
        except PersistError as e:
            logger.error(f"Issues persisting data: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error persisting data: {e}", exc_info=True)
            return False

        device = self.decoder.device
        profile = self.decoder.profile
        logger.info(f"Received {profile.data_type} data: {format_frame(outcome.frame)}")
        if outcome.scan.tag is not None:
            tag_type = outcome.tag_type.value if outcome.tag_type else "Unknown"
            logger.info(
                f"Reader Id: {outcome.scan.reader_unique_id} | "
                f"Tag Type: {tag_type} | "
                f"Read Mode: {device.mode} | "
                f"Tag Id: {outcome.scan.tag_unique_id}"
            )

        self._publish(outcome)
        return True

    async def handle_frame(self, frame: bytes) -> bool:
        """Decode one frame and record the outcome.

        Returns:
            True if a scan was saved, False otherwise.
        """
        try:
            outcome = await self.decoder.decode(frame)
        except PersistError as e:
            logger.error(f"Entity lookup failed for frame {format_frame(frame)}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error decoding frame {format_frame(frame)}: {e}", exc_info=True)
            return False
        return await self.log_and_persist(outcome)

    def _publish(self, result: DecodeResult) -> None:
        if self.sink is None:
            return

        device = self.decoder.device
        event = ScanEvent(
            scan_id=result.scan.id,
            capture_time=result.scan.capture_time,
            reader_unique_id=result.scan.reader_unique_id,
            mode=device.mode,
            protocol=self.decoder.profile.dialect.value,
            tag_unique_id=result.scan.tag_unique_id,
            tag_type=result.tag_type,
            variant=result.variant,
        )
        self.sink.publish_scan(event)
