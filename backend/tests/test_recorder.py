"""Tests for the scan recorder.

Covers awaited persistence, timeouts, retries and the log lines written
after a save.
"""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock, MagicMock

from config import PersistConfig
from models import ScanEvent, TagType, TagVariant
from services.decoder import DecodeError, FrameDecoder
from services.gateway import PersistError, PersistTimeout
from services.recorder import ScanRecorder

EPC_SINGLE = bytes.fromhex("00 0000 10 32 04 00 000000 AABBCCDD")
EPC_MULTI = bytes.fromhex("00 0000 11 00 32 00")


@pytest.fixture
def recorder(gateway, device, persist_config) -> ScanRecorder:
    """Create a recorder over the in-memory gateway."""
    return ScanRecorder(FrameDecoder(device, gateway), gateway, persist_config)


class TestLogAndPersist:
    """Test cases for log_and_persist."""

    @pytest.mark.asyncio
    async def test_success_logs_tag_details(self, recorder, gateway, caplog) -> None:
        caplog.set_level(logging.INFO, logger="services.recorder")

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        saved = await recorder.log_and_persist(outcome)

        assert saved is True
        assert gateway.saved == [outcome.scan]
        messages = [r.getMessage() for r in caplog.records]
        assert "Received hex data: 00-00-00-10-32-04-00-00-00-00-AA-BB-CC-DD" in messages
        assert (
            "Reader Id: reader-01 | Tag Type: EPC | Read Mode: auto | Tag Id: AABBCCDD"
            in messages
        )

    @pytest.mark.asyncio
    async def test_tag_line_omitted_without_tag(self, recorder, gateway, caplog) -> None:
        caplog.set_level(logging.INFO, logger="services.recorder")

        outcome = await recorder.decoder.decode(EPC_MULTI)
        saved = await recorder.log_and_persist(outcome)

        assert saved is True
        assert len(gateway.saved) == 1
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("Received hex data") for m in messages)
        assert not any(m.startswith("Reader Id:") for m in messages)

    @pytest.mark.asyncio
    async def test_decode_error_is_not_persisted(self, recorder, gateway, caplog) -> None:
        saved = await recorder.log_and_persist(DecodeError(reason="frame_too_short", frame=b"\x00"))

        assert saved is False
        assert gateway.saved == []
        assert "Dropped frame (frame_too_short): 00" in caplog.text

    @pytest.mark.asyncio
    async def test_persist_failure_returns_false(self, recorder, gateway, caplog) -> None:
        gateway.save_scan = AsyncMock(side_effect=PersistError("disk full"))

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        saved = await recorder.log_and_persist(outcome)

        assert saved is False
        assert gateway.save_scan.await_count == 3
        error_records = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(error_records) == 1
        assert "Issues persisting data: disk full" in error_records[0].getMessage()
        assert "Reader Id:" not in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_false(self, recorder, gateway, caplog) -> None:
        gateway.save_scan = AsyncMock(side_effect=RuntimeError("Database not initialized"))

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        saved = await recorder.log_and_persist(outcome)

        assert saved is False
        assert gateway.save_scan.await_count == 1
        assert "Unexpected error persisting data: Database not initialized" in caplog.text
        assert "Received" not in caplog.text

    @pytest.mark.asyncio
    async def test_success_logged_only_after_save_completes(self, recorder, gateway, caplog) -> None:
        """The received line must not appear while the save is still pending."""
        caplog.set_level(logging.INFO, logger="services.recorder")
        release = asyncio.Event()
        seen_before_release: list[str] = []

        async def slow_save(scan) -> None:
            await release.wait()
            seen_before_release.extend(r.getMessage() for r in caplog.records)

        gateway.save_scan = slow_save

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        task = asyncio.create_task(recorder.log_and_persist(outcome))
        await asyncio.sleep(0.01)
        release.set()

        assert await task is True
        assert not any(m.startswith("Received") for m in seen_before_release)
        assert any(r.getMessage().startswith("Received") for r in caplog.records)


class TestPersist:
    """Test cases for bounded, retried persistence."""

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, recorder, gateway, caplog) -> None:
        gateway.save_scan = AsyncMock(side_effect=[PersistError("database is locked"), None])

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        saved = await recorder.log_and_persist(outcome)

        assert saved is True
        assert gateway.save_scan.await_count == 2
        assert "Save attempt 1/3 failed: database is locked" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_is_distinct_failure(self, gateway, device) -> None:
        async def hang(scan) -> None:
            await asyncio.sleep(10)

        gateway.save_scan = hang
        config = PersistConfig(timeout_seconds=0.05, max_attempts=2, backoff_seconds=0)
        recorder = ScanRecorder(FrameDecoder(device, gateway), gateway, config)

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        with pytest.raises(PersistTimeout):
            await recorder.persist(outcome.scan)

    @pytest.mark.asyncio
    async def test_timeout_reported_as_failure(self, gateway, device, caplog) -> None:
        async def hang(scan) -> None:
            await asyncio.sleep(10)

        gateway.save_scan = hang
        config = PersistConfig(timeout_seconds=0.05, max_attempts=1)
        recorder = ScanRecorder(FrameDecoder(device, gateway), gateway, config)

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        saved = await recorder.log_and_persist(outcome)

        assert saved is False
        assert "save timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_backoff_doubles_up_to_cap(self, gateway, device, monkeypatch) -> None:
        sleeps: list[float] = []

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)

        monkeypatch.setattr("services.recorder.asyncio.sleep", fake_sleep)
        gateway.save_scan = AsyncMock(side_effect=PersistError("locked"))
        config = PersistConfig(max_attempts=5, backoff_seconds=0.5, max_backoff_seconds=1.5)
        recorder = ScanRecorder(FrameDecoder(device, gateway), gateway, config)

        outcome = await recorder.decoder.decode(EPC_SINGLE)
        with pytest.raises(PersistError):
            await recorder.persist(outcome.scan)

        assert sleeps == [0.5, 1.0, 1.5, 1.5]


class TestHandleFrame:
    """Test cases for the decode-persist-log sequence."""

    @pytest.mark.asyncio
    async def test_handle_frame_saves_scan(self, recorder, gateway) -> None:
        assert await recorder.handle_frame(EPC_SINGLE) is True
        assert list(gateway.tags) == ["AABBCCDD"]

    @pytest.mark.asyncio
    async def test_handle_short_frame(self, recorder, gateway) -> None:
        assert await recorder.handle_frame(b"\x00\x01") is False
        assert gateway.saved == []

    @pytest.mark.asyncio
    async def test_lookup_failure_is_reported(self, recorder, gateway, caplog) -> None:
        gateway.find_reader_by_unique_id = AsyncMock(side_effect=PersistError("db gone"))

        assert await recorder.handle_frame(EPC_SINGLE) is False
        assert "Entity lookup failed" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_lookup_error_is_reported(self, recorder, gateway, caplog) -> None:
        gateway.find_tag_by_unique_id = AsyncMock(side_effect=RuntimeError("boom"))

        assert await recorder.handle_frame(EPC_SINGLE) is False
        assert gateway.saved == []
        assert "Unexpected error decoding frame" in caplog.text

    @pytest.mark.asyncio
    async def test_saved_scan_is_published(self, gateway, device, persist_config) -> None:
        sink = MagicMock()
        recorder = ScanRecorder(FrameDecoder(device, gateway), gateway, persist_config, sink=sink)

        assert await recorder.handle_frame(EPC_SINGLE) is True

        sink.publish_scan.assert_called_once()
        event = sink.publish_scan.call_args[0][0]
        assert isinstance(event, ScanEvent)
        assert event.reader_unique_id == "reader-01"
        assert event.tag_unique_id == "AABBCCDD"
        assert event.tag_type == TagType.EPC
        assert event.variant == TagVariant.EPC_SINGLE
        assert event.protocol == "generic"

    @pytest.mark.asyncio
    async def test_failed_save_is_not_published(self, gateway, device, persist_config) -> None:
        sink = MagicMock()
        gateway.save_scan = AsyncMock(side_effect=PersistError("nope"))
        recorder = ScanRecorder(FrameDecoder(device, gateway), gateway, persist_config, sink=sink)

        assert await recorder.handle_frame(EPC_SINGLE) is False
        sink.publish_scan.assert_not_called()
