"""Shared fixtures for the capture service tests."""

from typing import Optional

import pytest

from config import DeviceConfig, PersistConfig
from models import NewReader, NewTag, Reader, Scan, Tag


class FakeGateway:
    """In-memory ScanGateway that records lookups and saves."""

    def __init__(self) -> None:
        self.readers: dict[str, Reader] = {}
        self.tags: dict[str, Tag] = {}
        self.saved: list[Scan] = []
        self.lookups: list[str] = []

    async def find_reader_by_unique_id(self, unique_id: str) -> Optional[Reader]:
        self.lookups.append(f"reader:{unique_id}")
        return self.readers.get(unique_id)

    async def find_tag_by_unique_id(self, unique_id: str) -> Optional[Tag]:
        self.lookups.append(f"tag:{unique_id}")
        return self.tags.get(unique_id)

    async def save_scan(self, scan: Scan) -> None:
        if isinstance(scan.reader, NewReader):
            self.readers.setdefault(scan.reader.value.unique_id, scan.reader.value)
        if isinstance(scan.tag, NewTag):
            self.tags.setdefault(scan.tag.value.unique_id, scan.tag.value)
        self.saved.append(scan)


@pytest.fixture
def gateway() -> FakeGateway:
    """Create an empty in-memory gateway."""
    return FakeGateway()


@pytest.fixture
def device() -> DeviceConfig:
    """Device configured with the generic dialect (0x00 markers)."""
    return DeviceConfig(unique_id="reader-01", mode="auto", protocol="generic")


@pytest.fixture
def persist_config() -> PersistConfig:
    """Fast persistence bounds for tests."""
    return PersistConfig(timeout_seconds=1.0, max_attempts=3, backoff_seconds=0, max_backoff_seconds=0)
