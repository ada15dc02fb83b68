"""Persistence gateway used by the decoder and recorder."""

import logging
from typing import Optional, Protocol

import database
from models import Reader, Scan, Tag

logger = logging.getLogger(__name__)


class PersistError(Exception):
    """A scan could not be saved."""


class PersistTimeout(PersistError):
    """Saving a scan did not complete within the configured timeout."""


class ScanGateway(Protocol):
    """Query and save surface the core needs from storage."""

    async def find_reader_by_unique_id(self, unique_id: str) -> Optional[Reader]:
        ...

    async def find_tag_by_unique_id(self, unique_id: str) -> Optional[Tag]:
        ...

    async def save_scan(self, scan: Scan) -> None:
        """Save ``scan`` and any staged reader/tag, raising PersistError on failure."""
        ...


class DatabaseGateway:
    """ScanGateway backed by the aiosqlite database module."""

    async def find_reader_by_unique_id(self, unique_id: str) -> Optional[Reader]:
        try:
            return await database.find_reader_by_unique_id(unique_id)
        except Exception as e:
            raise PersistError(f"Failed to look up reader {unique_id}: {e}") from e

    async def find_tag_by_unique_id(self, unique_id: str) -> Optional[Tag]:
        try:
            return await database.find_tag_by_unique_id(unique_id)
        except Exception as e:
            raise PersistError(f"Failed to look up tag {unique_id}: {e}") from e

    async def save_scan(self, scan: Scan) -> None:
        try:
            await database.save_scan(scan)
        except Exception as e:
            raise PersistError(f"Failed to save scan {scan.id}: {e}") from e
