"""Lookup-or-stage resolution of readers and tags.

Both functions only read from the gateway. A missing entity is returned as a
staged value that the gateway creates when the scan is saved.
"""

import logging
from typing import Optional, Union

from models import UNKNOWN_MODE, Existing, NewReader, NewTag, Reader, Tag, TagType
from services.gateway import ScanGateway

logger = logging.getLogger(__name__)


async def resolve_reader(
    gateway: ScanGateway,
    unique_id: str,
    mode: str,
    protocol: str,
) -> Union[Existing, NewReader]:
    """Resolve the reader with ``unique_id`` or stage a new one.

    Args:
        gateway: Persistence gateway to query.
        unique_id: Device identifier from configuration.
        mode: Read mode label used if the reader is new.
        protocol: Dialect name used if the reader is new.
    """
    reader = await gateway.find_reader_by_unique_id(unique_id)
    if reader is not None:
        return Existing(id=reader.id, unique_id=reader.unique_id)

    logger.debug(f"Staging new reader {unique_id}")
    return NewReader(value=Reader(unique_id=unique_id, mode=mode, protocol=protocol))


async def resolve_tag(
    gateway: ScanGateway,
    unique_id: str,
    tag_type: Optional[TagType],
) -> Union[Existing, NewTag]:
    """Resolve the tag with ``unique_id`` or stage a new one with an unknown last mode."""
    tag = await gateway.find_tag_by_unique_id(unique_id)
    if tag is not None:
        return Existing(id=tag.id, unique_id=tag.unique_id)

    logger.debug(f"Staging new tag {unique_id} ({tag_type.value if tag_type else 'untyped'})")
    return NewTag(value=Tag(unique_id=unique_id, type=tag_type, last_mode=UNKNOWN_MODE))
