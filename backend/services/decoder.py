"""Frame decoder for control-code reader dialects.

Frame layout (offsets into the response frame):

    0       start-response marker (dialect specific)
    1-2     reader address
    3       CID1, operation category
    4 or 5  CID2, action (offset 5 for EPC multi-tag reads)
    5 or 6  declared length of the tag data
    10..    tag identity bytes

Dispatch on CID1/CID2:

    CID1              CID2 @  length @  type  continued
    0x10 EPC single   4       5         EPC   yes
    0x11 EPC multi    5       -         -     no (recognized, not extracted)
    0x12 EPC memory   4       6         EPC   no
    0x01 ISO single   4       6         ISO   yes
    0x02 ISO memory   4       6         ISO   no

The identity bytes are ``between(frame, 10, 5 + length)`` for every variant,
even where the length byte sits at offset 6. This matches captures from the
hardware and must not be "corrected" without new captures.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Optional, Union

from config import DeviceConfig
from models import Scan, TagType, TagVariant
from services.dialects import DialectProfile, get_profile
from services.frame_bytes import FrameTooShort, between, pick
from services.gateway import ScanGateway
from services.resolution import resolve_reader, resolve_tag
from services.tag_codec import format_frame, format_tag_id

logger = logging.getLogger(__name__)

# Offsets 0 through 6 must be addressable before dispatching
MIN_HEADER_LENGTH = 7
TAG_ID_OFFSET = 10
TAG_ID_COUNT_BASE = 5

FRAME_TOO_SHORT = "frame_too_short"


class ControlId(IntEnum):
    """CID1: operation category."""

    ISO_SINGLE = 0x01
    ISO_MEM = 0x02
    EPC_SINGLE = 0x10
    EPC_MULTI = 0x11
    EPC_MEM = 0x12


class ControlAction(IntEnum):
    """CID2: action on the category."""

    GET = 0x32
    SET = 0x31
    SUPER_GET = 0x22
    SUPER_SET = 0x21


@dataclass(frozen=True)
class VariantRule:
    variant: TagVariant
    cid1: ControlId
    cid2_offset: int
    length_offset: Optional[int]
    tag_type: Optional[TagType]
    continued: bool


DISPATCH: tuple[VariantRule, ...] = (
    VariantRule(TagVariant.EPC_SINGLE, ControlId.EPC_SINGLE, 4, 5, TagType.EPC, True),
    VariantRule(TagVariant.EPC_MULTI, ControlId.EPC_MULTI, 5, None, None, False),
    VariantRule(TagVariant.EPC_MEM, ControlId.EPC_MEM, 4, 6, TagType.EPC, False),
    VariantRule(TagVariant.ISO_SINGLE, ControlId.ISO_SINGLE, 4, 6, TagType.ISO, True),
    VariantRule(TagVariant.ISO_MEM, ControlId.ISO_MEM, 4, 6, TagType.ISO, False),
)


@dataclass(frozen=True)
class FrameReading:
    """What the frame header says, before any entity resolution."""

    variant: TagVariant
    continued: bool = False
    tag_type: Optional[TagType] = None
    tag_data: bytes = b""


UNRECOGNIZED = FrameReading(variant=TagVariant.UNRECOGNIZED)


def parse_frame(frame: bytes, profile: DialectProfile) -> FrameReading:
    """Interpret the header of ``frame`` and extract the tag identity bytes.

    Raises:
        FrameTooShort: If the frame is shorter than the header, or a declared
            offset lies outside the frame.
    """
    if len(frame) < MIN_HEADER_LENGTH:
        raise FrameTooShort(MIN_HEADER_LENGTH - 1, len(frame))

    if pick(frame, 0) != profile.start_response_byte:
        return UNRECOGNIZED

    cid1 = pick(frame, 3)
    for rule in DISPATCH:
        if cid1 != rule.cid1 or pick(frame, rule.cid2_offset) != ControlAction.GET:
            continue
        if rule.length_offset is None:
            return FrameReading(variant=rule.variant, continued=rule.continued)

        length = pick(frame, rule.length_offset)
        tag_data = between(frame, TAG_ID_OFFSET, TAG_ID_COUNT_BASE + length)
        return FrameReading(
            variant=rule.variant,
            continued=rule.continued,
            tag_type=rule.tag_type,
            tag_data=tag_data,
        )

    return UNRECOGNIZED


@dataclass
class DecodeResult:
    """A decoded frame and the scan built from it."""

    scan: Scan
    variant: TagVariant
    continued: bool
    frame: bytes
    tag_type: Optional[TagType] = None
    tag_data: bytes = field(default=b"", repr=False)


@dataclass
class DecodeError:
    """A frame that could not be addressed at all."""

    reason: str
    frame: bytes
    detail: str = ""


DecodeOutcome = Union[DecodeResult, DecodeError]


class FrameDecoder:
    """Decodes frames of one dialect into scans for one configured device."""

    def __init__(self, device: DeviceConfig, gateway: ScanGateway) -> None:
        """Initialize the decoder.

        Raises:
            ValueError: If ``device.protocol`` names no known dialect.
        """
        self.device = device
        self.profile = get_profile(device.protocol)
        self.gateway = gateway

    async def decode(self, frame: bytes) -> DecodeOutcome:
        """Decode one frame.

        Malformed frames never raise: a frame that cannot be addressed gives
        a DecodeError, an unsupported one a Scan without a tag.
        """
        frame = bytes(frame)
        try:
            reading = parse_frame(frame, self.profile)
        except FrameTooShort as e:
            logger.warning(f"Frame too short ({e}): {format_frame(frame)}")
            return DecodeError(reason=FRAME_TOO_SHORT, frame=frame, detail=str(e))

        capture_time = datetime.now()

        reader = await resolve_reader(
            self.gateway,
            self.device.unique_id,
            self.device.mode,
            self.profile.dialect.value,
        )

        tag = None
        if reading.tag_data:
            tag = await resolve_tag(self.gateway, format_tag_id(reading.tag_data), reading.tag_type)
        else:
            logger.debug(f"No tag identity in {reading.variant.value} frame: {format_frame(frame)}")

        scan = Scan(capture_time=capture_time, reader=reader, tag=tag)
        return DecodeResult(
            scan=scan,
            variant=reading.variant,
            continued=reading.continued,
            frame=frame,
            tag_type=reading.tag_type,
            tag_data=reading.tag_data,
        )
