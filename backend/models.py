"""Pydantic models for the UHF RFID capture service.

Reader, Tag and Scan entities plus the reference-or-new unions that link a
Scan to its Reader and Tag.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

UNKNOWN_MODE = "Unknown"


class TagType(str, Enum):
    """Air-interface family of an RFID tag."""

    EPC = "EPC"
    ISO = "ISO"


class TagVariant(str, Enum):
    """Air-interface variant selected by a frame's control codes."""

    EPC_SINGLE = "EPC_SINGLE"
    EPC_MULTI = "EPC_MULTI"
    EPC_MEM = "EPC_MEM"
    ISO_SINGLE = "ISO_SINGLE"
    ISO_MEM = "ISO_MEM"
    UNRECOGNIZED = "UNRECOGNIZED"


# --- Entities ---


class Reader(BaseModel):
    """Identity record for a physical reader device."""

    id: UUID = Field(default_factory=uuid4)
    unique_id: str = Field(..., min_length=1, description="Externally supplied device identifier")
    mode: Optional[str] = None
    protocol: Optional[str] = None
    last_updated: datetime = Field(default_factory=datetime.now)


class Tag(BaseModel):
    """Identity record for an RFID tag observed by any reader."""

    id: UUID = Field(default_factory=uuid4)
    unique_id: str = Field(..., min_length=1, description="Tag air-interface identifier")
    type: Optional[TagType] = None
    last_mode: str = UNKNOWN_MODE


# --- Reference-or-new links ---


class Existing(BaseModel):
    """Reference to an entity that is already persisted."""

    kind: Literal["existing"] = "existing"
    id: UUID
    unique_id: str


class NewReader(BaseModel):
    """Reader staged for creation together with the scan."""

    kind: Literal["new"] = "new"
    value: Reader


class NewTag(BaseModel):
    """Tag staged for creation together with the scan."""

    kind: Literal["new"] = "new"
    value: Tag


ReaderRef = Annotated[Union[Existing, NewReader], Field(discriminator="kind")]
TagRef = Annotated[Union[Existing, NewTag], Field(discriminator="kind")]


class Scan(BaseModel):
    """An observation linking a reader and a tag at a point in time.

    ``tag`` is None when the frame carried no tag identity.
    """

    id: UUID = Field(default_factory=uuid4)
    capture_time: datetime = Field(default_factory=datetime.now)
    reader: ReaderRef
    tag: Optional[TagRef] = None

    @property
    def reader_unique_id(self) -> str:
        if isinstance(self.reader, Existing):
            return self.reader.unique_id
        return self.reader.value.unique_id

    @property
    def tag_unique_id(self) -> Optional[str]:
        if self.tag is None:
            return None
        if isinstance(self.tag, Existing):
            return self.tag.unique_id
        return self.tag.value.unique_id


class ScanEvent(BaseModel):
    """Payload published to the message queue for a persisted scan."""

    scan_id: UUID
    capture_time: datetime
    reader_unique_id: str
    mode: str
    protocol: str
    tag_unique_id: Optional[str] = None
    tag_type: Optional[TagType] = None
    variant: TagVariant
