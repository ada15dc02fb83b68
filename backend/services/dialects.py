"""Reader dialects and their capability profiles.

Every supported reader model is one member of ``Dialect``. Its marker bytes
and capabilities live in a ``DialectProfile`` value rather than in
overridden class constants, so adding a reader model means adding one enum
member and one profile entry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Dialect(str, Enum):
    """Reader dialects understood by the decoder."""

    GENERIC = "generic"
    KINGJOIN = "kingjoin"


@dataclass(frozen=True)
class DialectProfile:
    """Marker bytes and capabilities of one reader dialect."""

    dialect: Dialect
    start_response_byte: int = 0x00
    start_command_byte: int = 0x00
    # Default payload length for auto stream mode
    data_length: int = 1
    auto_read: bool = True
    data_type: str = "hex"
    # Command to poll the reader when it cannot stream reads on its own
    request_read: Optional[bytes] = None


PROFILES: dict[Dialect, DialectProfile] = {
    Dialect.GENERIC: DialectProfile(dialect=Dialect.GENERIC),
    Dialect.KINGJOIN: DialectProfile(
        dialect=Dialect.KINGJOIN,
        start_response_byte=0xCC,
        start_command_byte=0x7C,
        data_length=32,
    ),
}


def get_profile(protocol: str) -> DialectProfile:
    """Look up the profile for a configured protocol name.

    Raises:
        ValueError: If the protocol name is not a known dialect.
    """
    try:
        dialect = Dialect(protocol.strip().lower())
    except ValueError:
        known = ", ".join(d.value for d in Dialect)
        raise ValueError(f"Unknown reader protocol {protocol!r} (known: {known})") from None
    return PROFILES[dialect]
