"""Hex helpers for tag identities and captured frames.

Tag identities are stored as uppercase hex without separators, e.g.
``E2003412B802011C``. Captured frames arrive as text in several spellings:

- ``CC FF FF 10 32 ...`` (space separated)
- ``CC-FF-FF-10-32-...`` (dash separated, as logged by the reader software)
- ``ccffff1032...`` (packed, optionally prefixed with ``0x``)
"""

import re

_SEPARATORS = re.compile(r"[\s:\-,]+")
_HEX = re.compile(r"^[0-9A-Fa-f]*$")


def format_tag_id(data: bytes) -> str:
    """Render identity bytes as an uppercase hex tag id."""
    return data.hex().upper()


def format_frame(frame: bytes) -> str:
    """Render a frame as dash separated hex pairs for log lines."""
    return "-".join(f"{b:02X}" for b in frame)


def parse_hex_frame(text: str) -> bytes:
    """Parse one captured frame from hex text.

    Raises:
        ValueError: If the text is empty, has non-hex characters or an odd
            number of digits.
    """
    parts = _SEPARATORS.sub(" ", text.strip()).split(" ")
    # "0xCCFFFF..." and "0xCC 0xFF ..." are both accepted
    cleaned = "".join(part[2:] if part[:2].lower() == "0x" else part for part in parts)

    if not cleaned:
        raise ValueError("empty frame")
    if not _HEX.match(cleaned):
        raise ValueError(f"non-hex characters in frame: {text!r}")
    if len(cleaned) % 2:
        raise ValueError(f"odd number of hex digits in frame: {text!r}")
    return bytes.fromhex(cleaned)
