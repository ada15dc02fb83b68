"""Bounds-checked access over raw reader frames.

``between`` takes a start offset and a byte count. The slice is truncated at
the end of the frame, the way reader firmware pads or cuts its trailing
bytes, but the start offset itself must lie inside the frame.
"""


class FrameTooShort(IndexError):
    """Raised when an offset falls outside the received frame."""

    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"offset {index} is outside frame of {length} bytes")
        self.index = index
        self.length = length


def pick(frame: bytes, index: int) -> int:
    """Return the byte at ``index``.

    Raises:
        FrameTooShort: If ``index`` is negative or past the end of the frame.
    """
    if index < 0 or index >= len(frame):
        raise FrameTooShort(index, len(frame))
    return frame[index]


def between(frame: bytes, start: int, count: int) -> bytes:
    """Return up to ``count`` bytes beginning at ``start``.

    Raises:
        FrameTooShort: If ``start`` is outside the frame or ``count`` is negative.
    """
    if start < 0 or start >= len(frame):
        raise FrameTooShort(start, len(frame))
    if count < 0:
        raise FrameTooShort(start + count, len(frame))
    return bytes(frame[start:start + count])
