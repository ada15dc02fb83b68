"""Services package for the UHF RFID capture service."""

from services.decoder import DecodeError, DecodeResult, FrameDecoder, parse_frame
from services.dialects import Dialect, DialectProfile, get_profile
from services.frame_bytes import FrameTooShort, between, pick
from services.gateway import DatabaseGateway, PersistError, PersistTimeout, ScanGateway
from services.recorder import ScanRecorder

__all__ = [
    "DecodeError",
    "DecodeResult",
    "FrameDecoder",
    "parse_frame",
    "Dialect",
    "DialectProfile",
    "get_profile",
    "FrameTooShort",
    "between",
    "pick",
    "DatabaseGateway",
    "PersistError",
    "PersistTimeout",
    "ScanGateway",
    "ScanRecorder",
]
