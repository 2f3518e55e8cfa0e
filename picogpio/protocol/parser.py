"""Response and payload parsing for the GPIO protocol.

Pure functions with no side effects.
"""
from __future__ import annotations

from typing import List

from ..errors import ProtocolError
from ..models import STATUS_SUCCESS
from .serializer import UINT_SIZES


def decode_uint(data: bytes, size: int) -> int:
    """Decode a big-endian unsigned integer from the first `size` bytes.

    Args:
        data: Bytes to decode, at least `size` long
        size: Width in bytes (1, 2 or 4)

    Raises:
        ProtocolError: If size is unsupported or data is too short
    """
    if size not in UINT_SIZES:
        raise ProtocolError("Byte array must be 1, 2, or 4 bytes in length")
    if len(data) < size:
        raise ProtocolError(f"Need {size} bytes to decode, got {len(data)}")
    return int.from_bytes(data[:size], "big")


def parse_status(reply: bytes) -> List[bool]:
    """Interpret each reply byte as a command status.

    Examples:
        >>> parse_status(b"\\x01\\x00\\x01")
        [True, False, True]
    """
    return [byte == STATUS_SUCCESS for byte in reply]


def decode_name(data: bytes) -> str:
    """Decode a device name sent in response to GET_NAME."""
    return bytes(data).decode("utf-8", errors="replace")
