"""Packet serializer for GPIO daemon requests.

Turns a command plus payload fragments into wire bytes.
Pure functions with no side effects.
"""
from __future__ import annotations

from typing import List, Union

from ..errors import ProtocolError
from ..models import Command, Packet

# Integer widths used by the wire format
UINT_SIZES = (1, 2, 4)

Fragment = Union[int, bytes, bytearray, memoryview]


def encode_uint(value: int, size: int) -> bytes:
    """Encode an unsigned integer as big-endian bytes.

    Args:
        value: Integer to encode
        size: Width in bytes (1, 2 or 4)

    Returns:
        Encoded bytes, exactly `size` long

    Raises:
        ProtocolError: If size is not a supported width
        ValueError: If value does not fit in `size` bytes

    Examples:
        >>> encode_uint(260, 4)
        b'\\x00\\x00\\x01\\x04'
    """
    if size not in UINT_SIZES:
        raise ProtocolError(f"Unsupported integer width: {size} bytes")
    if not 0 <= value < (1 << (size * 8)):
        raise ValueError(f"{value} does not fit in {size} unsigned byte(s)")
    return value.to_bytes(size, "big")


class PacketBuilder:
    """Accumulates payload fragments for one command.

    Fragments are concatenated in the order they were added, prefixed by
    the command's opcode. No payload validation is done here; the caller
    owns the payload shape. A builder produces exactly one packet.

    Example:
        >>> packet = PacketBuilder(Command.SET_PIN_SINGLE).add(16).add(1).build()
        >>> packet.data
        b'\\x00\\x10\\x01'
    """

    def __init__(self, command: Command):
        self._command = command
        self._fragments: List[bytes] = []
        self._built = False

    @property
    def command(self) -> Command:
        return self._command

    def add(self, fragment: Fragment) -> PacketBuilder:
        """Append a single byte (int) or a byte sequence."""
        if self._built:
            raise ProtocolError("Packet already built; use a new builder")
        if isinstance(fragment, int):
            self._fragments.append(bytes((fragment,)))
        else:
            self._fragments.append(bytes(fragment))
        return self

    def build(self) -> Packet:
        """Concatenate opcode and fragments into a Packet."""
        if self._built:
            raise ProtocolError("Packet already built; use a new builder")
        self._built = True
        return Packet(bytes((self._command.opcode,)) + b"".join(self._fragments))
