"""Packet codec for the GPIO daemon protocol."""

from .serializer import PacketBuilder, encode_uint, UINT_SIZES
from .parser import decode_uint, parse_status, decode_name

__all__ = [
    "PacketBuilder",
    "encode_uint",
    "decode_uint",
    "parse_status",
    "decode_name",
    "UINT_SIZES",
]
