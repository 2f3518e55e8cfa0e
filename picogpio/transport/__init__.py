"""Transport layer for GPIO daemon communication."""

from .base import Transport
from .buffer import StreamBuffer
from .stream import StreamTransport
from .serial import SerialTransport
from .tcp import TcpTransport

__all__ = ["Transport", "StreamBuffer", "StreamTransport", "SerialTransport", "TcpTransport"]
