"""GPIO network client - drive pins, SPI and delays on a remote GPIO daemon."""

from .models import (
    Command,
    Packet,
    API_VERSION,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
)
from .errors import TransportClosedError, NotConnectedError, ProtocolError
from .client import GpioClient
from .transport import Transport, SerialTransport, TcpTransport

__all__ = [
    "Command",
    "Packet",
    "API_VERSION",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "TransportClosedError",
    "NotConnectedError",
    "ProtocolError",
    "GpioClient",
    "Transport",
    "SerialTransport",
    "TcpTransport",
]
