"""pyserial-backed transport for talking to a GPIO daemon.

Uses pyserial's URL handlers, so the same transport works over a TCP socket
(socket://host:port, the default), RFC 2217 (rfc2217://), a local loopback
(loop://) or a real serial port when given an explicit URL.
"""
from __future__ import annotations

import logging
from typing import Optional

import serial

from ..errors import TransportClosedError
from .stream import StreamTransport, READ_CHUNK_SIZE

logger = logging.getLogger(__name__)

SOCKET_URL = "socket://{host}:{port}"
READ_TIMEOUT = 0.1  # seconds


class SerialTransport(StreamTransport):
    """Transport over a pyserial port opened with serial_for_url().

    Example:
        >>> transport = SerialTransport()
        >>> transport.connect("192.168.1.50", 8080)
        >>> transport.write(b"\\x08", flush=True)
        >>> transport.read(1)
        b'\\x02'
        >>> transport.close()
    """

    def __init__(self,
                 url: Optional[str] = None,
                 timeout: float = READ_TIMEOUT,
                 chunk_size: int = READ_CHUNK_SIZE):
        """Initialize serial transport.

        Args:
            url: pyserial URL to open, or None to build socket://host:port
                from the arguments given to connect()
            timeout: Poll interval of the reader thread in seconds
            chunk_size: Maximum bytes to read per chunk
        """
        super().__init__(chunk_size=chunk_size)
        self._url = url
        self._timeout = timeout
        self._serial: Optional[serial.SerialBase] = None
        self._port_url: Optional[str] = None

    @property
    def url(self) -> Optional[str]:
        """URL of the open port, or the configured URL if not connected."""
        return self._port_url or self._url

    def _open(self, host: str, port: int) -> None:
        url = self._url or SOCKET_URL.format(host=host, port=port)

        try:
            self._serial = serial.serial_for_url(url, timeout=self._timeout)
        except serial.SerialException as e:
            logger.error(f"Failed to open {url}: {e}")
            raise ConnectionError(f"Could not connect to {url}: {e}") from e

        self._port_url = url
        logger.info(f"Connected to {url}")

    def _send(self, data: bytes, timeout: Optional[float]) -> None:
        ser = self._serial
        if ser is None:
            raise TransportClosedError("Serial port is closed")

        try:
            if ser.write_timeout != timeout:
                ser.write_timeout = timeout
            ser.write(data)
            ser.flush()
        except serial.SerialTimeoutException as e:
            raise TimeoutError(f"Write timed out after {timeout}s") from e
        except serial.SerialException as e:
            logger.error(f"Send error: {e}")
            raise TransportClosedError(f"Write failed: {e}") from e

    def _receive(self) -> bytes:
        ser = self._serial
        if ser is None:
            raise TransportClosedError("Serial port is closed")

        try:
            return ser.read(min(self._chunk_size, max(1, ser.in_waiting)))
        except serial.SerialException as e:
            raise TransportClosedError(f"Read failed: {e}") from e

    def _shutdown(self) -> None:
        ser, self._serial = self._serial, None
        if ser is None:
            return
        ser.close()
        logger.info(f"Disconnected from {self._port_url}")
        self._port_url = None
