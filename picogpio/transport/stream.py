"""Shared machinery for byte-stream transports.

A StreamTransport owns:
- An outbound buffer holding written but unflushed bytes
- A background reader thread forwarding received chunks into a StreamBuffer
- The StreamBuffer that protocol code reads exact lengths from

Subclasses only provide the raw stream primitives (_open, _send, _receive,
_shutdown).
"""
from __future__ import annotations

import logging
import threading
from abc import abstractmethod
from typing import Optional

from ..errors import NotConnectedError, TransportClosedError
from ..models import DEFAULT_TIMEOUT
from .base import Transport
from .buffer import StreamBuffer

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096  # bytes


class StreamTransport(Transport):
    """Transport with deferred writes and a buffered, blocking read side."""

    def __init__(self, chunk_size: int = READ_CHUNK_SIZE):
        """Initialize stream transport.

        Args:
            chunk_size: Maximum bytes to receive per underlying read
        """
        self._chunk_size = chunk_size

        self._buffer = StreamBuffer()
        self._pending = bytearray()
        self._write_lock = threading.Lock()

        # Threading
        self._connected = False
        self._active = False
        self._reader_thread: Optional[threading.Thread] = None

    def connect(self, host: str, port: int) -> None:
        """Open the stream to host:port and start receiving."""
        if self._connected:
            logger.warning("Already connected")
            return

        self._open(host, port)
        self._start()

    def write(
        self,
        data: bytes,
        flush: bool = False,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> None:
        self._ensure_open()

        with self._write_lock:
            self._pending.extend(data)

        if flush:
            self.flush(timeout)

    def flush(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
        self._ensure_open()

        with self._write_lock:
            if not self._pending:
                return
            data = bytes(self._pending)
            self._pending.clear()
            logger.debug(f"Sending {len(data)} bytes")
            self._send(data, timeout)

    def read(self, length: int, timeout: Optional[float] = DEFAULT_TIMEOUT) -> bytes:
        if not self._connected and not self._buffer.closed:
            raise NotConnectedError("Transport is not connected; call connect() first")

        data = self._buffer.read_exactly(length, timeout)
        logger.debug(f"Received {len(data)} bytes")
        return data

    def close(self) -> None:
        """Close the stream and unblock any pending read."""
        was_active = self._active
        self._active = False
        self._connected = False

        try:
            self._shutdown()
        except Exception as e:
            logger.error(f"Error closing stream: {e}")

        self._buffer.close()

        with self._write_lock:
            self._pending.clear()

        reader = self._reader_thread
        if reader and reader.is_alive() and reader is not threading.current_thread():
            reader.join(timeout=1.0)
        self._reader_thread = None

        if was_active:
            logger.info("Transport closed")

    def is_connected(self) -> bool:
        return self._connected

    @property
    def buffered(self) -> int:
        """Number of received bytes not yet read."""
        return self._buffer.size

    # Stream primitives

    @abstractmethod
    def _open(self, host: str, port: int) -> None:
        """Open the underlying stream.

        Raises:
            ConnectionError: If the endpoint is unreachable
        """
        pass

    @abstractmethod
    def _send(self, data: bytes, timeout: Optional[float]) -> None:
        """Deliver bytes to the underlying stream.

        Raises:
            TimeoutError: If delivery did not complete in time
            TransportClosedError: If the stream failed or was closed
        """
        pass

    @abstractmethod
    def _receive(self) -> bytes:
        """Receive the next chunk, or b"" if nothing arrived within the poll interval.

        Raises:
            TransportClosedError: If the stream ended
        """
        pass

    @abstractmethod
    def _shutdown(self) -> None:
        """Release the underlying stream. Must tolerate never having been opened."""
        pass

    # Internal methods

    def _start(self) -> None:
        """Reset buffers and start the reader thread on a freshly opened stream."""
        self._buffer.reset()
        with self._write_lock:
            self._pending.clear()

        self._active = True
        self._connected = True

        self._reader_thread = threading.Thread(
            target=self._reader_loop,
            daemon=True,
            name="TransportReader"
        )
        self._reader_thread.start()

    def _ensure_open(self) -> None:
        if self._connected:
            return
        if self._buffer.closed:
            raise TransportClosedError("Transport is closed")
        raise NotConnectedError("Transport is not connected; call connect() first")

    def _reader_loop(self) -> None:
        """Read chunks from the stream into the receive buffer."""
        logger.debug("Reader thread started")

        while self._active:
            try:
                chunk = self._receive()
            except TransportClosedError as e:
                if self._active:
                    logger.info(f"Stream ended: {e}")
                break
            except Exception as e:
                if self._active:
                    logger.error(f"Reader error: {e}")
                break

            if chunk:
                self._buffer.write(chunk)

        # Whatever ended the loop, nothing more will arrive
        self._connected = False
        self._buffer.close()
        logger.debug("Reader thread exiting")
