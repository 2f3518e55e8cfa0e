"""Receive buffer for the transport layer.

Provides a thread-safe FIFO byte buffer with blocking exact-length reads.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from ..errors import TransportClosedError

logger = logging.getLogger(__name__)


class StreamBuffer:
    """Thread-safe byte buffer with FIFO reads that wait for enough data.

    The reader thread of a transport writes chunks as they arrive; protocol
    code consumes them with read_exactly(). Bytes are removed strictly in
    arrival order.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._closed = False

    def write(self, data: bytes) -> None:
        """Append received data and wake waiting readers."""
        if not data:
            return

        with self._cond:
            self._buffer.extend(data)
            self._cond.notify_all()

    def read_exactly(self, size: int, timeout: Optional[float] = None) -> bytes:
        """Remove and return exactly `size` bytes from the front of the buffer.

        Blocks until enough bytes have accumulated.

        Args:
            size: Number of bytes to read.
            timeout: Seconds to wait, or None to wait indefinitely.

        Returns:
            Bytes read, always `size` long.

        Raises:
            TimeoutError: If the bytes did not arrive in time.
            TransportClosedError: If the buffer was closed before `size`
                bytes became available.
        """
        if size < 0:
            raise ValueError(f"Cannot read a negative number of bytes: {size}")

        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while len(self._buffer) < size:
                if self._closed:
                    raise TransportClosedError(
                        f"Stream closed with {len(self._buffer)} of {size} bytes received"
                    )
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"Timed out waiting for {size} bytes "
                        f"({len(self._buffer)} received)"
                    )
                self._cond.wait(remaining)

            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            return data

    def close(self) -> None:
        """Mark the stream as ended and wake all waiting readers.

        Bytes already buffered can still be read.
        """
        with self._cond:
            if not self._closed:
                logger.debug(f"Buffer closed with {len(self._buffer)} unread bytes")
            self._closed = True
            self._cond.notify_all()

    def reset(self) -> None:
        """Discard buffered data and reopen the buffer for a new stream."""
        with self._cond:
            self._buffer.clear()
            self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def size(self) -> int:
        """Current number of bytes in buffer."""
        with self._cond:
            return len(self._buffer)
