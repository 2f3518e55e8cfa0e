"""Abstract base class for the transport layer.

The Transport interface is the byte-stream boundary consumed by the client
and the daemon interpreter. Implementations can be a TCP socket, a pyserial
URL handler, an in-process socket pair, or anything else that provides a
reliable ordered byte stream.

Key principles:
- Writes may be deferred until an explicit flush
- Reads are all-or-nothing: exactly `length` bytes or an exception
- Every blocking operation takes a timeout
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..models import DEFAULT_TIMEOUT


class Transport(ABC):
    """Abstract byte-stream transport.

    Transports are responsible for:
    1. Managing connection lifecycle
    2. Buffering and delivering outbound bytes
    3. Accumulating inbound bytes until a reader asks for them

    Transports do NOT know anything about commands or packets.
    """

    @abstractmethod
    def connect(self, host: str, port: int) -> None:
        """Establish the byte stream.

        Must be called before any read or write.

        Raises:
            ConnectionError: If the endpoint is unreachable
        """
        pass

    @abstractmethod
    def write(
        self,
        data: bytes,
        flush: bool = False,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> None:
        """Append bytes to the outbound stream.

        Args:
            data: Bytes to send
            flush: If True, deliver everything pending before returning
            timeout: Seconds allowed for delivery, or None for no limit

        Raises:
            TimeoutError: If delivery did not complete in time
            TransportClosedError: If the stream is closed
        """
        pass

    @abstractmethod
    def flush(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
        """Deliver all previously written, unflushed bytes.

        Same failure modes as write().
        """
        pass

    @abstractmethod
    def read(self, length: int, timeout: Optional[float] = DEFAULT_TIMEOUT) -> bytes:
        """Receive exactly `length` bytes.

        Accumulates across as many underlying deliveries as needed. Never
        returns fewer bytes than requested.

        Raises:
            TimeoutError: If the bytes did not arrive in time
            TransportClosedError: If the stream ended first
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the stream.

        Safe to call multiple times, and safe to call without connect().
        Unblocks any read waiting on this transport.
        """
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the stream is currently open."""
        pass

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close on exit."""
        self.close()
