"""Plain TCP socket transport.

Used by the mock daemon to serve accepted connections, and by tests to run
the client and interpreter over an in-process socket pair.
"""
from __future__ import annotations

import logging
import select
import socket
import time
from typing import Optional

from ..errors import TransportClosedError
from ..models import DEFAULT_TIMEOUT
from .stream import StreamTransport, READ_CHUNK_SIZE

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1  # seconds


class TcpTransport(StreamTransport):
    """Transport over a non-blocking stdlib socket.

    Example:
        >>> left, right = socket.socketpair()
        >>> a = TcpTransport.from_socket(left)
        >>> b = TcpTransport.from_socket(right)
        >>> a.write(b"ping", flush=True)
        >>> b.read(4)
        b'ping'
    """

    def __init__(self,
                 chunk_size: int = READ_CHUNK_SIZE,
                 connect_timeout: float = DEFAULT_TIMEOUT,
                 poll_interval: float = POLL_INTERVAL):
        """Initialize TCP transport.

        Args:
            chunk_size: Maximum bytes to receive per recv() call
            connect_timeout: Seconds allowed to establish a connection
            poll_interval: Reader thread wake-up interval in seconds
        """
        super().__init__(chunk_size=chunk_size)
        self._connect_timeout = connect_timeout
        self._poll_interval = poll_interval
        self._sock: Optional[socket.socket] = None

    @classmethod
    def from_socket(cls, sock: socket.socket, **kwargs) -> TcpTransport:
        """Wrap an already connected socket and start receiving."""
        transport = cls(**kwargs)
        transport._attach(sock)
        transport._start()
        return transport

    @property
    def peer(self) -> Optional[str]:
        """Remote address as "host:port", if known."""
        if self._sock is None:
            return None
        try:
            name = self._sock.getpeername()
        except OSError:
            return None
        if isinstance(name, tuple):
            return f"{name[0]}:{name[1]}"
        return str(name) or None

    def _open(self, host: str, port: int) -> None:
        try:
            sock = socket.create_connection((host, port), timeout=self._connect_timeout)
        except OSError as e:
            logger.error(f"Failed to connect to {host}:{port}: {e}")
            raise ConnectionError(f"Could not connect to {host}:{port}: {e}") from e

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._attach(sock)
        logger.info(f"Connected to {host}:{port}")

    def _attach(self, sock: socket.socket) -> None:
        sock.setblocking(False)
        self._sock = sock

    def _send(self, data: bytes, timeout: Optional[float]) -> None:
        sock = self._sock
        if sock is None:
            raise TransportClosedError("Socket is closed")

        deadline = None if timeout is None else time.monotonic() + timeout
        view = memoryview(data)

        while view:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"Write timed out after {timeout}s")
            try:
                _, writable, _ = select.select([], [sock], [], remaining)
                if not writable:
                    continue
                sent = sock.send(view)
            except BlockingIOError:
                continue
            except (OSError, ValueError) as e:
                logger.error(f"Send error: {e}")
                raise TransportClosedError(f"Write failed: {e}") from e
            view = view[sent:]

    def _receive(self) -> bytes:
        sock = self._sock
        if sock is None:
            raise TransportClosedError("Socket is closed")

        try:
            readable, _, _ = select.select([sock], [], [], self._poll_interval)
            if not readable:
                return b""
            chunk = sock.recv(self._chunk_size)
        except BlockingIOError:
            return b""
        except (OSError, ValueError) as e:
            raise TransportClosedError(f"Read failed: {e}") from e

        if not chunk:
            raise TransportClosedError("Connection closed by peer")
        return chunk

    def _shutdown(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone
            pass
        sock.close()
