"""Mock GPIO daemon listening on TCP.

Stands in for the daemon that runs on the real device, so the client can be
exercised without hardware. Each accepted connection gets a fresh
CommandInterpreter (and so a fresh pin table); connections are served one at
a time.
"""
from __future__ import annotations

import logging
import socket
import threading
from typing import Optional, Tuple

from ..models import API_VERSION, DEFAULT_PORT
from ..transport import TcpTransport
from .interpreter import CommandInterpreter, DEFAULT_NAME

logger = logging.getLogger(__name__)

DAEMON_CHUNK_SIZE = 32 * 1024  # bytes
ACCEPT_POLL_INTERVAL = 0.1  # seconds


class MockDaemon:
    """TCP server speaking the GPIO daemon protocol.

    Example:
        >>> with MockDaemon(port=0, name="Test server") as daemon:
        ...     daemon.start()
        ...     host, port = daemon.address
        ...     with GpioClient(host, port) as client:
        ...         client.get_name()
        'Test server'
    """

    def __init__(self,
                 host: str = "127.0.0.1",
                 port: int = DEFAULT_PORT,
                 name: str = DEFAULT_NAME,
                 api_version: int = API_VERSION,
                 chunk_size: int = DAEMON_CHUNK_SIZE):
        """Initialize mock daemon.

        Args:
            host: Address to bind to
            port: Port to bind to, or 0 to pick a free one (see address)
            name: Name reported in reply to GET_NAME
            api_version: API version to emulate
            chunk_size: Maximum bytes received per read
        """
        self._host = host
        self._port = port
        self._name = name
        self._api_version = api_version
        self._chunk_size = chunk_size

        self._listener: Optional[socket.socket] = None
        self._connection: Optional[TcpTransport] = None
        self._connections_served = 0

        # Threading
        self._active = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); reflects the real port when bound to port 0."""
        listener = self._listener
        if listener is None:
            return self._host, self._port
        host, port = listener.getsockname()[:2]
        return host, port

    @property
    def connections_served(self) -> int:
        return self._connections_served

    def is_open(self) -> bool:
        return self._active

    def open(self) -> None:
        """Bind the listening socket. Safe to call more than once."""
        if self._listener is not None:
            return

        listener = socket.create_server((self._host, self._port), backlog=1)
        listener.settimeout(ACCEPT_POLL_INTERVAL)
        self._listener = listener
        self._active = True

        host, port = self.address
        logger.info(f"Mock daemon listening on {host}:{port}")

    def serve_once(self) -> bool:
        """Accept one connection and serve it until it ends.

        Returns:
            True if a connection was served, False if the daemon was closed
            while waiting for one
        """
        self.open()

        logger.info("Awaiting connection")
        accepted = self._accept()
        if accepted is None:
            return False

        sock, addr = accepted
        logger.info(f"Got connection from {addr[0]}:{addr[1]}")

        transport = TcpTransport.from_socket(sock, chunk_size=self._chunk_size)
        interpreter = CommandInterpreter(
            transport,
            name=self._name,
            api_version=self._api_version,
        )

        with self._lock:
            self._connection = transport
            closing = not self._active
        if closing:
            # close() ran before the connection was registered
            transport.close()

        try:
            interpreter.serve()
        finally:
            with self._lock:
                self._connection = None
            self._connections_served += 1

        logger.info("Closed connection")
        return True

    def serve_forever(self) -> None:
        """Serve connections one after another until close() is called.

        Failures inside a connection only end that connection. A failure
        to accept while the daemon is open propagates.
        """
        self.open()
        while self._active:
            if not self.serve_once():
                break

    def start(self, forever: bool = True) -> None:
        """Serve in a background thread.

        Args:
            forever: If False, stop after the first connection ends
        """
        self.open()
        if self._thread and self._thread.is_alive():
            return

        self._thread = threading.Thread(
            target=self.serve_forever if forever else self.serve_once,
            daemon=True,
            name="MockDaemon"
        )
        self._thread.start()

    def close(self) -> None:
        """Stop serving: drop the current connection and the listener."""
        self._active = False

        with self._lock:
            connection = self._connection
        if connection:
            connection.close()

        listener, self._listener = self._listener, None
        if listener:
            listener.close()

        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._thread = None

        logger.info("Mock daemon closed")

    def __enter__(self) -> MockDaemon:
        """Context manager support - bind on enter."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close on exit."""
        self.close()

    # Internal methods

    def _accept(self) -> Optional[Tuple[socket.socket, tuple]]:
        listener = self._listener
        while self._active and listener is not None:
            try:
                return listener.accept()
            except socket.timeout:
                continue
            except OSError:
                if not self._active:
                    return None
                raise
        return None
