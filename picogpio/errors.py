"""Exceptions raised by the transport, codec and client layers.

Connection failures and timeouts use the builtin ConnectionError and
TimeoutError so callers can handle them without importing this module.
"""


class TransportClosedError(ConnectionError):
    """Raised when the byte stream ends or is closed during an operation.

    A read that cannot be satisfied because the stream closed is always
    reported this way, never as a shorter result.
    """
    pass


class NotConnectedError(TransportClosedError):
    """Raised when I/O is attempted before connect()."""
    pass


class ProtocolError(ValueError):
    """Raised for malformed protocol data, e.g. an unsupported integer width."""
    pass
