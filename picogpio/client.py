"""Client for the GPIO network daemon.

Translates pin, SPI and timing operations into protocol packets and moves
them over a Transport.

Write-type commands (set pins, SPI writes, delays, waits) are queued and
sent together on flush(); the daemon answers each with one status byte, so a
flush of N packets reads exactly N bytes back. Read-type commands (pin reads,
name and API version queries) flush the queue first and then wait for their
own reply, so the daemon always sees requests in the order they were issued.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Command, Packet, DEFAULT_PORT, DEFAULT_TIMEOUT
from .protocol import PacketBuilder, encode_uint, parse_status, decode_name
from .transport import Transport, SerialTransport

logger = logging.getLogger(__name__)

MAX_COUNT = 0xFF


def _check_byte(name: str, value: int) -> int:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be in range 0-255, got {value}")
    return value


class GpioClient:
    """Client for a GPIO daemon reachable over a byte-stream transport.

    Call connect() before issuing commands and close() when done, or use
    the client as a context manager.

    Not safe for unsynchronised use from several threads: the pending queue
    and the flush that follows it form one critical section.

    Example:
        >>> with GpioClient("192.168.1.50", 8080) as client:
        ...     client.set_pin(16, 1)
        ...     client.delay(100)
        ...     client.set_pin(16, 0)
        ...     client.flush()
        [True, True, True]
    """

    def __init__(self,
                 host: str,
                 port: int = DEFAULT_PORT,
                 auto_flush: bool = False,
                 transport: Optional[Transport] = None,
                 timeout: Optional[float] = DEFAULT_TIMEOUT):
        """Initialize client.

        Args:
            host: Address of the device running the daemon
            port: TCP port the daemon listens on (usually 8080)
            auto_flush: If True, every write is flushed immediately
            transport: Transport to use, or None for a SerialTransport
                over socket://host:port
            timeout: Seconds allowed for each transport operation
        """
        self._host = host
        self._port = port
        self._auto_flush = auto_flush
        self._timeout = timeout

        self._transport = transport or SerialTransport()

        # Pending write-type packets, in submission order
        self._queue: List[Packet] = []
        self._lock = threading.RLock()

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def auto_flush(self) -> bool:
        return self._auto_flush

    @property
    def pending(self) -> int:
        """Number of queued packets awaiting flush()."""
        with self._lock:
            return len(self._queue)

    def connect(self) -> None:
        """Establish the connection to the daemon.

        Raises:
            ConnectionError: If the daemon is unreachable
        """
        self._transport.connect(self._host, self._port)

    def close(self) -> None:
        """Close the connection. Queued packets are discarded.

        Safe to call from another thread while an operation is waiting on
        the daemon; that operation fails with TransportClosedError.
        """
        # Must not wait for the lock: a blocked read holds it until the
        # transport is closed
        self._transport.close()
        with self._lock:
            packets, self._queue = self._queue, []
        if packets:
            logger.warning(f"Discarding {len(packets)} unflushed packet(s)")

    def is_connected(self) -> bool:
        return self._transport.is_connected()

    def __enter__(self) -> GpioClient:
        """Context manager support - connect on enter."""
        if not self.is_connected():
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close on exit."""
        self.close()

    # --- Queue / flush transaction ---

    def flush(self) -> List[bool]:
        """Send all queued packets and collect one status per packet.

        The queue is emptied before any I/O, so a failed flush never leaves
        packets behind to be sent twice.

        Returns:
            One bool per queued packet, in submission order. True means the
            daemon reported success. Empty if nothing was queued.
        """
        with self._lock:
            packets, self._queue = self._queue, []
            if not packets:
                return []

            logger.debug(f"Flushing {len(packets)} packet(s)")

            for packet in packets:
                self._transport.write(packet.data, flush=False, timeout=self._timeout)
            self._transport.flush(timeout=self._timeout)

            reply = self._transport.read(len(packets), timeout=self._timeout)

        results = parse_status(reply)
        failed = results.count(False)
        if failed:
            logger.warning(f"{failed} of {len(results)} command(s) failed on the daemon")
        return results

    def write(self, packet: Packet) -> List[bool]:
        """Queue a write-type packet.

        Returns:
            The flush() result if auto_flush is enabled, otherwise an empty list
        """
        with self._lock:
            self._queue.append(packet)
            logger.debug(f"Queued {len(packet)}-byte packet; {len(self._queue)} pending")
            if self._auto_flush:
                return self.flush()
        return []

    def read(self, packet: Packet, length: int) -> bytes:
        """Send a read-type packet and return its `length`-byte reply.

        Queued writes are flushed first so the reply cannot be read out of
        turn.
        """
        with self._lock:
            self.flush()
            self._transport.write(packet.data, flush=True, timeout=self._timeout)
            return self._transport.read(length, timeout=self._timeout)

    def read_bytes(self, length: int) -> bytes:
        """Read `length` raw bytes from the daemon."""
        return self._transport.read(length, timeout=self._timeout)

    # --- Commands ---

    def set_pin(self, pin: int, value: int) -> List[bool]:
        """Set the state of a single pin."""
        packet = (
            PacketBuilder(Command.SET_PIN_SINGLE)
            .add(_check_byte("pin", pin))
            .add(_check_byte("value", value))
            .build()
        )
        return self.write(packet)

    def set_pins(self, pins_and_values: Iterable[Tuple[int, int]]) -> List[bool]:
        """Set the states of several pins in one command.

        Args:
            pins_and_values: (pin, value) pairs, applied in order
        """
        pairs = list(pins_and_values)
        if len(pairs) > MAX_COUNT:
            raise ValueError(f"At most {MAX_COUNT} pins per command, got {len(pairs)}")

        pin_data = bytearray()
        for pin, value in pairs:
            pin_data.append(_check_byte("pin", pin))
            pin_data.append(_check_byte("value", value))

        packet = (
            PacketBuilder(Command.SET_PIN_MULTI)
            .add(len(pairs))
            .add(pin_data)
            .build()
        )
        return self.write(packet)

    def get_pin(self, pin: int) -> int:
        """Read the value of a single pin."""
        packet = PacketBuilder(Command.GET_PIN_SINGLE).add(_check_byte("pin", pin)).build()
        return self.read(packet, 1)[0]

    def get_pins(self, pins: Sequence[int]) -> bytes:
        """Read the values of several pins.

        Returns:
            One value per requested pin, in request order. e.g. requesting
            pins [16, 18] and getting b"\\x00\\x01" means pin 16 is 0 and
            pin 18 is 1.
        """
        pin_ids = bytes(_check_byte("pin", pin) for pin in pins)
        if len(pin_ids) > MAX_COUNT:
            raise ValueError(f"At most {MAX_COUNT} pins per command, got {len(pin_ids)}")

        logger.debug(f"Getting {len(pin_ids)} pins")
        packet = (
            PacketBuilder(Command.GET_PIN_MULTI)
            .add(len(pin_ids))
            .add(pin_ids)
            .build()
        )
        return self.read(packet, len(pin_ids))

    def spi_write(self, data: bytes) -> List[bool]:
        """Send raw bytes to the SPI device."""
        data = bytes(data)
        logger.debug(f"SPI write. Length: {len(data)}")
        packet = (
            PacketBuilder(Command.WRITE_BYTES)
            .add(encode_uint(len(data), 4))
            .add(data)
            .build()
        )
        return self.write(packet)

    def delay(self, millis: int) -> List[bool]:
        """Make the daemon pause before handling the next command.

        Queuing a delay between two writes costs one round trip instead of
        two, since everything goes out in a single flush.

        Args:
            millis: Time to wait in milliseconds (0-65535)
        """
        packet = PacketBuilder(Command.DELAY).add(encode_uint(millis, 2)).build()
        return self.write(packet)

    def wait_for_pin(self, pin: int, value: int, millis: int) -> List[bool]:
        """Make the daemon wait until a pin reaches a value.

        Useful for waiting on a BUSY line before sending more commands.

        Args:
            pin: Pin to wait on
            value: Value to wait for
            millis: Milliseconds between pin reads (0-65535)
        """
        packet = (
            PacketBuilder(Command.WAIT_FOR_PIN)
            .add(_check_byte("pin", pin))
            .add(_check_byte("value", value))
            .add(encode_uint(millis, 2))
            .build()
        )
        return self.write(packet)

    def get_name(self) -> str:
        """Ask the daemon to identify itself.

        Requires API version 2; see supports().
        """
        with self._lock:
            length = self.read(PacketBuilder(Command.GET_NAME).build(), 1)[0]
            return decode_name(self.read_bytes(length))

    def get_api_version(self) -> int:
        """Ask the daemon which API version it implements.

        Daemons that predate this command answer with the default reply for
        unknown commands, which is 1, so the result is always usable.
        """
        return self.read(PacketBuilder(Command.GET_API_VERSION).build(), 1)[0]

    def supports(self, command: Command) -> bool:
        """Check whether the daemon's API version understands `command`."""
        return self.get_api_version() >= command.api_version
