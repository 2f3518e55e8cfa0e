"""Command interpreter for the mock GPIO daemon.

Decodes one command at a time from a transport, applies it to a virtual
pin table and produces the reply a real daemon would send. Replies are
written as soon as each command is decoded; a client that queued several
writes gets its status bytes back in the same order it sent them.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional

from ..errors import TransportClosedError
from ..models import API_VERSION, DEFAULT_TIMEOUT, STATUS_SUCCESS, Command
from ..protocol import decode_uint
from ..transport import Transport
from .pins import PinTable

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Mock daemon"

# Reply for write-type commands and for opcodes the daemon does not know
SUCCESS_REPLY = bytes((STATUS_SUCCESS,))

# Largest slice of a WRITE_BYTES payload held in memory at once
DISCARD_CHUNK_SIZE = 32 * 1024


class InterpreterState(Enum):
    """Position of the interpreter in its per-connection loop."""
    AWAITING_COMMAND = "awaiting_command"
    DECODING = "decoding"
    CLOSED = "closed"


class CommandInterpreter:
    """Per-connection protocol state machine.

    Loops AWAITING_COMMAND -> DECODING -> AWAITING_COMMAND until the
    connection ends, then moves to CLOSED.

    Commands newer than the configured api_version, or without an entry in
    the handler table, are treated like unknown opcodes, which lets tests
    stand in for older daemons.
    """

    def __init__(self,
                 transport: Transport,
                 name: str = DEFAULT_NAME,
                 api_version: int = API_VERSION,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize interpreter.

        Args:
            transport: Connected transport to serve
            name: Name reported in reply to GET_NAME
            api_version: API version reported in reply to GET_API_VERSION
            sleep: Function used to carry out DELAY commands
        """
        name_bytes = name.encode("utf-8")
        if len(name_bytes) > 0xFF:
            raise ValueError(f"Name is {len(name_bytes)} bytes; at most 255 allowed")
        if not 1 <= api_version <= 0xFF:
            raise ValueError(f"api_version must be in range 1-255, got {api_version}")

        self._transport = transport
        self._name_bytes = name_bytes
        self._api_version = api_version
        self._sleep = sleep

        self._pins = PinTable()
        self._state = InterpreterState.AWAITING_COMMAND
        self._current: Optional[Command] = None

        self._handlers: Dict[Command, Callable[[], bytes]] = {
            Command.SET_PIN_SINGLE: self._set_pin_single,
            Command.SET_PIN_MULTI: self._set_pin_multi,
            Command.WRITE_BYTES: self._write_bytes,
            Command.GET_PIN_SINGLE: self._get_pin_single,
            Command.GET_PIN_MULTI: self._get_pin_multi,
            Command.DELAY: self._delay,
            Command.WAIT_FOR_PIN: self._wait_for_pin,
            Command.GET_NAME: self._get_name,
            Command.GET_API_VERSION: self._get_api_version,
        }

    @property
    def state(self) -> InterpreterState:
        return self._state

    @property
    def current_command(self) -> Optional[Command]:
        """Command being decoded, if any."""
        return self._current

    @property
    def pins(self) -> PinTable:
        return self._pins

    def serve(self) -> None:
        """Answer commands until the connection ends.

        Never raises: a closed stream ends the loop quietly, anything else
        is logged. The transport is always closed on return.
        """
        try:
            while True:
                reply = self.run_command()
                logger.debug(f"Writing {len(reply)} bytes to client")
                self._transport.write(reply, flush=True, timeout=DEFAULT_TIMEOUT)
        except TransportClosedError as e:
            logger.info(f"Client disconnected: {e}")
        except Exception:
            logger.exception("Error while serving client; closing connection")
        finally:
            self.close()

    def run_command(self) -> bytes:
        """Decode and execute exactly one command.

        Returns:
            The reply bytes for that command
        """
        self._state = InterpreterState.AWAITING_COMMAND
        self._current = None

        opcode = self._take(1)[0]
        command = Command.from_opcode(opcode)

        self._state = InterpreterState.DECODING
        self._current = command

        handler = None
        if command is not None and command.api_version <= self._api_version:
            handler = self._handlers.get(command)

        if handler is None:
            logger.warning(f"Unknown command {opcode}")
            reply = SUCCESS_REPLY
        else:
            logger.debug(f"Command {command.name}")
            reply = handler()

        self._state = InterpreterState.AWAITING_COMMAND
        self._current = None
        return reply

    def close(self) -> None:
        self._state = InterpreterState.CLOSED
        self._current = None
        self._transport.close()

    # Command handlers

    def _set_pin_single(self) -> bytes:
        pin, value = self._take(2)
        logger.debug(f"Setting pin {pin} to {value}")
        self._pins.set(pin, value)
        return SUCCESS_REPLY

    def _set_pin_multi(self) -> bytes:
        count = self._read_uint(1)
        data = self._take(count * 2)
        for i in range(0, len(data), 2):
            logger.debug(f"Setting pin {data[i]} to {data[i + 1]}")
            self._pins.set(data[i], data[i + 1])
        return SUCCESS_REPLY

    def _write_bytes(self) -> bytes:
        length = self._read_uint(4)
        logger.debug(f"Write bytes: {length}")
        # No SPI device here; consume the payload and drop it
        remaining = length
        while remaining:
            remaining -= len(self._take(min(remaining, DISCARD_CHUNK_SIZE)))
        return SUCCESS_REPLY

    def _get_pin_single(self) -> bytes:
        pin = self._take(1)[0]
        return bytes((self._pins.get(pin),))

    def _get_pin_multi(self) -> bytes:
        count = self._read_uint(1)
        pins = self._take(count)
        return bytes(self._pins.get(pin) for pin in pins)

    def _delay(self) -> bytes:
        delay_ms = self._read_uint(2)
        logger.debug(f"Delay {delay_ms} ms")
        self._sleep(delay_ms / 1000.0)
        return SUCCESS_REPLY

    def _wait_for_pin(self) -> bytes:
        pin, value = self._take(2)
        delay_ms = self._read_uint(2)
        # TODO: poll the pin every delay_ms until it reads `value` once pins can change on their own
        logger.debug(f"Wait for pin {pin} == {value} (poll every {delay_ms} ms) not simulated")
        return SUCCESS_REPLY

    def _get_name(self) -> bytes:
        return bytes((len(self._name_bytes),)) + self._name_bytes

    def _get_api_version(self) -> bytes:
        return bytes((self._api_version,))

    # Internal methods

    def _take(self, size: int) -> bytes:
        """Read exactly `size` bytes, waiting as long as it takes."""
        return self._transport.read(size, timeout=None)

    def _read_uint(self, size: int) -> int:
        return decode_uint(self._take(size), size)
