"""Immutable data models for the GPIO network protocol.

The command catalog and packet type are the contract between the client,
the codec and the daemon interpreter.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# API version implemented by the mock daemon
API_VERSION = 2

DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 5.0  # seconds

# Reply byte for a successful write-type command
STATUS_SUCCESS = 1


class Command(Enum):
    """Commands understood by the GPIO daemon.

    Every packet starts with the opcode of one of these commands.

    Attributes:
        opcode: Raw byte value sent on the wire
        api_version: Daemon API version in which the command was introduced
    """
    SET_PIN_SINGLE = (0, 1)
    SET_PIN_MULTI = (1, 1)
    WRITE_BYTES = (2, 1)
    GET_PIN_SINGLE = (3, 1)
    GET_PIN_MULTI = (4, 1)
    DELAY = (5, 1)
    WAIT_FOR_PIN = (6, 1)
    GET_NAME = (7, 2)
    GET_API_VERSION = (8, 1)

    def __init__(self, opcode: int, api_version: int):
        self.opcode = opcode
        self.api_version = api_version

    @classmethod
    def from_opcode(cls, opcode: int) -> Optional[Command]:
        """Look up a command by opcode.

        Returns:
            The matching Command, or None if the opcode is not recognised
        """
        for command in cls:
            if command.opcode == opcode:
                return command
        return None


@dataclass(frozen=True)
class Packet:
    """A single request as transmitted on the wire.

    Attributes:
        data: Opcode byte followed by the command payload
    """
    data: bytes

    @property
    def command(self) -> Optional[Command]:
        """Command encoded in the leading opcode byte."""
        if not self.data:
            return None
        return Command.from_opcode(self.data[0])

    @property
    def payload(self) -> bytes:
        return self.data[1:]

    def __len__(self) -> int:
        return len(self.data)
