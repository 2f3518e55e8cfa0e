"""Mock GPIO daemon.

This module provides:
- Virtual pin storage (PinTable)
- The per-connection protocol interpreter (CommandInterpreter)
- A TCP server that hands connections to interpreters (MockDaemon)
"""

from .pins import PinTable
from .interpreter import CommandInterpreter, InterpreterState, DEFAULT_NAME
from .server import MockDaemon

__all__ = [
    "PinTable",
    "CommandInterpreter",
    "InterpreterState",
    "DEFAULT_NAME",
    "MockDaemon",
]
