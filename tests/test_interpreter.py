"""Tests for the mock daemon's command interpreter and pin table."""
import socket
import unittest
from unittest.mock import MagicMock

from picogpio.daemon import CommandInterpreter, InterpreterState, PinTable, DEFAULT_NAME
from picogpio.errors import TransportClosedError
from picogpio.models import Command, DEFAULT_TIMEOUT
from picogpio.transport import Transport, TcpTransport


class ScriptedTransport(Transport):
    """Transport that replays a fixed request stream and records replies."""

    def __init__(self, incoming=b""):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.closed = False

    def connect(self, host, port):
        pass

    def write(self, data, flush=False, timeout=DEFAULT_TIMEOUT):
        if self.closed:
            raise TransportClosedError("closed")
        self.sent.extend(data)

    def flush(self, timeout=DEFAULT_TIMEOUT):
        pass

    def read(self, length, timeout=DEFAULT_TIMEOUT):
        if len(self.incoming) < length:
            raise TransportClosedError("end of script")
        data = bytes(self.incoming[:length])
        del self.incoming[:length]
        return data

    def close(self):
        self.closed = True

    def is_connected(self):
        return not self.closed


class TestPinTable(unittest.TestCase):

    def test_unset_pin_reads_zero(self):
        pins = PinTable()
        self.assertEqual(pins.get(16), 0)

    def test_read_records_pin(self):
        pins = PinTable()
        pins.get(3)
        self.assertIn(3, pins)
        self.assertEqual(pins.snapshot(), {3: 0})

    def test_last_write_wins(self):
        pins = PinTable()
        pins.set(5, 1)
        pins.set(5, 0)
        self.assertEqual(pins.get(5), 0)
        self.assertEqual(len(pins), 1)


class TestCommandInterpreter(unittest.TestCase):
    """Test decoding and replies of individual commands."""

    def run_script(self, script, **kwargs):
        self.transport = ScriptedTransport(script)
        self.interpreter = CommandInterpreter(self.transport, **kwargs)
        return self.interpreter.run_command()

    def test_set_pin_single(self):
        self.assertEqual(self.run_script(b"\x00\x05\x01"), b"\x01")
        self.assertEqual(self.interpreter.pins.get(5), 1)

    def test_set_pin_multi(self):
        self.assertEqual(self.run_script(b"\x01\x02\x10\x01\x12\x07"), b"\x01")
        self.assertEqual(self.interpreter.pins.snapshot(), {16: 1, 18: 7})

    def test_set_pin_multi_duplicate_pin(self):
        """Pairs apply in order, so the last value for a pin wins."""
        self.run_script(b"\x01\x02\x05\x01\x05\x00")
        self.assertEqual(self.interpreter.pins.get(5), 0)

    def test_get_pin_single(self):
        self.run_script(b"\x00\x05\x09")
        self.transport.incoming.extend(b"\x03\x05")
        self.assertEqual(self.interpreter.run_command(), b"\x09")

    def test_get_pin_default_zero(self):
        self.assertEqual(self.run_script(b"\x03\x63"), b"\x00")
        self.assertIn(0x63, self.interpreter.pins)

    def test_get_pin_multi(self):
        self.run_script(b"\x01\x02\x01\x01\x03\x01")
        self.transport.incoming.extend(b"\x04\x03\x01\x02\x03")
        self.assertEqual(self.interpreter.run_command(), b"\x01\x00\x01")
        self.assertIn(2, self.interpreter.pins)

    def test_get_pin_multi_empty(self):
        self.assertEqual(self.run_script(b"\x04\x00"), b"")

    def test_write_bytes_discards_payload(self):
        """The whole payload is consumed so the next opcode lines up."""
        self.assertEqual(self.run_script(b"\x02\x00\x00\x00\x03abc\x08"), b"\x01")
        self.assertEqual(self.interpreter.run_command(), b"\x02")

    def test_write_bytes_large(self):
        payload = b"\xaa" * (100 * 1024)
        script = b"\x02" + len(payload).to_bytes(4, "big") + payload
        self.assertEqual(self.run_script(script), b"\x01")
        self.assertEqual(len(self.transport.incoming), 0)

    def test_delay(self):
        sleep = MagicMock()
        self.assertEqual(self.run_script(b"\x05\x01\xf4", sleep=sleep), b"\x01")
        sleep.assert_called_once_with(0.5)

    def test_wait_for_pin(self):
        self.assertEqual(self.run_script(b"\x06\x05\x01\x00\x64\x08"), b"\x01")
        # Payload fully consumed
        self.assertEqual(self.interpreter.run_command(), b"\x02")

    def test_get_name(self):
        reply = self.run_script(b"\x07", name="Test server")
        self.assertEqual(reply, b"\x0bTest server")

    def test_default_name(self):
        reply = self.run_script(b"\x07")
        self.assertEqual(reply[1:].decode("utf-8"), DEFAULT_NAME)
        self.assertEqual(reply[0], len(DEFAULT_NAME))

    def test_get_api_version(self):
        self.assertEqual(self.run_script(b"\x08"), b"\x02")

    def test_unknown_opcode(self):
        """Unknown opcodes get the default reply and consume nothing else."""
        with self.assertLogs('picogpio.daemon.interpreter', level='WARNING'):
            self.assertEqual(self.run_script(b"\x63\x08"), b"\x01")
        self.assertEqual(self.interpreter.run_command(), b"\x02")

    def test_api_v1_hides_get_name(self):
        """An older daemon answers GET_NAME like an unknown opcode."""
        self.assertEqual(self.run_script(b"\x07\x08", api_version=1), b"\x01")
        self.assertEqual(self.interpreter.run_command(), b"\x01")

    def test_state_while_decoding(self):
        seen = []

        def sleep(seconds):
            seen.append((self.interpreter.state, self.interpreter.current_command))

        self.run_script(b"\x05\x00\x0a", sleep=sleep)
        self.assertEqual(seen, [(InterpreterState.DECODING, Command.DELAY)])
        self.assertIs(self.interpreter.state, InterpreterState.AWAITING_COMMAND)
        self.assertIsNone(self.interpreter.current_command)

    def test_truncated_command(self):
        with self.assertRaises(TransportClosedError):
            self.run_script(b"\x00\x05")

    def test_name_too_long(self):
        with self.assertRaises(ValueError):
            CommandInterpreter(ScriptedTransport(), name="x" * 256)

    def test_bad_api_version(self):
        with self.assertRaises(ValueError):
            CommandInterpreter(ScriptedTransport(), api_version=0)
        with self.assertRaises(ValueError):
            CommandInterpreter(ScriptedTransport(), api_version=256)


class TestServe(unittest.TestCase):
    """Test the per-connection serve loop."""

    def test_replies_in_order(self):
        transport = ScriptedTransport(
            b"\x00\x10\x01"      # set pin 16 = 1
            b"\x05\x00\x01"      # delay 1 ms
            b"\x03\x10"          # get pin 16
            b"\x07"              # get name
        )
        interpreter = CommandInterpreter(transport, name="Bench", sleep=MagicMock())
        interpreter.serve()

        self.assertEqual(bytes(transport.sent), b"\x01\x01\x01\x05Bench")
        self.assertTrue(transport.closed)
        self.assertIs(interpreter.state, InterpreterState.CLOSED)

    def test_unexpected_error_closes(self):
        """Errors inside a handler end the connection without propagating."""
        transport = ScriptedTransport(b"\x05\x00\x01\x08")
        interpreter = CommandInterpreter(transport, sleep=MagicMock(side_effect=RuntimeError("boom")))

        with self.assertLogs('picogpio.daemon.interpreter', level='ERROR'):
            interpreter.serve()

        self.assertTrue(transport.closed)
        self.assertEqual(bytes(transport.sent), b"")
        self.assertIs(interpreter.state, InterpreterState.CLOSED)

    def test_over_socket_pair(self):
        """Serve a real stream and read replies from the other end."""
        left, right = socket.socketpair()
        server_side = TcpTransport.from_socket(left, poll_interval=0.02)
        client_side = TcpTransport.from_socket(right, poll_interval=0.02)
        self.addCleanup(client_side.close)

        interpreter = CommandInterpreter(server_side, name="Test server")

        client_side.write(b"\x00\x10\x01\x03\x10\x07", flush=True)
        for _ in range(3):
            server_side.write(interpreter.run_command(), flush=True)

        self.assertEqual(client_side.read(2, timeout=1.0), b"\x01\x01")
        self.assertEqual(client_side.read(12, timeout=1.0), b"\x0bTest server")

        client_side.close()
        interpreter.serve()
        self.assertIs(interpreter.state, InterpreterState.CLOSED)
        self.assertFalse(server_side.is_connected())


if __name__ == "__main__":
    unittest.main()
