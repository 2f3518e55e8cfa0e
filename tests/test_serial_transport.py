"""Tests for SerialTransport with a mocked pyserial port."""
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

import serial

from picogpio.errors import NotConnectedError, TransportClosedError
from picogpio.transport import SerialTransport


def make_port(chunks=()):
    """Build a mock pyserial port that delivers `chunks`, then idles."""
    pending = list(chunks)
    lock = threading.Lock()

    def read(size):
        with lock:
            if pending:
                item = pending.pop(0)
                if isinstance(item, Exception):
                    raise item
                return item
        time.sleep(0.01)
        return b""

    port = MagicMock()
    port.in_waiting = 0
    port.read.side_effect = read
    return port


class TestSerialTransportConnect(unittest.TestCase):
    """Test opening ports through serial_for_url."""

    def setUp(self):
        self.patcher = patch('picogpio.transport.serial.serial.serial_for_url')
        self.mock_for_url = self.patcher.start()
        self.mock_for_url.return_value = make_port()

    def tearDown(self):
        self.patcher.stop()

    def test_socket_url_from_host(self):
        """Without an explicit URL, connect() opens socket://host:port."""
        transport = SerialTransport()
        transport.connect("10.0.0.2", 8080)
        self.addCleanup(transport.close)

        self.mock_for_url.assert_called_once_with("socket://10.0.0.2:8080", timeout=0.1)
        self.assertTrue(transport.is_connected())
        self.assertEqual(transport.url, "socket://10.0.0.2:8080")

    def test_explicit_url(self):
        """An explicit URL wins over host and port."""
        transport = SerialTransport(url="rfc2217://bench:2217", timeout=0.05)
        transport.connect("ignored", 1)
        self.addCleanup(transport.close)

        self.mock_for_url.assert_called_once_with("rfc2217://bench:2217", timeout=0.05)

    def test_open_failure(self):
        """SerialException while opening becomes ConnectionError."""
        self.mock_for_url.side_effect = serial.SerialException("Connection refused")

        transport = SerialTransport()
        with self.assertRaises(ConnectionError):
            transport.connect("10.0.0.2", 8080)
        self.assertFalse(transport.is_connected())

    def test_connect_twice(self):
        """A second connect() on an open transport is ignored."""
        transport = SerialTransport()
        transport.connect("10.0.0.2", 8080)
        self.addCleanup(transport.close)

        with self.assertLogs('picogpio.transport.stream', level='WARNING'):
            transport.connect("10.0.0.2", 8080)
        self.assertEqual(self.mock_for_url.call_count, 1)

    def test_url_after_close(self):
        transport = SerialTransport()
        transport.connect("10.0.0.2", 8080)
        transport.close()
        self.assertIsNone(transport.url)

    def test_read_before_connect(self):
        with self.assertRaises(NotConnectedError):
            SerialTransport().read(1, timeout=0.1)


class TestSerialTransportMocked(unittest.TestCase):
    """Test SerialTransport I/O against a mocked port."""

    def setUp(self):
        self.patcher = patch('picogpio.transport.serial.serial.serial_for_url')
        self.mock_for_url = self.patcher.start()

    def tearDown(self):
        self.transport.close()
        self.patcher.stop()

    def _connect(self, port):
        self.mock_for_url.return_value = port
        self.transport = SerialTransport()
        self.transport.connect("10.0.0.2", 8080)
        return port

    def test_write_deferred(self):
        """write() without flush does not touch the port."""
        port = self._connect(make_port())
        self.transport.write(b"\x00\x10\x01")
        port.write.assert_not_called()

    def test_flush_sends_concatenated(self):
        """Queued writes go out as one chunk on flush."""
        port = self._connect(make_port())
        self.transport.write(b"\x00\x10\x01")
        self.transport.write(b"\x05\x00\x64")
        self.transport.flush(timeout=2.0)

        port.write.assert_called_once_with(b"\x00\x10\x01\x05\x00\x64")
        port.flush.assert_called_once()
        self.assertEqual(port.write_timeout, 2.0)

    def test_flush_empty(self):
        port = self._connect(make_port())
        self.transport.flush()
        port.write.assert_not_called()

    def test_write_timeout(self):
        """SerialTimeoutException becomes TimeoutError."""
        port = self._connect(make_port())
        port.write.side_effect = serial.SerialTimeoutException("Write timeout")

        with self.assertRaises(TimeoutError):
            self.transport.write(b"\x08", flush=True)

    def test_write_failure(self):
        """Other SerialExceptions mean the stream is gone."""
        port = self._connect(make_port())
        port.write.side_effect = serial.SerialException("socket disconnected")

        with self.assertRaises(TransportClosedError):
            self.transport.write(b"\x08", flush=True)

    def test_read_chunks(self):
        """Chunks read by the reader thread are handed out in exact lengths."""
        self._connect(make_port([b"\x01\x01", b"\x0bTest", b" server"]))

        self.assertEqual(self.transport.read(2, timeout=1.0), b"\x01\x01")
        self.assertEqual(self.transport.read(1, timeout=1.0), b"\x0b")
        self.assertEqual(self.transport.read(11, timeout=1.0), b"Test server")

    def test_read_timeout(self):
        self._connect(make_port())
        with self.assertRaises(TimeoutError):
            self.transport.read(1, timeout=0.05)

    def test_read_size_uses_in_waiting(self):
        port = make_port([b"abc"])
        port.in_waiting = 3
        self._connect(port)

        self.assertEqual(self.transport.read(3, timeout=1.0), b"abc")
        port.read.assert_any_call(3)

    def test_disconnect_while_reading(self):
        """A port failure ends the stream; short reads raise."""
        self._connect(make_port([b"\x01", serial.SerialException("socket disconnected")]))

        with self.assertRaises(TransportClosedError):
            self.transport.read(2, timeout=2.0)
        self.assertFalse(self.transport.is_connected())

    def test_data_before_disconnect_readable(self):
        self._connect(make_port([b"\x02", serial.SerialException("socket disconnected")]))
        self.assertEqual(self.transport.read(1, timeout=1.0), b"\x02")

    def test_close(self):
        """close() closes the port once and is idempotent."""
        port = self._connect(make_port())
        self.transport.close()
        self.transport.close()

        port.close.assert_called_once()
        self.assertFalse(self.transport.is_connected())

    def test_write_after_close(self):
        self._connect(make_port())
        self.transport.close()
        with self.assertRaises(TransportClosedError):
            self.transport.write(b"\x08")


if __name__ == "__main__":
    unittest.main()
