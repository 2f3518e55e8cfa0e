#!/usr/bin/env python3
"""
Interactive GPIO Client Test Script.

Connects to a GPIO daemon, identifies it, then blinks a pin a few times
using batched writes with daemon-side delays.

Usage:
    python examples/try_client.py 192.168.1.50 --pin 16
    python examples/try_client.py 127.0.0.1 --port 8080   # against mock_daemon.py
"""

import argparse
import sys
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from picogpio import GpioClient, Command, DEFAULT_PORT

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description="Blink a pin on a GPIO daemon")
    parser.add_argument("host", help="Address of the device running the daemon")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--pin", type=int, default=16)
    parser.add_argument("--count", type=int, default=3)
    parser.add_argument("--interval", type=int, default=250, help="milliseconds")
    args = parser.parse_args()

    client = GpioClient(args.host, args.port)

    print(f"Connecting to {args.host}:{args.port}...")
    try:
        client.connect()
    except ConnectionError as e:
        print(f"Failed to connect! Is the daemon running? ({e})")
        return 1

    try:
        api_version = client.get_api_version()
        print(f"API version: {api_version}")
        if api_version >= Command.GET_NAME.api_version:
            print(f"Device name: {client.get_name()}")
        else:
            print("Device name: unknown (daemon predates GET_NAME)")

        print(f"\nBlinking pin {args.pin} {args.count} times...")
        for _ in range(args.count):
            client.set_pin(args.pin, 1)
            client.delay(args.interval)
            client.set_pin(args.pin, 0)
            client.delay(args.interval)
        results = client.flush()
        print(f"{results.count(True)}/{len(results)} commands succeeded")

        print(f"Pin {args.pin} now reads {client.get_pin(args.pin)}")

    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("\nDisconnecting...")
        client.close()
        print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
