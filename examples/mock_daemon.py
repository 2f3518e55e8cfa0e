#!/usr/bin/env python3
"""Run the mock GPIO daemon in the foreground.

Useful for trying the client without a device:

    python examples/mock_daemon.py --port 8080 --name "Bench daemon"
    python examples/try_client.py 127.0.0.1 --port 8080
"""

import argparse
import sys
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from picogpio import API_VERSION, DEFAULT_PORT
from picogpio.daemon import MockDaemon, DEFAULT_NAME


def main():
    parser = argparse.ArgumentParser(description="Mock GPIO daemon")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--name", default=DEFAULT_NAME)
    parser.add_argument("--api-version", type=int, default=API_VERSION,
                        help="API version to emulate (1 hides GET_NAME)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    daemon = MockDaemon(
        host=args.host,
        port=args.port,
        name=args.name,
        api_version=args.api_version,
    )

    try:
        daemon.serve_forever()
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        daemon.close()


if __name__ == "__main__":
    main()
