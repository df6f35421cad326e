#!/usr/bin/env python3
"""
Interactive Client for Scalerize

A command-line client for manually exercising a Scalerize server.

Usage:
    scalerize-client                          # Connect to /tmp/scalerize
    scalerize-client --socket /run/kv.sock    # Connect to a specific socket
    scalerize-client --demo                   # PUT, WRITE, GET round trip
    scalerize-client --debug                  # Log request/response bytes

Commands:
    PUT <store> <key> <value>   - Store a value
    GET <store> <key>           - Retrieve a value
    DELETE <store> <key>        - Delete a key
    WRITE                       - Commit pending changes
    DRAIN                       - Read unsolicited bytes from the server
    help                        - Show this help
    exit                        - Exit client

Keys and values are UTF-8 text, or hex when prefixed with 0x.

Environment Variables:
    SCALERIZE_SOCKET      - Default socket path
    SCALERIZE_DEBUG       - Enable debug logging (true/false)
    SCALERIZE_LOG_LEVEL   - Log level when not in debug mode
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config.settings import settings
from .errors import ClientError, ConnectError, OperationFailedError
from .network.session import ClientSession, SessionState, connect

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

DEMO_STORE = 2
DEMO_KEY = bytes([1, 2, 3, 4])
DEMO_VALUE = b"Hello, Scalerize!"

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Scalerize: interactive key-value store client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--socket",
        type=str,
        default=settings.SOCKET_PATH,
        help="Unix socket path of the server",
    )

    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run a PUT/WRITE/GET round trip and exit",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def parse_data(token: str) -> bytes:
    """
    Convert a typed key or value into bytes.

    Examples:
        >>> parse_data("mykey")
        b'mykey'
        >>> parse_data("0x01020304")
        b'\\x01\\x02\\x03\\x04'
    """
    if token.lower().startswith("0x"):
        return bytes.fromhex(token[2:])
    return token.encode("utf-8")


def parse_store(token: str) -> int:
    store = int(token)
    if not 0 <= store <= 255:
        raise ValueError(f"store id must be in range 0-255, got {store}")
    return store


def format_value(value: bytes) -> str:
    """Render a value as text when it decodes cleanly, otherwise as hex."""
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return "0x" + value.hex()


def execute_line(session: ClientSession, line: str) -> str:
    """
    Execute one REPL command line against the session.

    Args:
        session: Connected session
        line: Raw command line, e.g. "PUT 2 mykey myvalue"

    Returns:
        The text to show the user.

    Raises:
        ClientError: For transport and protocol failures. Server-reported
            errors are returned as "ERROR <message>" instead.
        ValueError: If the command line is malformed.
    """
    parts = line.split()
    command = parts[0].upper()
    args = parts[1:]

    try:
        if command == "PUT" and len(args) >= 3:
            # Values may contain spaces
            value = line.split(None, 3)[3]
            session.put(parse_store(args[0]), parse_data(args[1]), parse_data(value))
            return "OK stored"

        if command == "GET" and len(args) == 2:
            value = session.get(parse_store(args[0]), parse_data(args[1]))
            return f"OK {format_value(value)}"

        if command == "DELETE" and len(args) == 2:
            session.delete(parse_store(args[0]), parse_data(args[1]))
            return "OK deleted"

        if command == "WRITE" and not args:
            session.write()
            return "OK written"

        if command == "DRAIN" and not args:
            chunks = session.drain_pending()
            if not chunks:
                return "No pending messages"
            return "\n".join(f"Pending: 0x{chunk.hex()}" for chunk in chunks)

    except OperationFailedError as e:
        return f"ERROR {e.message}"

    raise ValueError(f"invalid command: {line!r} (type 'help' for usage)")


def run_demo(session: ClientSession) -> int:
    """Store a value, commit it and read it back."""
    print("Putting data...")
    session.put(DEMO_STORE, DEMO_KEY, DEMO_VALUE)

    print("Writing changes...")
    session.write()

    print("Getting data...")
    try:
        value = session.get(DEMO_STORE, DEMO_KEY)
    except OperationFailedError as e:
        print(f"Operation failed: {e.message}")
        return 1

    print("Operation successful!")
    print(f"Retrieved value as string: {value.decode('utf-8', errors='replace')}")
    return 0


def print_help():
    """Print help message."""
    print("""
Scalerize Commands:
-------------------
  PUT <store> <key> <value>   Store a value (store id 0-255)
  GET <store> <key>           Retrieve the value for a key
  DELETE <store> <key>        Delete a key
  WRITE                       Commit pending changes so GET can see them
  DRAIN                       Show unsolicited bytes sent by the server

Client Commands:
----------------
  help                        Show this help message
  exit                        Exit the client
  reconnect                   Reconnect to the server
  status                      Show connection status

Examples:
---------
  PUT 2 mykey myvalue         Store "myvalue" under "mykey" in store 2
  PUT 2 0x01020304 hello      Keys and values may be given as hex
  WRITE                       Commit
  GET 2 mykey                 Get value for "mykey"
  DELETE 2 mykey              Delete "mykey"
""")


def repl(session: ClientSession, socket_path: str) -> ClientSession:
    """
    Read commands from stdin until exit or EOF.

    Returns:
        The session in use when the loop ended, which may differ from
        the one passed in after a reconnect.
    """
    while True:
        try:
            line = input(">>> ").strip()
        except EOFError:
            print("\nGoodbye!")
            return session

        if not line:
            continue

        lower_cmd = line.lower()

        if lower_cmd == "help":
            print_help()
            continue

        if lower_cmd in ("exit", "quit"):
            print("Goodbye!")
            return session

        if lower_cmd == "reconnect":
            session.close()
            try:
                session = connect(socket_path)
                print("Reconnected!")
            except ConnectError as e:
                print(f"Reconnection failed: {e}")
            continue

        if lower_cmd == "status":
            print(f"Status: {session.state.value}")
            print(f"Server: {socket_path}")
            continue

        try:
            print(execute_line(session, line))
        except ValueError as e:
            print(f"ERROR: {e}")
        except ClientError as e:
            print(f"ERROR: {e}")
            if session.state == SessionState.BROKEN:
                print("Connection is out of sync. Type 'reconnect' to continue.")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        session = connect(args.socket)
    except ConnectError as e:
        print(f"Connection error: {e}")
        print("Failed to connect. Is the server running?")
        return 1

    logger.debug(f"Connected to {args.socket}")

    try:
        if args.demo:
            return run_demo(session)

        print("Scalerize Client")
        print("================")
        print(f"Connected to {args.socket}. Type 'help' for commands.\n")
        session = repl(session, args.socket)
        return 0
    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
        return 130
    except ClientError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
