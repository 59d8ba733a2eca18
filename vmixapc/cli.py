#!/usr/bin/env python3
"""
Command-line tool for poking a running bridge.

Usage:
    python -m vmixapc.cli <address> [arg1] [arg2] ...
    python -m vmixapc.cli --line "p 7"

OSC messages go to the bridge's OSC harness; --line sends one line to the TCP
line harness instead.
"""

import socket
import sys

from pythonosc import udp_client

from vmixapc.osc import PORT_LINE_HARNESS, PORT_SURFACE_CONTROL


def parse_argument(arg: str):
    """Parse a command-line argument to int or float, else keep the string."""
    try:
        return int(arg)
    except ValueError:
        pass
    try:
        return float(arg)
    except ValueError:
        pass
    return arg


def send_osc_message(address: str, args: list, port: int = PORT_SURFACE_CONTROL,
                     host: str = "127.0.0.1"):
    """Send an OSC message to the bridge's OSC harness."""
    client = udp_client.SimpleUDPClient(host, port)
    client.send_message(address, args)
    print(f"Sent to {host}:{port} → {address} {args}")


def send_harness_line(line: str, port: int = PORT_LINE_HARNESS, host: str = "localhost"):
    """Send one line (e.g. "p 7") to the TCP line harness."""
    with socket.create_connection((host, port), timeout=2.0) as sock:
        sock.sendall(f"{line}\r\nSTOP\r\n".encode("utf-8"))
    print(f"Sent to {host}:{port} → {line}")


def main():
    """CLI entry point."""
    if len(sys.argv) < 2:
        print("Usage: python -m vmixapc.cli <address> [arg1] [arg2] ...")
        print("       python -m vmixapc.cli --line \"p 7\"")
        print()
        print("Examples:")
        print("  python -m vmixapc.cli /button/press 7")
        print("  python -m vmixapc.cli /button/release 7")
        print("  python -m vmixapc.cli /fader 1 100")
        print("  python -m vmixapc.cli --line \"f 1 100\"")
        print()
        print(f"OSC port: {PORT_SURFACE_CONTROL}, line harness port: {PORT_LINE_HARNESS}")
        sys.exit(1)

    if sys.argv[1] == "--line":
        if len(sys.argv) < 3:
            print("Error: --line needs a harness line, e.g. \"p 7\"")
            sys.exit(1)
        send_harness_line(" ".join(sys.argv[2:]))
        return

    address = sys.argv[1]
    if not address.startswith("/"):
        print(f"Error: OSC address must start with '/', got: {address}")
        sys.exit(1)

    args = [parse_argument(arg) for arg in sys.argv[2:]]
    send_osc_message(address, args)


if __name__ == "__main__":
    main()
