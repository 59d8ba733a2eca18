#!/usr/bin/env python3
"""
vMix Emulator - Integration Testing

Emulates the vMix TCP API closely enough to drive the bridge without vMix.

Features:
- Answers XML with a configurable state document
- Accepts SUBSCRIBE ACTS and pushes ACTS lines to subscribers
- Records every FUNCTION command for assertions
- Optional interactive CLI for pushing events by hand
"""

import argparse
import signal
import socket
import socketserver
import sys
import threading
import time
from typing import List, Optional, Set

DEFAULT_XML = (
    '<vmix><version>27.0.0.49</version>'
    '<inputs>'
    '<input key="a1" number="1" type="Capture" title="Camera 1" state="Running" audiobusses="M"/>'
    '<input key="a2" number="2" type="Capture" title="Camera 2" state="Running" audiobusses=""/>'
    '<input key="a3" number="3" type="GT" title="Lower Third" state="Paused" audiobusses="">'
    '<text index="0" name="Headline.Text">Welcome</text></input>'
    '<input key="a4" number="4" type="Video" title="Prelude" state="Paused" audiobusses="M,A"/>'
    '<input key="a5" number="5" type="Audio" title="Crowd" state="Running" audiobusses="B"/>'
    '</inputs>'
    '<overlays><overlay number="1"/><overlay number="2"/><overlay number="3"/>'
    '<overlay number="4"/><overlay number="5"/><overlay number="6"/></overlays>'
    '<preview>2</preview><active>1</active>'
    '<streaming>False</streaming><recording>False</recording>'
    '</vmix>'
)


class _ApiHandler(socketserver.StreamRequestHandler):
    def setup(self):
        super().setup()
        self.write_lock = threading.Lock()

    def send_line(self, line: str):
        with self.write_lock:
            self.wfile.write(f"{line}\r\n".encode("utf-8"))
            self.wfile.flush()

    def handle(self):
        emulator: "VmixEmulator" = self.server.emulator
        emulator._register(self)
        try:
            for raw in self.rfile:
                line = raw.decode("utf-8", errors="replace").strip()
                if line:
                    emulator._handle_command(self, line)
        except OSError:
            pass  # Client went away
        finally:
            emulator._unregister(self)


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class VmixEmulator:
    """Emulated vMix API endpoint.

    Args:
        port: TCP port (0 picks a free one)
        host: Bind address
        xml: Document returned for XML requests
    """

    def __init__(self, port: int = 8099, host: str = "127.0.0.1", xml: str = DEFAULT_XML):
        self.port = port
        self.host = host
        self.xml = xml

        self.commands: List[str] = []
        self.xml_requests = 0
        self._lock = threading.Lock()
        self._command_event = threading.Condition(self._lock)
        self._clients: Set[_ApiHandler] = set()
        self._subscribers: Set[_ApiHandler] = set()

        self.server: Optional[_ThreadingTCPServer] = None
        self.server_thread: Optional[threading.Thread] = None
        self.running = False

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def start(self):
        """Start accepting API connections."""
        self.server = _ThreadingTCPServer((self.host, self.port), _ApiHandler)
        self.server.emulator = self
        self.port = self.server.server_address[1]
        self.running = True
        self.server_thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.server_thread.start()
        print(f"vMix Emulator listening on {self.address}")

    def stop(self):
        """Stop the emulator and drop every client."""
        self.running = False
        self.drop_clients()
        if self.server:
            self.server.shutdown()
            self.server.server_close()
        print(f"\nvMix Emulator stopped.")
        print(f"  XML requests: {self.xml_requests}")
        print(f"  FUNCTION commands: {len(self.commands)}")

    # ------------------------------------------------------------------
    # Connection bookkeeping (called from handler threads)
    # ------------------------------------------------------------------

    def _register(self, handler: _ApiHandler):
        with self._lock:
            self._clients.add(handler)

    def _unregister(self, handler: _ApiHandler):
        with self._lock:
            self._clients.discard(handler)
            self._subscribers.discard(handler)

    def _handle_command(self, handler: _ApiHandler, line: str):
        if line == "XML":
            with self._lock:
                self.xml_requests += 1
                xml = self.xml
            handler.send_line(f"XML {len(xml)}")
            handler.send_line(xml)
        elif line == "SUBSCRIBE ACTS":
            with self._lock:
                self._subscribers.add(handler)
            handler.send_line("SUBSCRIBE OK ACTS Subscribed")
        elif line.startswith("FUNCTION "):
            with self._lock:
                self.commands.append(line)
                self._command_event.notify_all()
            handler.send_line("FUNCTION OK Completed")
        else:
            handler.send_line(f"ERROR Unknown command {line.split()[0]}")

    # ------------------------------------------------------------------
    # Test API
    # ------------------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def push_event(self, line: str) -> int:
        """Send an ACTS line (e.g. "ACTS OK Input 3 1") to every subscriber.

        Returns:
            Number of subscribers that received it
        """
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for handler in subscribers:
            try:
                handler.send_line(line)
                delivered += 1
            except OSError:
                self._unregister(handler)
        return delivered

    def wait_for_command(self, prefix: str, timeout: float = 2.0) -> Optional[str]:
        """Wait for a recorded FUNCTION command starting with prefix."""
        deadline = time.time() + timeout
        with self._lock:
            while True:
                for command in self.commands:
                    if command.startswith(prefix):
                        return command
                remaining = deadline - time.time()
                if remaining <= 0:
                    return None
                self._command_event.wait(remaining)

    def wait_for_subscribers(self, count: int = 1, timeout: float = 2.0) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.subscriber_count >= count:
                return True
            time.sleep(0.01)
        return False

    def clear_commands(self):
        with self._lock:
            self.commands.clear()

    def drop_clients(self):
        """Close every client connection (simulates vMix going away)."""
        with self._lock:
            clients = list(self._clients)
        for handler in clients:
            try:
                handler.connection.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Already closed


def interactive_mode(emulator: VmixEmulator):
    """Interactive CLI mode for manual testing."""
    print("\nInteractive Mode")
    print("Commands:")
    print("  <ACTS line>   - Push an event (e.g., 'ACTS OK Input 3 1')")
    print("  c             - Show FUNCTION commands received")
    print("  d             - Drop all clients")
    print("  q             - Quit")

    while emulator.running:
        try:
            line = input("\n> ").strip()
            if not line:
                continue
            if line == 'q':
                break
            elif line == 'c':
                for command in list(emulator.commands):
                    print(f"  {command}")
            elif line == 'd':
                emulator.drop_clients()
            elif line.startswith("ACTS "):
                delivered = emulator.push_event(line)
                print(f"Delivered to {delivered} subscriber(s)")
            else:
                print("Unknown command")
        except (EOFError, KeyboardInterrupt):
            break


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="vMix API emulator for integration testing")
    parser.add_argument("--port", type=int, default=8099,
                        help="TCP port to listen on (default: 8099)")
    parser.add_argument("--xml", default=None,
                        help="File with the XML state document to serve")
    parser.add_argument("--interactive", action="store_true",
                        help="Run in interactive mode")
    args = parser.parse_args()

    xml = DEFAULT_XML
    if args.xml:
        with open(args.xml, 'r') as f:
            xml = " ".join(line.strip() for line in f)

    emulator = VmixEmulator(port=args.port, xml=xml)

    def signal_handler(sig, frame):
        emulator.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    emulator.start()

    if args.interactive:
        interactive_mode(emulator)
    else:
        print("vMix Emulator running. Press Ctrl+C to exit.")
        try:
            while emulator.running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass

    emulator.stop()


if __name__ == "__main__":
    main()
