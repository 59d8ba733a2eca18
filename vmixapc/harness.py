"""
Test harness listeners that stand in for the physical surface.

TCP line harness (localhost:2000 by default), one command per line:

    p 7        press logical button 7
    r 7        release logical button 7
    f 1 64     move fader 1 to 64
    STOP       close this connection

OSC harness, for vmixapc.simulator.surface_emulator:

    /button/press   [button]
    /button/release [button]
    /fader          [fader, value]

Both translate to the same raw note/control-change tuples a real APC mini
produces and put them on the hardware queue, so everything downstream is
exercised exactly as with the hardware.
"""

import queue
import socketserver
import threading
from typing import Optional, Tuple

from pythonosc import dispatcher, udp_client
from pythonosc.osc_server import ThreadingOSCUDPServer

from vmixapc import buttons, osc
from vmixapc.log import get_logger

logger = get_logger("harness")


def parse_harness_line(line: str) -> Optional[Tuple[int, int, int]]:
    """Translate one harness line into a raw surface message.

    Returns:
        (status, data1, data2), or None if the line is not understood

    Examples:
        >>> parse_harness_line("p 1")
        (144, 56, 127)
        >>> parse_harness_line("r 1")
        (144, 56, 0)
        >>> parse_harness_line("f 1 64")
        (176, 48, 64)
    """
    words = line.split()
    try:
        if len(words) == 2 and words[0] == "p":
            return buttons.press_message(int(words[1]))
        if len(words) == 2 and words[0] == "r":
            return buttons.release_message(int(words[1]))
        if len(words) == 3 and words[0] == "f":
            return buttons.fader_message(int(words[1]), int(words[2]))
    except ValueError:
        return None
    return None


# ============================================================================
# TCP LINE HARNESS
# ============================================================================

class _LineHandler(socketserver.StreamRequestHandler):
    def handle(self):
        harness: "LineHarness" = self.server.harness
        logger.info(f"Harness client connected from {self.client_address[0]}")
        for raw_line in self.rfile:
            line = raw_line.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            if line.upper() == "STOP":
                break
            harness.submit_line(line)
        logger.info("Harness client disconnected")


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class LineHarness:
    """Threaded TCP listener accepting harness lines.

    Args:
        hw_queue: Hardware queue shared with the dispatcher
        host: Bind address (localhost only by default)
        port: TCP port; 0 picks a free one
        stats: Optional shared statistics counters
    """

    def __init__(self, hw_queue: queue.Queue, host: str = "localhost",
                 port: int = osc.PORT_LINE_HARNESS,
                 stats: Optional[osc.MessageStatistics] = None):
        self.hw_queue = hw_queue
        self.host = host
        self.port = port
        self.stats = stats or osc.MessageStatistics()
        self.server: Optional[_ThreadingTCPServer] = None
        self.thread: Optional[threading.Thread] = None

    def submit_line(self, line: str) -> bool:
        message = parse_harness_line(line)
        if message is None:
            logger.warning(f"Ignoring harness line: {line!r}")
            self.stats.increment("harness_rejected")
            return False
        self.hw_queue.put(message)
        self.stats.increment("harness_lines")
        return True

    def start(self):
        self.server = _ThreadingTCPServer((self.host, self.port), _LineHandler)
        self.server.harness = self
        self.port = self.server.server_address[1]
        self.thread = threading.Thread(target=self.server.serve_forever,
                                       name="line-harness", daemon=True)
        self.thread.start()
        logger.info(f"Line harness listening on {self.host}:{self.port}")

    def stop(self):
        if self.server is not None:
            self.server.shutdown()
            self.server.server_close()
            self.server = None


# ============================================================================
# OSC HARNESS
# ============================================================================

class OscHarness:
    """OSC listener for the virtual surface.

    Args:
        hw_queue: Hardware queue shared with the dispatcher
        port: UDP port (default PORT_SURFACE_CONTROL)
        host: Bind address
    """

    def __init__(self, hw_queue: queue.Queue, port: int = osc.PORT_SURFACE_CONTROL,
                 host: str = "127.0.0.1",
                 stats: Optional[osc.MessageStatistics] = None):
        osc.validate_port(port)
        self.hw_queue = hw_queue
        self.port = port
        self.host = host
        self.stats = stats or osc.MessageStatistics()
        self.server: Optional[ThreadingOSCUDPServer] = None
        self.thread: Optional[threading.Thread] = None

    def _handle_button(self, address: str, *args):
        is_valid, is_press, error = osc.validate_button_address(address)
        if not is_valid or len(args) < 1:
            logger.warning(f"Bad button message {address} {args}: {error or 'missing button'}")
            self.stats.increment("osc_rejected")
            return
        try:
            button = int(args[0])
        except (TypeError, ValueError):
            self.stats.increment("osc_rejected")
            return
        message = buttons.press_message(button) if is_press else buttons.release_message(button)
        if message is None:
            logger.warning(f"Button {button} is not mapped")
            self.stats.increment("osc_rejected")
            return
        self.hw_queue.put(message)
        self.stats.increment("osc_messages")

    def _handle_fader(self, address: str, *args):
        if len(args) < 2:
            self.stats.increment("osc_rejected")
            return
        try:
            message = buttons.fader_message(int(args[0]), int(args[1]))
        except (TypeError, ValueError):
            message = None
        if message is None:
            logger.warning(f"Bad fader message {args}")
            self.stats.increment("osc_rejected")
            return
        self.hw_queue.put(message)
        self.stats.increment("osc_messages")

    def start(self):
        osc_dispatcher = dispatcher.Dispatcher()
        osc_dispatcher.map("/button/*", self._handle_button)
        osc_dispatcher.map("/fader", self._handle_fader)
        self.server = ThreadingOSCUDPServer((self.host, self.port), osc_dispatcher)
        self.thread = threading.Thread(target=self.server.serve_forever,
                                       name="osc-harness", daemon=True)
        self.thread.start()
        logger.info(f"OSC harness listening on {self.host}:{self.port}")

    def stop(self):
        if self.server is not None:
            self.server.shutdown()
            self.server.server_close()
            self.server = None


class OscLedSink:
    """Mirrors LED commands as /led/{button} [velocity] (0 = off)."""

    def __init__(self, host: str = "127.0.0.1", port: int = osc.PORT_LED_MIRROR):
        osc.validate_port(port)
        self.client = udp_client.SimpleUDPClient(host, port)

    def write(self, command: buttons.LedCommand):
        try:
            velocity = buttons.color_velocity(command.color) or 0
        except ValueError as e:
            logger.warning(f"{e}")
            return
        for button in command.buttons:
            try:
                self.client.send_message(f"/led/{button}", [velocity])
            except OSError as e:
                logger.debug(f"LED mirror send failed: {e}")
                return
