"""
vMix TCP API client.

vMix listens on TCP port 8099 for CRLF-terminated text commands:

    SUBSCRIBE ACTS                     → subscribe to activator events
    XML                                → "XML <length>" then the <vmix> document
    FUNCTION SetText Input=3&Value=Hi  → run a shortcut function

Activator events arrive as lines of the form::

    ACTS OK <parameter> [<input>] <value>

Writes to the socket are serialized under a lock so commands from the
dispatcher and the pager never interleave.
"""

import queue
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote_plus

from vmixapc import osc
from vmixapc.log import get_logger

logger = get_logger("vmix")


# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_PORT = 8099
LINE_END = "\r\n"

DEFAULT_RETRY_INTERVAL = 5.0     # seconds between connection attempts
DEFAULT_CONNECT_TIMEOUT = 20.0   # seconds per connection attempt

XML_START = "<vmix>"
XML_END = "</vmix>"


# ============================================================================
# ERRORS
# ============================================================================

class MixerError(Exception):
    """Base class for vMix link failures."""


class MixerConnectionError(MixerError):
    """The connection could not be established or was lost."""


class MixerSendError(MixerError):
    """A command could not be written to vMix."""


# ============================================================================
# PROTOCOL HELPERS
# ============================================================================

@dataclass(frozen=True)
class ActsEvent:
    """One activator event reported by vMix.

    Attributes:
        parameter: Trigger name (e.g. "Input", "InputBusAAudio", "Streaming")
        input: Input number as reported, or None for input-less triggers
        value: "0" or "1" for every known trigger
    """
    parameter: str
    input: Optional[str]
    value: str

    @property
    def input_key(self) -> str:
        """Activator table key: the input number or "none"."""
        return self.input if self.input is not None else "none"

    @property
    def is_on(self) -> bool:
        return self.value == "1"

    def to_line(self) -> str:
        if self.input is None:
            return f"ACTS OK {self.parameter} {self.value}"
        return f"ACTS OK {self.parameter} {self.input} {self.value}"


def parse_acts_line(line: str) -> Optional[ActsEvent]:
    """Parse an ACTS line, or return None for anything else.

    Examples:
        >>> parse_acts_line("ACTS OK Input 3 1")
        ActsEvent(parameter='Input', input='3', value='1')
        >>> parse_acts_line("ACTS OK Streaming 0")
        ActsEvent(parameter='Streaming', input=None, value='0')
        >>> parse_acts_line("FUNCTION OK Completed") is None
        True
    """
    fields = line.strip().split()
    if len(fields) < 4 or fields[0] != "ACTS" or fields[1] != "OK":
        return None
    if len(fields) == 4:
        return ActsEvent(fields[2], None, fields[3])
    if len(fields) == 5:
        return ActsEvent(fields[2], fields[3], fields[4])
    return None


def function(name: str, **params) -> str:
    """Build a FUNCTION command with percent-encoded values.

    Parameters keep their keyword order.

    Examples:
        >>> function("SetMasterVolume", Value=100)
        'FUNCTION SetMasterVolume Value=100'
        >>> function("SetText", Input="Lower Third", Value="Amen & Amen")
        'FUNCTION SetText Input=Lower+Third&Value=Amen+%26+Amen'
    """
    if not params:
        return f"FUNCTION {name}"
    query = "&".join(f"{key}={quote_plus(str(value))}" for key, value in params.items())
    return f"FUNCTION {name} {query}"


def parse_address(address: str) -> Tuple[str, int]:
    """Split "host:port" into its parts; the port defaults to 8099."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_PORT
    port_number = int(port)
    osc.validate_port(port_number)
    return host or "127.0.0.1", port_number


# ============================================================================
# CLIENT
# ============================================================================

class VmixClient:
    """Line-oriented connection to the vMix TCP API.

    Args:
        address: "host:port" of the vMix API
        retry_interval: Seconds to wait after a refused or timed-out attempt
        connect_timeout: Seconds allowed per connection attempt
        stats: Optional shared statistics counters

    Attributes:
        closed: Event set whenever the connection is down
    """

    def __init__(self, address: str,
                 retry_interval: float = DEFAULT_RETRY_INTERVAL,
                 connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
                 stats: Optional[osc.MessageStatistics] = None):
        self.address = address
        self.host, self.port = parse_address(address)
        self.retry_interval = retry_interval
        self.connect_timeout = connect_timeout
        self.stats = stats or osc.MessageStatistics()

        self._sock: Optional[socket.socket] = None
        self._reader = None
        self._write_lock = threading.Lock()

        self.closed = threading.Event()
        self.closed.set()
        self.running = True

    def connect(self):
        """Block until a TCP session with vMix exists.

        Refused and timed-out attempts are retried every retry_interval.

        Raises:
            MixerConnectionError: On any other socket error, or if shutdown()
                was called while waiting
        """
        while self.running:
            try:
                sock = socket.create_connection((self.host, self.port),
                                                timeout=self.connect_timeout)
            except (ConnectionRefusedError, socket.timeout, TimeoutError) as e:
                logger.warning(f"vMix at {self.address} not reachable ({e}), "
                               f"retrying in {self.retry_interval:.0f}s")
                self.stats.increment("connect_retries")
                time.sleep(self.retry_interval)
                continue
            except OSError as e:
                raise MixerConnectionError(f"Cannot connect to vMix at {self.address}: {e}") from e

            sock.settimeout(None)
            self._sock = sock
            self._reader = sock.makefile("rb")
            self.closed.clear()
            logger.info(f"Connected to vMix at {self.address}")
            return

        raise MixerConnectionError("Client shut down before connecting")

    @property
    def connected(self) -> bool:
        return self._sock is not None and not self.closed.is_set()

    def send(self, command: str):
        """Write one command line.

        Raises:
            MixerSendError: If not connected or the write fails
        """
        sock = self._sock
        if sock is None:
            raise MixerSendError(f"Not connected, dropped: {command}")

        data = (command + LINE_END).encode("utf-8")
        with self._write_lock:
            try:
                sock.sendall(data)
            except OSError as e:
                self.stats.increment("send_failures")
                raise MixerSendError(f"Failed to send '{command}': {e}") from e

        self.stats.increment("commands_sent")
        logger.debug(f"→ {command}")

    def subscribe(self):
        """Subscribe to activator events."""
        self.send("SUBSCRIBE ACTS")
        logger.info("Subscribed to ACTS")

    def readline(self) -> str:
        """Read one line without its terminator.

        Raises:
            MixerConnectionError: On EOF or socket error
        """
        reader = self._reader
        if reader is None:
            raise MixerConnectionError("Not connected")
        try:
            raw = reader.readline()
        except (OSError, ValueError) as e:
            raise MixerConnectionError(f"Read failed: {e}") from e
        if not raw:
            raise MixerConnectionError("Connection closed by vMix")
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def request_xml(self) -> str:
        """Request the full state document.

        Lines are collected from the one holding <vmix> through the one
        holding </vmix>; the "XML <length>" header is skipped.
        """
        self.send("XML")
        collected = []
        while True:
            line = self.readline()
            if not collected:
                start = line.find(XML_START)
                if start < 0:
                    continue
                line = line[start:]
            collected.append(line)
            if XML_END in line:
                return "\n".join(collected)

    def receive_loop(self, out_queue: "queue.Queue[str]"):
        """Publish every received line to out_queue until the link drops.

        Runs in its own thread. On exit the connection is closed and the
        closed event is set.
        """
        logger.info("vMix receive thread started")
        while self.running:
            try:
                line = self.readline()
            except MixerConnectionError as e:
                if self.running:
                    logger.error(f"vMix link lost: {e}")
                break
            logger.debug(f"← {line}")
            out_queue.put(line)
        self.close()
        logger.info("vMix receive thread exiting")

    def close(self):
        """Close the connection; safe to call more than once."""
        sock, reader = self._sock, self._reader
        self._sock = None
        self._reader = None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Already disconnected
            sock.close()
        if reader is not None:
            try:
                reader.close()
            except OSError as e:
                logger.debug(f"Reader close failed: {e}")
        self.closed.set()

    def shutdown(self):
        """Stop retrying and close the connection."""
        self.running = False
        self.close()
