"""
APC mini MIDI link: input loop, LED output and reconnect watchdog.

Architecture:
    APC mini MIDI in  → raw (status, data1, data2) tuples → hardware queue
    LED queue → LedWriter → MidiLedSink (note_on colour / note_off)
                          → OscLedSink (optional mirror for the emulator)

The watchdog probes the output port every couple of seconds with a note_off
on a note that has no LED. When the probe fails it keeps looking for the
surface and, once found, restarts the link on the new ports; the restarted
link brings its own watchdog.
"""

import queue
import threading
import time
from typing import Callable, List, Optional, Tuple

import mido

from vmixapc import buttons, osc
from vmixapc.log import get_logger

logger = get_logger("surface")


# ============================================================================
# CONSTANTS
# ============================================================================

SURFACE_NAME = "APC MINI"

WATCHDOG_INTERVAL = 2.0   # seconds between probes
RETRY_INTERVAL = 2.0      # seconds between port searches after a loss


class SurfaceNotFound(Exception):
    """No MIDI port matching the surface name is present."""


# ============================================================================
# PORT DISCOVERY
# ============================================================================

def find_surface_ports(pattern: str = SURFACE_NAME) -> Tuple[Optional[str], Optional[str]]:
    """Find surface MIDI ports by case-insensitive name match.

    Returns:
        Tuple of (input_port_name, output_port_name); either may be None
    """
    needle = pattern.lower()
    input_port = next((p for p in mido.get_input_names() if needle in p.lower()), None)
    output_port = next((p for p in mido.get_output_names() if needle in p.lower()), None)
    return input_port, output_port


def open_surface_ports(pattern: str = SURFACE_NAME):
    """Open the surface input and output ports.

    Raises:
        SurfaceNotFound: If either port is missing
    """
    input_name, output_name = find_surface_ports(pattern)
    if input_name is None or output_name is None:
        raise SurfaceNotFound(f"No MIDI ports matching '{pattern}'")
    logger.info(f"Found surface: in={input_name} out={output_name}")
    return mido.open_input(input_name), mido.open_output(output_name)


def log_available_ports():
    logger.info("Available MIDI input ports:")
    for port in mido.get_input_names():
        logger.info(f"  - {port}")
    logger.info("Available MIDI output ports:")
    for port in mido.get_output_names():
        logger.info(f"  - {port}")


def led_message(color: str, button: int) -> Optional[mido.Message]:
    """MIDI message that shows color on a logical button, or None if unmapped.

    Raises:
        ValueError: If the colour name is unknown
    """
    note = buttons.button_to_note(button)
    if note is None:
        return None
    velocity = buttons.color_velocity(color)
    if velocity is None:
        return mido.Message('note_off', note=note, velocity=0)
    return mido.Message('note_on', note=note, velocity=velocity)


# ============================================================================
# SURFACE LINK
# ============================================================================

class SurfaceLink:
    """Owns the surface ports and the threads reading from them.

    Args:
        hw_queue: Destination for raw input tuples
        opener: Returns (input_port, output_port) or raises SurfaceNotFound
        watchdog_interval: Seconds between liveness probes
        retry_interval: Seconds between port searches after a loss
        stats: Optional shared statistics counters
    """

    def __init__(self, hw_queue: queue.Queue,
                 opener: Callable[[], Tuple[object, object]] = open_surface_ports,
                 watchdog_interval: float = WATCHDOG_INTERVAL,
                 retry_interval: float = RETRY_INTERVAL,
                 stats: Optional[osc.MessageStatistics] = None):
        self.hw_queue = hw_queue
        self.opener = opener
        self.watchdog_interval = watchdog_interval
        self.retry_interval = retry_interval
        self.stats = stats or osc.MessageStatistics()

        self.input_port = None
        self.output_port = None
        self._port_lock = threading.Lock()
        self.generation = 0
        self.watchdog: Optional["Watchdog"] = None
        self.running = False

    def start(self):
        """Open the ports and start input loop and watchdog.

        Raises:
            SurfaceNotFound: If the surface is not connected
        """
        self.running = True
        self.restart(self.opener())

    def restart(self, ports: Tuple[object, object]):
        """Swap in freshly opened ports and restart the input loop and watchdog."""
        with self._port_lock:
            old_ports = (self.input_port, self.output_port)
            self.input_port, self.output_port = ports
            self.generation += 1
            generation = self.generation

        for port in old_ports:
            self._close_port(port)

        self.running = True
        thread = threading.Thread(target=self._midi_input_loop, args=(generation,),
                                  name=f"surface-in-{generation}", daemon=True)
        thread.start()

        self.watchdog = Watchdog(self, self.watchdog_interval, self.retry_interval)
        self.watchdog.start()
        logger.info(f"Surface link started (generation {generation})")

    def _close_port(self, port):
        if port is None:
            return
        try:
            port.close()
        except Exception as e:
            logger.debug(f"Closing stale port failed: {e}")

    def _midi_input_loop(self, generation: int):
        """Forward raw input messages until stopped or superseded."""
        port = self.input_port
        while self.running and self.generation == generation:
            try:
                for msg in port.iter_pending():
                    if msg.type in ('note_on', 'note_off', 'control_change'):
                        self.hw_queue.put(tuple(msg.bytes()))
                        self.stats.increment("surface_messages")
            except Exception as e:
                logger.error(f"Surface input failed: {e}")
                break
            time.sleep(0.01)
        logger.debug(f"Surface input loop {generation} exiting")

    def send(self, msg: mido.Message):
        with self._port_lock:
            port = self.output_port
            if port is None:
                raise OSError("Surface output port is not open")
            port.send(msg)

    def send_probe(self):
        self.send(mido.Message('note_off', note=buttons.PROBE_NOTE, velocity=0))

    def shutdown(self):
        """Stop threads, switch every LED off and close the ports."""
        if self.watchdog is not None:
            self.watchdog.stop()
        self.running = False
        try:
            for button in range(1, buttons.LOGICAL_BUTTON_COUNT + 1):
                msg = led_message(buttons.OFF, button)
                if msg is not None:
                    self.send(msg)
        except Exception as e:
            logger.debug(f"Could not clear LEDs: {e}")
        with self._port_lock:
            ports = (self.input_port, self.output_port)
            self.input_port = self.output_port = None
        for port in ports:
            self._close_port(port)


class Watchdog:
    """Liveness probe for one generation of the surface link."""

    def __init__(self, link: SurfaceLink, interval: float = WATCHDOG_INTERVAL,
                 retry_interval: float = RETRY_INTERVAL,
                 sleep: Callable[[float], None] = time.sleep):
        self.link = link
        self.interval = interval
        self.retry_interval = retry_interval
        self.sleep = sleep
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def check(self) -> bool:
        """Send one probe; False means the link is lost."""
        try:
            self.link.send_probe()
        except Exception as e:
            logger.warning(f"Surface link lost: {e}")
            self.link.stats.increment("surface_losses")
            return False
        return True

    def recover(self) -> bool:
        """Search for the surface until found (or stopped), then restart the link."""
        while self.running and self.link.running:
            try:
                ports = self.link.opener()
            except SurfaceNotFound:
                logger.debug("Surface not found, retrying")
                self.sleep(self.retry_interval)
                continue
            except OSError as e:
                # Port listed but not openable yet (USB re-enumeration)
                logger.warning(f"Surface not ready: {e}")
                self.sleep(self.retry_interval)
                continue
            logger.info("Surface found again, restarting link")
            self.running = False
            self.link.restart(ports)
            return True
        return False

    def run(self):
        while self.running and self.link.running:
            self.sleep(self.interval)
            if not self.running:
                return
            if not self.check():
                self.recover()
                return

    def start(self) -> threading.Thread:
        self.running = True
        self.thread = threading.Thread(target=self.run, name="watchdog", daemon=True)
        self.thread.start()
        return self.thread

    def stop(self):
        self.running = False


# ============================================================================
# LED OUTPUT
# ============================================================================

class MidiLedSink:
    """Writes LED commands to whatever output port the link currently holds."""

    def __init__(self, link: SurfaceLink):
        self.link = link

    def write(self, command: buttons.LedCommand):
        for button in command.buttons:
            try:
                msg = led_message(command.color, button)
            except ValueError as e:
                logger.warning(f"{e}")
                return
            if msg is None:
                continue
            try:
                self.link.send(msg)
            except Exception as e:
                # Watchdog takes care of reconnecting
                logger.debug(f"LED write failed: {e}")
                return


class LedWriter:
    """Single consumer of the LED queue, fanning out to every sink.

    Args:
        led_queue: LedCommand items from the dispatcher and the activator engine
        sinks: Objects with write(command)
        stats: Optional shared statistics counters
    """

    def __init__(self, led_queue: queue.Queue, sinks: List,
                 stats: Optional[osc.MessageStatistics] = None):
        self.led_queue = led_queue
        self.sinks = list(sinks)
        self.stats = stats or osc.MessageStatistics()
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def write(self, command: buttons.LedCommand):
        for sink in self.sinks:
            sink.write(command)
        self.stats.increment("led_commands")

    def run(self):
        logger.info("LED writer thread started")
        while self.running:
            try:
                command = self.led_queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self.write(command)
        logger.info("LED writer thread exiting")

    def start(self) -> threading.Thread:
        self.running = True
        self.thread = threading.Thread(target=self.run, name="led-writer", daemon=True)
        self.thread.start()
        return self.thread

    def stop(self):
        self.running = False
