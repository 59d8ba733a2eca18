"""
Mirrored vMix state and the ACTS event synchronizer.

MirroredState is seeded once from the XML snapshot and afterwards mutated only
by the synchronizer (or wholesale by replace_with after a reconnect). Every
access goes through an internal lock; readers that need a consistent view take
a copy().
"""

import queue
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from vmixapc import osc
from vmixapc.log import get_logger
from vmixapc.vmix import ActsEvent, parse_acts_line

logger = get_logger("state")


# ============================================================================
# CONSTANTS
# ============================================================================

OVERLAY_SLOTS = 6

OVERLAY_PATTERN = re.compile(r'^Overlay([1-6])$')

# ACTS parameter → per-input map attribute
MEMBERSHIP_PARAMETERS = {
    "InputPlaying": "playing",
    "InputMasterAudio": "master",
    "InputBusAAudio": "bus_a",
    "InputBusBAudio": "bus_b",
}


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# ============================================================================
# MIRRORED STATE
# ============================================================================

@dataclass
class MirroredState:
    """Last known condition of the mixer.

    Attributes:
        active: Input number on program (0 if unknown)
        preview: Input number on preview (0 if unknown)
        overlays: Input number shown in overlay slots 1-6 (index 0 is slot 1), 0 if empty
        streaming, recording: Output flags
        playing: Input number → playing
        master, bus_a, bus_b: Input number → routed to that bus
        name_to_number, number_to_name: Input title ↔ input number
        overlay_textboxes: Title input name → name of its first text field
    """
    active: int = 0
    preview: int = 0
    overlays: List[int] = field(default_factory=lambda: [0] * OVERLAY_SLOTS)
    streaming: bool = False
    recording: bool = False
    playing: Dict[int, bool] = field(default_factory=dict)
    master: Dict[int, bool] = field(default_factory=dict)
    bus_a: Dict[int, bool] = field(default_factory=dict)
    bus_b: Dict[int, bool] = field(default_factory=dict)
    name_to_number: Dict[str, int] = field(default_factory=dict)
    number_to_name: Dict[int, str] = field(default_factory=dict)
    overlay_textboxes: Dict[str, str] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def apply_event(self, event: ActsEvent) -> bool:
        """Apply one activator event.

        Input and InputPreview overwrite the program/preview input whatever
        the value. Overlay slots take the input when the value is 1 and are
        emptied otherwise. Membership maps are replaced by a single entry for
        the reported input. Unknown parameters are ignored.

        Returns:
            True if a field was updated
        """
        parameter = event.parameter
        number = _to_int(event.input)

        with self._lock:
            if parameter == "Input":
                if number is None:
                    return False
                self.active = number
                return True

            if parameter == "InputPreview":
                if number is None:
                    return False
                self.preview = number
                return True

            if parameter in ("Streaming", "Recording"):
                setattr(self, parameter.lower(), event.is_on)
                return True

            match = OVERLAY_PATTERN.match(parameter)
            if match:
                if number is None:
                    return False
                self.overlays[int(match.group(1)) - 1] = number if event.is_on else 0
                return True

            attribute = MEMBERSHIP_PARAMETERS.get(parameter)
            if attribute is not None:
                if number is None:
                    return False
                setattr(self, attribute, {number: event.is_on})
                return True

        return False

    def copy(self) -> "MirroredState":
        """Consistent, unshared copy for readers."""
        with self._lock:
            return MirroredState(
                active=self.active,
                preview=self.preview,
                overlays=list(self.overlays),
                streaming=self.streaming,
                recording=self.recording,
                playing=dict(self.playing),
                master=dict(self.master),
                bus_a=dict(self.bus_a),
                bus_b=dict(self.bus_b),
                name_to_number=dict(self.name_to_number),
                number_to_name=dict(self.number_to_name),
                overlay_textboxes=dict(self.overlay_textboxes),
            )

    def replace_with(self, other: "MirroredState"):
        """Take over every field of other (used after a fresh snapshot)."""
        fresh = other.copy()
        with self._lock:
            self.active = fresh.active
            self.preview = fresh.preview
            self.overlays = fresh.overlays
            self.streaming = fresh.streaming
            self.recording = fresh.recording
            self.playing = fresh.playing
            self.master = fresh.master
            self.bus_a = fresh.bus_a
            self.bus_b = fresh.bus_b
            self.name_to_number = fresh.name_to_number
            self.number_to_name = fresh.number_to_name
            self.overlay_textboxes = fresh.overlay_textboxes

    def input_name(self, number: int) -> Optional[str]:
        with self._lock:
            return self.number_to_name.get(number)

    def input_number(self, name: str) -> Optional[int]:
        with self._lock:
            return self.name_to_number.get(name)

    def textbox_for(self, name: str) -> Optional[str]:
        with self._lock:
            return self.overlay_textboxes.get(name)

    def event_lines(self) -> List[str]:
        """ACTS lines a live subscriber would have seen to reach this state.

        Examples:
            >>> state = MirroredState(active=3, streaming=True)
            >>> state.event_lines()[:2]
            ['ACTS OK Input 3 1', 'ACTS OK Streaming 1']
        """
        snapshot = self.copy()
        lines = []
        if snapshot.active:
            lines.append(f"ACTS OK Input {snapshot.active} 1")
        if snapshot.preview:
            lines.append(f"ACTS OK InputPreview {snapshot.preview} 1")
        lines.append(f"ACTS OK Streaming {int(snapshot.streaming)}")
        lines.append(f"ACTS OK Recording {int(snapshot.recording)}")
        for slot, number in enumerate(snapshot.overlays, start=1):
            if number:
                lines.append(f"ACTS OK Overlay{slot} {number} 1")
        for parameter, attribute in MEMBERSHIP_PARAMETERS.items():
            members: Dict[int, bool] = getattr(snapshot, attribute)
            for number in sorted(members):
                lines.append(f"ACTS OK {parameter} {number} {int(members[number])}")
        return lines

    def describe(self) -> str:
        """Multi-line dump for diagnostics."""
        snapshot = self.copy()

        def members(mapping: Dict[int, bool]) -> str:
            return ", ".join(str(n) for n, on in sorted(mapping.items()) if on) or "-"

        return "\n".join([
            f"active={snapshot.active} preview={snapshot.preview}",
            f"overlays={snapshot.overlays}",
            f"streaming={snapshot.streaming} recording={snapshot.recording}",
            f"playing: {members(snapshot.playing)}",
            f"master: {members(snapshot.master)}",
            f"busA: {members(snapshot.bus_a)}",
            f"busB: {members(snapshot.bus_b)}",
            f"inputs: {len(snapshot.number_to_name)} "
            f"({len(snapshot.overlay_textboxes)} titles)",
        ])


# ============================================================================
# SYNCHRONIZER
# ============================================================================

class StateSynchronizer:
    """Worker that applies the vMix event stream to the mirrored state.

    Each ACTS line is first run through the activator engine (its LED
    commands go to led_queue), then applied to the state. Other lines
    (command acknowledgements and the like) are skipped.

    Args:
        state: Shared mirrored state
        engine: Object with evaluate(event) -> list of LedCommand
        event_queue: Raw lines from VmixClient.receive_loop
        led_queue: Shared LED command queue
        stats: Optional shared statistics counters
    """

    def __init__(self, state: MirroredState, engine, event_queue: "queue.Queue[str]",
                 led_queue: queue.Queue, stats: Optional[osc.MessageStatistics] = None):
        self.state = state
        self.engine = engine
        self.event_queue = event_queue
        self.led_queue = led_queue
        self.stats = stats or osc.MessageStatistics()
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def process(self, line: str) -> bool:
        """Handle one received line; returns True if it was an ACTS event."""
        event = parse_acts_line(line)
        if event is None:
            logger.debug(f"Ignoring line: {line!r}")
            self.stats.increment("ignored_lines")
            return False

        for command in self.engine.evaluate(event):
            self.led_queue.put(command)
        self.state.apply_event(event)
        self.stats.increment("acts_events")
        return True

    def run(self):
        logger.info("Synchronizer thread started")
        while self.running:
            try:
                line = self.event_queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self.process(line)
            except Exception as e:
                logger.exception(f"Event {line!r} failed: {e}")
        logger.info("Synchronizer thread exiting")

    def start(self) -> threading.Thread:
        self.running = True
        self.thread = threading.Thread(target=self.run, name="synchronizer", daemon=True)
        self.thread.start()
        return self.thread

    def stop(self):
        self.running = False
