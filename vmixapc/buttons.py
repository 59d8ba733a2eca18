"""
APC mini button and fader addressing.

The APC mini reports native MIDI note numbers with the grid counted from the
bottom-left corner. Configuration and rule tables use logical numbering
instead, counted from the top-left:

    Logical  1- 8  top grid row          native 56-63
    Logical 57-64  bottom grid row       native  0- 7
    Logical 65-72  round buttons below   native 64-71
    Logical 73-80  round buttons right   native 82-89
    Logical 81     shift                 native 98

Faders send control change 48-56 and are numbered 1-9.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

GRID_ROWS = 8
GRID_COLS = 8

NATIVE_BOTTOM_ROW_START = 64
NATIVE_SIDE_COLUMN_START = 82
NATIVE_SHIFT = 98

LOGICAL_BOTTOM_ROW_START = 65
LOGICAL_SIDE_COLUMN_START = 73
LOGICAL_SHIFT = 81
LOGICAL_BUTTON_COUNT = 80  # Buttons with an LED

# Note used by the watchdog to probe the output port; no LED behind it
PROBE_NOTE = 100

FADER_CC_START = 48
FADER_COUNT = 9

# Velocity values understood by the APC mini LEDs. "off" is sent as note_off.
OFF = "off"
COLOR_CODES: Dict[str, int] = {
    "green": 1,
    "greenBlink": 2,
    "red": 3,
    "redBlink": 4,
    "yellow": 5,
    "yellowBlink": 6,
    # Single-colour round buttons
    "on": 1,
    "blink": 2,
}


# ============================================================================
# TRANSLATION TABLES
# ============================================================================

def _build_tables() -> Tuple[Dict[int, int], Dict[int, int]]:
    native_to_logical: Dict[int, int] = {}

    for note in range(GRID_ROWS * GRID_COLS):
        row_from_bottom = note // GRID_COLS
        col = note % GRID_COLS
        native_to_logical[note] = (GRID_ROWS - 1 - row_from_bottom) * GRID_COLS + col + 1

    for i in range(GRID_COLS):
        native_to_logical[NATIVE_BOTTOM_ROW_START + i] = LOGICAL_BOTTOM_ROW_START + i
        native_to_logical[NATIVE_SIDE_COLUMN_START + i] = LOGICAL_SIDE_COLUMN_START + i

    native_to_logical[NATIVE_SHIFT] = LOGICAL_SHIFT

    logical_to_native = {logical: native for native, logical in native_to_logical.items()}
    return native_to_logical, logical_to_native


NATIVE_TO_LOGICAL, LOGICAL_TO_NATIVE = _build_tables()

CC_TO_FADER: Dict[int, int] = {FADER_CC_START + i: i + 1 for i in range(FADER_COUNT)}
FADER_TO_CC: Dict[int, int] = {fader: cc for cc, fader in CC_TO_FADER.items()}


def note_to_button(note: int) -> Optional[int]:
    """Convert a native note number to a logical button id.

    Examples:
        >>> note_to_button(0)   # bottom-left grid button
        57
        >>> note_to_button(56)  # top-left grid button
        1
        >>> note_to_button(72) is None
        True
    """
    return NATIVE_TO_LOGICAL.get(note)


def button_to_note(button: int) -> Optional[int]:
    """Convert a logical button id to its native note number, or None."""
    return LOGICAL_TO_NATIVE.get(button)


def cc_to_fader(cc: int) -> Optional[int]:
    """Convert a control change number (48-56) to a fader number (1-9)."""
    return CC_TO_FADER.get(cc)


def fader_to_cc(fader: int) -> Optional[int]:
    return FADER_TO_CC.get(fader)


def color_velocity(color: str) -> Optional[int]:
    """Velocity for a colour name; None means the LED is switched off.

    Raises:
        ValueError: If the colour name is unknown
    """
    if color == OFF:
        return None
    if color not in COLOR_CODES:
        raise ValueError(f"Unknown LED colour: {color}")
    return COLOR_CODES[color]


def is_valid_color(color: str) -> bool:
    return color == OFF or color in COLOR_CODES


# ============================================================================
# LED COMMAND
# ============================================================================

@dataclass(frozen=True)
class LedCommand:
    """Set one colour on a group of logical buttons.

    Attributes:
        color: Colour name from COLOR_CODES, or "off"
        buttons: Logical button ids
    """
    color: str
    buttons: Tuple[int, ...]

    @classmethod
    def single(cls, color: str, button: int) -> "LedCommand":
        return cls(color, (button,))


# ============================================================================
# RAW SURFACE MESSAGES
# ============================================================================

BUTTON_DOWN = "down"
BUTTON_UP = "up"
FADER = "fader"

STATUS_NOTE_OFF = 0x80
STATUS_NOTE_ON = 0x90
STATUS_CONTROL_CHANGE = 0xB0


@dataclass(frozen=True)
class SurfaceEvent:
    """Decoded surface message in native addressing.

    Attributes:
        kind: BUTTON_DOWN, BUTTON_UP or FADER
        control: Native note number (buttons) or control change number (faders)
        value: Velocity or fader position 0-127
    """
    kind: str
    control: int
    value: int


def decode_message(raw: Sequence[int]) -> Optional[SurfaceEvent]:
    """Decode a raw 3-byte MIDI message from the surface.

    Note-on with velocity 0 and note-off both count as a release.

    Examples:
        >>> decode_message([0x90, 56, 127])
        SurfaceEvent(kind='down', control=56, value=127)
        >>> decode_message([0x90, 56, 0]).kind
        'up'
        >>> decode_message([0xB0, 48, 64]).kind
        'fader'
    """
    if len(raw) < 3:
        return None
    status = raw[0] & 0xF0
    if status == STATUS_NOTE_ON:
        return SurfaceEvent(BUTTON_DOWN if raw[2] > 0 else BUTTON_UP, raw[1], raw[2])
    if status == STATUS_NOTE_OFF:
        return SurfaceEvent(BUTTON_UP, raw[1], 0)
    if status == STATUS_CONTROL_CHANGE:
        return SurfaceEvent(FADER, raw[1], raw[2])
    return None


def press_message(button: int) -> Optional[Tuple[int, int, int]]:
    """Raw note-on a real surface sends when a logical button goes down."""
    note = button_to_note(button)
    if note is None:
        return None
    return (STATUS_NOTE_ON, note, 127)


def release_message(button: int) -> Optional[Tuple[int, int, int]]:
    note = button_to_note(button)
    if note is None:
        return None
    return (STATUS_NOTE_ON, note, 0)


def fader_message(fader: int, value: int) -> Optional[Tuple[int, int, int]]:
    cc = fader_to_cc(fader)
    if cc is None or not 0 <= value <= 127:
        return None
    return (STATUS_CONTROL_CHANGE, cc, value)
