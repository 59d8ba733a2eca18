"""
Button actions, parsed once when the configuration is loaded.

Shortcut entries in the configuration are short strings:

    leds green 1,2,3     → LedAction
    preset pulpit 3      → PresetAction (camera name, preset token)
    Next / Prev          → NextAction / PrevAction (move the verse cursor)
    OvOff                → OverlayOffAction (hide the paged overlay)
    dumpVars             → DumpStateAction (log mirrored state)
    Cut                  → FunctionAction("FUNCTION Cut")
    FUNCTION Fade        → FunctionAction("FUNCTION Fade")
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from vmixapc import buttons


@dataclass(frozen=True)
class LedAction:
    command: buttons.LedCommand


@dataclass(frozen=True)
class PresetAction:
    camera: str
    preset: str


@dataclass(frozen=True)
class NextAction:
    pass


@dataclass(frozen=True)
class PrevAction:
    pass


@dataclass(frozen=True)
class OverlayOffAction:
    pass


@dataclass(frozen=True)
class DumpStateAction:
    pass


@dataclass(frozen=True)
class FunctionAction:
    command: str


Action = Union[LedAction, PresetAction, NextAction, PrevAction,
               OverlayOffAction, DumpStateAction, FunctionAction]

KEYWORD_ACTIONS = {
    "Next": NextAction,
    "Prev": PrevAction,
    "OvOff": OverlayOffAction,
    "dumpVars": DumpStateAction,
}


def parse_button_list(text: str) -> Tuple[int, ...]:
    """Parse "1,2, 3" into logical button ids.

    Raises:
        ValueError: If an entry is not an integer
    """
    result = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            result.append(int(part))
        except ValueError:
            raise ValueError(f"Invalid button number '{part}' in '{text}'") from None
    return tuple(result)


def parse_led_command(color: str, button_list: str) -> buttons.LedCommand:
    """Build an LedCommand, validating the colour name.

    Raises:
        ValueError: On an unknown colour or malformed button list
    """
    color = color.strip()
    if not buttons.is_valid_color(color):
        raise ValueError(f"Unknown LED colour '{color}'")
    return buttons.LedCommand(color, parse_button_list(button_list))


def parse_action(text: str) -> Optional[Action]:
    """Parse one action string; blank strings yield None.

    Raises:
        ValueError: For malformed "leds" or "preset" entries

    Examples:
        >>> parse_action("Cut")
        FunctionAction(command='FUNCTION Cut')
        >>> parse_action("preset pulpit 3")
        PresetAction(camera='pulpit', preset='3')
    """
    text = text.strip()
    if not text:
        return None

    words = text.split()
    head = words[0]

    if head == "leds":
        if len(words) != 3:
            raise ValueError(f"Expected 'leds <colour> <b1,b2,...>', got '{text}'")
        return LedAction(parse_led_command(words[1], words[2]))

    if head == "preset":
        if len(words) != 3:
            raise ValueError(f"Expected 'preset <camera> <preset>', got '{text}'")
        return PresetAction(words[1], words[2])

    if text in KEYWORD_ACTIONS:
        return KEYWORD_ACTIONS[text]()

    if head == "FUNCTION":
        return FunctionAction(text)
    return FunctionAction(f"FUNCTION {text}")


def parse_actions(entries: Iterable[str]) -> Tuple[Action, ...]:
    """Parse a list of action strings, dropping blanks."""
    parsed = []
    for entry in entries:
        action = parse_action(str(entry))
        if action is not None:
            parsed.append(action)
    return tuple(parsed)
