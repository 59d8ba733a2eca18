"""
Activator rule engine: vMix events → LED feedback.

Rules are keyed by trigger name and input key (input number as a string, or
"none" for triggers without an input such as Streaming):

    rules["InputBusAAudio"]["5"] = ActivatorRule(on=(red on 12,), off=(off 12,))

The same table drives live events and the startup bootstrap, which replays
synthetic events derived from the mirrored state.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from vmixapc import actions
from vmixapc.buttons import LOGICAL_BUTTON_COUNT, OFF, LedCommand
from vmixapc.log import get_logger
from vmixapc.state import MirroredState
from vmixapc.vmix import ActsEvent, parse_acts_line

logger = get_logger("activator")


@dataclass(frozen=True)
class ActivatorRule:
    """LED commands to emit when a trigger turns on (value 1) or off (value 0)."""
    on: Tuple[LedCommand, ...] = ()
    off: Tuple[LedCommand, ...] = ()


RuleTable = Dict[str, Dict[str, ActivatorRule]]


def parse_led_rule(text: str) -> LedCommand:
    """Parse an activator LED entry of the form "colour: b1,b2,...".

    Raises:
        ValueError: If the separator is missing or the colour is unknown

    Examples:
        >>> parse_led_rule("red: 1,2,3")
        LedCommand(color='red', buttons=(1, 2, 3))
    """
    color, sep, button_list = text.partition(":")
    if not sep:
        raise ValueError(f"Expected 'colour: b1,b2,...', got '{text}'")
    return actions.parse_led_command(color, button_list)


class ActivatorEngine:
    """Look up (trigger, input) and return the matching LED commands.

    Args:
        rules: Trigger name → input key → ActivatorRule
    """

    def __init__(self, rules: RuleTable):
        self.rules = rules

    def evaluate(self, event: ActsEvent) -> List[LedCommand]:
        """LED commands for one event; empty when no rule matches."""
        by_input = self.rules.get(event.parameter)
        if not by_input:
            return []
        rule = by_input.get(event.input_key)
        if rule is None:
            return []
        if event.value == "1":
            return list(rule.on)
        if event.value == "0":
            return list(rule.off)
        return []

    def bootstrap(self, state: MirroredState) -> List[LedCommand]:
        """Replay the state as synthetic events to set the initial LEDs."""
        commands: List[LedCommand] = []
        for line in state.event_lines():
            event = parse_acts_line(line)
            if event is not None:
                commands.extend(self.evaluate(event))
        logger.info(f"Bootstrap produced {len(commands)} LED commands")
        return commands


def initial_leds(initial: Dict[int, str]) -> List[LedCommand]:
    """Group a button → colour layout into one command per colour.

    Examples:
        >>> initial_leds({3: "red", 1: "red", 2: "green"})
        [LedCommand(color='red', buttons=(1, 3)), LedCommand(color='green', buttons=(2,))]
    """
    by_color: Dict[str, List[int]] = {}
    for button, color in initial.items():
        by_color.setdefault(color, []).append(button)
    return [LedCommand(color, tuple(sorted(group))) for color, group in by_color.items()]


def all_off(count: int = LOGICAL_BUTTON_COUNT) -> LedCommand:
    """Switch off every LED button 1..count."""
    return LedCommand(OFF, tuple(range(1, count + 1)))
