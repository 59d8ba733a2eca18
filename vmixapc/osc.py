#!/usr/bin/env python3
"""
vmixapc OSC infrastructure - ports, address validation and statistics.

The bridge exposes an OSC control port so a virtual surface (see
vmixapc.simulator.surface_emulator) can press buttons and move faders, and it
can mirror LED commands back to that surface over OSC.

Classes:
    - MessageStatistics: Thread-safe message counter with formatted output

Functions:
    - validate_button_address(address): Validate /button/{press,release} pattern
    - validate_led_address(address): Validate /led/{button} pattern
    - validate_port(port): Validate port in range 1-65535
    - validate_button(button): Validate logical button id

Constants:
    - PORT_LINE_HARNESS: TCP line harness (2000)
    - PORT_SURFACE_CONTROL: OSC button/fader input (8010)
    - PORT_LED_MIRROR: OSC LED mirror towards the emulator (8011)
"""

import re
import threading
from typing import Optional, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

PORT_LINE_HARNESS = 2000      # "p N" / "r N" lines over TCP (localhost only)
PORT_SURFACE_CONTROL = 8010   # Emulator → bridge: /button/*, /fader
PORT_LED_MIRROR = 8011        # Bridge → emulator: /led/{button} [velocity]

# Logical numbering: 1-64 grid, 65-72 bottom row, 73-80 side column, 81 shift
BUTTON_MIN = 1
BUTTON_MAX = 81
FADER_MIN = 1
FADER_MAX = 9

# Port validation range
PORT_MIN = 1
PORT_MAX = 65535

BUTTON_ADDRESS_PATTERN = re.compile(r'^/button/(press|release)$')
LED_ADDRESS_PATTERN = re.compile(r'^/led/(\d{1,2})$')


# ============================================================================
# VALIDATION FUNCTIONS
# ============================================================================

def validate_button_address(address: str) -> Tuple[bool, Optional[bool], Optional[str]]:
    """Validate button OSC address pattern.

    Args:
        address: OSC address string (e.g., "/button/press")

    Returns:
        Tuple of (is_valid, is_press, error_message)

    Examples:
        >>> validate_button_address("/button/press")
        (True, True, None)
        >>> validate_button_address("/button/hold")
        (False, None, 'Invalid address pattern: /button/hold')
    """
    match = BUTTON_ADDRESS_PATTERN.match(address)
    if not match:
        return False, None, f"Invalid address pattern: {address}"
    return True, match.group(1) == "press", None


def validate_led_address(address: str) -> Tuple[bool, Optional[int], Optional[str]]:
    """Validate LED mirror OSC address pattern and extract the button id.

    Examples:
        >>> validate_led_address("/led/7")
        (True, 7, None)
        >>> validate_led_address("/led/99")
        (False, None, 'Button out of range: 99')
    """
    match = LED_ADDRESS_PATTERN.match(address)
    if not match:
        return False, None, f"Invalid address pattern: {address}"
    button = int(match.group(1))
    if button < BUTTON_MIN or button > BUTTON_MAX:
        return False, None, f"Button out of range: {button}"
    return True, button, None


def validate_port(port: int) -> None:
    """Validate UDP/TCP port number is in valid range.

    Raises:
        ValueError: If port is outside range 1-65535
    """
    if port < PORT_MIN or port > PORT_MAX:
        raise ValueError(f"Port must be in range {PORT_MIN}-{PORT_MAX}, got {port}")


def validate_button(button: int) -> None:
    """Validate a logical button id.

    Raises:
        ValueError: If button is outside range 1-81
    """
    if button < BUTTON_MIN or button > BUTTON_MAX:
        raise ValueError(f"Button must be in range {BUTTON_MIN}-{BUTTON_MAX}, got {button}")


# ============================================================================
# MESSAGE STATISTICS
# ============================================================================

class MessageStatistics:
    """Thread-safe message statistics tracker with formatted output.

    Typical counters:
        - acts_events: ACTS lines received from vMix
        - commands_sent: FUNCTION commands written to vMix
        - send_failures: Commands that could not be written
        - button_presses / button_releases / fader_moves: Surface input
        - led_commands: LED commands written to the surface

    Examples:
        >>> stats = MessageStatistics()
        >>> stats.increment('commands_sent')
        >>> stats.print_stats("BRIDGE STATISTICS")
    """

    def __init__(self):
        self.counters = {}
        self.lock = threading.Lock()

    def increment(self, counter_name: str, amount: int = 1) -> None:
        """Increment a counter by specified amount (thread-safe)."""
        with self.lock:
            self.counters[counter_name] = self.counters.get(counter_name, 0) + amount

    def get(self, counter_name: str) -> int:
        """Get current value of a counter, or 0 if it was never incremented."""
        with self.lock:
            return self.counters.get(counter_name, 0)

    def print_stats(self, title: str = "STATISTICS") -> None:
        """Print formatted statistics to console.

        Output format:
            ============================================================
            TITLE
            ============================================================
            Counter Name: value
            ...
            ============================================================
        """
        print("\n" + "=" * 60)
        print(title)
        print("=" * 60)

        # Snapshot counters under lock, print without it
        with self.lock:
            snapshot = dict(self.counters)

        for name in sorted(snapshot.keys()):
            display_name = name.replace('_', ' ').title()
            print(f"{display_name}: {snapshot[name]}")

        print("=" * 60)
