"""
Tests for APC mini Emulator

Validates button/fader emulation, LED state tracking, and the LED mirror round trip.
"""

import pytest

from vmixapc.buttons import LedCommand
from vmixapc.harness import OscLedSink
from vmixapc.simulator.surface_emulator import SurfaceEmulator


class TestSurfaceEmulator:
    """Test SurfaceEmulator functionality."""

    def test_initialization(self):
        """Test emulator initializes with correct defaults."""
        emulator = SurfaceEmulator()

        assert emulator.control_port == 8010
        assert emulator.led_port == 8011
        assert len(emulator.led_state) == 0
        assert emulator.button_presses == 0
        assert emulator.led_commands == 0
        assert emulator.running == False

    def test_button_press(self):
        """Test button press validation and counting."""
        emulator = SurfaceEmulator()

        emulator.press(1)
        emulator.press(81)
        emulator.release(81)
        assert emulator.button_presses == 2

        with pytest.raises(ValueError, match="Button must be in range"):
            emulator.press(0)
        with pytest.raises(ValueError, match="Button must be in range"):
            emulator.release(82)

    def test_fader(self):
        """Test fader validation and counting."""
        emulator = SurfaceEmulator()

        emulator.move_fader(1, 0)
        emulator.move_fader(9, 127)
        assert emulator.fader_moves == 2

        with pytest.raises(ValueError, match="Invalid fader:"):
            emulator.move_fader(10, 64)
        with pytest.raises(ValueError, match="Invalid fader value"):
            emulator.move_fader(1, 128)

    def test_led_state_tracking(self):
        """Test LED commands update state."""
        emulator = SurfaceEmulator()

        emulator._handle_led_command("/led/7", 3)
        emulator._handle_led_command("/led/73", 2)

        assert emulator.get_led(7) == 3
        assert emulator.get_led(73) == 2
        assert emulator.get_led(8) is None
        assert emulator.led_commands == 2

        # Overwrite
        emulator._handle_led_command("/led/7", 0)
        assert emulator.get_led(7) == 0

    def test_led_command_invalid_format(self):
        """Test invalid LED commands are ignored."""
        emulator = SurfaceEmulator()

        emulator._handle_led_command("/led/7")
        emulator._handle_led_command("/led/99", 3)
        emulator._handle_led_command("/led/x", 3)
        emulator._handle_led_command("/led/7", "red")

        assert len(emulator.led_state) == 0
        assert emulator.led_commands == 0

    def test_render_led_grid(self):
        """Test the grid printout places buttons by logical number."""
        emulator = SurfaceEmulator()
        emulator._handle_led_command("/led/1", 3)
        emulator._handle_led_command("/led/8", 1)
        emulator._handle_led_command("/led/73", 4)
        emulator._handle_led_command("/led/65", 0)

        lines = emulator.render_led_grid().split("\n")
        assert len(lines) == 10
        assert lines[0].split() == ["r", "?", "?", "?", "?", "?", "?", "g", "|", "R"]
        assert lines[-1].split() == [".", "?", "?", "?", "?", "?", "?", "?"]

    def test_wait_for_led_timeout(self):
        emulator = SurfaceEmulator()
        assert not emulator.wait_for_led(1, 3, timeout=0.05)


class TestLedMirrorRoundTrip:

    def test_mirror_reaches_emulator(self):
        """Test OscLedSink output lands in the emulator's LED state."""
        emulator = SurfaceEmulator(led_port=0)
        emulator.start()
        try:
            sink = OscLedSink(port=emulator.led_port)
            sink.write(LedCommand("greenBlink", (33,)))
            sink.write(LedCommand("off", (65,)))

            assert emulator.wait_for_led(33, 2)
            assert emulator.wait_for_led(65, 0)
        finally:
            emulator.stop()
