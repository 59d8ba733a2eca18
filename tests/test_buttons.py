"""
Tests for APC mini addressing

Validates the native ↔ logical translation tables, colour codes and raw
message decoding.
"""

import pytest

from vmixapc import buttons


class TestTranslationTables:
    """Native note numbers ↔ logical button ids."""

    def test_grid_corners(self):
        """Test grid is counted from the top-left in logical numbering."""
        assert buttons.note_to_button(56) == 1   # top-left
        assert buttons.note_to_button(63) == 8   # top-right
        assert buttons.note_to_button(0) == 57   # bottom-left
        assert buttons.note_to_button(7) == 64   # bottom-right

    def test_round_buttons(self):
        """Test bottom row, side column and shift."""
        assert buttons.note_to_button(64) == 65
        assert buttons.note_to_button(71) == 72
        assert buttons.note_to_button(82) == 73
        assert buttons.note_to_button(89) == 80
        assert buttons.note_to_button(98) == 81

    def test_unmapped_notes(self):
        """Test notes without a button translate to None."""
        for note in (72, 81, 90, 97, 99, buttons.PROBE_NOTE, 127):
            assert buttons.note_to_button(note) is None
        assert buttons.button_to_note(0) is None
        assert buttons.button_to_note(82) is None

    def test_tables_are_inverse(self):
        """Test every logical button maps back to itself."""
        assert len(buttons.LOGICAL_TO_NATIVE) == 81
        for button in range(1, 82):
            note = buttons.button_to_note(button)
            assert note is not None
            assert buttons.note_to_button(note) == button

    def test_faders(self):
        """Test control change 48-56 ↔ faders 1-9."""
        assert buttons.cc_to_fader(48) == 1
        assert buttons.cc_to_fader(56) == 9
        assert buttons.cc_to_fader(47) is None
        assert buttons.cc_to_fader(57) is None
        assert buttons.fader_to_cc(9) == 56
        assert buttons.fader_to_cc(10) is None


class TestColors:
    """LED colour names → velocities."""

    def test_color_codes(self):
        """Test the APC mini velocity for each colour."""
        assert buttons.color_velocity("green") == 1
        assert buttons.color_velocity("greenBlink") == 2
        assert buttons.color_velocity("red") == 3
        assert buttons.color_velocity("redBlink") == 4
        assert buttons.color_velocity("yellow") == 5
        assert buttons.color_velocity("yellowBlink") == 6
        assert buttons.color_velocity("on") == 1
        assert buttons.color_velocity("blink") == 2

    def test_off_has_no_velocity(self):
        """Test "off" is sent as note_off, not as a velocity."""
        assert buttons.color_velocity("off") is None
        assert buttons.is_valid_color("off")

    def test_unknown_color(self):
        """Test unknown colours are rejected."""
        assert not buttons.is_valid_color("purple")
        with pytest.raises(ValueError, match="Unknown LED colour"):
            buttons.color_velocity("purple")

    def test_led_command_single(self):
        """Test single-button LED command helper."""
        assert buttons.LedCommand.single("red", 7) == buttons.LedCommand("red", (7,))


class TestDecodeMessage:
    """Raw MIDI bytes → SurfaceEvent."""

    def test_note_on_is_press(self):
        event = buttons.decode_message([0x90, 56, 127])
        assert event == buttons.SurfaceEvent(buttons.BUTTON_DOWN, 56, 127)

    def test_note_on_velocity_zero_is_release(self):
        """Test the APC mini's note_on/0 release form."""
        assert buttons.decode_message([0x90, 56, 0]).kind == buttons.BUTTON_UP

    def test_note_off_is_release(self):
        event = buttons.decode_message([0x80, 56, 64])
        assert event == buttons.SurfaceEvent(buttons.BUTTON_UP, 56, 0)

    def test_control_change_is_fader(self):
        event = buttons.decode_message((0xB0, 48, 64))
        assert event == buttons.SurfaceEvent(buttons.FADER, 48, 64)

    def test_channel_is_ignored(self):
        """Test status is matched on the high nibble only."""
        assert buttons.decode_message([0x91, 56, 127]).kind == buttons.BUTTON_DOWN

    def test_other_messages(self):
        """Test pitch bend and short messages are ignored."""
        assert buttons.decode_message([0xE0, 0, 64]) is None
        assert buttons.decode_message([0x90, 56]) is None


class TestRawMessages:
    """Logical controls → the bytes a real surface sends."""

    def test_press_and_release(self):
        assert buttons.press_message(1) == (0x90, 56, 127)
        assert buttons.release_message(1) == (0x90, 56, 0)
        assert buttons.press_message(81) == (0x90, 98, 127)

    def test_unmapped_button(self):
        assert buttons.press_message(99) is None
        assert buttons.release_message(0) is None

    def test_fader(self):
        assert buttons.fader_message(1, 64) == (0xB0, 48, 64)
        assert buttons.fader_message(9, 0) == (0xB0, 56, 0)
        assert buttons.fader_message(10, 64) is None
        assert buttons.fader_message(1, 128) is None
