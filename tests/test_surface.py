"""
Tests for the APC mini link, watchdog and LED output

MIDI ports are replaced by in-memory fakes; no hardware or virtual MIDI
backend is needed.
"""

import queue
import time
from unittest import mock

import mido
import pytest

from vmixapc import buttons, osc, surface
from vmixapc.buttons import LedCommand
from vmixapc.surface import (
    LedWriter,
    MidiLedSink,
    SurfaceLink,
    SurfaceNotFound,
    Watchdog,
    led_message,
)


class FakeInputPort:
    def __init__(self):
        self.pending = []
        self.closed = False

    def iter_pending(self):
        messages, self.pending = self.pending, []
        return iter(messages)

    def close(self):
        self.closed = True


class FakeOutputPort:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail
        self.closed = False

    def send(self, msg):
        if self.fail:
            raise OSError("device disconnected")
        self.sent.append(msg)

    def close(self):
        self.closed = True


def idle_link(output=None, opener=None) -> SurfaceLink:
    """Link holding ports without any running threads."""
    link = SurfaceLink(queue.Queue(), opener=opener or (lambda: None),
                       watchdog_interval=60, stats=osc.MessageStatistics())
    link.input_port = FakeInputPort()
    link.output_port = output if output is not None else FakeOutputPort()
    link.running = True
    return link


class TestLedMessage:

    def test_color(self):
        msg = led_message("red", 1)
        assert msg.type == "note_on"
        assert msg.note == 56
        assert msg.velocity == 3

    def test_off_is_note_off(self):
        msg = led_message("off", 73)
        assert msg.type == "note_off"
        assert msg.note == 82

    def test_unmapped_button(self):
        assert led_message("red", 0) is None

    def test_unknown_color(self):
        with pytest.raises(ValueError):
            led_message("purple", 1)


class TestPortDiscovery:

    def test_find_ports(self):
        with mock.patch.object(surface.mido, "get_input_names",
                               return_value=["Midi Through:0", "APC MINI:APC MINI MIDI 1 20:0"]), \
                mock.patch.object(surface.mido, "get_output_names",
                                  return_value=["APC MINI:APC MINI MIDI 1 20:0"]):
            assert surface.find_surface_ports() == ("APC MINI:APC MINI MIDI 1 20:0",
                                                    "APC MINI:APC MINI MIDI 1 20:0")
            assert surface.find_surface_ports("apc mini") == ("APC MINI:APC MINI MIDI 1 20:0",
                                                              "APC MINI:APC MINI MIDI 1 20:0")

    def test_missing_surface(self):
        with mock.patch.object(surface.mido, "get_input_names", return_value=["Midi Through:0"]), \
                mock.patch.object(surface.mido, "get_output_names", return_value=[]):
            assert surface.find_surface_ports() == (None, None)
            with pytest.raises(SurfaceNotFound):
                surface.open_surface_ports()


class TestSurfaceLink:

    def test_input_forwarded(self):
        """Test note and control messages reach the hardware queue as raw tuples."""
        input_port, output_port = FakeInputPort(), FakeOutputPort()
        hw_queue = queue.Queue()
        link = SurfaceLink(hw_queue, opener=lambda: (input_port, output_port),
                           watchdog_interval=60)
        input_port.pending = [
            mido.Message("note_on", note=56, velocity=127),
            mido.Message("sysex", data=[1, 2]),
            mido.Message("control_change", control=48, value=64),
        ]
        link.start()
        try:
            assert hw_queue.get(timeout=2.0) == (0x90, 56, 127)
            assert hw_queue.get(timeout=2.0) == (0xB0, 48, 64)
        finally:
            link.shutdown()

    def test_shutdown_clears_leds(self):
        input_port, output_port = FakeInputPort(), FakeOutputPort()
        link = SurfaceLink(queue.Queue(), opener=lambda: (input_port, output_port),
                           watchdog_interval=60)
        link.start()
        link.shutdown()
        assert len(output_port.sent) == buttons.LOGICAL_BUTTON_COUNT
        assert all(msg.type == "note_off" for msg in output_port.sent)
        assert input_port.closed and output_port.closed

    def test_start_without_surface(self):
        def opener():
            raise SurfaceNotFound("No MIDI ports matching 'APC MINI'")
        link = SurfaceLink(queue.Queue(), opener=opener)
        with pytest.raises(SurfaceNotFound):
            link.start()

    def test_send_without_port(self):
        link = SurfaceLink(queue.Queue())
        with pytest.raises(OSError):
            link.send(mido.Message("note_off", note=1))


class TestWatchdog:

    def test_probe(self):
        """Test the probe is a note_off on the reserved note."""
        link = idle_link()
        assert Watchdog(link).check()
        probe = link.output_port.sent[0]
        assert probe.type == "note_off"
        assert probe.note == buttons.PROBE_NOTE

    def test_probe_failure(self):
        link = idle_link(output=FakeOutputPort(fail=True))
        assert not Watchdog(link).check()
        assert link.stats.get("surface_losses") == 1

    def test_recover(self):
        """Test the watchdog retries until the surface is back, then restarts the link."""
        new_input, new_output = FakeInputPort(), FakeOutputPort()
        attempts = [SurfaceNotFound("gone"), SurfaceNotFound("gone"), (new_input, new_output)]

        def opener():
            result = attempts.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        link = idle_link(output=FakeOutputPort(fail=True), opener=opener)
        old_input, old_output = link.input_port, link.output_port
        sleeps = []
        watchdog = Watchdog(link, retry_interval=0.5, sleep=sleeps.append)
        watchdog.running = True
        try:
            assert watchdog.recover()
            assert sleeps == [0.5, 0.5]
            assert link.generation == 1
            assert link.output_port is new_output
            assert old_input.closed and old_output.closed
            assert link.watchdog is not watchdog
            assert not watchdog.running
        finally:
            link.shutdown()

    def test_recover_retries_port_errors(self):
        """Test a listed but unopenable port is retried instead of ending the watchdog."""
        new_ports = (FakeInputPort(), FakeOutputPort())
        attempts = [OSError("MidiInCore::openPort: error creating ALSA sequencer input port"),
                    new_ports]

        def opener():
            result = attempts.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        link = idle_link(output=FakeOutputPort(fail=True), opener=opener)
        sleeps = []
        watchdog = Watchdog(link, retry_interval=0.5, sleep=sleeps.append)
        watchdog.running = True
        try:
            assert watchdog.recover()
            assert sleeps == [0.5]
            assert link.output_port is new_ports[1]
        finally:
            link.shutdown()

    def test_recover_stops_with_link(self):
        link = idle_link(opener=mock.Mock(side_effect=SurfaceNotFound("gone")))
        link.running = False
        watchdog = Watchdog(link, sleep=lambda s: None)
        watchdog.running = True
        assert not watchdog.recover()

    def test_run_detects_loss(self):
        """Test a failed probe in the loop triggers recovery."""
        new_ports = (FakeInputPort(), FakeOutputPort())
        link = idle_link(output=FakeOutputPort(fail=True), opener=lambda: new_ports)
        watchdog = Watchdog(link, interval=0.01, sleep=time.sleep)
        watchdog.start()
        try:
            watchdog.thread.join(timeout=2.0)
            assert link.output_port is new_ports[1]
        finally:
            link.shutdown()


class TestLedOutput:

    def test_midi_sink(self):
        link = idle_link()
        sink = MidiLedSink(link)
        sink.write(LedCommand("red", (1, 2)))
        sink.write(LedCommand("off", (1,)))
        sent = [(m.type, m.note, m.velocity) for m in link.output_port.sent]
        assert sent == [("note_on", 56, 3), ("note_on", 57, 3), ("note_off", 56, 0)]

    def test_midi_sink_skips_bad_commands(self):
        link = idle_link()
        sink = MidiLedSink(link)
        sink.write(LedCommand("purple", (1,)))
        sink.write(LedCommand("red", (0, 90)))
        assert link.output_port.sent == []

    def test_midi_sink_survives_lost_port(self):
        sink = MidiLedSink(idle_link(output=FakeOutputPort(fail=True)))
        sink.write(LedCommand("red", (1,)))

    def test_writer_fans_out(self):
        first, second = mock.Mock(), mock.Mock()
        stats = osc.MessageStatistics()
        writer = LedWriter(queue.Queue(), [first, second], stats=stats)
        command = LedCommand("green", (5,))
        writer.write(command)
        first.write.assert_called_once_with(command)
        second.write.assert_called_once_with(command)
        assert stats.get("led_commands") == 1

    def test_writer_worker(self):
        led_queue = queue.Queue()
        sink = mock.Mock()
        writer = LedWriter(led_queue, [sink])
        writer.start()
        try:
            led_queue.put(LedCommand("yellow", (9,)))
            deadline = time.time() + 2.0
            while not sink.write.called and time.time() < deadline:
                time.sleep(0.01)
        finally:
            writer.stop()
            writer.thread.join(timeout=2.0)
        sink.write.assert_called_once_with(LedCommand("yellow", (9,)))
