"""
Hardware dispatch: surface buttons and faders → vMix commands and LEDs.

A button may carry several bindings; every binding kind that matches fires,
in a fixed order:

    press:   response → prayer → hymn → people → speaker → shortcut
    release: people → response → shortcut

Commands are written to vMix as they are produced, so settle delays inside a
binding (e.g. between setting title text and revealing the overlay) hold up
only this worker.
"""

import queue
import threading
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from vmixapc import actions, buttons, osc
from vmixapc.config import Bindings
from vmixapc.log import get_logger
from vmixapc.pager import VerseCursor
from vmixapc.state import MirroredState
from vmixapc.vmix import MixerError, function

logger = get_logger("dispatch")


# ============================================================================
# CONSTANTS
# ============================================================================

RESPONSE_SETTLE = 0.1         # SetText → OverlayInput1In for responses
SPEAKER_SCRIPT_SETTLE = 0.5   # ScriptStart → SetText for speakers
SPEAKER_TEXT_SETTLE = 1.2     # SetText → OverlayInput1In for speakers

PRESS_ORDER = ("response", "prayer", "hymn", "people", "speaker", "shortcut")
RELEASE_ORDER = ("people", "response", "shortcut")

OVERLAY_OFF_SCRIPT = "OverlayOff"


def fader_volume(value: int) -> int:
    """Scale a 0-127 fader position to vMix's 0-100 volume.

    Examples:
        >>> fader_volume(127), fader_volume(64), fader_volume(0)
        (100, 50, 0)
    """
    return value * 100 // 127


def fader_command(target: str, value: int) -> str:
    """vMix command for a fader bound to target.

    Targets: an input number, "Master", a bus name such as "BusA", or any
    other input name.

    Examples:
        >>> fader_command("Master", 127)
        'FUNCTION SetMasterVolume Value=100'
        >>> fader_command("BusA", 0)
        'FUNCTION SetBusAVolume Value=0'
        >>> fader_command("3", 64)
        'FUNCTION SetVolume Input=3&Value=50'
    """
    volume = fader_volume(value)
    if target == "Master":
        return function("SetMasterVolume", Value=volume)
    if not target.isdigit() and "Bus" in target:
        return function(f"Set{target}Volume", Value=volume)
    return function("SetVolume", Input=target, Value=volume)


class Dispatcher:
    """Turns decoded surface events into vMix commands and LED updates.

    Args:
        bindings: Parsed show configuration
        state: Shared mirrored state (read for diagnostics)
        client: Object with send(command)
        led_queue: Shared LED command queue
        verse_queue: Pages for the Pager worker
        cursor: Shared verse cursor
        cameras: Camera name → controller
        stats: Optional shared statistics counters
        sleep: Delay function (replaced in tests)
    """

    def __init__(self, bindings: Bindings, state: MirroredState, client,
                 led_queue: queue.Queue, verse_queue: queue.Queue,
                 cursor: VerseCursor, cameras: Optional[Mapping] = None,
                 stats: Optional[osc.MessageStatistics] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.bindings = bindings
        self.state = state
        self.client = client
        self.led_queue = led_queue
        self.verse_queue = verse_queue
        self.cursor = cursor
        self.cameras = dict(cameras or {})
        self.stats = stats or osc.MessageStatistics()
        self.sleep = sleep

        # Buttons whose people session has been started at least once
        self._people_started: Set[int] = set()

        self.press_handlers: Dict[str, Callable[[int], bool]] = {
            "response": self._press_response,
            "prayer": self._press_prayer,
            "hymn": self._press_hymn,
            "people": self._press_people,
            "speaker": self._press_speaker,
            "shortcut": self._press_shortcut,
        }
        self.release_handlers: Dict[str, Callable[[int], bool]] = {
            "people": self._release_people,
            "response": self._release_response,
            "shortcut": self._release_shortcut,
        }
        self.action_handlers = {
            actions.LedAction: self._action_led,
            actions.PresetAction: self._action_preset,
            actions.NextAction: self._action_next,
            actions.PrevAction: self._action_prev,
            actions.OverlayOffAction: self._action_overlay_off,
            actions.DumpStateAction: self._action_dump_state,
            actions.FunctionAction: self._action_function,
        }

        self.running = False
        self.thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def _send(self, command: str):
        try:
            self.client.send(command)
        except MixerError as e:
            logger.error(f"{e}")

    def _led(self, color: str, button: int):
        self.led_queue.put(buttons.LedCommand.single(color, button))

    def _crowd_mic(self, on: bool):
        mic = self.bindings.crowd_mic
        if mic is None:
            logger.debug("No crowd mic configured")
            return
        self._send(function("AudioBusOn" if on else "AudioBusOff", Value="M", Input=mic))

    def _show_current_page(self):
        page = self.cursor.snapshot()
        if page is not None:
            self.verse_queue.put(page)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle_raw(self, raw: Sequence[int]):
        """Decode and handle one raw surface message."""
        event = buttons.decode_message(raw)
        if event is None:
            logger.debug(f"Ignoring surface message {list(raw)}")
            return
        self.handle(event)

    def handle(self, event: buttons.SurfaceEvent):
        if event.kind == buttons.FADER:
            fader = buttons.cc_to_fader(event.control)
            if fader is not None:
                self.move_fader(fader, event.value)
            return

        button = buttons.note_to_button(event.control)
        if button is None:
            logger.debug(f"Note {event.control} is not a mapped button")
            return

        if event.kind == buttons.BUTTON_DOWN:
            self.press(button)
        else:
            self.release(button)

    def press(self, button: int) -> List[str]:
        """Run every press binding of a button.

        Returns:
            Binding kinds that fired, in order
        """
        logger.debug(f"Button down: {button}")
        self.stats.increment("button_presses")
        return [kind for kind in PRESS_ORDER if self.press_handlers[kind](button)]

    def release(self, button: int) -> List[str]:
        logger.debug(f"Button up: {button}")
        self.stats.increment("button_releases")
        return [kind for kind in RELEASE_ORDER if self.release_handlers[kind](button)]

    def move_fader(self, fader: int, value: int) -> Optional[str]:
        """Send the volume command for a bound fader; returns it, or None."""
        target = self.bindings.faders.get(fader)
        if target is None:
            return None
        command = fader_command(target, value)
        self.stats.increment("fader_moves")
        self._send(command)
        return command

    # ------------------------------------------------------------------
    # Press bindings
    # ------------------------------------------------------------------

    def _press_response(self, button: int) -> bool:
        binding = self.bindings.responses.get(button)
        if binding is None:
            return False
        self._send(function("SetText", Input=binding.input,
                            SelectedName=binding.textbox, Value=binding.text))
        self._crowd_mic(True)
        self.sleep(RESPONSE_SETTLE)
        self._send(function("OverlayInput1In", Input=binding.input))
        self._led("red", button)
        return True

    def _press_prayer(self, button: int) -> bool:
        binding = self.bindings.prayers.get(button)
        if binding is None:
            return False
        self.cursor.start(binding.input, binding.textbox, binding.verses)
        self._show_current_page()
        self._crowd_mic(True)
        return True

    def _press_hymn(self, button: int) -> bool:
        binding = self.bindings.hymns.get(button)
        if binding is None:
            return False
        self.cursor.start(binding.input, binding.textbox, binding.verses)
        self._show_current_page()
        return True

    def _press_people(self, button: int) -> bool:
        binding = self.bindings.people.get(button)
        if binding is None:
            return False

        if button not in self._people_started:
            self.cursor.start(binding.input, binding.textbox, binding.verses)
            self._show_current_page()
            self._people_started.add(button)
        elif self.cursor.active:
            if self.cursor.advance(1):
                self._show_current_page()
                self._led("red", button)
            else:
                # End of the reading
                self._led(buttons.OFF, button)

        self._crowd_mic(True)
        return True

    def _press_speaker(self, button: int) -> bool:
        binding = self.bindings.speakers.get(button)
        if binding is None:
            return False
        if binding.script:
            self._send(function("ScriptStart", Value=binding.script))
            self.sleep(SPEAKER_SCRIPT_SETTLE)
        self._send(function("SetText", Input=binding.input,
                            SelectedName=binding.textbox, Value=binding.name))
        self.sleep(SPEAKER_TEXT_SETTLE)
        self._send(function("OverlayInput1In", Input=binding.input))
        return True

    def _press_shortcut(self, button: int) -> bool:
        binding = self.bindings.shortcuts.get(button)
        if binding is None:
            return False
        self._run_actions(binding.pressed, button)
        return True

    # ------------------------------------------------------------------
    # Release bindings
    # ------------------------------------------------------------------

    def _release_people(self, button: int) -> bool:
        if button not in self.bindings.people:
            return False
        self._send(function("OverlayInput1Out"))
        self._crowd_mic(False)
        return True

    def _release_response(self, button: int) -> bool:
        binding = self.bindings.responses.get(button)
        if binding is None:
            return False
        self._send(function("OverlayInput1Out"))
        self._crowd_mic(False)
        self._led(binding.release_color, button)
        return True

    def _release_shortcut(self, button: int) -> bool:
        binding = self.bindings.shortcuts.get(button)
        if binding is None:
            return False
        self._run_actions(binding.released, button)
        return True

    # ------------------------------------------------------------------
    # Shortcut actions
    # ------------------------------------------------------------------

    def _run_actions(self, action_list: Tuple[actions.Action, ...], button: int):
        for action in action_list:
            logger.debug(f"Button {button}: {action}")
            self.action_handlers[type(action)](action, button)

    def _action_led(self, action: actions.LedAction, button: int):
        self.led_queue.put(action.command)

    def _action_preset(self, action: actions.PresetAction, button: int):
        camera = self.cameras.get(action.camera.lower())
        if camera is None:
            logger.warning(f"Button {button}: unknown camera '{action.camera}'")
            return
        camera.move_to_preset(action.preset)

    def _action_next(self, action: actions.NextAction, button: int):
        if not self.cursor.active:
            return
        if self.cursor.advance(1):
            self._show_current_page()
        self._led("yellow", button)

    def _action_prev(self, action: actions.PrevAction, button: int):
        if self.cursor.active and self.cursor.advance(-1):
            self._show_current_page()

    def _action_overlay_off(self, action: actions.OverlayOffAction, button: int):
        page = self.cursor.snapshot()
        if page is not None:
            self._send(function("OverlayInput1Out", Input=page.input))
        else:
            self._send(function("OverlayInput1Out"))
        self.cursor.clear()
        self._send(function("ScriptStart", Value=OVERLAY_OFF_SCRIPT))

    def _action_dump_state(self, action: actions.DumpStateAction, button: int):
        logger.info("Mirrored state:\n" + self.state.describe())
        logger.info(f"Bindings: {self.bindings.describe()}")

    def _action_function(self, action: actions.FunctionAction, button: int):
        self._send(action.command)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def run(self, hw_queue: queue.Queue):
        """Consume raw surface messages until stop() is called."""
        logger.info("Dispatch thread started")
        while self.running:
            try:
                raw = hw_queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self.handle_raw(raw)
            except Exception as e:
                logger.exception(f"Surface message {list(raw)} failed: {e}")
        logger.info("Dispatch thread exiting")

    def start(self, hw_queue: queue.Queue) -> threading.Thread:
        self.running = True
        self.thread = threading.Thread(target=self.run, args=(hw_queue,),
                                       name="dispatch", daemon=True)
        self.thread.start()
        return self.thread

    def stop(self):
        self.running = False
