"""
Verse cursor and text pager.

Prayers, hymns and responsive readings are shown one line at a time in a title
overlay. A single VerseCursor is shared by every paged binding: starting a new
session replaces the previous one, and Next/Prev shortcuts move whichever
session is current.

The dispatcher pushes immutable VersePage snapshots onto the verse queue; the
Pager worker turns each page into SetText + OverlayInput1In.
"""

import queue
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from vmixapc import osc
from vmixapc.log import get_logger
from vmixapc.vmix import MixerError, function

logger = get_logger("pager")

# Time for the title to pick up new text before it is revealed
DEFAULT_SETTLE = 0.3


@dataclass(frozen=True)
class VersePage:
    """One line of paged content, ready to be displayed."""
    input: str
    textbox: str
    text: str
    position: int


class VerseCursor:
    """Current paged session: bound input, verses and zero-based position.

    Thread-safe. The position never leaves 0..len(verses)-1.

    Examples:
        >>> cursor = VerseCursor()
        >>> cursor.start("Lyrics", "TextBlock1.Text", ["one", "two"])
        >>> cursor.advance(1), cursor.position
        (True, 1)
        >>> cursor.advance(1), cursor.position
        (False, 1)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.input = ""
        self.textbox = ""
        self.verses: Tuple[str, ...] = ()
        self.position = 0

    @property
    def active(self) -> bool:
        with self._lock:
            return bool(self.input) and bool(self.verses)

    def start(self, input_name: str, textbox: str, verses: Sequence[str]):
        """Replace any current session and point at the first verse."""
        with self._lock:
            self.input = input_name
            self.textbox = textbox
            self.verses = tuple(verses)
            self.position = 0

    def advance(self, step: int) -> bool:
        """Move by step if the new position is inside the sequence.

        Returns:
            True if the cursor moved, False at either end or with no session
        """
        with self._lock:
            if not self.input or not self.verses:
                return False
            target = self.position + step
            if target < 0 or target >= len(self.verses):
                return False
            self.position = target
            return True

    def clear(self):
        with self._lock:
            self.input = ""
            self.textbox = ""
            self.verses = ()
            self.position = 0

    def snapshot(self) -> Optional[VersePage]:
        """Current page, or None when no session is active."""
        with self._lock:
            if not self.input or not self.verses:
                return None
            return VersePage(self.input, self.textbox, self.verses[self.position], self.position)


class Pager:
    """Worker that displays pages taken from the verse queue.

    Args:
        client: Object with send(command)
        verse_queue: VersePage items from the dispatcher
        settle: Seconds between setting the text and revealing the overlay
        stats: Optional shared statistics counters
    """

    def __init__(self, client, verse_queue: "queue.Queue[VersePage]",
                 settle: float = DEFAULT_SETTLE,
                 stats: Optional[osc.MessageStatistics] = None):
        self.client = client
        self.verse_queue = verse_queue
        self.settle = settle
        self.stats = stats or osc.MessageStatistics()
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def show(self, page: VersePage):
        """Set the overlay text, wait, then reveal the overlay."""
        logger.debug(f"Page {page.position} on {page.input}: {page.text[:40]}")
        try:
            self.client.send(function("SetText", Input=page.input,
                                      SelectedName=page.textbox, Value=page.text))
            time.sleep(self.settle)
            self.client.send(function("OverlayInput1In", Input=page.input))
        except MixerError as e:
            logger.error(f"Page not shown: {e}")
            return
        self.stats.increment("pages_shown")

    def run(self):
        logger.info("Pager thread started")
        while self.running:
            try:
                page = self.verse_queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self.show(page)
            except Exception as e:
                logger.exception(f"Page {page.position} of {page.input} failed: {e}")
        logger.info("Pager thread exiting")

    def start(self) -> threading.Thread:
        self.running = True
        self.thread = threading.Thread(target=self.run, name="pager", daemon=True)
        self.thread.start()
        return self.thread

    def stop(self):
        self.running = False
