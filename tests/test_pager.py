"""
Tests for the verse cursor and the pager worker
"""

import queue

from vmixapc import osc
from vmixapc.pager import Pager, VerseCursor, VersePage

VERSES = ("Amazing grace! How sweet the sound", "That saved a wretch like me!", "I once was lost")


class TestVerseCursor:

    def test_inactive_by_default(self):
        cursor = VerseCursor()
        assert not cursor.active
        assert cursor.snapshot() is None
        assert not cursor.advance(1)
        assert not cursor.advance(-1)

    def test_start(self):
        cursor = VerseCursor()
        cursor.start("Lower Third", "Headline.Text", list(VERSES))
        assert cursor.active
        assert cursor.snapshot() == VersePage("Lower Third", "Headline.Text", VERSES[0], 0)

    def test_advance_stays_in_bounds(self):
        """Test the position never leaves 0..len-1."""
        cursor = VerseCursor()
        cursor.start("Lower Third", "Headline.Text", VERSES)

        assert not cursor.advance(-1)
        assert cursor.position == 0
        assert cursor.advance(1)
        assert cursor.advance(1)
        assert cursor.position == 2
        assert not cursor.advance(1)
        assert cursor.position == 2
        assert cursor.snapshot().text == VERSES[2]
        assert cursor.advance(-1)
        assert cursor.position == 1

    def test_end_leaves_cursor_valid(self):
        cursor = VerseCursor()
        cursor.start("Lyrics", "TextBlock1.Text", ["only line"])
        assert not cursor.advance(1)
        assert cursor.active
        assert cursor.snapshot().text == "only line"

    def test_start_replaces_session(self):
        cursor = VerseCursor()
        cursor.start("Lower Third", "Headline.Text", VERSES)
        cursor.advance(1)
        cursor.start("Lyrics", "TextBlock1.Text", ["one", "two"])
        assert cursor.snapshot() == VersePage("Lyrics", "TextBlock1.Text", "one", 0)

    def test_clear(self):
        cursor = VerseCursor()
        cursor.start("Lower Third", "Headline.Text", VERSES)
        cursor.clear()
        assert not cursor.active
        assert cursor.snapshot() is None

    def test_empty_verses_inactive(self):
        cursor = VerseCursor()
        cursor.start("Lower Third", "Headline.Text", [])
        assert not cursor.active
        assert cursor.snapshot() is None


class TestPager:

    def test_show(self, fake_client):
        """Test SetText precedes OverlayInput1In for the same input."""
        stats = osc.MessageStatistics()
        pager = Pager(fake_client, queue.Queue(), settle=0, stats=stats)
        pager.show(VersePage("Lower Third", "Headline.Text", "Amazing grace", 0))
        assert fake_client.sent == [
            "FUNCTION SetText Input=Lower+Third&SelectedName=Headline.Text&Value=Amazing+grace",
            "FUNCTION OverlayInput1In Input=Lower+Third",
        ]
        assert stats.get("pages_shown") == 1

    def test_send_failure_is_logged(self, failing_client):
        stats = osc.MessageStatistics()
        pager = Pager(failing_client, queue.Queue(), settle=0, stats=stats)
        pager.show(VersePage("Lower Third", "Headline.Text", "Amazing grace", 0))
        assert stats.get("pages_shown") == 0

    def test_worker(self, fake_client):
        verse_queue = queue.Queue()
        pager = Pager(fake_client, verse_queue, settle=0)
        pager.start()
        try:
            verse_queue.put(VersePage("Lyrics", "TextBlock1.Text", "one", 0))
            verse_queue.put(VersePage("Lyrics", "TextBlock1.Text", "two", 1))
            assert fake_client.wait_for(4)
        finally:
            pager.stop()
            pager.thread.join(timeout=2.0)
        assert fake_client.sent[2] == "FUNCTION SetText Input=Lyrics&SelectedName=TextBlock1.Text&Value=two"

    def test_worker_survives_unexpected_error(self, fake_client):
        """Test an exception while showing one page does not stop the worker."""
        verse_queue = queue.Queue()
        pager = Pager(fake_client, verse_queue, settle=0)
        original_send = fake_client.send
        calls = []

        def flaky_send(command):
            calls.append(command)
            if len(calls) == 1:
                raise RuntimeError("socket wrapper bug")
            original_send(command)

        fake_client.send = flaky_send
        pager.start()
        try:
            verse_queue.put(VersePage("Lyrics", "TextBlock1.Text", "one", 0))
            verse_queue.put(VersePage("Lyrics", "TextBlock1.Text", "two", 1))
            assert fake_client.wait_for(2)
        finally:
            pager.stop()
            pager.thread.join(timeout=2.0)
        assert fake_client.sent[0] == "FUNCTION SetText Input=Lyrics&SelectedName=TextBlock1.Text&Value=two"
