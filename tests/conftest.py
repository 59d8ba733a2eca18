"""Pytest fixtures shared by the vmixapc test suite.

Provides:
- fake_client: Records every command a component would send to vMix
- vmix_emulator: Real vMix API emulator on an ephemeral TCP port
- sample_state: MirroredState parsed from the emulator's default document
- write_config: Writes a YAML show file into tmp_path and returns its path
"""

import queue
import textwrap
import threading
import time

import pytest

from vmixapc.simulator.vmix_emulator import DEFAULT_XML, VmixEmulator
from vmixapc.snapshot import parse_snapshot
from vmixapc.vmix import MixerSendError


class FakeClient:
    """Stand-in for VmixClient that keeps sent commands in order.

    Args:
        fail: Raise MixerSendError on every send
    """

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail
        self.lock = threading.Lock()

    def send(self, command: str):
        if self.fail:
            raise MixerSendError(f"Not connected, dropped: {command}")
        with self.lock:
            self.sent.append(command)

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        """Wait until at least count commands have been sent."""
        deadline = time.time() + timeout
        while time.time() < deadline:
            with self.lock:
                if len(self.sent) >= count:
                    return True
            time.sleep(0.01)
        return False


def drain(q: queue.Queue) -> list:
    """Everything currently on a queue, in order."""
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def failing_client():
    return FakeClient(fail=True)


@pytest.fixture
def drain_queue():
    """Fixture exposing drain() to test modules."""
    return drain


@pytest.fixture
def vmix_emulator():
    """vMix API emulator on a free port, stopped on teardown.

    Example:
        def test_send(vmix_emulator):
            client = VmixClient(vmix_emulator.address)
            client.connect()
            client.send("FUNCTION Cut")
            assert vmix_emulator.wait_for_command("FUNCTION Cut")
    """
    emulator = VmixEmulator(port=0)
    emulator.start()
    yield emulator
    emulator.stop()


@pytest.fixture
def sample_state():
    """Snapshot of the emulator's default show (Camera 1 on program)."""
    return parse_snapshot(DEFAULT_XML)


@pytest.fixture
def write_config(tmp_path):
    """Write dedented YAML text to show.yaml and return the path as a string."""
    def _write(text: str) -> str:
        path = tmp_path / "show.yaml"
        path.write_text(textwrap.dedent(text))
        return str(path)
    return _write
