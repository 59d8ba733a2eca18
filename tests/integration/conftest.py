"""Pytest fixtures for integration tests.

Provides:
- surface_emulator: Virtual APC mini receiving the bridge's LED mirror
- running_bridge: Full bridge wired to the vMix emulator and the virtual
  surface, with the line harness on a free port

All fixtures handle cleanup automatically via pytest's fixture system.
"""

import pytest

from vmixapc.bridge import Bridge
from vmixapc.config import Settings, load_config
from vmixapc.simulator.surface_emulator import SurfaceEmulator

SHOW = """\
shortcuts:
  7: ["FUNCTION ScriptStart Value=Countdown"]

responses:
  14:
    input: "Lower Third"
    text: "Thanks be to God."

activators:
  Input:
    "Camera 1":
      "on": ["red: 1"]
      "off": ["off: 1"]
    "Camera 2":
      "on": ["red: 2"]
      "off": ["off: 2"]

faders:
  9: "Master"

mics:
  Crowd: "Crowd"

initial_state:
  80: "on"
"""


@pytest.fixture
def surface_emulator():
    """Virtual surface listening for LED commands on a free port."""
    emulator = SurfaceEmulator(led_port=0)
    emulator.start()
    yield emulator
    emulator.stop()


@pytest.fixture
def running_bridge(vmix_emulator, surface_emulator, write_config):
    """Bridge without the APC mini, mirroring LEDs to surface_emulator.

    Example:
        def test_press(running_bridge, vmix_emulator):
            send_line(running_bridge, "p 7")
            assert vmix_emulator.wait_for_command("FUNCTION ScriptStart")
    """
    config = load_config(write_config(SHOW))
    settings = Settings(
        api_address=vmix_emulator.address,
        harness_port=0,
        led_mirror_port=surface_emulator.led_port,
    )
    bridge = Bridge(settings, config, use_surface=False)
    bridge.start()
    yield bridge
    bridge.shutdown()
