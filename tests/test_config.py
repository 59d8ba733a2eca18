"""
Tests for loading the YAML show configuration and building bindings
"""

from pathlib import Path

import pytest

import vmixapc
from vmixapc.actions import FunctionAction, LedAction, NextAction, PresetAction
from vmixapc.buttons import LedCommand
from vmixapc.config import (
    DEFAULT_TEXTBOX,
    build_bindings,
    load_config,
    load_settings,
    resolve_input_key,
    resolve_input_name,
)

EXAMPLE_CONFIG = Path(vmixapc.__file__).parent / "shows" / "example.yaml"


class TestExampleConfig:
    """The shipped example show against the emulator's default snapshot."""

    @pytest.fixture
    def bindings(self, sample_state):
        return build_bindings(load_config(str(EXAMPLE_CONFIG)), sample_state)

    def test_shortcuts(self, bindings):
        assert bindings.shortcuts[1].pressed == (FunctionAction("FUNCTION Cut"),)
        assert bindings.shortcuts[1].released == ()
        assert bindings.shortcuts[3].pressed == (
            FunctionAction("FUNCTION PreviewInput Input=1"),
            PresetAction("pulpit", "1"),
            LedAction(LedCommand("green", (3,))),
        )
        assert bindings.shortcuts[10].pressed == (NextAction(),)
        assert bindings.shortcuts[12].released == (
            FunctionAction("FUNCTION ScriptStop Value=Countdown"),
        )

    def test_text_bindings(self, bindings):
        """Test title text fields are taken from the snapshot."""
        response = bindings.responses[14]
        assert response.input == "Lower Third"
        assert response.textbox == "Headline.Text"
        assert response.release_color == "yellow"

        assert bindings.prayers[17].textbox == "Headline.Text"
        assert len(bindings.prayers[17].verses) == 4
        assert bindings.hymns[18].input == "Lower Third"
        assert bindings.people[19].verses[0] == "The Lord be with you."
        assert bindings.speakers[25].script == "SpeakerIntro"

    def test_activators(self, bindings):
        """Test input names resolve to input numbers."""
        rules = bindings.activators
        assert rules["Input"]["1"].on == (LedCommand("red", (3,)),)
        assert rules["Input"]["2"].off == (LedCommand("off", (4,)),)
        assert rules["InputPlaying"]["4"].on == (LedCommand("greenBlink", (33,)),)
        assert rules["InputBusAAudio"]["5"].on == (LedCommand("on", (65,)),)
        assert rules["Streaming"]["none"].on == (LedCommand("redBlink", (8,)),)

    def test_devices(self, bindings):
        assert bindings.faders == {1: "1", 2: "Camera 2", 3: "Prelude", 8: "BusA", 9: "Master"}
        assert set(bindings.cameras) == {"pulpit", "organ", "balcony"}
        assert bindings.cameras["pulpit"].mode == "visca"
        assert bindings.cameras["organ"].user == "admin"
        assert bindings.crowd_mic == "Crowd"
        assert bindings.initial_state == {9: "yellow", 10: "yellow", 11: "red", 80: "on"}

    def test_settings(self):
        settings = load_settings(load_config(str(EXAMPLE_CONFIG)))
        assert settings.api_address == "127.0.0.1:8099"
        assert settings.surface_port_name == "APC MINI"
        assert settings.harness_port == 2000
        assert settings.osc_port is None
        assert settings.led_mirror_port is None


class TestLoadConfig:
    """Validation errors surface at load time."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, write_config):
        assert load_config(write_config("")) == {}

    def test_root_must_be_mapping(self, write_config):
        with pytest.raises(ValueError, match="mapping"):
            load_config(write_config("- 1\n- 2\n"))

    def test_section_must_be_mapping(self, write_config):
        with pytest.raises(ValueError, match="shortcuts"):
            load_config(write_config("shortcuts: [1, 2]\n"))

    def test_button_out_of_range(self, write_config):
        with pytest.raises(ValueError, match="Button must be in range"):
            load_config(write_config("""
                shortcuts:
                  82: ["Cut"]
            """))

    def test_missing_input(self, write_config):
        with pytest.raises(ValueError, match="responses.7: missing 'input'"):
            load_config(write_config("""
                responses:
                  7:
                    text: "Amen"
            """))

    def test_paged_needs_verses(self, write_config):
        with pytest.raises(ValueError, match="hymns.18: needs at least one verse"):
            load_config(write_config("""
                hymns:
                  18:
                    input: 3
            """))

    def test_fader_range(self, write_config):
        with pytest.raises(ValueError, match="fader must be 1-9"):
            load_config(write_config("faders:\n  10: Master\n"))

    def test_camera_mode(self, write_config):
        with pytest.raises(ValueError, match="mode must be one of"):
            load_config(write_config("cameras:\n  pulpit:\n    mode: ndi\n    address: x\n"))

    def test_camera_address(self, write_config):
        with pytest.raises(ValueError, match="missing 'address'"):
            load_config(write_config("cameras:\n  pulpit:\n    mode: visca\n"))

    def test_initial_state_color(self, write_config):
        with pytest.raises(ValueError, match="unknown colour 'purple'"):
            load_config(write_config("initial_state:\n  5: purple\n"))


class TestBuildBindings:

    def test_bare_yaml_booleans(self, write_config, sample_state):
        """Test unquoted on/off keys and colours still mean on/off."""
        config = load_config(write_config("""
            activators:
              Recording:
                none:
                  on: ["red: 7"]
                  off: ["off: 7"]
            initial_state:
              65: on
              66: off
        """))
        bindings = build_bindings(config, sample_state)
        rule = bindings.activators["Recording"]["none"]
        assert rule.on == (LedCommand("red", (7,)),)
        assert rule.off == (LedCommand("off", (7,)),)
        assert bindings.initial_state == {65: "on", 66: "off"}

    def test_unquoted_led_rule(self, write_config, sample_state):
        """Test "- red: 3" (parsed by YAML as a mapping) is accepted."""
        config = load_config(write_config("""
            activators:
              Input:
                1:
                  "on":
                    - red: 3
        """))
        bindings = build_bindings(config, sample_state)
        assert bindings.activators["Input"]["1"].on == (LedCommand("red", (3,)),)

    def test_unknown_activator_input_skipped(self, write_config, sample_state):
        config = load_config(write_config("""
            activators:
              Input:
                "No Such Input":
                  "on": ["red: 3"]
                "Camera 2":
                  "on": ["red: 4"]
        """))
        rules = build_bindings(config, sample_state).activators
        assert list(rules["Input"]) == ["2"]

    def test_shortcut_forms(self, write_config, sample_state):
        config = load_config(write_config("""
            shortcuts:
              1: Cut
              2: ["Fade", ""]
              3:
                released: ["leds off 3"]
        """))
        shortcuts = build_bindings(config, sample_state).shortcuts
        assert shortcuts[1].pressed == (FunctionAction("FUNCTION Cut"),)
        assert shortcuts[2].pressed == (FunctionAction("FUNCTION Fade"),)
        assert shortcuts[3].pressed == ()
        assert shortcuts[3].released == (LedAction(LedCommand("off", (3,))),)

    def test_default_textbox(self, write_config, sample_state):
        """Test inputs without a known title fall back to TextBlock1.Text."""
        config = load_config(write_config("""
            responses:
              7:
                input: "Title1"
                text: "Amen"
        """))
        response = build_bindings(config, sample_state).responses[7]
        assert response.input == "Title1"
        assert response.textbox == DEFAULT_TEXTBOX
        assert response.release_color == "off"

    def test_bad_release_color(self, write_config, sample_state):
        config = load_config(write_config("""
            responses:
              7:
                input: "Title1"
                release_color: purple
        """))
        with pytest.raises(ValueError, match="release_color"):
            build_bindings(config, sample_state)

    def test_bad_action(self, write_config, sample_state):
        config = load_config(write_config("""
            shortcuts:
              1: ["leds purple 1"]
        """))
        with pytest.raises(ValueError, match="Unknown LED colour"):
            build_bindings(config, sample_state)

    def test_no_crowd_mic(self, sample_state):
        assert build_bindings({}, sample_state).crowd_mic is None


class TestResolve:

    def test_input_name(self, sample_state):
        assert resolve_input_name(3, sample_state) == "Lower Third"
        assert resolve_input_name("42", sample_state) == "42"
        assert resolve_input_name("Mystery", sample_state) == "Mystery"

    def test_input_key(self, sample_state):
        assert resolve_input_key("none", sample_state) == "none"
        assert resolve_input_key(4, sample_state) == "4"
        assert resolve_input_key("Camera 2", sample_state) == "2"
        assert resolve_input_key("Nope", sample_state) is None


class TestLoadSettings:

    def test_overrides_from_config(self):
        settings = load_settings({
            "mixer": {"address": "10.0.0.5:8099"},
            "surface": {"port_name": "APC MINI mk2", "watchdog_interval": 1},
            "harness": {"tcp_port": 2001, "osc_port": 9010, "led_mirror_port": 9011},
        })
        assert settings.api_address == "10.0.0.5:8099"
        assert settings.surface_port_name == "APC MINI mk2"
        assert settings.watchdog_interval == 1.0
        assert settings.harness_port == 2001
        assert settings.osc_port == 9010
        assert settings.led_mirror_port == 9011

    def test_invalid_port(self):
        with pytest.raises(ValueError, match="Port must be in range"):
            load_settings({"harness": {"tcp_port": 70000}})
