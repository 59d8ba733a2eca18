"""
Show configuration: YAML → typed button bindings and activator rules.

Loading happens in two steps:

1. load_config(path) reads and validates the YAML document.
2. build_bindings(config, state) parses every action once and resolves input
   names/numbers and title text fields against the snapshot.

See vmixapc/shows/example.yaml for a complete document.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from vmixapc import actions, buttons, osc
from vmixapc.activators import ActivatorRule, RuleTable, parse_led_rule
from vmixapc.log import get_logger
from vmixapc.state import MirroredState

logger = get_logger("config")


# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_TEXTBOX = "TextBlock1.Text"
CROWD_MIC = "Crowd"

BINDING_SECTIONS = ("shortcuts", "responses", "prayers", "hymns", "people", "speakers")
PAGED_SECTIONS = ("prayers", "hymns", "people")
CAMERA_MODES = ("onvif", "cgi", "visca", "none")


# ============================================================================
# BINDING TYPES
# ============================================================================

@dataclass(frozen=True)
class ShortcutBinding:
    pressed: Tuple[actions.Action, ...] = ()
    released: Tuple[actions.Action, ...] = ()


@dataclass(frozen=True)
class ResponseBinding:
    """Single overlay line (e.g. a congregational response)."""
    input: str
    textbox: str
    text: str
    release_color: str = buttons.OFF


@dataclass(frozen=True)
class PagedBinding:
    """Multi-line overlay content stepped through with the verse cursor."""
    input: str
    textbox: str
    verses: Tuple[str, ...]


@dataclass(frozen=True)
class SpeakerBinding:
    input: str
    textbox: str
    name: str
    script: str = ""


@dataclass(frozen=True)
class CameraDescriptor:
    """PTZ camera reachable over one of the supported transports.

    Attributes:
        name: Name used by "preset <name> <token>" actions
        mode: onvif, cgi, visca or none
        address: host or host:port
        user, password: ONVIF credentials
        profile: ONVIF media profile token; looked up when empty
    """
    name: str
    mode: str
    address: str
    user: str = ""
    password: str = ""
    profile: str = ""


@dataclass
class Settings:
    """Process-level settings; command-line flags take precedence."""
    api_address: str = "127.0.0.1:8099"
    surface_port_name: str = "APC MINI"
    watchdog_interval: float = 2.0
    harness_port: int = osc.PORT_LINE_HARNESS
    osc_port: Optional[int] = None
    led_mirror_port: Optional[int] = None
    led_mirror_host: str = "127.0.0.1"


@dataclass
class Bindings:
    """Everything the dispatcher and the activator engine need."""
    shortcuts: Dict[int, ShortcutBinding] = field(default_factory=dict)
    responses: Dict[int, ResponseBinding] = field(default_factory=dict)
    prayers: Dict[int, PagedBinding] = field(default_factory=dict)
    hymns: Dict[int, PagedBinding] = field(default_factory=dict)
    people: Dict[int, PagedBinding] = field(default_factory=dict)
    speakers: Dict[int, SpeakerBinding] = field(default_factory=dict)
    activators: RuleTable = field(default_factory=dict)
    faders: Dict[int, str] = field(default_factory=dict)
    cameras: Dict[str, CameraDescriptor] = field(default_factory=dict)
    mics: Dict[str, str] = field(default_factory=dict)
    initial_state: Dict[int, str] = field(default_factory=dict)

    @property
    def crowd_mic(self) -> Optional[str]:
        return self.mics.get(CROWD_MIC)

    def describe(self) -> str:
        return (f"{len(self.shortcuts)} shortcuts, {len(self.responses)} responses, "
                f"{len(self.prayers)} prayers, {len(self.hymns)} hymns, "
                f"{len(self.people)} people, {len(self.speakers)} speakers, "
                f"{sum(len(v) for v in self.activators.values())} activators, "
                f"{len(self.faders)} faders, {len(self.cameras)} cameras")


# ============================================================================
# LOADING AND VALIDATION
# ============================================================================

def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _color_name(value: Any) -> str:
    # PyYAML reads bare on/off as booleans
    if value is True:
        return "on"
    if value is False:
        return buttons.OFF
    return str(value).strip()


def _rule_entries(rule: dict, name: str, yaml_bool: bool) -> list:
    if name in rule:
        entries = _as_list(rule[name])
    else:
        entries = _as_list(rule.get(yaml_bool))

    # An unquoted "- red: 1,2" list item arrives as a mapping
    texts = []
    for entry in entries:
        if isinstance(entry, dict):
            texts.extend(f"{_color_name(color)}: {targets}" for color, targets in entry.items())
        else:
            texts.append(str(entry))
    return texts


def _button_id(key: Any, section: str) -> int:
    try:
        button = int(key)
    except (TypeError, ValueError):
        raise ValueError(f"{section}: button '{key}' is not a number") from None
    osc.validate_button(button)
    return button


def load_config(config_path: str) -> dict:
    """Load and validate the YAML show configuration.

    Args:
        config_path: Path to the YAML file

    Returns:
        Parsed configuration dict (unknown sections are ignored)

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config root must be a mapping, got {type(config).__name__}")

    for section in BINDING_SECTIONS + ("activators", "faders", "cameras", "mics", "initial_state"):
        value = config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ValueError(f"Config section '{section}' must be a mapping")

    for section in BINDING_SECTIONS:
        for key in (config.get(section) or {}):
            _button_id(key, section)

    for section in ("responses", "speakers") + PAGED_SECTIONS:
        for key, entry in (config.get(section) or {}).items():
            if not isinstance(entry, dict) or "input" not in entry:
                raise ValueError(f"{section}.{key}: missing 'input'")

    for section in PAGED_SECTIONS:
        for key, entry in (config.get(section) or {}).items():
            if not _as_list(entry.get("verses")):
                raise ValueError(f"{section}.{key}: needs at least one verse")

    for key, target in (config.get("faders") or {}).items():
        try:
            fader = int(key)
        except (TypeError, ValueError):
            raise ValueError(f"faders: '{key}' is not a number") from None
        if not 1 <= fader <= buttons.FADER_COUNT:
            raise ValueError(f"faders: fader must be 1-{buttons.FADER_COUNT}, got {fader}")
        if target is None or str(target).strip() == "":
            raise ValueError(f"faders.{key}: missing target")

    for name, camera in (config.get("cameras") or {}).items():
        if not isinstance(camera, dict):
            raise ValueError(f"cameras.{name} must be a mapping")
        mode = str(camera.get("mode", "none")).lower()
        if mode not in CAMERA_MODES:
            raise ValueError(f"cameras.{name}: mode must be one of {CAMERA_MODES}, got '{mode}'")
        if mode != "none" and not camera.get("address"):
            raise ValueError(f"cameras.{name}: missing 'address'")

    for key, color in (config.get("initial_state") or {}).items():
        _button_id(key, "initial_state")
        if not buttons.is_valid_color(_color_name(color)):
            raise ValueError(f"initial_state.{key}: unknown colour '{color}'")

    logger.info(f"Loaded config from {config_path}")
    return config


def load_settings(config: dict) -> Settings:
    """Extract process settings from the mixer/surface/harness sections."""
    settings = Settings()
    mixer = config.get("mixer") or {}
    surface = config.get("surface") or {}
    harness = config.get("harness") or {}

    settings.api_address = str(mixer.get("address", settings.api_address))
    settings.surface_port_name = str(surface.get("port_name", settings.surface_port_name))
    settings.watchdog_interval = float(surface.get("watchdog_interval", settings.watchdog_interval))
    settings.harness_port = int(harness.get("tcp_port", settings.harness_port))
    if harness.get("osc_port") is not None:
        settings.osc_port = int(harness["osc_port"])
    if harness.get("led_mirror_port") is not None:
        settings.led_mirror_port = int(harness["led_mirror_port"])
    settings.led_mirror_host = str(harness.get("led_mirror_host", settings.led_mirror_host))

    for port in (settings.harness_port, settings.osc_port, settings.led_mirror_port):
        if port is not None:
            osc.validate_port(port)
    return settings


# ============================================================================
# RESOLUTION AGAINST THE SNAPSHOT
# ============================================================================

def resolve_input_name(value: Any, state: MirroredState) -> str:
    """Input reference as vMix function calls expect it.

    Numbers are translated to the input title when the snapshot knows it;
    names are kept as written.
    """
    text = str(value).strip()
    if text.isdigit():
        name = state.input_name(int(text))
        return name if name is not None else text
    if state.input_number(text) is None:
        logger.warning(f"Input '{text}' not found in vMix")
    return text


def resolve_input_key(value: Any, state: MirroredState) -> Optional[str]:
    """Activator input key: input number as a string, or "none"."""
    text = str(value).strip()
    if text.lower() == "none":
        return "none"
    if text.isdigit():
        return text
    number = state.input_number(text)
    if number is None:
        logger.warning(f"Activator input '{text}' not found in vMix, rule skipped")
        return None
    return str(number)


def _textbox(entry: dict, input_name: str, state: MirroredState) -> str:
    if entry.get("textbox"):
        return str(entry["textbox"])
    return state.textbox_for(input_name) or DEFAULT_TEXTBOX


def _parse_activators(section: dict, state: MirroredState) -> RuleTable:
    table: RuleTable = {}
    for trigger, by_input in section.items():
        if not isinstance(by_input, dict):
            raise ValueError(f"activators.{trigger} must map inputs to rules")
        for input_ref, rule in by_input.items():
            key = resolve_input_key(input_ref, state)
            if key is None:
                continue
            rule = rule or {}
            on = tuple(parse_led_rule(text) for text in _rule_entries(rule, "on", True))
            off = tuple(parse_led_rule(text) for text in _rule_entries(rule, "off", False))
            table.setdefault(str(trigger), {})[key] = ActivatorRule(on=on, off=off)
    return table


def build_bindings(config: dict, state: MirroredState) -> Bindings:
    """Parse a validated config into Bindings.

    Args:
        config: Dict returned by load_config
        state: Snapshot used to resolve input names and title text fields

    Raises:
        ValueError: On malformed actions or LED rules
    """
    bindings = Bindings()

    for key, entry in (config.get("shortcuts") or {}).items():
        entry = entry if isinstance(entry, dict) else {"pressed": entry}
        bindings.shortcuts[_button_id(key, "shortcuts")] = ShortcutBinding(
            pressed=actions.parse_actions(_as_list(entry.get("pressed"))),
            released=actions.parse_actions(_as_list(entry.get("released"))),
        )

    for key, entry in (config.get("responses") or {}).items():
        name = resolve_input_name(entry["input"], state)
        release_color = _color_name(entry.get("release_color", buttons.OFF))
        if not buttons.is_valid_color(release_color):
            raise ValueError(f"responses.{key}: unknown release_color '{release_color}'")
        bindings.responses[_button_id(key, "responses")] = ResponseBinding(
            input=name,
            textbox=_textbox(entry, name, state),
            text=str(entry.get("text", "")),
            release_color=release_color,
        )

    for section in PAGED_SECTIONS:
        target: Dict[int, PagedBinding] = getattr(bindings, section)
        for key, entry in (config.get(section) or {}).items():
            name = resolve_input_name(entry["input"], state)
            target[_button_id(key, section)] = PagedBinding(
                input=name,
                textbox=_textbox(entry, name, state),
                verses=tuple(str(v) for v in _as_list(entry.get("verses"))),
            )

    for key, entry in (config.get("speakers") or {}).items():
        name = resolve_input_name(entry["input"], state)
        bindings.speakers[_button_id(key, "speakers")] = SpeakerBinding(
            input=name,
            textbox=_textbox(entry, name, state),
            name=str(entry.get("name", "")),
            script=str(entry.get("script") or ""),
        )

    bindings.activators = _parse_activators(config.get("activators") or {}, state)

    for key, target in (config.get("faders") or {}).items():
        bindings.faders[int(key)] = str(target).strip()

    for name, camera in (config.get("cameras") or {}).items():
        bindings.cameras[str(name).lower()] = CameraDescriptor(
            name=str(name).lower(),
            mode=str(camera.get("mode", "none")).lower(),
            address=str(camera.get("address", "")),
            user=str(camera.get("user") or ""),
            password=str(camera.get("password") or ""),
            profile=str(camera.get("profile") or ""),
        )

    for name, input_ref in (config.get("mics") or {}).items():
        bindings.mics[str(name)] = str(input_ref)

    for key, color in (config.get("initial_state") or {}).items():
        bindings.initial_state[_button_id(key, "initial_state")] = _color_name(color)

    logger.info(f"Bindings: {bindings.describe()}")
    return bindings
