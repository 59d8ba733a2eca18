"""
Initial mirrored state from the vMix XML document.

Relevant parts of the document::

    <vmix>
      <inputs>
        <input key="..." number="1" type="GT" title="Lower Third"
               state="Paused" audiobusses="M,A">
          <text index="0" name="Headline.Text">...</text>
        </input>
      </inputs>
      <overlays><overlay number="1">3</overlay>...</overlays>
      <preview>2</preview>
      <active>1</active>
      <streaming>False</streaming>
      <recording>False</recording>
    </vmix>

Parsing never fails: anything missing or malformed keeps its zero value.
"""

import xml.etree.ElementTree as ET
from typing import Optional

from vmixapc.log import get_logger
from vmixapc.state import OVERLAY_SLOTS, MirroredState
from vmixapc.vmix import VmixClient

logger = get_logger("snapshot")


def _int_or_zero(text: Optional[str], what: str) -> int:
    if text is None or not text.strip():
        return 0
    try:
        return int(text.strip())
    except ValueError:
        logger.debug(f"Ignoring non-numeric {what}: {text!r}")
        return 0


def _is_true(text: Optional[str]) -> bool:
    return text is not None and text.strip().lower() == "true"


def parse_snapshot(xml_text: str) -> MirroredState:
    """Build a MirroredState from a vMix XML document.

    Args:
        xml_text: The <vmix>...</vmix> document

    Returns:
        New MirroredState; empty if the document cannot be parsed

    Examples:
        >>> state = parse_snapshot('<vmix><active>2</active></vmix>')
        >>> state.active
        2
    """
    state = MirroredState()
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        logger.warning(f"Snapshot is not valid XML: {e}")
        return state

    state.active = _int_or_zero(root.findtext("active"), "active input")
    state.preview = _int_or_zero(root.findtext("preview"), "preview input")
    state.streaming = _is_true(root.findtext("streaming"))
    state.recording = _is_true(root.findtext("recording"))

    for overlay in root.iterfind("overlays/overlay"):
        slot = _int_or_zero(overlay.get("number"), "overlay number")
        if not 1 <= slot <= OVERLAY_SLOTS:
            continue
        state.overlays[slot - 1] = _int_or_zero(overlay.text, f"overlay {slot} input")

    for element in root.iterfind("inputs/input"):
        number = _int_or_zero(element.get("number"), "input number")
        if number == 0:
            continue

        title = element.get("title", "")
        if title:
            state.name_to_number[title] = number
            state.number_to_name[number] = title

        buses = element.get("audiobusses", "")
        if "M" in buses:
            state.master[number] = True
        if "A" in buses:
            state.bus_a[number] = True
        if "B" in buses:
            state.bus_b[number] = True

        if element.get("type") == "Video" and element.get("state") == "Running":
            state.playing[number] = True

        if element.get("type") == "GT":
            text = element.find("text")
            if text is not None and text.get("name"):
                state.overlay_textboxes[title] = text.get("name")

    logger.info(f"Snapshot: {len(state.number_to_name)} inputs, "
                f"active={state.active} preview={state.preview}")
    return state


def fetch_snapshot(address: str, connect_timeout: float = 20.0) -> MirroredState:
    """Query vMix over a dedicated connection and parse the reply.

    Args:
        address: "host:port" of the vMix API
        connect_timeout: Seconds allowed per connection attempt

    Returns:
        Freshly built MirroredState
    """
    client = VmixClient(address, connect_timeout=connect_timeout)
    client.connect()
    try:
        xml_text = client.request_xml()
    finally:
        client.close()
    return parse_snapshot(xml_text)
