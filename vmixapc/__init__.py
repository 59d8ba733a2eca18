"""
vmixapc - vMix ↔ APC mini control surface bridge.

Modules:
    buttons: Native/logical button translation and LED colour codes
    vmix: vMix TCP API client and ACTS event parsing
    snapshot: Initial state from the vMix XML document
    state: Mirrored mixer state and the event synchronizer
    activators: Mixer event → LED rule engine
    dispatch: Button/fader → vMix command dispatch
    pager: Shared verse cursor and the text pager worker
    surface: APC mini MIDI link, LED writer and reconnect watchdog
    bridge: Wiring and process entry point
"""

__version__ = "0.1.0"

# Note: Modules are imported on-demand so that python -m vmixapc.cli
# does not pull in the MIDI stack.
