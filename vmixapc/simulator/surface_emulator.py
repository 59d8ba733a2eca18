#!/usr/bin/env python3
"""
APC mini Emulator - Integration Testing

Emulates the APC mini for integration testing without hardware.
Provides a programmatic button/fader interface and LED state tracking.

Features:
- OSC-based button press and fader emulation (bridge --osc-port)
- LED state tracking from the bridge's LED mirror (bridge --led-mirror-port)
- Programmatic API for automated testing
- Optional interactive CLI mode
"""

import sys
import time
import signal
import argparse
import threading
from typing import Dict, Optional
from pythonosc import udp_client, dispatcher
from pythonosc.osc_server import BlockingOSCUDPServer

from vmixapc import buttons, osc

# Velocity → single-character glyph for the grid printout
LED_GLYPHS = {0: ".", 1: "g", 2: "G", 3: "r", 4: "R", 5: "y", 6: "Y"}


class SurfaceEmulator:
    """Emulated APC mini.

    Sends button/fader messages to the bridge's OSC harness and receives
    LED commands from the bridge's LED mirror.

    Args:
        control_port: Port to send button/fader messages (default: 8010)
        led_port: Port to receive LED commands (default: 8011)
    """

    def __init__(self, control_port: int = osc.PORT_SURFACE_CONTROL,
                 led_port: int = osc.PORT_LED_MIRROR):
        self.control_port = control_port
        self.led_port = led_port

        self.control_client = udp_client.SimpleUDPClient("127.0.0.1", control_port)

        # LED state tracking: logical button -> velocity (0 = off)
        self.led_state: Dict[int, int] = {}
        self.led_event = threading.Event()

        self.led_server: Optional[BlockingOSCUDPServer] = None
        self.server_thread: Optional[threading.Thread] = None

        # Statistics
        self.button_presses = 0
        self.fader_moves = 0
        self.led_commands = 0

        self.running = False

    def start(self):
        """Start LED command listener."""
        self.running = True

        led_dispatcher = dispatcher.Dispatcher()
        led_dispatcher.map("/led/*", self._handle_led_command)
        self.led_server = BlockingOSCUDPServer(("127.0.0.1", self.led_port), led_dispatcher)
        self.led_port = self.led_server.server_address[1]

        self.server_thread = threading.Thread(target=self.led_server.serve_forever, daemon=True)
        self.server_thread.start()

        time.sleep(0.1)  # Wait for server to bind
        print(f"APC mini Emulator listening for LED commands on port {self.led_port}")

    def stop(self):
        """Stop the emulator."""
        self.running = False
        if self.led_server:
            self.led_server.shutdown()
            self.led_server.server_close()
        print(f"\nAPC mini Emulator stopped.")
        print(f"  Button presses sent: {self.button_presses}")
        print(f"  Fader moves sent: {self.fader_moves}")
        print(f"  LED commands received: {self.led_commands}")

    def _handle_led_command(self, address: str, *args):
        """Handle LED command from the bridge.

        OSC format: /led/{button} [velocity]
        """
        is_valid, button, _ = osc.validate_led_address(address)
        if not is_valid or len(args) < 1:
            return

        try:
            velocity = int(args[0])
        except (TypeError, ValueError):
            return

        self.led_state[button] = velocity
        self.led_commands += 1
        self.led_event.set()

    def get_led(self, button: int) -> Optional[int]:
        """Current LED velocity of a logical button, or None if never set."""
        return self.led_state.get(button)

    def wait_for_led(self, button: int, velocity: int, timeout: float = 2.0) -> bool:
        """Wait until a button shows the given velocity."""
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.led_state.get(button) == velocity:
                return True
            self.led_event.clear()
            self.led_event.wait(0.05)
        return self.led_state.get(button) == velocity

    def press(self, button: int):
        """Press a logical button (1-81)."""
        osc.validate_button(button)
        self.control_client.send_message("/button/press", [button])
        self.button_presses += 1
        print(f"[EMU] Press {button}")

    def release(self, button: int):
        """Release a logical button (1-81)."""
        osc.validate_button(button)
        self.control_client.send_message("/button/release", [button])
        print(f"[EMU] Release {button}")

    def tap(self, button: int, duration: float = 0.2):
        """Press and release a button after duration seconds."""
        self.press(button)
        time.sleep(duration)
        self.release(button)

    def move_fader(self, fader: int, value: int):
        """Move fader 1-9 to a position 0-127."""
        if not (osc.FADER_MIN <= fader <= osc.FADER_MAX):
            raise ValueError(f"Invalid fader: {fader}")
        if not (0 <= value <= 127):
            raise ValueError(f"Invalid fader value: {value}")
        self.control_client.send_message("/fader", [fader, value])
        self.fader_moves += 1
        print(f"[EMU] Fader {fader} -> {value}")

    def render_led_grid(self) -> str:
        """LED state as text: 8×8 grid, side column, bottom row."""
        lines = []
        for row in range(buttons.GRID_ROWS):
            line = ""
            for col in range(buttons.GRID_COLS):
                velocity = self.led_state.get(row * buttons.GRID_COLS + col + 1)
                line += f" {LED_GLYPHS.get(velocity, '?') if velocity is not None else '?'} "
            side = self.led_state.get(buttons.LOGICAL_SIDE_COLUMN_START + row)
            line += f" | {LED_GLYPHS.get(side, '?') if side is not None else '?'}"
            lines.append(line)
        bottom = ""
        for i in range(buttons.GRID_COLS):
            velocity = self.led_state.get(buttons.LOGICAL_BOTTOM_ROW_START + i)
            bottom += f" {LED_GLYPHS.get(velocity, '?') if velocity is not None else '?'} "
        lines.append("-" * len(bottom))
        lines.append(bottom)
        return "\n".join(lines)

    def print_led_grid(self):
        """Print current LED grid state."""
        print("\nLED Grid State (g/r/y = green/red/yellow, capitals blink):")
        print(self.render_led_grid())


def interactive_mode(emulator: SurfaceEmulator):
    """Interactive CLI mode for manual testing."""
    print("\nInteractive Mode")
    print("Commands:")
    print("  p <button>        - Press and release button (e.g., 'p 7')")
    print("  d <button>        - Hold button down")
    print("  u <button>        - Release button")
    print("  f <fader> <value> - Move fader (e.g., 'f 9 100')")
    print("  s                 - Show LED grid")
    print("  q                 - Quit")

    while emulator.running:
        try:
            cmd = input("\n> ").strip().split()
            if not cmd:
                continue

            if cmd[0] == 'q':
                break
            elif cmd[0] == 's':
                emulator.print_led_grid()
            elif cmd[0] == 'p' and len(cmd) == 2:
                emulator.tap(int(cmd[1]))
            elif cmd[0] == 'd' and len(cmd) == 2:
                emulator.press(int(cmd[1]))
            elif cmd[0] == 'u' and len(cmd) == 2:
                emulator.release(int(cmd[1]))
            elif cmd[0] == 'f' and len(cmd) == 3:
                emulator.move_fader(int(cmd[1]), int(cmd[2]))
            else:
                print("Unknown command")

        except (ValueError, IndexError) as e:
            print(f"Error: {e}")
        except (EOFError, KeyboardInterrupt):
            break


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="APC mini emulator for integration testing")
    parser.add_argument("--control-port", type=int, default=osc.PORT_SURFACE_CONTROL,
                        help=f"Port to send button/fader messages (default: {osc.PORT_SURFACE_CONTROL})")
    parser.add_argument("--led-port", type=int, default=osc.PORT_LED_MIRROR,
                        help=f"Port to receive LED commands (default: {osc.PORT_LED_MIRROR})")
    parser.add_argument("--interactive", action="store_true",
                        help="Run in interactive mode")

    args = parser.parse_args()

    emulator = SurfaceEmulator(
        control_port=args.control_port,
        led_port=args.led_port
    )

    def signal_handler(sig, frame):
        emulator.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    emulator.start()

    if args.interactive:
        interactive_mode(emulator)
    else:
        print("APC mini Emulator running. Press Ctrl+C to exit.")
        try:
            while emulator.running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass

    emulator.stop()


if __name__ == "__main__":
    main()
