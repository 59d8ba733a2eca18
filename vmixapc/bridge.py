#!/usr/bin/env python3
"""
vmixapc bridge - vMix ↔ APC mini.

Architecture:
    vMix (TCP 8099) → receive loop → event queue → StateSynchronizer
                                                  ├→ ActivatorEngine → LED queue
                                                  └→ MirroredState
    APC mini / harness → hardware queue → Dispatcher → vMix commands
                                                     ├→ LED queue
                                                     └→ verse queue → Pager → vMix
    LED queue → LedWriter → APC mini (+ optional OSC mirror)

Startup:
    1. Snapshot the mixer state over a dedicated connection
    2. Build bindings from the YAML config against that snapshot
    3. Open the surface, clear the LEDs, apply the initial layout and the
       activator bootstrap
    4. Connect, subscribe to ACTS and start the workers

If the vMix link drops, the bridge reconnects, takes a fresh snapshot,
clears and re-seeds the LEDs and subscribes again.
"""

import argparse
import queue
import signal
import sys
import threading
import time
from typing import Callable, Dict, Optional

from vmixapc import osc, surface
from vmixapc.activators import ActivatorEngine, all_off, initial_leds
from vmixapc.cameras import CameraController, create_cameras
from vmixapc.config import Bindings, Settings, build_bindings, load_config, load_settings
from vmixapc.dispatch import Dispatcher
from vmixapc.harness import LineHarness, OscHarness, OscLedSink
from vmixapc.log import get_logger, set_log_level
from vmixapc.pager import Pager, VerseCursor
from vmixapc.snapshot import fetch_snapshot
from vmixapc.state import MirroredState, StateSynchronizer
from vmixapc.vmix import MixerError, VmixClient

logger = get_logger("bridge")


# ============================================================================
# CONSTANTS
# ============================================================================

LED_QUEUE_SIZE = 40
HARDWARE_QUEUE_SIZE = 10
EVENT_QUEUE_SIZE = 64
VERSE_QUEUE_SIZE = 8

RECONNECT_DELAY = 5.0


class Bridge:
    """Owns every queue, worker and connection of a running bridge.

    Args:
        settings: Process settings (addresses, ports)
        config: Validated config dict from load_config
        use_surface: Open the APC mini; False runs on the harnesses only
        snapshot_fetcher: Returns a MirroredState for an API address
    """

    def __init__(self, settings: Settings, config: dict, use_surface: bool = True,
                 snapshot_fetcher: Callable[[str], MirroredState] = fetch_snapshot):
        self.settings = settings
        self.config = config
        self.use_surface = use_surface
        self.snapshot_fetcher = snapshot_fetcher

        self.stats = osc.MessageStatistics()

        self.led_queue: queue.Queue = queue.Queue(maxsize=LED_QUEUE_SIZE)
        self.hw_queue: queue.Queue = queue.Queue(maxsize=HARDWARE_QUEUE_SIZE)
        self.event_queue: queue.Queue = queue.Queue(maxsize=EVENT_QUEUE_SIZE)
        self.verse_queue: queue.Queue = queue.Queue(maxsize=VERSE_QUEUE_SIZE)

        self.state = MirroredState()
        self.cursor = VerseCursor()
        self.client = VmixClient(settings.api_address, stats=self.stats)

        self.bindings: Optional[Bindings] = None
        self.engine: Optional[ActivatorEngine] = None
        self.cameras: Dict[str, CameraController] = {}
        self.surface = None
        self.led_writer = None
        self.synchronizer: Optional[StateSynchronizer] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.pager: Optional[Pager] = None
        self.line_harness: Optional[LineHarness] = None
        self.osc_harness: Optional[OscHarness] = None

        self.running = False

    def start(self):
        """Bring the bridge up; see the module docstring for the order."""
        logger.info("Starting vmixapc bridge...")
        self.running = True

        self.state.replace_with(self.snapshot_fetcher(self.settings.api_address))
        self.bindings = build_bindings(self.config, self.state)
        self.engine = ActivatorEngine(self.bindings.activators)
        self.cameras = create_cameras(self.bindings.cameras)

        self._start_led_output()
        self._seed_leds()

        self.client.connect()
        self.client.subscribe()
        self._start_receiver()

        self.synchronizer = StateSynchronizer(self.state, self.engine, self.event_queue,
                                              self.led_queue, stats=self.stats)
        self.synchronizer.start()

        self.pager = Pager(self.client, self.verse_queue, stats=self.stats)
        self.pager.start()

        self.dispatcher = Dispatcher(self.bindings, self.state, self.client, self.led_queue,
                                     self.verse_queue, self.cursor, self.cameras,
                                     stats=self.stats)
        self.dispatcher.start(self.hw_queue)

        self.line_harness = LineHarness(self.hw_queue, port=self.settings.harness_port,
                                        stats=self.stats)
        self.line_harness.start()
        if self.settings.osc_port is not None:
            self.osc_harness = OscHarness(self.hw_queue, port=self.settings.osc_port,
                                          stats=self.stats)
            self.osc_harness.start()

        threading.Thread(target=self._supervise_mixer, name="mixer-supervisor",
                         daemon=True).start()
        logger.info("Bridge running")

    def _start_led_output(self):
        sinks = []
        if self.use_surface:
            port_name = self.settings.surface_port_name
            self.surface = surface.SurfaceLink(
                self.hw_queue,
                opener=lambda: surface.open_surface_ports(port_name),
                watchdog_interval=self.settings.watchdog_interval,
                stats=self.stats,
            )
            try:
                self.surface.start()
            except surface.SurfaceNotFound:
                logger.error(f"Surface '{port_name}' not found")
                surface.log_available_ports()
                raise
            sinks.append(surface.MidiLedSink(self.surface))

        if self.settings.led_mirror_port is not None:
            sinks.append(OscLedSink(self.settings.led_mirror_host, self.settings.led_mirror_port))

        self.led_writer = surface.LedWriter(self.led_queue, sinks, stats=self.stats)
        self.led_writer.start()

    def _seed_leds(self):
        """Clear the surface, then apply the initial layout and the activator bootstrap.

        Used at startup and after every mixer reconnect, so LEDs lit under a
        stale state are switched off.
        """
        self.led_queue.put(all_off())
        for command in initial_leds(self.bindings.initial_state):
            self.led_queue.put(command)
        for command in self.engine.bootstrap(self.state):
            self.led_queue.put(command)

    def _start_receiver(self):
        threading.Thread(target=self.client.receive_loop, args=(self.event_queue,),
                         name="vmix-receive", daemon=True).start()

    def _supervise_mixer(self):
        """Reconnect, re-seed and resubscribe whenever the vMix link drops."""
        while self.running:
            if not self.client.closed.wait(timeout=1.0):
                continue
            if not self.running:
                return

            logger.warning("vMix link down, reconnecting...")
            self.stats.increment("mixer_reconnects")
            try:
                self.client.connect()
                self.state.replace_with(self.snapshot_fetcher(self.settings.api_address))
                self._seed_leds()
                self.client.subscribe()
            except MixerError as e:
                logger.error(f"Reconnect failed: {e}")
                self.client.close()
                time.sleep(RECONNECT_DELAY)
                continue
            self._start_receiver()

    def shutdown(self):
        """Stop every worker and release connections and ports."""
        logger.info("Shutting down vmixapc bridge...")
        self.running = False

        for harness in (self.line_harness, self.osc_harness):
            if harness is not None:
                harness.stop()
        for worker in (self.dispatcher, self.pager, self.synchronizer, self.led_writer):
            if worker is not None:
                worker.stop()

        self.client.shutdown()
        if self.surface is not None:
            self.surface.shutdown()
        for camera in self.cameras.values():
            camera.close()

        self.stats.print_stats("VMIXAPC BRIDGE STATISTICS")


# ============================================================================
# MAIN
# ============================================================================

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bridge between vMix and an Akai APC mini")
    parser.add_argument("--config", required=True,
                        help="Path to the YAML show configuration")
    parser.add_argument("--api-addr", default=None,
                        help="vMix API address host:port (default: from config, else 127.0.0.1:8099)")
    parser.add_argument("--debug", action="store_true",
                        help="Log debugging information")
    parser.add_argument("--harness-port", type=int, default=None,
                        help=f"TCP line harness port (default: {osc.PORT_LINE_HARNESS})")
    parser.add_argument("--osc-port", type=int, default=None,
                        help="OSC harness port for the surface emulator (disabled if unset)")
    parser.add_argument("--led-mirror-port", type=int, default=None,
                        help="Mirror LED commands over OSC to this port (disabled if unset)")
    parser.add_argument("--no-surface", action="store_true",
                        help="Run without the APC mini (harness input only)")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Command-line flags win over the config file."""
    if args.api_addr:
        settings.api_address = args.api_addr
    if args.harness_port is not None:
        osc.validate_port(args.harness_port)
        settings.harness_port = args.harness_port
    if args.osc_port is not None:
        osc.validate_port(args.osc_port)
        settings.osc_port = args.osc_port
    if args.led_mirror_port is not None:
        osc.validate_port(args.led_mirror_port)
        settings.led_mirror_port = args.led_mirror_port
    return settings


def main(argv=None):
    """Main entry point for the bridge."""
    args = parse_args(argv)
    if args.debug:
        set_log_level("DEBUG")

    logger.info("=" * 60)
    logger.info("VMIXAPC BRIDGE")
    logger.info("=" * 60)

    try:
        config = load_config(args.config)
        settings = apply_overrides(load_settings(config), args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    bridge = Bridge(settings, config, use_surface=not args.no_surface)

    def signal_handler(sig, frame):
        bridge.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        bridge.start()
    except (MixerError, ValueError, surface.SurfaceNotFound) as e:
        logger.error(f"Startup failed: {e}")
        bridge.shutdown()
        sys.exit(1)

    logger.info("Bridge running. Press Ctrl+C to exit.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        bridge.shutdown()


if __name__ == "__main__":
    main()
