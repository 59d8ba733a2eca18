"""VISCA over UDP transport."""

import socket
from typing import Tuple

from .base import CameraController

DEFAULT_VISCA_PORT = 1259


def preset_recall_packet(preset: int) -> bytes:
    """VISCA "memory recall" command for a preset number.

    Examples:
        >>> preset_recall_packet(3).hex()
        '8101043f0203ff'
    """
    if not 0 <= preset <= 0x7F:
        raise ValueError(f"VISCA preset must be 0-127, got {preset}")
    return bytes([0x81, 0x01, 0x04, 0x3F, 0x02, preset, 0xFF])


def parse_visca_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_VISCA_PORT
    return host, int(port)


class ViscaCamera(CameraController):
    """Preset recall by sending a raw VISCA packet over UDP."""

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self.host, self.port = parse_visca_address(descriptor.address)

    def move_to_preset(self, preset: str) -> bool:
        try:
            packet = preset_recall_packet(int(preset))
        except ValueError as e:
            self.logger.warning(f"Camera '{self.name}': invalid preset '{preset}' ({e})")
            return False

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.sendto(packet, (self.host, self.port))
        except OSError as e:
            self.logger.warning(f"Camera '{self.name}' at {self.host}:{self.port} "
                                f"unreachable over VISCA: {e}")
            return False
        finally:
            sock.close()

        self.logger.debug(f"Camera '{self.name}' moved to preset {preset}")
        return True
