"""HTTP CGI transport (PTZOptics-style ptzctrl.cgi)."""

import requests

from .base import CameraController

CGI_TIMEOUT = 2.0


class CgiCamera(CameraController):
    """
    Preset recall via a plain HTTP GET:

        http://<address>/cgi-bin/ptzctrl.cgi?ptzcmd&poscall&<preset>
    """

    def __init__(self, descriptor, session: requests.Session = None):
        super().__init__(descriptor)
        self.session = session or requests.Session()

    def preset_url(self, preset: str) -> str:
        return f"http://{self.descriptor.address}/cgi-bin/ptzctrl.cgi?ptzcmd&poscall&{preset}"

    def move_to_preset(self, preset: str) -> bool:
        url = self.preset_url(preset)
        try:
            response = self.session.get(url, timeout=CGI_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.warning(f"Camera '{self.name}' preset {preset} failed: {e}")
            return False

        self.logger.debug(f"Camera '{self.name}' moved to preset {preset}")
        return True

    def close(self) -> None:
        self.session.close()
