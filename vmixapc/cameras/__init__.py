"""Camera factory for PTZ transports."""

from typing import Dict, Mapping

from vmixapc.config import CameraDescriptor
from .base import CameraController, NullCamera
from .cgi import CgiCamera
from .onvif import OnvifCamera
from .visca import ViscaCamera

CAMERAS = {
    'none': NullCamera,
    'onvif': OnvifCamera,
    'cgi': CgiCamera,
    'visca': ViscaCamera,
}


def create_camera(descriptor: CameraDescriptor) -> CameraController:
    """
    Instantiate the transport named by the descriptor's mode.

    Raises:
        ValueError: If the mode is unknown
    """
    mode = descriptor.mode.lower()
    if mode not in CAMERAS:
        available = ', '.join(CAMERAS.keys())
        raise ValueError(
            f"Unknown camera mode for '{descriptor.name}': '{descriptor.mode}'\n"
            f"Available modes: {available}"
        )
    return CAMERAS[mode](descriptor)


def create_cameras(descriptors: Mapping[str, CameraDescriptor]) -> Dict[str, CameraController]:
    """One controller per configured camera, keyed by camera name."""
    return {name: create_camera(descriptor) for name, descriptor in descriptors.items()}


__all__ = ['CAMERAS', 'CameraController', 'NullCamera', 'OnvifCamera', 'CgiCamera',
           'ViscaCamera', 'create_camera', 'create_cameras']
