"""Abstract base class for PTZ camera transports."""

from abc import ABC, abstractmethod
from vmixapc.log import get_logger

from vmixapc.config import CameraDescriptor


class CameraController(ABC):
    """
    Interface that every camera transport implements.

    A controller only knows how to recall a stored preset. Transport errors
    are logged by the implementation and never raised to the caller, so a
    missing camera cannot stall button dispatch.
    """

    def __init__(self, descriptor: CameraDescriptor):
        """
        Args:
            descriptor: Camera entry from the show configuration
        """
        self.descriptor = descriptor
        self.name = descriptor.name
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    def move_to_preset(self, preset: str) -> bool:
        """
        Recall a stored position.

        Args:
            preset: Preset token as written in the action ("home" is accepted
                    where the transport has a home position)

        Returns:
            True if the camera accepted the request
        """
        pass

    def close(self) -> None:
        """Release transport resources (default: nothing to release)."""
        pass


class NullCamera(CameraController):
    """Camera with mode 'none': presets are logged and ignored."""

    def move_to_preset(self, preset: str) -> bool:
        self.logger.info(f"Camera '{self.name}' has no transport, preset {preset} ignored")
        return False
