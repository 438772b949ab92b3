"""Exception hierarchy for geoscene.

ConfigurationError and StateError propagate to the caller. Numerically
degenerate conversions do not raise: they return results whose
``reliable`` flag is False.
"""


class GeoSceneError(Exception):
    """Base class for all geoscene errors."""


class ConfigurationError(GeoSceneError, ValueError):
    """Missing or invalid reference system, extent or presenter option."""


class StateError(GeoSceneError, RuntimeError):
    """Lifecycle method called out of order, or any use after dispose."""


class ExternalResourceError(GeoSceneError, RuntimeError):
    """Optional rendering back-end or device session is not available."""


class ModeSwitchError(StateError):
    """A presentation mode switch failed.

    Attributes:
        restored: True if the previous presenter was put back into Running
    """

    def __init__(self, message: str, restored: bool) -> None:
        super().__init__(message)
        self.restored = restored
