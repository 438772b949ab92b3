"""Immersive device sessions.

The immersive presenter talks to the device through an ImmersiveHost,
injected at construction. InlineHost is the built-in host: it supports
only non-immersive "inline" sessions (a regular window, no headset).
Device integrations subclass ImmersiveHost.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from geoscene.constants import ImmersiveConfig
from geoscene.errors import ExternalResourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRequest:
    """Parameters for requesting a device session."""

    mode: str
    reference_space: str
    required_features: tuple[str, ...] = ()
    optional_features: tuple[str, ...] = ()


class ImmersiveSession:
    """An active device session.

    Attributes:
        request: The request the session was created from
        granted_features: Features the device actually enabled
        frames_submitted: Frames handed to the device
    """

    def __init__(self, request: SessionRequest, granted_features: tuple[str, ...] = ()) -> None:
        self.request = request
        self.granted_features = granted_features
        self.frames_submitted = 0
        self.last_view_matrix: np.ndarray | None = None
        self.active = True

    @property
    def mode(self) -> str:
        return self.request.mode

    def submit_frame(self, view_matrix: np.ndarray) -> None:
        if not self.active:
            raise ExternalResourceError(f"{self.mode} session has ended")
        self.last_view_matrix = view_matrix
        self.frames_submitted += 1

    def end(self) -> None:
        if self.active:
            self.active = False
            logger.info(f"Ended {self.mode} session after {self.frames_submitted} frame(s)")


class ImmersiveHost(ABC):
    """Device/session provider."""

    @abstractmethod
    async def is_session_supported(self, mode: str) -> bool:
        """True if a session of ``mode`` can be requested."""

    @abstractmethod
    async def request_session(self, request: SessionRequest) -> ImmersiveSession:
        """Create a session.

        Raises:
            ExternalResourceError: If the device refuses the session.
        """


class InlineHost(ImmersiveHost):
    """Window-only host; immersive modes are unsupported."""

    async def is_session_supported(self, mode: str) -> bool:
        return mode == ImmersiveConfig.SESSION_INLINE

    async def request_session(self, request: SessionRequest) -> ImmersiveSession:
        if request.mode != ImmersiveConfig.SESSION_INLINE:
            raise ExternalResourceError(
                f"No immersive device available for '{request.mode}'; use the map or inline mode instead"
            )
        missing = set(request.required_features)
        if missing:
            raise ExternalResourceError(f"Inline sessions cannot provide required features {sorted(missing)}")
        return ImmersiveSession(request)
