"""Content frames and bindings.

Every attached display handle is authored in one of two frames:

    TANGENT_PLANE: meters relative to an OriginFrame, Y-up (x=east, y=up, z=-north)
    PROJECTED: absolute projected-CRS coordinates in the map's axis convention

A ContentBinding records the handle together with its frame, so a mode
switch can re-attach it to a presenter with a different native frame and
wrap it correctly.
"""

from dataclasses import dataclass
from enum import Enum

from geoscene.core.axes import AxisConvention
from geoscene.model.origin import OriginFrame
from geoscene.scene.node import SceneNode


class ContentFrame(str, Enum):
    TANGENT_PLANE = "tangent_plane"
    PROJECTED = "projected"


@dataclass(frozen=True)
class ContentBinding:
    """A display handle and the frame its coordinates are expressed in.

    Attributes:
        handle: The entity's display handle (same object across presenters)
        frame: Frame of the handle's local coordinates
        axis: Axis convention of those coordinates
        origin: Origin the tangent-plane coordinates are relative to (None for PROJECTED)
    """

    handle: SceneNode
    frame: ContentFrame
    axis: AxisConvention
    origin: OriginFrame | None = None

    def __post_init__(self) -> None:
        if self.frame is ContentFrame.TANGENT_PLANE and self.origin is None:
            raise ValueError(f"Tangent-plane content {self.handle!r} needs the origin it was authored against")
