"""Presentation modes and presenter options.

PresenterOptions is the single configuration record handed to a presenter.
A mode switch merges the previous options with the caller's overrides
(``merged``), so settings survive switching back and forth.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from geoscene.constants import CameraConfig, ImmersiveConfig, MapConfig
from geoscene.errors import ConfigurationError
from geoscene.model.extent import Extent
from geoscene.model.layers import LayerSpec
from geoscene.model.points import GeographicPoint


class PresentationMode(str, Enum):
    IMMERSIVE_VR = "immersive-vr"
    IMMERSIVE_AR = "immersive-ar"
    MAP = "map"
    INLINE = "inline"

    @property
    def is_immersive(self) -> bool:
        return self is not PresentationMode.MAP


@dataclass(frozen=True)
class PresenterOptions:
    """Recognized presenter options.

    Common:
        reference_system: Projected CRS code (required for the map presenter)
        origin: Geographic origin of the tangent plane
        extent: Initial extent (required for the map presenter)
        background_color: CSS color string
        shadows / lighting: Renderer flags; lighting=False draws map meshes unlit

    Immersive:
        session_mode, reference_space, required_features, optional_features,
        fov, near, far, eye_height

    Map:
        initial_altitude, enable_terrain, basemap, layers, up_axis
    """

    reference_system: str | None = None
    origin: GeographicPoint | None = None
    extent: Extent | None = None
    background_color: str | None = None
    shadows: bool = False
    lighting: bool = True

    session_mode: str | None = None
    reference_space: str = ImmersiveConfig.REFERENCE_SPACE
    required_features: tuple[str, ...] = ()
    optional_features: tuple[str, ...] = ()
    fov: float = CameraConfig.IMMERSIVE_FOV_DEG
    near: float = CameraConfig.IMMERSIVE_NEAR_M
    far: float = CameraConfig.IMMERSIVE_FAR_M
    eye_height: float = CameraConfig.EYE_HEIGHT_M

    initial_altitude: float = CameraConfig.INITIAL_ALTITUDE_M
    enable_terrain: bool = MapConfig.ENABLE_TERRAIN
    basemap: bool = True
    layers: tuple[LayerSpec, ...] = field(default_factory=tuple)
    up_axis: str | None = None

    def __post_init__(self) -> None:
        """Validate data after initialization."""
        if self.near <= 0 or self.far <= self.near:
            raise ConfigurationError(f"Invalid clip planes near={self.near}, far={self.far}")
        if not 0 < self.fov < 180:
            raise ConfigurationError(f"Field of view {self.fov} outside (0, 180)")
        if self.initial_altitude <= 0:
            raise ConfigurationError(f"initial_altitude must be positive, got {self.initial_altitude}")
        if self.up_axis is not None and self.up_axis not in ("y", "z"):
            raise ConfigurationError(f"up_axis must be 'y' or 'z', got {self.up_axis!r}")
        names = [layer.name for layer in self.layers]
        if len(names) != len(set(names)):
            raise ConfigurationError(f"Duplicate layer names: {names}")

    def merged(self, overrides: "PresenterOptions | dict[str, Any] | None") -> "PresenterOptions":
        """Return a copy with ``overrides`` applied on top.

        A dict overrides exactly the keys it names. Another PresenterOptions
        overrides every field it sets to a non-default value, so it cannot put
        a field back to its default (e.g. ``basemap=True`` after ``False``);
        pass a dict such as ``{"basemap": True}`` for that.
        """
        if overrides is None:
            return self
        if isinstance(overrides, PresenterOptions):
            defaults = PresenterOptions()
            changes = {
                f.name: getattr(overrides, f.name)
                for f in fields(self)
                if getattr(overrides, f.name) != getattr(defaults, f.name)
            }
        else:
            changes = _coerce(overrides)
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PresenterOptions":
        return cls(**_coerce(data))


def _coerce(data: dict[str, Any]) -> dict[str, Any]:
    """Validate option keys and convert plain values into model types."""
    known = {f.name for f in fields(PresenterOptions)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown presenter options: {sorted(unknown)}")

    values = dict(data)
    origin = values.get("origin")
    if isinstance(origin, dict):
        try:
            values["origin"] = GeographicPoint.from_dict(origin)
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid origin {origin}: {exc}") from exc
    extent = values.get("extent")
    if isinstance(extent, dict):
        values["extent"] = Extent.from_dict(extent)
    elif isinstance(extent, str):
        values["extent"] = Extent.from_bbox(extent)
    for key in ("required_features", "optional_features", "layers"):
        if key in values and values[key] is not None:
            values[key] = tuple(values[key])
    return values
