"""Extent - an axis-aligned rectangle in some reference system.

Extents without a reference system are interpreted by ExtentNormalizer
(geoscene.core.extent): degree-looking values are treated as WGS84,
anything else as the active projected CRS.
"""

from dataclasses import dataclass, replace
from typing import Any

from shapely.geometry import Polygon, box

from geoscene.constants import ExtentConfig
from geoscene.errors import ConfigurationError
from geoscene.model.reference_system import normalize_code


_DICT_KEYS = {"min_x": "minX", "max_x": "maxX", "min_y": "minY", "max_y": "maxY"}


@dataclass(frozen=True)
class Extent:
    """Rectangular bounds.

    Attributes:
        min_x: Minimum x (easting or longitude)
        max_x: Maximum x
        min_y: Minimum y (northing or latitude)
        max_y: Maximum y
        reference_system: CRS code of the values, or None if unspecified
    """

    min_x: float
    max_x: float
    min_y: float
    max_y: float
    reference_system: str | None = None

    def __post_init__(self) -> None:
        """Validate data after initialization."""
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ConfigurationError(
                f"Extent min must not exceed max: x=[{self.min_x}, {self.max_x}], y=[{self.min_y}, {self.max_y}]"
            )
        if self.reference_system is not None:
            object.__setattr__(self, "reference_system", normalize_code(self.reference_system))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Return (min_x, min_y, max_x, max_y) - shapely/pyproj order."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def looks_geographic(self) -> bool:
        """True if all values fall inside longitude/latitude degree ranges."""
        lon_min, lon_max = ExtentConfig.LON_RANGE
        lat_min, lat_max = ExtentConfig.LAT_RANGE
        return lon_min <= self.min_x and self.max_x <= lon_max and lat_min <= self.min_y and self.max_y <= lat_max

    def to_polygon(self) -> Polygon:
        return box(self.min_x, self.min_y, self.max_x, self.max_y)

    def with_reference_system(self, code: str) -> "Extent":
        return replace(self, reference_system=code)

    @classmethod
    def from_bounds(cls, bounds: tuple[float, float, float, float], reference_system: str | None = None) -> "Extent":
        """Create from (min_x, min_y, max_x, max_y)."""
        min_x, min_y, max_x, max_y = bounds
        return cls(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y, reference_system=reference_system)

    @classmethod
    def from_bbox(cls, bbox: str) -> "Extent":
        """Parse a "minX,minY,maxX,maxY[,CRS]" string.

        Example:
            Extent.from_bbox("400000,5650000,420000,5670000,EPSG:32633")
        """
        parts = [part.strip() for part in bbox.split(",")]
        if len(parts) not in (4, 5):
            raise ConfigurationError(f"Expected 'minX,minY,maxX,maxY[,CRS]', got '{bbox}'")
        try:
            min_x, min_y, max_x, max_y = (float(part) for part in parts[:4])
        except ValueError as exc:
            raise ConfigurationError(f"Non-numeric bbox component in '{bbox}'") from exc
        reference_system = parts[4] if len(parts) == 5 and parts[4] else None
        return cls(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y, reference_system=reference_system)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Extent":
        """Create from {"min_x", "max_x", "min_y", "max_y", "reference_system"?}.

        The camelCase keys "minX", "maxX", "minY", "maxY" and "referenceSystem"
        are accepted as well.

        Raises:
            ConfigurationError: If a bound is missing or not numeric.
        """
        values: dict[str, float] = {}
        for key, alias in _DICT_KEYS.items():
            raw = data.get(key, data.get(alias))
            if raw is None:
                raise ConfigurationError(f"Extent is missing '{key}' (or '{alias}'): {data}")
            try:
                values[key] = float(raw)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"Extent bound '{key}' is not numeric: {raw!r}") from exc
        return cls(**values, reference_system=data.get("reference_system", data.get("referenceSystem")))
