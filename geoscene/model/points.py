"""Point types for the three coordinate spaces.

GeographicPoint: WGS84 latitude/longitude/height
ProjectedPoint: Easting/northing in the active projected CRS, plus height
TangentPlaneVector: East/north/up offset from an OriginFrame

Every point carries a ``reliable`` flag. Conversions that hit a numeric
degeneracy (polar inversion, failed CRS transform) return a point with
``reliable=False`` instead of raising. The flag is not part of equality.
"""

import math
from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class GeographicPoint:
    """A WGS84 geographic position.

    Attributes:
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        height: Ellipsoidal height in meters
        reliable: False if produced by a degenerate conversion

    Example:
        point = GeographicPoint(lat=51.05, lon=13.74, height=120.0)
    """

    lat: float
    lon: float
    height: float = 0.0
    reliable: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        """Validate data after initialization."""
        if not self.reliable:
            return
        if not (math.isfinite(self.lat) and math.isfinite(self.lon) and math.isfinite(self.height)):
            raise ValueError(f"GeographicPoint must be finite, got ({self.lat}, {self.lon}, {self.height})")
        if abs(self.lat) > 90.0:
            raise ValueError(f"Latitude {self.lat} outside [-90, 90]")

    @property
    def lat_lon(self) -> tuple[float, float]:
        """Return (lat, lon) tuple - standard geographic order."""
        return (self.lat, self.lon)

    @property
    def lon_lat(self) -> tuple[float, float]:
        """Return (lon, lat) tuple - GeoJSON/Pydeck order."""
        return (self.lon, self.lat)

    @classmethod
    def from_dict(cls, data: dict[str, float]) -> "GeographicPoint":
        """Create from {"lat", "lon", "height"?} dictionary."""
        return cls(lat=float(data["lat"]), lon=float(data["lon"]), height=float(data.get("height", 0.0)))

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lon": self.lon, "height": self.height}


@dataclass(frozen=True)
class ProjectedPoint:
    """A position in the active projected reference system.

    Attributes:
        x: Easting in CRS units
        y: Northing in CRS units
        z: Height in meters (same vertical datum as GeographicPoint.height)
        reliable: False if the CRS transform failed
    """

    x: float
    y: float
    z: float = 0.0
    reliable: bool = field(default=True, compare=False)

    def as_array(self) -> np.ndarray:
        """Return (x, y, z) as float array (east, north, up order)."""
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class TangentPlaneVector:
    """An (east, north, up) offset in meters from an OriginFrame.

    ``generation`` identifies the OriginFrame the vector was computed in.
    A vector without a generation is taken to belong to the current origin.
    """

    east: float
    north: float
    up: float = 0.0
    generation: int | None = field(default=None, compare=False)
    reliable: bool = field(default=True, compare=False)

    def as_array(self) -> np.ndarray:
        return np.array([self.east, self.north, self.up], dtype=float)

    @classmethod
    def from_array(cls, values: np.ndarray, generation: int | None = None) -> "TangentPlaneVector":
        east, north, up = (float(v) for v in values)
        return cls(east=east, north=north, up=up, generation=generation)
