"""OriginFrame - the anchor of the tangent plane.

Holds the same physical point in three representations. Instances are
frozen: a rebase builds a new OriginFrame with the next generation number
and swaps it in, so readers never observe a half-updated origin.
"""

from dataclasses import dataclass

import numpy as np

from geoscene.model.points import GeographicPoint, ProjectedPoint


@dataclass(frozen=True)
class OriginFrame:
    """Tangent-plane origin in geographic, ECEF and projected form.

    Attributes:
        geographic: WGS84 position of the origin
        ecef: Earth-centered earth-fixed (x, y, z) in meters
        projected: Origin in the active projected CRS
        generation: Monotonic counter, incremented on every rebase
    """

    geographic: GeographicPoint
    ecef: tuple[float, float, float]
    projected: ProjectedPoint
    generation: int = 0

    @property
    def ecef_array(self) -> np.ndarray:
        return np.array(self.ecef, dtype=float)

    @property
    def projected_array(self) -> np.ndarray:
        """Origin as absolute (easting, northing, height)."""
        return np.array([self.projected.x, self.projected.y, self.geographic.height], dtype=float)

    def __repr__(self) -> str:
        g = self.geographic
        return (
            f"OriginFrame(gen={self.generation}, lat={g.lat:.6f}, lon={g.lon:.6f}, h={g.height:.2f}, "
            f"crs=({self.projected.x:.2f}, {self.projected.y:.2f}))"
        )
