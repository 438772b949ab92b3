"""Projection engines: geographic <-> projected CRS.

The coordinate adapter never projects by itself; it delegates to an
injected ProjectionEngine. PyprojEngine is the pyproj implementation.
Failed transforms come back as non-finite numbers (pyproj returns inf),
which the adapter turns into ``reliable=False`` results.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

import pyproj
from pyproj.exceptions import ProjError

from geoscene.constants import AdapterConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionFactors:
    """Local distortion of a projection at one point.

    Attributes:
        meridian_convergence_deg: Angle between grid north and true north
        scale_factor: Areal-mean linear scale (1.0 = true scale)
    """

    meridian_convergence_deg: float
    scale_factor: float

    def is_locally_cartesian(self) -> bool:
        """True if treating ENU and CRS axes as parallel and equal-scale is acceptable."""
        return (
            abs(self.meridian_convergence_deg) <= AdapterConfig.MAX_MERIDIAN_CONVERGENCE_DEG
            and abs(self.scale_factor - 1.0) <= AdapterConfig.MAX_SCALE_DISTORTION
        )


class ProjectionEngine(ABC):
    """Geographic <-> projected conversion capability."""

    @abstractmethod
    def forward(self, lon: float, lat: float) -> tuple[float, float]:
        """(lon, lat) degrees -> (x, y) CRS units. Non-finite on failure."""

    @abstractmethod
    def inverse(self, x: float, y: float) -> tuple[float, float]:
        """(x, y) CRS units -> (lon, lat) degrees. Non-finite on failure."""

    def factors(self, lon: float, lat: float) -> ProjectionFactors | None:
        """Local distortion at (lon, lat), or None if unknown."""
        return None


class PyprojEngine(ProjectionEngine):
    """pyproj Transformer pair between EPSG:4326 and a projected CRS.

    Example:
        engine = PyprojEngine(pyproj.CRS("EPSG:32633"))
        x, y = engine.forward(lon=13.74, lat=51.05)
    """

    def __init__(self, crs: pyproj.CRS) -> None:
        self.crs = crs
        wgs84 = pyproj.CRS(AdapterConfig.GEOGRAPHIC_CRS)
        self._to_crs = pyproj.Transformer.from_crs(wgs84, crs, always_xy=True)
        self._to_wgs84 = pyproj.Transformer.from_crs(crs, wgs84, always_xy=True)
        self._proj: pyproj.Proj | None = None

    def forward(self, lon: float, lat: float) -> tuple[float, float]:
        x, y = self._to_crs.transform(lon, lat)
        return float(x), float(y)

    def inverse(self, x: float, y: float) -> tuple[float, float]:
        lon, lat = self._to_wgs84.transform(x, y)
        return float(lon), float(lat)

    def factors(self, lon: float, lat: float) -> ProjectionFactors | None:
        if self.crs.is_geographic:
            return None
        try:
            if self._proj is None:
                self._proj = pyproj.Proj(self.crs)
            f = self._proj.get_factors(lon, lat)
        except ProjError as exc:
            logger.warning(f"Could not compute projection factors for {self.crs.name}: {exc}")
            return None
        convergence = float(f.meridian_convergence)
        scale = math.sqrt(float(f.meridional_scale) * float(f.parallel_scale))
        if not (math.isfinite(convergence) and math.isfinite(scale)):
            return None
        return ProjectionFactors(meridian_convergence_deg=convergence, scale_factor=scale)
