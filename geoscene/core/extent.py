"""Extent normalization into the active projected CRS.

Rules:
    1. Extent with a reference system equal to the active one: passed through.
    2. Extent with another reference system: bounds transformed (edges densified).
    3. Extent without a reference system whose values fit degree ranges while the
       active CRS is projected: treated as WGS84 and transformed.
    4. Anything else: assumed to already be in the active CRS.

Rule 3 can misread a small projected extent near a false origin (|x| <= 180,
|y| <= 90) as degrees. Pass the reference system explicitly for such data.
"""

import logging
import math

import pyproj
from shapely.geometry import Polygon

from geoscene.constants import AdapterConfig, ExtentConfig
from geoscene.core.registry import ReferenceSystemRegistry
from geoscene.errors import ConfigurationError
from geoscene.model.extent import Extent
from geoscene.model.reference_system import normalize_code

logger = logging.getLogger(__name__)


class ExtentNormalizer:
    """Converts extents into one target CRS.

    Example:
        normalizer = ExtentNormalizer("EPSG:32633", registry)
        utm_extent = normalizer.normalize(Extent(-1, 1, 50, 52))
    """

    def __init__(self, target_code: str, registry: ReferenceSystemRegistry) -> None:
        self.target_code = normalize_code(target_code)
        self.registry = registry
        self.target_crs = registry.resolve(self.target_code)

    def normalize(self, extent: Extent) -> Extent:
        """Return ``extent`` expressed in the target CRS.

        Raises:
            ConfigurationError: If the source CRS is unknown or the transformed
                bounds are not finite.
        """
        source_code = extent.reference_system
        if source_code is None:
            if extent.looks_geographic() and not self.target_crs.is_geographic:
                logger.info(f"Extent {extent.bounds} looks geographic, converting to {self.target_code}")
                source_code = AdapterConfig.GEOGRAPHIC_CRS
            else:
                return extent.with_reference_system(self.target_code)

        if source_code == self.target_code:
            return extent
        source_crs = self.registry.resolve(source_code)
        if source_crs == self.target_crs:
            return extent.with_reference_system(self.target_code)
        return self._transform(extent, source_crs, source_code)

    def to_geographic(self, extent: Extent) -> Extent:
        """Return a normalized extent as WGS84 (lon/lat) bounds."""
        normalized = self.normalize(extent)
        wgs84 = pyproj.CRS(AdapterConfig.GEOGRAPHIC_CRS)
        transformer = pyproj.Transformer.from_crs(self.target_crs, wgs84, always_xy=True)
        bounds = transformer.transform_bounds(*normalized.bounds, densify_pts=ExtentConfig.DENSIFY_POINTS)
        self._check_finite(bounds, normalized)
        return Extent.from_bounds(bounds, reference_system=AdapterConfig.GEOGRAPHIC_CRS)

    def intersection(self, first: Extent, second: Extent) -> Extent | None:
        """Intersection of two extents in the target CRS, or None if disjoint."""
        overlap: Polygon = self.normalize(first).to_polygon().intersection(self.normalize(second).to_polygon())
        if overlap.is_empty or overlap.area == 0:
            return None
        return Extent.from_bounds(overlap.bounds, reference_system=self.target_code)

    def _transform(self, extent: Extent, source_crs: pyproj.CRS, source_code: str) -> Extent:
        transformer = pyproj.Transformer.from_crs(source_crs, self.target_crs, always_xy=True)
        bounds = transformer.transform_bounds(*extent.bounds, densify_pts=ExtentConfig.DENSIFY_POINTS)
        self._check_finite(bounds, extent)
        logger.info(f"Extent {extent.bounds} ({source_code}) -> {tuple(round(b, 3) for b in bounds)} ({self.target_code})")
        return Extent.from_bounds(bounds, reference_system=self.target_code)

    @staticmethod
    def _check_finite(bounds: tuple[float, float, float, float], extent: Extent) -> None:
        if not all(math.isfinite(b) for b in bounds):
            raise ConfigurationError(f"Extent {extent.bounds} cannot be expressed in the target reference system")
