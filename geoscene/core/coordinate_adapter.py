"""Coordinate adapter - the stateful front of the geodetic kernel.

Owns the OriginFrame and the projection engine for one active reference
system and converts between three spaces:

    geographic (WGS84 lat/lon/h)
    tangent plane (ENU meters relative to the origin)
    projected (active CRS easting/northing, plus height)

The ENU <-> projected conversion is a pure translation by the origin's
projected coordinates (z = up + origin height). This holds only where the
CRS is locally Cartesian around the origin; initialize() and set_origin()
log a warning when meridian convergence or scale distortion exceed
AdapterConfig thresholds.

Lifecycle:
    adapter = CoordinateAdapter("EPSG:32633", GeographicPoint(51.05, 13.74), registry)
    await adapter.initialize()
    enu = adapter.geographic_to_enu(point)
"""

import asyncio
import logging
import math
from collections.abc import Callable

import numpy as np
import pyproj

from geoscene.core.geodesy import Geodesy
from geoscene.core.projection import ProjectionEngine, ProjectionFactors, PyprojEngine
from geoscene.core.registry import ReferenceSystemRegistry
from geoscene.errors import StateError
from geoscene.model.origin import OriginFrame
from geoscene.model.points import GeographicPoint, ProjectedPoint, TangentPlaneVector
from geoscene.model.reference_system import normalize_code

logger = logging.getLogger(__name__)


class CoordinateAdapter:
    """Converts between geographic, tangent-plane and projected coordinates.

    Attributes:
        reference_system: Active CRS code (normalized)
        registry: Reference-system registry used to resolve the code
    """

    def __init__(
        self,
        reference_system: str,
        origin: GeographicPoint,
        registry: ReferenceSystemRegistry,
        engine_factory: Callable[[pyproj.CRS], ProjectionEngine] = PyprojEngine,
    ) -> None:
        self.reference_system = normalize_code(reference_system)
        self.registry = registry
        self._initial_origin = origin
        self._engine_factory = engine_factory
        self._engine: ProjectionEngine | None = None
        self._crs: pyproj.CRS | None = None
        self._origin: OriginFrame | None = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> None:
        """Resolve the reference system, build the engine and the first OriginFrame.

        Raises:
            ConfigurationError: If the reference-system code cannot be resolved.
        """
        if self._origin is not None:
            return
        crs = await asyncio.to_thread(self.registry.resolve, self.reference_system)
        self._crs = crs
        self._engine = self._engine_factory(crs)
        self._origin = self._build_origin(self._initial_origin, generation=0)
        logger.info(f"[ORIGIN] Initialized {self.reference_system} at {self._origin!r}")
        self._check_local_distortion()

    @property
    def is_initialized(self) -> bool:
        return self._origin is not None

    @property
    def origin(self) -> OriginFrame:
        return self._require_origin()

    @property
    def crs(self) -> pyproj.CRS:
        self._require_origin()
        assert self._crs is not None
        return self._crs

    def set_origin(self, lat: float, lon: float, height: float = 0.0) -> OriginFrame:
        """Move the tangent plane to a new origin.

        The new OriginFrame is computed completely before it replaces the old
        one. Vectors computed against the old origin are rejected afterwards.

        Returns:
            The new OriginFrame.
        """
        current = self._require_origin()
        new_origin = self._build_origin(GeographicPoint(lat=lat, lon=lon, height=height), current.generation + 1)
        self._origin = new_origin
        logger.info(f"[ORIGIN] Rebased {current!r} -> {new_origin!r}")
        self._check_local_distortion()
        return new_origin

    # =========================================================================
    # CONVERSIONS
    # =========================================================================

    def geographic_to_enu(self, point: GeographicPoint) -> TangentPlaneVector:
        origin = self._require_origin()
        ecef = Geodesy.point_to_ecef(point)
        enu = Geodesy.ecef_to_enu(ecef, origin.ecef_array, origin.geographic.lat, origin.geographic.lon)
        east, north, up = (float(v) for v in enu)
        return TangentPlaneVector(
            east=east,
            north=north,
            up=up,
            generation=origin.generation,
            reliable=point.reliable and all(math.isfinite(v) for v in (east, north, up)),
        )

    def enu_to_geographic(self, vector: TangentPlaneVector) -> GeographicPoint:
        origin = self._check_generation(vector)
        ecef = Geodesy.enu_to_ecef(vector.as_array(), origin.ecef_array, origin.geographic.lat, origin.geographic.lon)
        point = Geodesy.ecef_to_point(ecef)
        if not vector.reliable and point.reliable:
            return GeographicPoint(lat=point.lat, lon=point.lon, height=point.height, reliable=False)
        return point

    def geographic_to_projected(self, point: GeographicPoint) -> ProjectedPoint:
        self._require_origin()
        assert self._engine is not None
        x, y = self._engine.forward(point.lon, point.lat)
        reliable = point.reliable and math.isfinite(x) and math.isfinite(y)
        if not reliable:
            logger.debug(f"Projection of ({point.lat}, {point.lon}) into {self.reference_system} failed")
        return ProjectedPoint(x=x, y=y, z=point.height, reliable=reliable)

    def projected_to_geographic(self, point: ProjectedPoint) -> GeographicPoint:
        self._require_origin()
        assert self._engine is not None
        lon, lat = self._engine.inverse(point.x, point.y)
        reliable = point.reliable and math.isfinite(lon) and math.isfinite(lat) and abs(lat) <= 90.0
        if not reliable:
            logger.debug(f"Inverse projection of ({point.x}, {point.y}) from {self.reference_system} failed")
        return GeographicPoint(lat=lat, lon=lon, height=point.z, reliable=reliable)

    def enu_to_projected(self, vector: TangentPlaneVector) -> ProjectedPoint:
        """Translation only: origin projected position plus (east, north, up)."""
        origin = self._check_generation(vector)
        x, y, z = origin.projected_array + vector.as_array()
        return ProjectedPoint(x=float(x), y=float(y), z=float(z), reliable=vector.reliable)

    def projected_to_enu(self, point: ProjectedPoint) -> TangentPlaneVector:
        origin = self._require_origin()
        east, north, up = np.array([point.x, point.y, point.z], dtype=float) - origin.projected_array
        return TangentPlaneVector(
            east=float(east),
            north=float(north),
            up=float(up),
            generation=origin.generation,
            reliable=point.reliable,
        )

    def local_distortion(self) -> ProjectionFactors | None:
        """Meridian convergence and scale factor of the CRS at the origin."""
        origin = self._require_origin()
        assert self._engine is not None
        return self._engine.factors(origin.geographic.lon, origin.geographic.lat)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_origin(self) -> OriginFrame:
        if self._origin is None:
            raise StateError("CoordinateAdapter used before initialize() completed")
        return self._origin

    def _check_generation(self, vector: TangentPlaneVector) -> OriginFrame:
        origin = self._require_origin()
        if vector.generation is not None and vector.generation != origin.generation:
            raise StateError(
                f"Tangent-plane vector belongs to origin generation {vector.generation}, "
                f"current generation is {origin.generation}"
            )
        return origin

    def _build_origin(self, point: GeographicPoint, generation: int) -> OriginFrame:
        assert self._engine is not None
        x, y, z = (float(v) for v in Geodesy.point_to_ecef(point))
        px, py = self._engine.forward(point.lon, point.lat)
        projected = ProjectedPoint(x=px, y=py, z=point.height, reliable=math.isfinite(px) and math.isfinite(py))
        if not projected.reliable:
            logger.warning(f"Origin ({point.lat}, {point.lon}) is outside the valid area of {self.reference_system}")
        return OriginFrame(geographic=point, ecef=(x, y, z), projected=projected, generation=generation)

    def _check_local_distortion(self) -> None:
        factors = self.local_distortion()
        if factors is None:
            logger.warning(
                f"{self.reference_system} has no local distortion factors; ENU <-> projected is a plain translation"
            )
            return
        if not factors.is_locally_cartesian():
            logger.warning(
                f"{self.reference_system} is not locally Cartesian at the origin "
                f"(convergence {factors.meridian_convergence_deg:.3f} deg, scale {factors.scale_factor:.5f}); "
                f"ENU <-> projected translations will drift with distance"
            )
