"""Core coordinate machinery.

- Geodesy: WGS84 geodetic <-> ECEF <-> ENU conversions
- AxisConvention: Y-up / Z-up scene axis orders
- ProjectionEngine / PyprojEngine: geographic <-> projected CRS
- ReferenceSystemRegistry / CapabilityCache: process-scoped registries
- CoordinateAdapter: origin-aware conversions for one active CRS
- ExtentNormalizer: extents into the active CRS
"""

from geoscene.core.axes import AxisConvention
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.core.extent import ExtentNormalizer
from geoscene.core.geodesy import Geodesy
from geoscene.core.projection import ProjectionEngine, ProjectionFactors, PyprojEngine
from geoscene.core.registry import CapabilityCache, ReferenceSystemRegistry

__all__ = [
    "Geodesy",
    "AxisConvention",
    "ProjectionEngine",
    "ProjectionFactors",
    "PyprojEngine",
    "ReferenceSystemRegistry",
    "CapabilityCache",
    "CoordinateAdapter",
    "ExtentNormalizer",
]
