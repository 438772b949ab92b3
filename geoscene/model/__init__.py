"""Data structures for geoscene.

- GeographicPoint / ProjectedPoint / TangentPlaneVector: point types per coordinate space
- OriginFrame: tangent-plane origin in all three representations
- ReferenceSystem: registered CRS code + definition
- Extent: rectangular bounds with optional CRS
- LayerSpec and typed sources: map layer descriptions
- PresentationMode / PresenterOptions: presenter configuration
"""

from geoscene.model.extent import Extent
from geoscene.model.layers import (
    GeoJsonSource,
    LayerSource,
    LayerSpec,
    PointCloudSource,
    SourceKind,
    TerrainSource,
    WmsSource,
    XyzSource,
)
from geoscene.model.options import PresentationMode, PresenterOptions
from geoscene.model.origin import OriginFrame
from geoscene.model.points import GeographicPoint, ProjectedPoint, TangentPlaneVector
from geoscene.model.reference_system import ReferenceSystem, normalize_code

__all__ = [
    "GeographicPoint",
    "ProjectedPoint",
    "TangentPlaneVector",
    "OriginFrame",
    "ReferenceSystem",
    "normalize_code",
    "Extent",
    "SourceKind",
    "XyzSource",
    "WmsSource",
    "TerrainSource",
    "GeoJsonSource",
    "PointCloudSource",
    "LayerSource",
    "LayerSpec",
    "PresentationMode",
    "PresenterOptions",
]
