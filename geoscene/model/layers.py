"""Map layer specifications.

A layer is a LayerSpec holding exactly one typed source. The set of source
kinds is closed; each kind has its own dataclass with the fields it needs,
and the map presenter dispatches on ``source.kind`` through
LayerBuilderRegistry (geoscene.presenter.layers).

Source kinds:
    XYZ: Raster tiles from a {z}/{x}/{y} URL template
    WMS: Raster tiles from an OGC WMS GetMap endpoint
    TERRAIN: Elevation tiles (Terrarium/Mapbox RGB encoding) with optional texture
    GEOJSON: Vector features as a GeoJSON FeatureCollection
    POINT_CLOUD: Explicit points in a given reference system
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from geoscene.constants import MapConfig
from geoscene.model.extent import Extent


class SourceKind(str, Enum):
    XYZ = "xyz"
    WMS = "wms"
    TERRAIN = "terrain"
    GEOJSON = "geojson"
    POINT_CLOUD = "point_cloud"


@dataclass(frozen=True)
class XyzSource:
    """Raster tiles addressed by a URL template with {z}, {x} and {y}."""

    kind: ClassVar[SourceKind] = SourceKind.XYZ

    tiles: tuple[str, ...]
    tile_size: int = MapConfig.TILE_SIZE_PX
    min_zoom: int = 0
    max_zoom: int = MapConfig.BASEMAP_MAX_ZOOM
    attribution: str = ""

    def __post_init__(self) -> None:
        if not self.tiles:
            raise ValueError("XyzSource needs at least one tile URL")
        for url in self.tiles:
            if "{z}" not in url or "{x}" not in url or "{y}" not in url:
                raise ValueError(f"Tile URL must contain {{z}}, {{x}} and {{y}}: {url}")


@dataclass(frozen=True)
class WmsSource:
    """OGC WMS endpoint rendered as web-mercator raster tiles."""

    kind: ClassVar[SourceKind] = SourceKind.WMS

    url: str
    layers: tuple[str, ...]
    image_format: str = "image/png"
    version: str = "1.3.0"
    transparent: bool = True
    tile_size: int = MapConfig.TILE_SIZE_PX
    attribution: str = ""

    def __post_init__(self) -> None:
        if not self.layers:
            raise ValueError(f"WmsSource {self.url} needs at least one layer name")


@dataclass(frozen=True)
class TerrainSource:
    """Elevation tiles decoded into a terrain mesh."""

    kind: ClassVar[SourceKind] = SourceKind.TERRAIN

    elevation_tiles: str = MapConfig.TERRAIN_TILES
    elevation_decoder: dict[str, float] = field(default_factory=lambda: dict(MapConfig.TERRAIN_DECODER))
    texture: str | None = MapConfig.BASEMAP_TILES[0]
    mesh_max_error: float = MapConfig.TERRAIN_MESH_MAX_ERROR


@dataclass(frozen=True)
class GeoJsonSource:
    """GeoJSON FeatureCollection in WGS84."""

    kind: ClassVar[SourceKind] = SourceKind.GEOJSON

    data: dict[str, Any]
    fill_color: tuple[int, ...] = (30, 144, 255, 80)
    line_color: tuple[int, ...] = (30, 144, 255, 255)
    line_width_m: float = 2.0

    def __post_init__(self) -> None:
        if self.data.get("type") not in ("FeatureCollection", "Feature"):
            raise ValueError(f"GeoJsonSource expects a Feature or FeatureCollection, got {self.data.get('type')}")


@dataclass(frozen=True)
class PointCloudSource:
    """Explicit (x, y, z) points.

    ``reference_system`` None means the points are in the active projected CRS.
    """

    kind: ClassVar[SourceKind] = SourceKind.POINT_CLOUD

    points: tuple[tuple[float, float, float], ...]
    reference_system: str | None = None
    color: tuple[int, ...] = (255, 140, 0, 255)
    point_size: float = 2.0


LayerSource = XyzSource | WmsSource | TerrainSource | GeoJsonSource | PointCloudSource


@dataclass(frozen=True)
class LayerSpec:
    """A named map layer.

    Attributes:
        name: Unique layer name (also used as deck.gl layer id)
        source: One typed source
        opacity: 0..1
        extent: Optional clip extent (any reference system, normalized before use)
        visible: Hidden layers are kept but not rendered
    """

    name: str
    source: LayerSource
    opacity: float = 1.0
    extent: Extent | None = None
    visible: bool = True

    def __post_init__(self) -> None:
        """Validate data after initialization."""
        if not self.name:
            raise ValueError("LayerSpec name must not be empty")
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"Layer {self.name}: opacity {self.opacity} outside [0, 1]")

    @property
    def kind(self) -> SourceKind:
        return self.source.kind
