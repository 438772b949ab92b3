"""Map layer builders.

Turns LayerSpec objects into back-end descriptors without importing the
back-end itself:

    RasterStyleSource: raster tiles rendered through the Mapbox GL style dict
        (the way deck.gl draws XYZ/WMS tiles from pydeck, see MapPresenter)
    DeckLayerDescriptor: a deck.gl layer type name plus its properties

The map presenter turns descriptors into pydeck objects once the back-end
is loaded. Builders are looked up by ``spec.kind`` in LayerBuilderRegistry;
custom builders can be registered per runtime.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import pyproj
from shapely.geometry import box, shape

from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.errors import ConfigurationError
from geoscene.model.extent import Extent
from geoscene.model.layers import (
    GeoJsonSource,
    LayerSpec,
    PointCloudSource,
    SourceKind,
    TerrainSource,
    WmsSource,
    XyzSource,
)
from geoscene.model.points import ProjectedPoint
from geoscene.model.reference_system import normalize_code

logger = logging.getLogger(__name__)


# =============================================================================
# DESCRIPTORS
# =============================================================================


@dataclass(frozen=True)
class RasterStyleSource:
    """A raster source + layer pair for the Mapbox GL style specification."""

    source_id: str
    tiles: list[str]
    tile_size: int
    min_zoom: int = 0
    max_zoom: int = 22
    attribution: str = ""
    opacity: float = 1.0
    bounds: tuple[float, float, float, float] | None = None  # lon/lat

    def style_source(self) -> dict[str, Any]:
        source: dict[str, Any] = {
            "type": "raster",
            "tiles": list(self.tiles),
            "tileSize": self.tile_size,
        }
        if self.attribution:
            source["attribution"] = self.attribution
        if self.bounds is not None:
            source["bounds"] = list(self.bounds)
        return source

    def style_layer(self) -> dict[str, Any]:
        return {
            "id": self.source_id,
            "type": "raster",
            "source": self.source_id,
            "minzoom": self.min_zoom,
            "maxzoom": self.max_zoom,
            "paint": {"raster-opacity": self.opacity},
        }


@dataclass(frozen=True)
class DeckLayerDescriptor:
    """A deck.gl layer, e.g. DeckLayerDescriptor("TerrainLayer", "terrain", {...})."""

    layer_type: str
    layer_id: str
    props: dict[str, Any] = field(default_factory=dict)


BuiltLayer = RasterStyleSource | DeckLayerDescriptor


@dataclass(frozen=True)
class LayerBuildContext:
    """What a builder may use besides the LayerSpec.

    Attributes:
        adapter: Initialized coordinate adapter (active CRS)
        clip_extent: Effective extent in the active CRS (map extent ∩ layer extent)
        clip_bounds: Same extent as WGS84 (min_lon, min_lat, max_lon, max_lat)
    """

    adapter: CoordinateAdapter
    clip_extent: Extent
    clip_bounds: tuple[float, float, float, float]


LayerBuilder = Callable[[LayerSpec, LayerBuildContext], list[BuiltLayer]]


# =============================================================================
# DEFAULT BUILDERS
# =============================================================================


def build_xyz_layer(spec: LayerSpec, context: LayerBuildContext) -> list[BuiltLayer]:
    source = spec.source
    assert isinstance(source, XyzSource)
    return [
        RasterStyleSource(
            source_id=spec.name,
            tiles=list(source.tiles),
            tile_size=source.tile_size,
            min_zoom=source.min_zoom,
            max_zoom=source.max_zoom,
            attribution=source.attribution,
            opacity=spec.opacity,
            bounds=context.clip_bounds,
        )
    ]


def build_wms_layer(spec: LayerSpec, context: LayerBuildContext) -> list[BuiltLayer]:
    """WMS GetMap requests in web mercator, one per style tile ({bbox-epsg-3857} token)."""
    source = spec.source
    assert isinstance(source, WmsSource)
    crs_key = "CRS" if source.version.startswith("1.3") else "SRS"
    separator = "&" if "?" in source.url else "?"
    url = (
        f"{source.url}{separator}SERVICE=WMS&REQUEST=GetMap&VERSION={source.version}"
        f"&LAYERS={quote(','.join(source.layers), safe=',')}&STYLES="
        f"&FORMAT={quote(source.image_format, safe='')}&TRANSPARENT={'TRUE' if source.transparent else 'FALSE'}"
        f"&{crs_key}=EPSG:3857&WIDTH={source.tile_size}&HEIGHT={source.tile_size}"
        "&BBOX={bbox-epsg-3857}"
    )
    return [
        RasterStyleSource(
            source_id=spec.name,
            tiles=[url],
            tile_size=source.tile_size,
            attribution=source.attribution,
            opacity=spec.opacity,
            bounds=context.clip_bounds,
        )
    ]


def build_terrain_layer(spec: LayerSpec, context: LayerBuildContext) -> list[BuiltLayer]:
    source = spec.source
    assert isinstance(source, TerrainSource)
    props: dict[str, Any] = {
        "elevation_data": source.elevation_tiles,
        "elevation_decoder": dict(source.elevation_decoder),
        "mesh_max_error": source.mesh_max_error,
        "bounds": list(context.clip_bounds),
        "opacity": spec.opacity,
        "pickable": False,
    }
    if source.texture is not None:
        props["texture"] = source.texture
    return [DeckLayerDescriptor("TerrainLayer", spec.name, props)]


def build_geojson_layer(spec: LayerSpec, context: LayerBuildContext) -> list[BuiltLayer]:
    """GeoJsonLayer with features outside the clip bounds dropped."""
    source = spec.source
    assert isinstance(source, GeoJsonSource)
    clip = box(*context.clip_bounds)
    features = source.data["features"] if source.data["type"] == "FeatureCollection" else [source.data]
    kept = [f for f in features if f.get("geometry") and shape(f["geometry"]).intersects(clip)]
    if len(kept) < len(features):
        logger.debug(f"Layer {spec.name}: {len(features) - len(kept)} feature(s) outside the map extent dropped")
    return [
        DeckLayerDescriptor(
            "GeoJsonLayer",
            spec.name,
            {
                "data": {"type": "FeatureCollection", "features": kept},
                "get_fill_color": list(source.fill_color),
                "get_line_color": list(source.line_color),
                "get_line_width": source.line_width_m,
                "line_width_min_pixels": 1,
                "stroked": True,
                "filled": True,
                "opacity": spec.opacity,
                "pickable": True,
            },
        )
    ]


def build_point_cloud_layer(spec: LayerSpec, context: LayerBuildContext) -> list[BuiltLayer]:
    """PointCloudLayer in lon/lat; points outside the clip extent are dropped."""
    source = spec.source
    assert isinstance(source, PointCloudSource)
    adapter = context.adapter
    active = adapter.reference_system
    source_code = normalize_code(source.reference_system) if source.reference_system else active

    if source_code == active:
        projected = [ProjectedPoint(x=x, y=y, z=z) for x, y, z in source.points]
    else:
        transformer = pyproj.Transformer.from_crs(
            context.adapter.registry.resolve(source_code), adapter.crs, always_xy=True
        )
        projected = []
        for x, y, z in source.points:
            px, py = transformer.transform(x, y)
            projected.append(ProjectedPoint(x=float(px), y=float(py), z=z))

    clip = context.clip_extent
    data = []
    for point in projected:
        if not (clip.min_x <= point.x <= clip.max_x and clip.min_y <= point.y <= clip.max_y):
            continue
        geographic = adapter.projected_to_geographic(point)
        if not geographic.reliable:
            continue
        data.append({"position": [geographic.lon, geographic.lat, geographic.height]})

    return [
        DeckLayerDescriptor(
            "PointCloudLayer",
            spec.name,
            {
                "data": data,
                "get_position": "position",
                "get_color": list(source.color),
                "point_size": source.point_size,
                "opacity": spec.opacity,
                "pickable": False,
            },
        )
    ]


_DEFAULT_BUILDERS: dict[SourceKind, LayerBuilder] = {
    SourceKind.XYZ: build_xyz_layer,
    SourceKind.WMS: build_wms_layer,
    SourceKind.TERRAIN: build_terrain_layer,
    SourceKind.GEOJSON: build_geojson_layer,
    SourceKind.POINT_CLOUD: build_point_cloud_layer,
}


class LayerBuilderRegistry:
    """Source kind -> builder.

    Example:
        registry = LayerBuilderRegistry.with_defaults()
        registry.register(SourceKind.XYZ, my_xyz_builder, replace=True)
    """

    def __init__(self) -> None:
        self._builders: dict[SourceKind, LayerBuilder] = {}

    @classmethod
    def with_defaults(cls) -> "LayerBuilderRegistry":
        registry = cls()
        registry._builders.update(_DEFAULT_BUILDERS)
        return registry

    def register(self, kind: SourceKind, builder: LayerBuilder, replace: bool = False) -> None:
        kind = SourceKind(kind)
        if kind in self._builders and not replace:
            raise ConfigurationError(f"A layer builder for '{kind.value}' is already registered")
        self._builders[kind] = builder

    def build(self, spec: LayerSpec, context: LayerBuildContext) -> list[BuiltLayer]:
        builder = self._builders.get(spec.kind)
        if builder is None:
            raise ConfigurationError(f"No layer builder registered for '{spec.kind.value}' (layer {spec.name})")
        return builder(spec, context)

    @property
    def kinds(self) -> list[SourceKind]:
        return list(self._builders)

    def reset(self) -> None:
        self._builders = dict(_DEFAULT_BUILDERS)
