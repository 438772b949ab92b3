"""Map presenter - 2.5D tiled map rendered with pydeck.

Native frame: absolute projected-CRS coordinates in the configured axis
convention (AxisConfig.MAP_UP_AXIS, default Z-up: x=easting, y=northing,
z=up). Tangent-plane content is wrapped by an OffsetWrapper positioned at
the origin's CRS coordinates.

Rendering is on demand: render() builds a new pdk.Deck only after
notify_change(), a layer change or while a camera animation runs. The deck
is exposed as ``render_surface``.

The pydeck module is loaded lazily through the CapabilityProbe during
initialize(); a missing install raises ExternalResourceError there.

Deck composition (back to front):
    style background -> raster style sources (XYZ/WMS) -> deck layers (terrain,
    GeoJSON, point clouds) -> content markers (ScatterplotLayer)

Picking input follows deck.gl click/hover events: ``coordinate`` is
[lon, lat(, z)], and the picked object's fields (our marker data carries
``id`` = node uuid) are either nested under ``object`` or spread into the
event itself.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from types import ModuleType
from typing import TYPE_CHECKING, Any

import numpy as np

from geoscene.constants import AnimationConfig, AxisConfig, CameraConfig, MapConfig, PointerConfig
from geoscene.core.axes import AxisConvention
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.core.extent import ExtentNormalizer
from geoscene.errors import ConfigurationError, StateError
from geoscene.model.extent import Extent
from geoscene.model.layers import LayerSpec, TerrainSource, XyzSource
from geoscene.model.options import PresenterOptions
from geoscene.model.origin import OriginFrame
from geoscene.model.points import GeographicPoint, ProjectedPoint
from geoscene.model.reference_system import normalize_code
from geoscene.presenter.base import Presenter
from geoscene.presenter.camera import Camera
from geoscene.presenter.capabilities import CapabilityProbe
from geoscene.presenter.content import ContentFrame
from geoscene.presenter.hooks import PresenterHooks
from geoscene.presenter.layers import DeckLayerDescriptor, LayerBuildContext, RasterStyleSource
from geoscene.presenter.pointer import HoverThrottle, PickHit, RawPointerInput
from geoscene.scene.node import SceneNode

if TYPE_CHECKING:
    from geoscene.runtime import GeoRuntime

logger = logging.getLogger(__name__)

# deck.gl event keys that are not picked-object fields
_EVENT_KEYS = ("coordinate", "eventType", "index", "layer", "picked", "x", "y", "pixel", "delta")


def default_basemap() -> LayerSpec:
    return LayerSpec(
        name="basemap",
        source=XyzSource(tiles=tuple(MapConfig.BASEMAP_TILES), attribution=MapConfig.BASEMAP_ATTRIBUTION),
    )


class MapPresenter(Presenter):
    """Projected-CRS presenter rendering through pydeck.

    Requires ``reference_system`` and ``extent`` in its options.

    Example:
        presenter = MapPresenter(adapter, options, runtime, probe)
        await presenter.initialize()
        presenter.start()
        presenter.render()
        presenter.render_surface.to_html("map.html", open_browser=False)
    """

    name = "map"
    content_frame = ContentFrame.PROJECTED

    def __init__(
        self,
        adapter: CoordinateAdapter,
        options: PresenterOptions,
        runtime: GeoRuntime,
        probe: CapabilityProbe,
        hooks: PresenterHooks | None = None,
    ) -> None:
        super().__init__(adapter, options, runtime, hooks)
        self.probe = probe
        self._axis = AxisConvention(options.up_axis or AxisConfig.MAP_UP_AXIS)
        self._pdk: ModuleType | None = None
        self._deck: Any = None
        self._normalizer: ExtentNormalizer | None = None
        self._extent: Extent | None = None
        self._layers: dict[str, LayerSpec] = {}
        self._hover_throttle = HoverThrottle()

    # =========================================================================
    # SURFACE
    # =========================================================================

    @property
    def scene_axis(self) -> AxisConvention:
        return self._axis

    @property
    def renderer(self) -> ModuleType | None:
        """The pydeck module (None before initialize)."""
        return self._pdk

    @property
    def render_surface(self) -> Any:
        """The most recently built pdk.Deck (None before the first frame)."""
        return self._deck

    @property
    def extent(self) -> Extent:
        """Map extent in the active CRS."""
        self._require_usable("read the extent")
        assert self._extent is not None
        return self._extent

    # =========================================================================
    # LIFECYCLE HOOKS
    # =========================================================================

    def _validate_options(self) -> None:
        if not self.options.reference_system:
            raise ConfigurationError("The map presenter requires a reference_system")
        if self.options.extent is None:
            raise ConfigurationError("The map presenter requires an extent")
        if normalize_code(self.options.reference_system) != self.adapter.reference_system:
            raise ConfigurationError(
                f"Map reference system {self.options.reference_system} does not match "
                f"the coordinate adapter's {self.adapter.reference_system}"
            )

    async def _load_backend(self) -> None:
        self._pdk = await self.probe.load_map_backend()
        self._normalizer = ExtentNormalizer(self.adapter.reference_system, self.runtime.reference_systems)
        assert self.options.extent is not None
        self._extent = self._normalizer.normalize(self.options.extent)

        layers = list(self.options.layers)
        names = {layer.name for layer in layers}
        if self.options.basemap and "basemap" not in names:
            layers.insert(0, default_basemap())
        if self.options.enable_terrain and not any(isinstance(layer.source, TerrainSource) for layer in layers):
            layers.insert(0, LayerSpec(name="terrain", source=TerrainSource()))
        self._layers = {layer.name: layer for layer in layers}
        if self.options.shadows:
            logger.info("map: shadows are not rendered by the map back-end")

    def _create_camera(self) -> Camera:
        origin = self.adapter.origin
        altitude = self.options.initial_altitude
        target = origin.projected_array
        position = target + np.array([0.0, -CameraConfig.SOUTH_OFFSET_FACTOR * altitude, altitude])
        return Camera(
            position=self._axis.enu_to_scene(position),
            target=self._axis.enu_to_scene(target),
            fov_deg=CameraConfig.MAP_FOV_DEG,
            near=CameraConfig.MAP_NEAR_M,
            far=CameraConfig.MAP_FAR_M,
            up=self._axis.up_vector,
        )

    def _build_scene(self) -> None:
        self._scene.add(self._content_root)

    def _on_stop(self) -> None:
        self._hover_throttle.reset()

    def _on_dispose(self) -> None:
        self._deck = None
        self._layers.clear()

    # =========================================================================
    # LAYERS
    # =========================================================================

    @property
    def layers(self) -> list[LayerSpec]:
        return list(self._layers.values())

    def add_layer(self, spec: LayerSpec) -> None:
        self._require_usable("add layers")
        if spec.name in self._layers:
            raise ConfigurationError(f"Layer '{spec.name}' already exists")
        self._layers[spec.name] = spec
        self.notify_change()

    def remove_layer(self, name: str) -> bool:
        self._require_usable("remove layers")
        removed = self._layers.pop(name, None) is not None
        if removed:
            self.notify_change()
        return removed

    # =========================================================================
    # COORDINATES
    # =========================================================================

    def geographic_to_scene(self, point: GeographicPoint) -> np.ndarray:
        return self._axis.enu_to_scene(self.adapter.geographic_to_projected(point).as_array())

    def scene_to_geographic(self, xyz: np.ndarray) -> GeographicPoint:
        return self.adapter.projected_to_geographic(self.scene_to_projected(xyz))

    def projected_to_scene(self, point: ProjectedPoint) -> np.ndarray:
        return self._axis.enu_to_scene(point.as_array())

    def scene_to_projected(self, xyz: np.ndarray) -> ProjectedPoint:
        x, y, z = (float(v) for v in self._axis.scene_to_enu(xyz))
        return ProjectedPoint(x=x, y=y, z=z, reliable=all(math.isfinite(v) for v in (x, y, z)))

    def update_origin(self, origin: OriginFrame | None = None) -> None:
        """Move wrappers to the new origin; wrapped content keeps its world position."""
        self._require_usable("update the origin")
        origin = origin or self.adapter.origin
        self._frame_origin = origin
        for wrapper in self._wrappers():
            wrapper.update_origin(origin)
        self.notify_change()
        logger.info(f"map: {len(self._wrappers())} wrapper(s) moved to origin generation {origin.generation}")

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def fly_to(
        self,
        point: GeographicPoint,
        duration_s: float | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        """Animate to look at ``point`` keeping the current viewing offset."""
        self._require_usable("fly_to")
        camera = self.camera
        target = self.geographic_to_scene(point)
        offset = camera.position - camera.target
        duration = AnimationConfig.FLY_TO_DURATION_S if duration_s is None else duration_s
        assert self._animator is not None
        self._animator.animate_to(target + offset, target, duration, on_complete)
        self.notify_change()

    def fit_to_extent(self, extent: Extent, duration_s: float | None = None) -> None:
        """Center on ``extent`` at an altitude where it fills the vertical field of view."""
        self._require_usable("fit_to_extent")
        assert self._normalizer is not None and self._animator is not None
        normalized = self._normalizer.normalize(extent)
        altitude = self.altitude_for_extent(normalized)
        cx, cy = normalized.center
        ground = self.adapter.origin.geographic.height
        target = np.array([cx, cy, ground])
        position = np.array([cx, cy - CameraConfig.SOUTH_OFFSET_FACTOR * altitude, ground + altitude])
        duration = AnimationConfig.FIT_EXTENT_DURATION_S if duration_s is None else duration_s
        self._animator.animate_to(self._axis.enu_to_scene(position), self._axis.enu_to_scene(target), duration)
        self.notify_change()

    def altitude_for_extent(self, extent: Extent) -> float:
        """max(width, height) / (2 tan(fov / 2)) with FIT_EXTENT_MARGIN."""
        fov = math.radians(self.camera.fov_deg)
        return max(extent.width, extent.height) / (2 * math.tan(fov / 2)) * AnimationConfig.FIT_EXTENT_MARGIN

    # =========================================================================
    # INPUT
    # =========================================================================

    def _accept_input(self, raw: RawPointerInput) -> bool:
        return self._hover_throttle.accept(raw)

    def _pick(self, raw: RawPointerInput) -> PickHit:
        """Resolve a deck.gl event into a node hit and a scene point."""
        event = raw.payload
        picked = event.get("object")
        if picked is None and event.get("id") is not None:
            picked = {k: v for k, v in event.items() if k not in _EVENT_KEYS}

        node = self._find_node(str(picked["id"])) if picked and picked.get("id") is not None else None

        point: np.ndarray | None = None
        coordinate = event.get("coordinate")
        if isinstance(coordinate, (list, tuple)) and len(coordinate) >= 2:
            height = float(coordinate[2]) if len(coordinate) >= 3 else 0.0
            point = self.geographic_to_scene(
                GeographicPoint(lat=float(coordinate[1]), lon=float(coordinate[0]), height=height)
            )
        elif node is not None:
            point = node.world_position

        distance = float(np.linalg.norm(point - self.camera.position)) if point is not None else None
        return PickHit(handle=node, point=point, distance=distance)

    def _find_node(self, node_id: str) -> SceneNode | None:
        for node in self._content_root.traverse():
            if node.uuid == node_id:
                return node
        return None

    # =========================================================================
    # RENDERING
    # =========================================================================

    def _render_frame(self) -> tuple[int, int]:
        assert self._pdk is not None
        pdk = self._pdk
        rasters, deck_layers = self._build_layers()
        markers = self._marker_data()

        layers = [pdk.Layer(d.layer_type, id=d.layer_id, **self._deck_props(d)) for d in deck_layers]
        layers.append(
            pdk.Layer(
                "ScatterplotLayer",
                markers,
                id="content",
                get_position="position",
                get_radius="radius",
                get_fill_color="color",
                get_line_color=MapConfig.MARKER_LINE_COLOR,
                stroked=True,
                line_width_min_pixels=1,
                pickable=True,
                auto_highlight=True,
                highlight_color=MapConfig.HIGHLIGHT_COLOR,
            )
        )
        self._deck = pdk.Deck(
            map_style=self._map_style(rasters),
            map_provider=MapConfig.MAP_PROVIDER,
            initial_view_state=self._view_state(),
            layers=layers,
            tooltip={"text": "{name}"},
            parameters={"pickingRadius": PointerConfig.PICKING_RADIUS_PX},
        )
        return len(markers), len(layers) + len(rasters)

    def _deck_props(self, descriptor: DeckLayerDescriptor) -> dict:
        if self.options.lighting:
            return descriptor.props
        # deck.gl renders unlit meshes when material is false
        return {**descriptor.props, "material": False}

    def _build_layers(self) -> tuple[list[RasterStyleSource], list[DeckLayerDescriptor]]:
        assert self._normalizer is not None and self._extent is not None
        rasters: list[RasterStyleSource] = []
        deck_layers: list[DeckLayerDescriptor] = []
        for spec in self._layers.values():
            if not spec.visible:
                continue
            clip = self._extent if spec.extent is None else self._normalizer.intersection(self._extent, spec.extent)
            if clip is None:
                logger.warning(f"map: layer '{spec.name}' lies outside the map extent, skipped")
                continue
            context = LayerBuildContext(
                adapter=self.adapter,
                clip_extent=clip,
                clip_bounds=self._normalizer.to_geographic(clip).bounds,
            )
            try:
                built = self.runtime.layer_builders.build(spec, context)
            except Exception:
                logger.exception(f"map: building layer '{spec.name}' failed, layer skipped")
                continue
            for item in built:
                if isinstance(item, RasterStyleSource):
                    rasters.append(item)
                else:
                    deck_layers.append(item)
        return rasters, deck_layers

    def _map_style(self, rasters: list[RasterStyleSource]) -> dict[str, Any]:
        """Mapbox GL style dict: background plus raster sources."""
        background = self.options.background_color or MapConfig.BACKGROUND_COLOR
        style: dict[str, Any] = {
            "version": 8,
            "sources": {},
            "layers": [{"id": "background", "type": "background", "paint": {"background-color": background}}],
        }
        for raster in rasters:
            style["sources"][raster.source_id] = raster.style_source()
            style["layers"].append(raster.style_layer())
        return style

    def _marker_data(self) -> list[dict[str, Any]]:
        data = []
        for node in self._renderable_nodes():
            geographic = self.scene_to_geographic(node.world_position)
            if not geographic.reliable:
                continue
            data.append(
                {
                    "id": node.uuid,
                    "name": node.name or node.uuid[:8],
                    "position": [geographic.lon, geographic.lat, geographic.height],
                    "radius": node.pick_radius or MapConfig.MARKER_RADIUS_M,
                    "color": node.user_data.get("color", MapConfig.MARKER_COLOR),
                }
            )
        return data

    def _view_state(self) -> Any:
        """pdk.ViewState derived from the camera pose."""
        assert self._pdk is not None
        camera = self.camera
        target = self.scene_to_geographic(camera.target)
        east, north, up = self._axis.scene_to_enu(camera.position - camera.target)
        horizontal = math.hypot(east, north)
        distance = max(math.sqrt(horizontal * horizontal + up * up), 1e-6)
        pitch = min(math.degrees(math.atan2(horizontal, max(up, 1e-6))), MapConfig.MAX_PITCH_DEG)
        bearing = math.degrees(math.atan2(-east, -north)) % 360 if horizontal > 1e-9 else 0.0

        meters_per_pixel = 2 * distance * math.tan(math.radians(camera.fov_deg) / 2) / MapConfig.VIEWPORT_HEIGHT_PX
        cos_lat = max(math.cos(math.radians(target.lat)), 1e-6)
        zoom = math.log2(MapConfig.METERS_PER_PIXEL_ZOOM0 * cos_lat / meters_per_pixel)
        zoom = min(max(zoom, MapConfig.MIN_ZOOM), MapConfig.MAX_ZOOM)

        return self._pdk.ViewState(
            latitude=target.lat,
            longitude=target.lon,
            zoom=zoom,
            pitch=pitch,
            bearing=bearing,
        )

    def to_html(self, path: str) -> str:
        """Write the last rendered deck to an HTML file."""
        if self.is_disposed:
            raise StateError("map: cannot export after dispose")
        if self._deck is None:
            raise StateError("map: nothing rendered yet, call render() while running")
        self._deck.to_html(path, open_browser=False)
        logger.info(f"map: wrote {path}")
        return path
