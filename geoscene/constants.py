"""Configuration constants for geoscene.

All tunable parameters are centralized here. Presenters and the
coordinate adapter read their defaults from these classes, and
PresenterOptions only overrides what a caller passes explicitly.

Classes:
    EllipsoidConfig: WGS84 ellipsoid parameters
    GeodesyConfig: Geodetic inversion tolerances and polar limit
    AxisConfig: Up-axis conventions of the scene frames
    AdapterConfig: Reference-system defaults and distortion thresholds
    CameraConfig: Camera defaults for both presenter families
    AnimationConfig: Fly-to and fit-to-extent timing
    PointerConfig: Picking and hover throttling
    MapConfig: Map presenter (pydeck) defaults and basemap tiles
    ImmersiveConfig: Immersive session defaults per mode
    ExtentConfig: Geographic extent detection ranges
"""

import math


class EllipsoidConfig:
    """WGS84 reference ellipsoid."""

    WGS84_A = 6378137.0  # Semi-major axis (m)
    WGS84_F = 1 / 298.257223563  # Flattening
    WGS84_E2 = WGS84_F * (2 - WGS84_F)  # First eccentricity squared (~6.69437999014e-3)
    WGS84_B = WGS84_A * (1 - WGS84_F)  # Semi-minor axis (m)


class GeodesyConfig:
    """ECEF -> geodetic inversion parameters."""

    # Beyond this latitude results are flagged unreliable (sub-mm accuracy is only guaranteed inside)
    MAX_RELIABLE_LATITUDE_DEG = 89.9
    # Height range with guaranteed accuracy
    MAX_RELIABLE_ABS_HEIGHT_M = 50_000.0
    # Fixed-point refinements after the Bowring estimate (2 already reach ~1e-12 rad)
    REFINEMENT_ITERATIONS = 2


class AxisConfig:
    """Scene-frame axis conventions.

    Tangent-plane scenes (immersive) are Y-up: x=east, y=up, z=-north.
    Projected scenes (map) default to Z-up: x=easting, y=northing, z=up.
    """

    TANGENT_UP_AXIS = "y"
    MAP_UP_AXIS = "z"


class AdapterConfig:
    """Coordinate adapter defaults."""

    GEOGRAPHIC_CRS = "EPSG:4326"

    # The ENU <-> projected shortcut is a pure translation. Warn when the CRS
    # is rotated or scaled beyond these values at the origin.
    MAX_MERIDIAN_CONVERGENCE_DEG = 1.0
    MAX_SCALE_DISTORTION = 0.001  # |k - 1|


class CameraConfig:
    """Camera defaults."""

    # Immersive presenter
    IMMERSIVE_FOV_DEG = 50.0
    IMMERSIVE_NEAR_M = 0.1
    IMMERSIVE_FAR_M = 200.0
    EYE_HEIGHT_M = 1.7

    # Map presenter
    MAP_FOV_DEG = 45.0
    MAP_NEAR_M = 1.0
    MAP_FAR_M = 1.0e7
    INITIAL_ALTITUDE_M = 500.0
    # Camera sits south of its target by this fraction of the altitude (tilted view)
    SOUTH_OFFSET_FACTOR = 0.2


class AnimationConfig:
    """Camera animation timing (seconds)."""

    FLY_TO_DURATION_S = 1.0
    FIT_EXTENT_DURATION_S = 0.5
    # Extra room around an extent when fitting the camera
    FIT_EXTENT_MARGIN = 1.2


class PointerConfig:
    """Picking and pointer event parameters."""

    HOVER_THROTTLE_S = 0.05  # At most one hover pick per 50 ms per device
    PICKING_RADIUS_PX = 2  # deck.gl pickingRadius for the map presenter


class MapConfig:
    """Map presenter (pydeck) defaults."""

    BACKGROUND_COLOR = "#87CEEB"
    ENABLE_TERRAIN = False
    MAP_PROVIDER = "mapbox"  # Required when map_style is a style dict

    # Viewport height used to turn camera altitude into a web-mercator zoom level
    VIEWPORT_HEIGHT_PX = 600
    METERS_PER_PIXEL_ZOOM0 = 156543.03392  # At the equator, 256 px tiles
    MIN_ZOOM = 0.0
    MAX_ZOOM = 22.0
    MAX_PITCH_DEG = 85.0

    # Content markers (ScatterplotLayer)
    MARKER_RADIUS_M = 5.0
    MARKER_COLOR = [30, 144, 255, 220]
    MARKER_LINE_COLOR = [255, 255, 255, 255]
    HIGHLIGHT_COLOR = [255, 255, 0, 180]

    # OpenTopoMap raster basemap (free, no API key)
    BASEMAP_TILES = [
        "https://a.tile.opentopomap.org/{z}/{x}/{y}.png",
        "https://b.tile.opentopomap.org/{z}/{x}/{y}.png",
        "https://c.tile.opentopomap.org/{z}/{x}/{y}.png",
    ]
    BASEMAP_ATTRIBUTION = (
        '© <a href="https://www.opentopomap.org/">OpenTopoMap</a> '
        '(<a href="https://creativecommons.org/licenses/by-sa/3.0/">CC-BY-SA</a>)'
    )
    BASEMAP_MAX_ZOOM = 17
    TILE_SIZE_PX = 256

    # AWS Terrarium elevation tiles for the terrain layer
    TERRAIN_TILES = "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"
    TERRAIN_DECODER = {
        "rScaler": 256,
        "gScaler": 1,
        "bScaler": 1 / 256,
        "offset": -32768,
    }
    TERRAIN_MESH_MAX_ERROR = 1.0


class ImmersiveConfig:
    """Immersive session defaults."""

    SESSION_VR = "immersive-vr"
    SESSION_AR = "immersive-ar"
    SESSION_INLINE = "inline"

    REFERENCE_SPACE = "local-floor"
    INLINE_REFERENCE_SPACE = "viewer"
    AR_REQUIRED_FEATURES = ("local-floor",)
    AR_OPTIONAL_FEATURES = ("hand-tracking", "anchors", "hit-test")
    VR_OPTIONAL_FEATURES = ("hand-tracking",)


class ExtentConfig:
    """Bounds used to recognize extents given in geographic degrees."""

    LON_RANGE = (-180.0, 180.0)
    LAT_RANGE = (-90.0, 90.0)
    # transform_bounds edge densification
    DENSIFY_POINTS = 21


# Sanity checks
assert math.isclose(EllipsoidConfig.WGS84_E2, 6.69437999014e-3, rel_tol=1e-9), "WGS84 e² mismatch"
assert AxisConfig.MAP_UP_AXIS in ("y", "z"), "MAP_UP_AXIS must be 'y' or 'z'"
assert 0 < GeodesyConfig.MAX_RELIABLE_LATITUDE_DEG < 90, "Polar limit must be inside (0, 90)"
assert AnimationConfig.FIT_EXTENT_MARGIN >= 1.0, "Fit margin must not shrink the extent"
