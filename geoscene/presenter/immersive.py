"""Immersive presenter - tangent-plane scene for headsets and inline views.

Native frame: ENU meters around the origin, Y-up (x=east, y=up, z=-north).
Content added without ``native_frame`` is tangent-plane content too, so it
is attached directly; only map-native (projected) content is wrapped.

Scene layout:
    scene
     └── rebase      exact rigid transform from the initial origin to the current one
          └── content root (frame origin = origin at initialize)

Rendering is continuous while running. Picking casts the controller ray
(payload "origin" / "direction" in scene coordinates) against node spheres.
Camera navigation (fly_to / fit_to_extent) belongs to the user's head pose
here: both log a warning and do nothing.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np

from geoscene.constants import ImmersiveConfig
from geoscene.core.axes import AxisConvention
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.core.geodesy import Geodesy
from geoscene.errors import ExternalResourceError, StateError
from geoscene.model.extent import Extent
from geoscene.model.options import PresenterOptions
from geoscene.model.origin import OriginFrame
from geoscene.model.points import GeographicPoint, ProjectedPoint, TangentPlaneVector
from geoscene.presenter.base import TANGENT_AXIS, Presenter
from geoscene.presenter.camera import Camera
from geoscene.presenter.content import ContentFrame
from geoscene.presenter.hooks import PresenterHooks
from geoscene.presenter.pointer import PickHit, RawPointerInput
from geoscene.presenter.session import ImmersiveHost, ImmersiveSession, InlineHost, SessionRequest
from geoscene.scene.node import SceneNode

if TYPE_CHECKING:
    from geoscene.runtime import GeoRuntime

logger = logging.getLogger(__name__)


class ImmersivePresenter(Presenter):
    """Tangent-plane presenter backed by an ImmersiveHost session.

    Example:
        presenter = ImmersivePresenter(adapter, options, runtime, host=my_host, session_mode="immersive-vr")
        await presenter.initialize()
        await presenter.establish_session()
        presenter.start()
    """

    name = "immersive"
    content_frame = ContentFrame.TANGENT_PLANE

    def __init__(
        self,
        adapter: CoordinateAdapter,
        options: PresenterOptions,
        runtime: GeoRuntime,
        host: ImmersiveHost | None = None,
        session_mode: str = ImmersiveConfig.SESSION_INLINE,
        hooks: PresenterHooks | None = None,
    ) -> None:
        super().__init__(adapter, options, runtime, hooks)
        self.host = host or InlineHost()
        self.session_mode = session_mode
        self._session: ImmersiveSession | None = None
        self._rebase = SceneNode(name="immersive:rebase", renderable=False)

    # =========================================================================
    # SURFACE
    # =========================================================================

    @property
    def scene_axis(self) -> AxisConvention:
        return TANGENT_AXIS

    @property
    def renderer(self) -> ImmersiveHost:
        return self.host

    @property
    def render_surface(self) -> ImmersiveSession | None:
        return self._session

    @property
    def session(self) -> ImmersiveSession | None:
        return self._session

    # =========================================================================
    # LIFECYCLE HOOKS
    # =========================================================================

    async def _load_backend(self) -> None:
        if not await self.host.is_session_supported(self.session_mode):
            raise ExternalResourceError(f"'{self.session_mode}' sessions are not supported on this device")

    def _create_camera(self) -> Camera:
        eye = self.options.eye_height
        return Camera(
            position=np.array([0.0, eye, 0.0]),
            target=np.array([0.0, eye, -1.0]),
            fov_deg=self.options.fov,
            near=self.options.near,
            far=self.options.far,
            up=TANGENT_AXIS.up_vector,
        )

    def _build_scene(self) -> None:
        self._scene.add(self._rebase)
        self._rebase.add(self._content_root)
        self._rebase.set_transform(np.zeros(3), np.eye(3))

    async def establish_session(self) -> None:
        """Request the device session for this presenter's mode."""
        self._require_usable("request a session")
        if self._session is not None and self._session.active:
            return
        request = self._session_request()
        session = await self.host.request_session(request)
        if self.is_disposed:
            logger.info("immersive: disposed while the session request was pending, ending it")
            session.end()
            return
        self._session = session
        logger.info(f"immersive: {request.mode} session established ({request.reference_space})")

    def _session_request(self) -> SessionRequest:
        if self.session_mode == ImmersiveConfig.SESSION_AR:
            required = self.options.required_features or ImmersiveConfig.AR_REQUIRED_FEATURES
            optional = self.options.optional_features or ImmersiveConfig.AR_OPTIONAL_FEATURES
            space = self.options.reference_space
        elif self.session_mode == ImmersiveConfig.SESSION_VR:
            required = self.options.required_features
            optional = self.options.optional_features or ImmersiveConfig.VR_OPTIONAL_FEATURES
            space = self.options.reference_space
        else:
            required, optional = (), ()
            space = ImmersiveConfig.INLINE_REFERENCE_SPACE
        return SessionRequest(
            mode=self.session_mode,
            reference_space=space,
            required_features=tuple(required),
            optional_features=tuple(optional),
        )

    def _on_stop(self) -> None:
        self._end_session()

    def _on_dispose(self) -> None:
        self._end_session()

    def _end_session(self) -> None:
        if self._session is not None:
            self._session.end()
            self._session = None

    # =========================================================================
    # FRAME
    # =========================================================================

    def _should_render(self) -> bool:
        return True

    def _render_frame(self) -> tuple[int, int]:
        nodes = self._renderable_nodes()
        if self._session is not None:
            view = np.linalg.inv(self._view_matrix())
            self._session.submit_frame(view)
        return len(nodes), 0

    def _view_matrix(self) -> np.ndarray:
        """Camera-to-world matrix (right-handed, looking down -z)."""
        camera = self.camera
        forward = camera.direction
        right = np.cross(forward, camera.up)
        norm = np.linalg.norm(right)
        right = right / norm if norm > 0 else np.array([1.0, 0.0, 0.0])
        up = np.cross(right, forward)
        matrix = np.eye(4)
        matrix[:3, 0] = right
        matrix[:3, 1] = up
        matrix[:3, 2] = -forward
        matrix[:3, 3] = camera.position
        return matrix

    def _pick(self, raw: RawPointerInput) -> PickHit:
        """Nearest ray/sphere hit among visible nodes with a pick radius."""
        origin = raw.payload.get("origin")
        direction = raw.payload.get("direction")
        if origin is None or direction is None:
            return PickHit.miss()
        ray_origin = np.asarray(origin, dtype=float)
        ray_dir = np.asarray(direction, dtype=float)
        length = np.linalg.norm(ray_dir)
        if length == 0:
            return PickHit.miss()
        ray_dir = ray_dir / length

        best: PickHit | None = None
        for node in self._renderable_nodes():
            if node.pick_radius is None:
                continue
            distance = _ray_sphere(ray_origin, ray_dir, node.world_position, node.pick_radius)
            if distance is None or (best is not None and best.distance is not None and distance >= best.distance):
                continue
            best = PickHit(handle=node, point=ray_origin + ray_dir * distance, distance=distance)
        return best if best is not None else PickHit.miss()

    # =========================================================================
    # COORDINATES
    # =========================================================================

    def geographic_to_scene(self, point: GeographicPoint) -> np.ndarray:
        return TANGENT_AXIS.enu_to_scene(self.adapter.geographic_to_enu(point).as_array())

    def scene_to_geographic(self, xyz: np.ndarray) -> GeographicPoint:
        vector = TangentPlaneVector.from_array(TANGENT_AXIS.scene_to_enu(xyz), self.adapter.origin.generation)
        return self.adapter.enu_to_geographic(vector)

    def projected_to_scene(self, point: ProjectedPoint) -> np.ndarray:
        return TANGENT_AXIS.enu_to_scene(self.adapter.projected_to_enu(point).as_array())

    def scene_to_projected(self, xyz: np.ndarray) -> ProjectedPoint:
        vector = TangentPlaneVector.from_array(TANGENT_AXIS.scene_to_enu(xyz), self.adapter.origin.generation)
        return self.adapter.enu_to_projected(vector)

    def update_origin(self, origin: OriginFrame | None = None) -> None:
        """Re-express the content root in the new origin's tangent plane."""
        self._require_usable("update the origin")
        assert self._frame_origin is not None
        origin = origin or self.adapter.origin
        rotation, translation = Geodesy.tangent_rebase(self._frame_origin, origin)
        self._rebase.set_transform(TANGENT_AXIS.enu_to_scene(translation), TANGENT_AXIS.conjugate(rotation))
        self.notify_change()
        logger.info(f"immersive: content re-expressed for origin generation {origin.generation}")

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def fly_to(
        self,
        point: GeographicPoint,
        duration_s: float | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        if self.is_disposed:
            raise StateError("immersive: cannot fly_to after dispose")
        logger.warning("immersive: fly_to is not supported, the camera follows the headset")

    def fit_to_extent(self, extent: Extent, duration_s: float | None = None) -> None:
        if self.is_disposed:
            raise StateError("immersive: cannot fit_to_extent after dispose")
        logger.warning("immersive: fit_to_extent is not supported, the camera follows the headset")


def _ray_sphere(origin: np.ndarray, direction: np.ndarray, center: np.ndarray, radius: float) -> float | None:
    """Distance along a unit ray to the first intersection with a sphere, or None."""
    to_center = center - origin
    along = float(np.dot(to_center, direction))
    closest_sq = float(np.dot(to_center, to_center)) - along * along
    radius_sq = radius * radius
    if closest_sq > radius_sq:
        return None
    half_chord = math.sqrt(radius_sq - closest_sq)
    near, far = along - half_chord, along + half_chord
    if far < 0:
        return None
    return near if near >= 0 else far
