"""Presenter contract shared by the map and immersive presenters.

A presenter owns a scene, a camera and a render back-end. Entities hand it
display handles (SceneNode); the presenter places them in its scene,
wrapping content authored in a foreign frame (see offset_wrapper.py).

Frame order driven by World.tick():
    pre_update(delta)  - drain queued device input, pick against last frame's scene
    (world systems)
    post_update(delta) - advance camera animation
    render()           - draw (on demand or continuously, per presenter)

Errors:
    Lifecycle misuse raises StateError (see lifecycle.py). Picking, hook and
    render failures are logged and the affected frame step is skipped.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

from geoscene.constants import AxisConfig
from geoscene.core.axes import AxisConvention
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.errors import StateError
from geoscene.model.extent import Extent
from geoscene.model.options import PresenterOptions
from geoscene.model.origin import OriginFrame
from geoscene.model.points import GeographicPoint, ProjectedPoint
from geoscene.presenter.camera import Camera, CameraAnimator
from geoscene.presenter.content import ContentBinding, ContentFrame
from geoscene.presenter.hooks import PresenterHooks, RenderStats
from geoscene.presenter.lifecycle import PresenterLifecycle, PresenterState
from geoscene.presenter.offset_wrapper import OffsetWrapper
from geoscene.presenter.pointer import (
    PickHit,
    PointerCallback,
    PointerDispatcher,
    PointerEventType,
    RawPointerInput,
)
from geoscene.scene.node import SceneNode

if TYPE_CHECKING:
    from geoscene.runtime import GeoRuntime

logger = logging.getLogger(__name__)

TANGENT_AXIS = AxisConvention(AxisConfig.TANGENT_UP_AXIS)

_USABLE_STATES = (PresenterState.READY, PresenterState.RUNNING, PresenterState.PAUSED)


@dataclass
class _Attachment:
    binding: ContentBinding
    wrapper: OffsetWrapper | None


class Presenter(ABC):
    """Abstract presenter.

    Subclasses set ``name`` and ``content_frame`` and implement the scene,
    picking, coordinate and render hooks.
    """

    name: ClassVar[str] = "presenter"
    content_frame: ClassVar[ContentFrame]

    def __init__(
        self,
        adapter: CoordinateAdapter,
        options: PresenterOptions,
        runtime: GeoRuntime,
        hooks: PresenterHooks | None = None,
    ) -> None:
        self.adapter = adapter
        self.options = options
        self.runtime = runtime
        self.hooks = hooks or PresenterHooks()
        self.lifecycle = PresenterLifecycle(self.name, self.hooks)
        self.pointer = PointerDispatcher()
        self._input_queue: deque[RawPointerInput] = deque()
        self._attachments: dict[str, _Attachment] = {}
        self._scene = SceneNode(name=f"{self.name}:scene", renderable=False)
        self._content_root = SceneNode(name=f"{self.name}:content", renderable=False)
        self._camera: Camera | None = None
        self._animator: CameraAnimator | None = None
        self._frame_origin: OriginFrame | None = None
        self._needs_render = True
        self._frame = 0

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def state(self) -> PresenterState:
        return self.lifecycle.presenter_state

    @property
    def is_disposed(self) -> bool:
        return self.lifecycle.is_disposed

    @property
    def is_running(self) -> bool:
        return self.lifecycle.is_running

    async def initialize(self) -> None:
        """Load the back-end and build the scene.

        Options are validated before anything is awaited. If dispose() is
        called while initialization is pending, the remaining setup is skipped.

        Raises:
            StateError: If not UNINITIALIZED.
            ConfigurationError: On missing/invalid options.
            ExternalResourceError: If the back-end is not available.
        """
        self.lifecycle.require(PresenterState.UNINITIALIZED, action="initialize")
        self._validate_options()
        if not self.adapter.is_initialized:
            await self.adapter.initialize()
        await self._load_backend()
        if self.is_disposed:
            logger.info(f"{self.name}: disposed during initialization, skipping scene setup")
            return
        self._frame_origin = self.adapter.origin
        self._camera = self._create_camera()
        self._animator = CameraAnimator(self._camera)
        self._build_scene()
        self.lifecycle.fire("initialize")

    def start(self) -> None:
        self.lifecycle.fire("start")
        self._needs_render = True

    def stop(self) -> None:
        self.lifecycle.fire("stop")
        if self._animator is not None:
            self._animator.cancel()
        self._input_queue.clear()
        self._on_stop()

    def pause(self) -> None:
        self.lifecycle.fire("pause")

    def resume(self) -> None:
        self.lifecycle.fire("resume")
        self._needs_render = True

    def dispose(self) -> None:
        """Tear down. Attached handles are detached, never destroyed."""
        self.lifecycle.fire("dispose")
        if self._animator is not None:
            self._animator.dispose()
        self._input_queue.clear()
        if self._attachments:
            released = self._release_all()
            logger.info(f"{self.name}: released {len(released)} display handle(s) on dispose")
        self.pointer.clear()
        self._on_dispose()

    async def establish_session(self) -> None:
        """Presenter-specific device session setup, run before start()."""
        return None

    # =========================================================================
    # SURFACE
    # =========================================================================

    @property
    def camera(self) -> Camera:
        self._require_usable("access the camera")
        assert self._camera is not None
        return self._camera

    @property
    def scene(self) -> SceneNode:
        return self._scene

    @property
    @abstractmethod
    def scene_axis(self) -> AxisConvention:
        """Axis convention of this presenter's scene coordinates."""

    @property
    @abstractmethod
    def renderer(self) -> Any:
        """Back-end renderer object."""

    @property
    @abstractmethod
    def render_surface(self) -> Any:
        """Latest rendered output (deck, XR session, ...)."""

    @property
    def frame_count(self) -> int:
        return self._frame

    # =========================================================================
    # CONTENT
    # =========================================================================

    def get_content_root(self) -> SceneNode:
        self._require_usable("get the content root")
        return self._content_root

    def add_object(self, handle: SceneNode, native_frame: bool = False) -> None:
        """Attach a display handle.

        Args:
            handle: The entity's display handle
            native_frame: True if the handle's coordinates are already in this
                presenter's native frame; False for tangent-plane content
                relative to the current origin.
        """
        self._require_usable("add objects")
        if native_frame:
            origin = self._frame_origin if self.content_frame is ContentFrame.TANGENT_PLANE else None
            binding = ContentBinding(handle, self.content_frame, self.scene_axis, origin)
        else:
            binding = ContentBinding(handle, ContentFrame.TANGENT_PLANE, TANGENT_AXIS, self.adapter.origin)
        self.attach_content(binding)

    def attach_content(self, binding: ContentBinding) -> None:
        """Attach a handle with an explicit frame (used by the mode-switch coordinator)."""
        self._require_usable("attach content")
        assert self._frame_origin is not None
        handle = binding.handle
        if handle.uuid in self._attachments:
            raise StateError(f"{handle!r} is already attached to {self.name}")
        if handle.parent is not None:
            raise StateError(f"{handle!r} is attached elsewhere; detach it first")
        wrapper: OffsetWrapper | None = None
        if OffsetWrapper.needed(binding, self.content_frame, self.scene_axis, self._frame_origin):
            wrapper = OffsetWrapper(binding, self.content_frame, self.scene_axis, self._frame_origin)
            self._content_root.add(wrapper.wrapper)
        else:
            self._content_root.add(handle)
        self._attachments[handle.uuid] = _Attachment(binding, wrapper)
        self.notify_change()

    def remove_object(self, handle: SceneNode) -> bool:
        """Detach a handle. Returns False if it was not attached here."""
        self._require_not_disposed("remove objects")
        attachment = self._attachments.pop(handle.uuid, None)
        if attachment is None:
            return False
        self._release(attachment)
        self.notify_change()
        return True

    def detach_all(self) -> list[ContentBinding]:
        """Drain all handles without destroying them, in attachment order."""
        self._require_usable("detach content")
        bindings = self._release_all()
        self.notify_change()
        return bindings

    @property
    def attached_handles(self) -> list[SceneNode]:
        return [a.binding.handle for a in self._attachments.values()]

    def owning_handle(self, node: SceneNode) -> SceneNode | None:
        """The attached handle that is ``node`` or one of its ancestors."""
        current: SceneNode | None = node
        while current is not None:
            if current.uuid in self._attachments:
                return current
            current = current.parent
        return None

    def notify_change(self) -> None:
        """Request a redraw on the next render() (on-demand presenters)."""
        self._needs_render = True

    # =========================================================================
    # POINTER INPUT
    # =========================================================================

    def on_pointer_event(self, event_type: PointerEventType, callback: PointerCallback, emit_on_miss: bool = False) -> None:
        self._require_not_disposed("subscribe to pointer events")
        self.pointer.on(event_type, callback, emit_on_miss=emit_on_miss)

    def off_pointer_event(self, event_type: PointerEventType, callback: PointerCallback) -> bool:
        return self.pointer.off(event_type, callback)

    def enqueue_input(self, raw: RawPointerInput) -> None:
        """Queue device input for the next pre_update()."""
        if self.is_disposed:
            logger.debug(f"{self.name}: dropping {raw.type.value} input after dispose")
            return
        self._input_queue.append(raw)

    # =========================================================================
    # FRAME
    # =========================================================================

    def pre_update(self, delta_s: float) -> None:
        self._require_not_disposed("update")
        if not self.is_running:
            return
        while self._input_queue:
            raw = self._input_queue.popleft()
            if not self._accept_input(raw):
                continue
            try:
                hit = self._pick(raw)
                if hit.handle is not None:
                    hit = PickHit(handle=self.owning_handle(hit.handle), point=hit.point, distance=hit.distance)
                geographic = self.scene_to_geographic(hit.point) if hit.point is not None else None
            except Exception:
                logger.exception(f"{self.name}: picking failed for {raw.type.value}, input skipped")
                continue
            self.pointer.dispatch(raw, hit, geographic)

    def post_update(self, delta_s: float) -> None:
        self._require_not_disposed("update")
        if not self.is_running or self._animator is None:
            return
        if self._animator.is_animating:
            self._animator.update(delta_s)
            self._needs_render = True

    def render(self) -> bool:
        """Draw a frame if needed. Returns True if a frame was drawn."""
        self._require_not_disposed("render")
        if not self.is_running or not self._should_render():
            return False
        started = time.perf_counter()
        try:
            node_count, layer_count = self._render_frame()
        except Exception:
            logger.exception(f"{self.name}: render failed, frame skipped")
            return False
        self._needs_render = False
        self._frame += 1
        stats = RenderStats(
            presenter=self.name,
            frame=self._frame,
            node_count=node_count,
            layer_count=layer_count,
            duration_s=time.perf_counter() - started,
        )
        try:
            self.hooks.on_frame_rendered(stats)
        except Exception:
            logger.exception(f"{self.name}: presenter hook on_frame_rendered failed")
        return True

    # =========================================================================
    # COORDINATES & NAVIGATION
    # =========================================================================

    @abstractmethod
    def geographic_to_scene(self, point: GeographicPoint) -> np.ndarray:
        """Geographic point -> scene coordinates."""

    @abstractmethod
    def scene_to_geographic(self, xyz: np.ndarray) -> GeographicPoint:
        """Scene coordinates -> geographic point."""

    @abstractmethod
    def projected_to_scene(self, point: ProjectedPoint) -> np.ndarray:
        """Projected CRS point -> scene coordinates."""

    @abstractmethod
    def scene_to_projected(self, xyz: np.ndarray) -> ProjectedPoint:
        """Scene coordinates -> projected CRS point."""

    @abstractmethod
    def fly_to(
        self,
        point: GeographicPoint,
        duration_s: float | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        """Animate the camera to look at ``point``."""

    @abstractmethod
    def fit_to_extent(self, extent: Extent, duration_s: float | None = None) -> None:
        """Animate the camera so ``extent`` fills the view."""

    @abstractmethod
    def update_origin(self, origin: OriginFrame | None = None) -> None:
        """React to an origin rebase; displayed content keeps its geographic position."""

    def get_camera_position(self) -> GeographicPoint:
        return self.scene_to_geographic(self.camera.position)

    # =========================================================================
    # SUBCLASS HOOKS
    # =========================================================================

    def _validate_options(self) -> None:
        """Raise ConfigurationError for missing/invalid options."""

    async def _load_backend(self) -> None:
        """Resolve the render back-end (may await)."""

    @abstractmethod
    def _create_camera(self) -> Camera:
        """Initial camera."""

    @abstractmethod
    def _build_scene(self) -> None:
        """Assemble scene nodes (content root must end up inside the scene)."""

    @abstractmethod
    def _pick(self, raw: RawPointerInput) -> PickHit:
        """Nearest hit for one input."""

    @abstractmethod
    def _render_frame(self) -> tuple[int, int]:
        """Draw; returns (node_count, layer_count)."""

    def _should_render(self) -> bool:
        return self._needs_render

    def _accept_input(self, raw: RawPointerInput) -> bool:
        return True

    def _on_stop(self) -> None:
        pass

    def _on_dispose(self) -> None:
        pass

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _renderable_nodes(self) -> list[SceneNode]:
        return [node for node in self._content_root.traverse_visible() if node.renderable]

    def _release(self, attachment: _Attachment) -> None:
        if attachment.wrapper is not None:
            attachment.wrapper.unwrap()
        else:
            attachment.binding.handle.remove_from_parent()

    def _release_all(self) -> list[ContentBinding]:
        bindings = []
        for attachment in self._attachments.values():
            self._release(attachment)
            bindings.append(attachment.binding)
        self._attachments.clear()
        return bindings

    def _wrappers(self) -> list[OffsetWrapper]:
        return [a.wrapper for a in self._attachments.values() if a.wrapper is not None]

    def _require_usable(self, action: str) -> None:
        self.lifecycle.require(*_USABLE_STATES, action=action)

    def _require_not_disposed(self, action: str) -> None:
        if self.is_disposed:
            raise StateError(f"{self.name}: cannot {action} after dispose")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self.state.value}, handles={len(self._attachments)})"
