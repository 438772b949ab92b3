"""World - entity registry and frame loop around the active presenter.

The world maps entity ids to display handles (SceneNode) and drives one
frame per tick():

    presenter.pre_update(delta)   - queued input -> picks -> pointer events
    systems(delta)                - caller-supplied per-frame callbacks
    presenter.post_update(delta)  - camera animation
    presenter.render()

Pointer events are forwarded to entity listeners as EntityEvents carrying
the entity id that owns the picked node (None on a miss).

The active presenter is owned by the ModeSwitchCoordinator. While no
presenter is active (before the first switch or during one), entities
added to the world are kept as pending and attached once a presenter is
available.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.errors import StateError
from geoscene.model.origin import OriginFrame
from geoscene.presenter.base import Presenter
from geoscene.presenter.lifecycle import PresenterState
from geoscene.presenter.pointer import PointerEvent, PointerEventType
from geoscene.scene.node import SceneNode

logger = logging.getLogger(__name__)

System = Callable[[float], None]


@dataclass(frozen=True)
class EntityEvent:
    """A pointer event resolved to the entity it hit.

    Attributes:
        entity_id: Owning entity, None if nothing (or no entity) was hit
        event: The normalized pointer event
    """

    entity_id: str | None
    event: PointerEvent

    @property
    def type(self) -> PointerEventType:
        return self.event.type


EntityListener = Callable[[EntityEvent], None]


class World:
    """Entity id -> display handle registry plus the per-frame loop.

    Example:
        world = World(adapter)
        world.add_entity("summit", SceneNode(name="summit", pick_radius=2.0))
        world.on_entity_event(lambda e: print(e.entity_id, e.type))
        world.tick(1 / 60)
    """

    def __init__(self, adapter: CoordinateAdapter) -> None:
        self.adapter = adapter
        self.presenter: Presenter | None = None
        self._entities: dict[str, SceneNode] = {}
        self._handle_to_entity: dict[str, str] = {}
        self._pending: list[tuple[SceneNode, bool]] = []
        self._removed: list[SceneNode] = []
        self._systems: list[System] = []
        self._listeners: list[EntityListener] = []
        self._in_frame = False

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def add_entity(self, entity_id: str, handle: SceneNode, native_frame: bool = False) -> None:
        """Register an entity and attach its display handle to the active presenter.

        Args:
            entity_id: Unique entity id
            handle: The entity's display handle
            native_frame: True if the handle is authored in the active presenter's
                native frame, False for tangent-plane content around the current origin

        Raises:
            ValueError: If the id or the handle is already registered.
        """
        if entity_id in self._entities:
            raise ValueError(f"Entity '{entity_id}' already exists")
        if handle.uuid in self._handle_to_entity:
            raise ValueError(f"{handle!r} already belongs to entity '{self._handle_to_entity[handle.uuid]}'")
        if self._presenter_usable():
            assert self.presenter is not None
            self.presenter.add_object(handle, native_frame=native_frame)
        else:
            self._pending.append((handle, native_frame))
            logger.debug(f"Entity '{entity_id}' pending until a presenter is active")
        self._entities[entity_id] = handle
        self._handle_to_entity[handle.uuid] = entity_id

    def remove_entity(self, entity_id: str) -> SceneNode:
        """Unregister an entity and detach its handle. Returns the handle.

        Raises:
            KeyError: If the entity does not exist.
        """
        handle = self._entities.pop(entity_id)
        del self._handle_to_entity[handle.uuid]
        self._pending = [(h, native) for h, native in self._pending if h is not handle]
        if self.presenter is None:
            # may still be carried by a mode switch in progress
            self._removed.append(handle)
        elif not self.presenter.is_disposed:
            self.presenter.remove_object(handle)
        return handle

    def handle_for(self, entity_id: str) -> SceneNode | None:
        return self._entities.get(entity_id)

    def entity_for(self, node: SceneNode | None) -> str | None:
        """Entity owning ``node`` (the node itself or one of its ancestors)."""
        current = node
        while current is not None:
            entity_id = self._handle_to_entity.get(current.uuid)
            if entity_id is not None:
                return entity_id
            current = current.parent
        return None

    @property
    def entity_ids(self) -> list[str]:
        return list(self._entities)

    def entity_handles(self) -> dict[str, SceneNode]:
        """Snapshot of the entity id -> handle mapping."""
        return dict(self._entities)

    def take_unattached(self) -> list[tuple[SceneNode, bool]]:
        """Pending (handle, native_frame) pairs, cleared on return."""
        pending, self._pending = self._pending, []
        return pending

    def take_removed(self) -> list[SceneNode]:
        """Handles of entities removed while no presenter was active, cleared on return."""
        removed, self._removed = self._removed, []
        return removed

    # =========================================================================
    # SYSTEMS & EVENTS
    # =========================================================================

    def add_system(self, system: System) -> None:
        self._systems.append(system)

    def on_entity_event(self, listener: EntityListener) -> None:
        self._listeners.append(listener)

    def bind_input(self, presenter: Presenter) -> None:
        """Forward every pointer event type of ``presenter`` to entity listeners (idempotent)."""
        for event_type in PointerEventType:
            presenter.off_pointer_event(event_type, self._forward)
            presenter.on_pointer_event(event_type, self._forward)

    def _forward(self, event: PointerEvent) -> None:
        entity_event = EntityEvent(entity_id=self.entity_for(event.handle), event=event)
        for listener in list(self._listeners):
            try:
                listener(entity_event)
            except Exception:
                logger.exception(f"Entity listener failed for '{event.type.value}'")

    # =========================================================================
    # FRAME LOOP
    # =========================================================================

    @property
    def in_frame(self) -> bool:
        return self._in_frame

    def tick(self, delta_s: float) -> bool:
        """Run one frame. Returns True if the presenter drew.

        Raises:
            StateError: If called from inside a frame.
        """
        if self._in_frame:
            raise StateError("tick() called re-entrantly from inside a frame")
        presenter = self.presenter
        if presenter is None or presenter.state is not PresenterState.RUNNING:
            return False
        self._in_frame = True
        try:
            presenter.pre_update(delta_s)
            for system in list(self._systems):
                try:
                    system(delta_s)
                except Exception:
                    logger.exception(f"World system {getattr(system, '__name__', system)!r} failed")
            presenter.post_update(delta_s)
            return presenter.render()
        finally:
            self._in_frame = False

    def set_origin(self, lat: float, lon: float, height: float = 0.0) -> OriginFrame:
        """Rebase the shared tangent plane between frames.

        Raises:
            StateError: If a frame is in progress.
        """
        if self._in_frame:
            raise StateError("Origin rebase is only allowed between frames")
        origin = self.adapter.set_origin(lat, lon, height)
        if self._presenter_usable():
            assert self.presenter is not None
            self.presenter.update_origin(origin)
        return origin

    def _presenter_usable(self) -> bool:
        return self.presenter is not None and self.presenter.lifecycle.is_initialized

    def __repr__(self) -> str:
        presenter = self.presenter.name if self.presenter else None
        return f"World(entities={len(self._entities)}, presenter={presenter})"
