"""Pointer event normalization.

Presenters turn device input (controller rays, map clicks) into picks and
hand them to a PointerDispatcher, which emits one normalized vocabulary:

    select, hover, pointerdown, pointerup, pointercancel,
    pointerenter, pointerleave, wheel

Rules:
    - hover / pointerenter / pointerleave / pointercancel / wheel are emitted
      even when nothing was hit (handle None)
    - select / pointerdown / pointerup are suppressed on a null pick unless the
      subscriber registered with ``emit_on_miss=True``
    - pointerenter / pointerleave are derived from consecutive hover picks per device
    - a failing callback is logged and does not stop the other callbacks
"""

import logging
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from geoscene.constants import PointerConfig
from geoscene.model.points import GeographicPoint
from geoscene.scene.node import SceneNode

logger = logging.getLogger(__name__)


class PointerEventType(str, Enum):
    SELECT = "select"
    HOVER = "hover"
    DOWN = "pointerdown"
    UP = "pointerup"
    CANCEL = "pointercancel"
    ENTER = "pointerenter"
    LEAVE = "pointerleave"
    WHEEL = "wheel"

    @property
    def requires_hit(self) -> bool:
        """Click-like events are only delivered for an actual hit by default."""
        return self in (PointerEventType.SELECT, PointerEventType.DOWN, PointerEventType.UP)


@dataclass(frozen=True)
class PickHit:
    """Nearest intersection of a pick.

    Attributes:
        handle: Picked node (None = nothing hit)
        point: Intersection point in scene coordinates
        distance: Distance from the pick origin (scene units), None if unknown
    """

    handle: SceneNode | None
    point: np.ndarray | None = None
    distance: float | None = None

    @staticmethod
    def miss(point: np.ndarray | None = None) -> "PickHit":
        return PickHit(handle=None, point=point)


@dataclass(frozen=True)
class RawPointerInput:
    """Device input queued for the next pre_update.

    Attributes:
        type: Event type requested by the device
        device: Device id (controller, "mouse", touch id)
        timestamp: Device timestamp in seconds, None if the device gives none
        payload: Presenter-specific data (ray origin/direction or a deck.gl event dict)
    """

    type: PointerEventType
    device: str = "default"
    timestamp: float | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PointerEvent:
    """Normalized pointer event delivered to subscribers."""

    type: PointerEventType
    handle: SceneNode | None
    point: np.ndarray | None
    geographic: GeographicPoint | None
    distance: float | None
    device: str
    timestamp: float
    delta: float = 0.0

    @property
    def is_hit(self) -> bool:
        return self.handle is not None


PointerCallback = Callable[[PointerEvent], None]


@dataclass
class _Subscription:
    callback: PointerCallback
    emit_on_miss: bool


class PointerDispatcher:
    """Subscription registry and event emitter for one presenter.

    Example:
        dispatcher.on(PointerEventType.SELECT, handle_select)
        dispatcher.dispatch(raw, hit, geographic)
    """

    def __init__(self) -> None:
        self._subscriptions: dict[PointerEventType, list[_Subscription]] = defaultdict(list)
        self._hovered: dict[str, SceneNode | None] = {}

    def on(self, event_type: PointerEventType, callback: PointerCallback, emit_on_miss: bool = False) -> None:
        self._subscriptions[PointerEventType(event_type)].append(_Subscription(callback, emit_on_miss))

    def off(self, event_type: PointerEventType, callback: PointerCallback) -> bool:
        """Remove a callback. Returns False if it was not subscribed."""
        subscriptions = self._subscriptions[PointerEventType(event_type)]
        for subscription in subscriptions:
            if subscription.callback == callback:
                subscriptions.remove(subscription)
                return True
        return False

    def clear(self) -> None:
        self._subscriptions.clear()
        self._hovered.clear()

    def dispatch(self, raw: RawPointerInput, hit: PickHit, geographic: GeographicPoint | None = None) -> None:
        """Emit the normalized event(s) for one picked input."""
        if raw.type is PointerEventType.HOVER:
            self._update_hover(raw, hit, geographic)
        elif raw.type is PointerEventType.CANCEL:
            self._hovered.pop(raw.device, None)
        delta = float(raw.payload.get("delta", 0.0)) if raw.type is PointerEventType.WHEEL else 0.0
        self._emit(self._make_event(raw.type, raw, hit, geographic, delta))

    def _update_hover(self, raw: RawPointerInput, hit: PickHit, geographic: GeographicPoint | None) -> None:
        previous = self._hovered.get(raw.device)
        if previous is hit.handle:
            return
        if previous is not None:
            self._emit(self._make_event(PointerEventType.LEAVE, raw, PickHit(handle=previous), geographic))
        if hit.handle is not None:
            self._emit(self._make_event(PointerEventType.ENTER, raw, hit, geographic))
        self._hovered[raw.device] = hit.handle

    @staticmethod
    def _make_event(
        event_type: PointerEventType,
        raw: RawPointerInput,
        hit: PickHit,
        geographic: GeographicPoint | None,
        delta: float = 0.0,
    ) -> PointerEvent:
        return PointerEvent(
            type=event_type,
            handle=hit.handle,
            point=hit.point,
            geographic=geographic,
            distance=hit.distance,
            device=raw.device,
            timestamp=raw.timestamp if raw.timestamp is not None else time.monotonic(),
            delta=delta,
        )

    def _emit(self, event: PointerEvent) -> None:
        for subscription in list(self._subscriptions.get(event.type, ())):
            if event.type.requires_hit and not event.is_hit and not subscription.emit_on_miss:
                continue
            try:
                subscription.callback(event)
            except Exception:
                logger.exception(f"Pointer callback for '{event.type.value}' failed")


class HoverThrottle:
    """Drops hover inputs arriving faster than PointerConfig.HOVER_THROTTLE_S per device.

    Inputs without a device timestamp are timed with ``clock`` on arrival.
    """

    def __init__(
        self,
        interval_s: float = PointerConfig.HOVER_THROTTLE_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval_s = interval_s
        self.clock = clock
        self._last: dict[str, float] = {}

    def accept(self, raw: RawPointerInput) -> bool:
        if raw.type is not PointerEventType.HOVER:
            return True
        now = raw.timestamp if raw.timestamp is not None else self.clock()
        last = self._last.get(raw.device)
        if last is not None and now - last < self.interval_s:
            return False
        self._last[raw.device] = now
        return True

    def reset(self) -> None:
        self._last.clear()
