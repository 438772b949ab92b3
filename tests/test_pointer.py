"""Tests for pointer event normalization.

Tests: PointerDispatcher, HoverThrottle
Focus: Null-pick suppression, enter/leave derivation, failing callbacks
"""

import numpy as np
import pytest

from geoscene.presenter.pointer import (
    HoverThrottle,
    PickHit,
    PointerDispatcher,
    PointerEvent,
    PointerEventType,
    RawPointerInput,
)
from geoscene.scene.node import SceneNode

T = PointerEventType


@pytest.fixture
def dispatcher() -> PointerDispatcher:
    return PointerDispatcher()


def _collect(dispatcher: PointerDispatcher, *types: PointerEventType, emit_on_miss: bool = False) -> list[PointerEvent]:
    events: list[PointerEvent] = []
    for event_type in types:
        dispatcher.on(event_type, events.append, emit_on_miss=emit_on_miss)
    return events


class TestSuppression:
    """Click-like events need a hit unless emit_on_miss is set."""

    @pytest.mark.parametrize("event_type", [T.SELECT, T.DOWN, T.UP])
    def test_miss_suppressed(self, dispatcher: PointerDispatcher, event_type: PointerEventType) -> None:
        events = _collect(dispatcher, event_type)
        dispatcher.dispatch(RawPointerInput(type=event_type), PickHit.miss())
        assert events == []

    @pytest.mark.parametrize("event_type", [T.SELECT, T.DOWN, T.UP])
    def test_miss_delivered_with_emit_on_miss(self, dispatcher: PointerDispatcher, event_type: PointerEventType) -> None:
        events = _collect(dispatcher, event_type, emit_on_miss=True)
        dispatcher.dispatch(RawPointerInput(type=event_type), PickHit.miss(np.array([1.0, 2.0, 3.0])))
        assert len(events) == 1
        assert not events[0].is_hit
        np.testing.assert_array_equal(events[0].point, [1.0, 2.0, 3.0])

    @pytest.mark.parametrize("event_type", [T.HOVER, T.CANCEL, T.WHEEL])
    def test_non_click_events_always_delivered(self, dispatcher: PointerDispatcher, event_type: PointerEventType) -> None:
        events = _collect(dispatcher, event_type)
        dispatcher.dispatch(RawPointerInput(type=event_type), PickHit.miss())
        assert [e.type for e in events] == [event_type]

    def test_hit_fields(self, dispatcher: PointerDispatcher) -> None:
        node = SceneNode(name="target")
        events = _collect(dispatcher, T.SELECT)
        dispatcher.dispatch(
            RawPointerInput(type=T.SELECT, device="right", timestamp=2.5),
            PickHit(handle=node, point=np.zeros(3), distance=4.0),
        )
        event = events[0]
        assert event.handle is node
        assert event.distance == 4.0
        assert event.device == "right"
        assert event.timestamp == 2.5

    def test_only_matching_type_receives(self, dispatcher: PointerDispatcher) -> None:
        selects = _collect(dispatcher, T.SELECT)
        dispatcher.dispatch(RawPointerInput(type=T.DOWN), PickHit(handle=SceneNode()))
        assert selects == []


class TestHoverTracking:
    """pointerenter / pointerleave from consecutive hovers."""

    def test_enter_then_leave(self, dispatcher: PointerDispatcher) -> None:
        node = SceneNode(name="a")
        events = _collect(dispatcher, T.ENTER, T.LEAVE)

        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit(handle=node))
        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit(handle=node))
        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit.miss())

        assert [(e.type, e.handle) for e in events] == [(T.ENTER, node), (T.LEAVE, node)]

    def test_switching_targets(self, dispatcher: PointerDispatcher) -> None:
        a, b = SceneNode(name="a"), SceneNode(name="b")
        events = _collect(dispatcher, T.ENTER, T.LEAVE)

        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit(handle=a))
        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit(handle=b))

        assert [(e.type, e.handle) for e in events] == [(T.ENTER, a), (T.LEAVE, a), (T.ENTER, b)]

    def test_devices_tracked_separately(self, dispatcher: PointerDispatcher) -> None:
        node = SceneNode()
        events = _collect(dispatcher, T.ENTER)

        dispatcher.dispatch(RawPointerInput(type=T.HOVER, device="left"), PickHit(handle=node))
        dispatcher.dispatch(RawPointerInput(type=T.HOVER, device="right"), PickHit(handle=node))

        assert [e.device for e in events] == ["left", "right"]

    def test_cancel_forgets_hover(self, dispatcher: PointerDispatcher) -> None:
        node = SceneNode()
        enters = _collect(dispatcher, T.ENTER)

        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit(handle=node))
        dispatcher.dispatch(RawPointerInput(type=T.CANCEL), PickHit.miss())
        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit(handle=node))

        assert len(enters) == 2


class TestDelivery:
    """Callback management."""

    def test_wheel_delta(self, dispatcher: PointerDispatcher) -> None:
        events = _collect(dispatcher, T.WHEEL)
        dispatcher.dispatch(RawPointerInput(type=T.WHEEL, payload={"delta": -120}), PickHit.miss())
        assert events[0].delta == -120.0

    def test_failing_callback_does_not_stop_others(self, dispatcher: PointerDispatcher) -> None:
        def explode(event: PointerEvent) -> None:
            raise RuntimeError("callback failure")

        events: list[PointerEvent] = []
        dispatcher.on(T.SELECT, explode)
        dispatcher.on(T.SELECT, events.append)

        dispatcher.dispatch(RawPointerInput(type=T.SELECT), PickHit(handle=SceneNode()))

        assert len(events) == 1

    def test_off(self, dispatcher: PointerDispatcher) -> None:
        events = _collect(dispatcher, T.SELECT)
        assert dispatcher.off(T.SELECT, events.append)
        assert not dispatcher.off(T.SELECT, events.append)

        dispatcher.dispatch(RawPointerInput(type=T.SELECT), PickHit(handle=SceneNode()))
        assert events == []

    def test_clear(self, dispatcher: PointerDispatcher) -> None:
        events = _collect(dispatcher, T.HOVER)
        dispatcher.clear()
        dispatcher.dispatch(RawPointerInput(type=T.HOVER), PickHit.miss())
        assert events == []

    def test_string_event_type_accepted(self, dispatcher: PointerDispatcher) -> None:
        events: list[PointerEvent] = []
        dispatcher.on("select", events.append)
        dispatcher.dispatch(RawPointerInput(type=T.SELECT), PickHit(handle=SceneNode()))
        assert len(events) == 1

    def test_requires_hit(self) -> None:
        assert {t for t in PointerEventType if t.requires_hit} == {T.SELECT, T.DOWN, T.UP}


class TestHoverThrottle:
    """At most one hover per interval per device."""

    def test_fast_hovers_dropped(self) -> None:
        throttle = HoverThrottle(interval_s=0.05)
        accepted = [
            throttle.accept(RawPointerInput(type=T.HOVER, timestamp=t)) for t in (0.0, 0.01, 0.049, 0.05, 0.2)
        ]
        assert accepted == [True, False, False, True, True]

    def test_per_device(self) -> None:
        throttle = HoverThrottle(interval_s=0.05)
        assert throttle.accept(RawPointerInput(type=T.HOVER, device="a", timestamp=0.0))
        assert throttle.accept(RawPointerInput(type=T.HOVER, device="b", timestamp=0.01))

    def test_other_events_never_throttled(self) -> None:
        throttle = HoverThrottle(interval_s=10.0)
        throttle.accept(RawPointerInput(type=T.HOVER, timestamp=0.0))
        assert throttle.accept(RawPointerInput(type=T.SELECT, timestamp=0.001))

    def test_reset(self) -> None:
        throttle = HoverThrottle(interval_s=10.0)
        throttle.accept(RawPointerInput(type=T.HOVER, timestamp=0.0))
        throttle.reset()
        assert throttle.accept(RawPointerInput(type=T.HOVER, timestamp=0.001))

    def test_untimestamped_hovers_use_clock(self) -> None:
        """Hovers without a device timestamp keep firing as the clock advances."""
        ticks = iter([1.0, 1.02, 1.1, 1.2])
        throttle = HoverThrottle(interval_s=0.05, clock=lambda: next(ticks))
        accepted = [throttle.accept(RawPointerInput(type=T.HOVER)) for _ in range(4)]
        assert accepted == [True, False, True, True]
