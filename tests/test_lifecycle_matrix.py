"""Tests for the presenter lifecycle state machine.

Tests: PresenterLifecycle, Presenter lifecycle methods
Focus: Every (state, call) pair - valid calls transition, invalid calls raise StateError
and leave the state unchanged
"""

import asyncio

import pytest

from conftest import RecordingHooks
from geoscene.errors import StateError
from geoscene.model.options import PresentationMode
from geoscene.presenter.factory import PresenterFactory
from geoscene.presenter.lifecycle import PresenterLifecycle, PresenterState
from geoscene.presenter.map_presenter import MapPresenter
from geoscene.scene.node import SceneNode

S = PresenterState

EVENTS = ["initialize", "start", "pause", "resume", "stop", "dispose"]

# Events that bring a fresh lifecycle into each state
PATHS = {
    S.UNINITIALIZED: [],
    S.READY: ["initialize"],
    S.RUNNING: ["initialize", "start"],
    S.PAUSED: ["initialize", "start", "pause"],
    S.DISPOSED: ["dispose"],
}

VALID = {
    (S.UNINITIALIZED, "initialize"): S.READY,
    (S.UNINITIALIZED, "dispose"): S.DISPOSED,
    (S.READY, "start"): S.RUNNING,
    (S.READY, "dispose"): S.DISPOSED,
    (S.RUNNING, "pause"): S.PAUSED,
    (S.RUNNING, "stop"): S.READY,
    (S.RUNNING, "dispose"): S.DISPOSED,
    (S.PAUSED, "resume"): S.RUNNING,
    (S.PAUSED, "stop"): S.READY,
    (S.PAUSED, "dispose"): S.DISPOSED,
}

MATRIX = [(state, event) for state in PATHS for event in EVENTS]


def _lifecycle_in(state: PresenterState, hooks: RecordingHooks | None = None) -> PresenterLifecycle:
    lifecycle = PresenterLifecycle("test", hooks)
    for event in PATHS[state]:
        lifecycle.fire(event)
    assert lifecycle.presenter_state is state
    return lifecycle


class TestTransitionMatrix:
    """All 30 (state, event) combinations."""

    @pytest.mark.parametrize("state,event", MATRIX, ids=[f"{s.value}-{e}" for s, e in MATRIX])
    def test_fire(self, state: PresenterState, event: str) -> None:
        lifecycle = _lifecycle_in(state)
        expected = VALID.get((state, event))

        if expected is None:
            with pytest.raises(StateError, match=f"cannot {event}"):
                lifecycle.fire(event)
            assert lifecycle.presenter_state is state
        else:
            lifecycle.fire(event)
            assert lifecycle.presenter_state is expected


class TestStateProperties:
    """Convenience flags."""

    @pytest.mark.parametrize(
        "state,initialized,running,disposed",
        [
            (S.UNINITIALIZED, False, False, False),
            (S.READY, True, False, False),
            (S.RUNNING, True, True, False),
            (S.PAUSED, True, False, False),
            (S.DISPOSED, False, False, True),
        ],
    )
    def test_flags(self, state: PresenterState, initialized: bool, running: bool, disposed: bool) -> None:
        lifecycle = _lifecycle_in(state)
        assert lifecycle.is_initialized is initialized
        assert lifecycle.is_running is running
        assert lifecycle.is_disposed is disposed

    def test_require(self) -> None:
        lifecycle = _lifecycle_in(S.READY)
        lifecycle.require(S.READY, S.RUNNING, action="look")
        with pytest.raises(StateError, match="cannot look while ready"):
            lifecycle.require(S.RUNNING, action="look")


class TestHooks:
    """Transitions are forwarded to PresenterHooks."""

    def test_transitions_recorded(self, hooks: RecordingHooks) -> None:
        lifecycle = _lifecycle_in(S.PAUSED, hooks)
        lifecycle.fire("stop")

        assert hooks.transitions == [
            ("test", "uninitialized", "ready", "initialize"),
            ("test", "ready", "running", "start"),
            ("test", "running", "paused", "pause"),
            ("test", "paused", "ready", "stop"),
        ]

    def test_failing_hook_does_not_block_transition(self) -> None:
        class Exploding(RecordingHooks):
            def on_state_changed(self, presenter: str, source: str, target: str, event: str) -> None:
                raise RuntimeError("hook failure")

        lifecycle = PresenterLifecycle("test", Exploding())
        lifecycle.fire("initialize")
        assert lifecycle.presenter_state is S.READY


class TestPresenterLifecycleCalls:
    """The same rules through a real presenter."""

    def test_start_before_initialize_raises(self, factory: PresenterFactory) -> None:
        presenter = factory.create(PresentationMode.MAP)
        with pytest.raises(StateError):
            presenter.start()
        assert presenter.state is S.UNINITIALIZED

    def test_initialize_twice_raises(self, map_presenter: MapPresenter) -> None:
        with pytest.raises(StateError):
            asyncio.run(map_presenter.initialize())
        assert map_presenter.state is S.RUNNING

    def test_restart_after_stop(self, map_presenter: MapPresenter) -> None:
        map_presenter.stop()
        assert map_presenter.state is S.READY
        map_presenter.start()
        assert map_presenter.is_running

    def test_pause_resume(self, map_presenter: MapPresenter) -> None:
        map_presenter.pause()
        assert map_presenter.state is S.PAUSED
        assert map_presenter.render() is False
        map_presenter.resume()
        assert map_presenter.render() is True

    def test_dispose_twice_raises(self, map_presenter: MapPresenter) -> None:
        map_presenter.dispose()
        with pytest.raises(StateError):
            map_presenter.dispose()
        assert map_presenter.is_disposed

    def test_dispose_uninitialized(self, factory: PresenterFactory) -> None:
        presenter = factory.create(PresentationMode.INLINE)
        presenter.dispose()
        assert presenter.is_disposed

    @pytest.mark.parametrize("call", ["render", "pre_update", "post_update", "camera", "add_object"])
    def test_calls_after_dispose_raise(self, map_presenter: MapPresenter, call: str) -> None:
        map_presenter.dispose()
        with pytest.raises(StateError):
            if call == "render":
                map_presenter.render()
            elif call == "pre_update":
                map_presenter.pre_update(0.016)
            elif call == "post_update":
                map_presenter.post_update(0.016)
            elif call == "camera":
                _ = map_presenter.camera
            else:
                map_presenter.add_object(SceneNode())
