"""Presenter lifecycle state machine.

Uses python-statemachine. Every presenter owns one PresenterLifecycle;
out-of-order calls raise StateError and leave the state unchanged.

States:
    uninitialized: Constructed, nothing loaded (initial)
    ready: Initialized, not rendering
    running: Frame loop active
    paused: Frame loop suspended, content kept
    disposed: Torn down (final, no transitions out)

Transitions:
    UNINITIALIZED -> READY: initialize
    READY -> RUNNING: start
    RUNNING -> PAUSED: pause
    PAUSED -> RUNNING: resume
    RUNNING/PAUSED -> READY: stop (instance can be restarted)
    any non-final -> DISPOSED: dispose
"""

import logging
from enum import Enum

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from geoscene.errors import StateError
from geoscene.presenter.hooks import PresenterHooks

logger = logging.getLogger(__name__)


class PresenterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    DISPOSED = "disposed"


class LifecycleLogListener:
    """Logs every transition and forwards it to the presenter hooks."""

    def __init__(self, presenter_name: str, hooks: PresenterHooks) -> None:
        self.presenter_name = presenter_name
        self.hooks = hooks

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.info(f"[STATE] {self.presenter_name}: {source.name} --({event})--> {target.name}")
        try:
            self.hooks.on_state_changed(self.presenter_name, source.id, target.id, str(event))
        except Exception:
            logger.exception(f"Presenter hook on_state_changed failed for {self.presenter_name}")


class PresenterLifecycle(StateMachine):
    """Lifecycle of one presenter instance.

    See module docstring for the transition table.
    """

    # ==========================================================================
    # State Definitions
    # ==========================================================================

    uninitialized = State("Uninitialized", initial=True)
    ready = State("Ready")
    running = State("Running")
    paused = State("Paused")
    disposed = State("Disposed", final=True)

    # ==========================================================================
    # Transitions
    # ==========================================================================

    initialize = uninitialized.to(ready)
    start = ready.to(running)
    pause = running.to(paused)
    resume = paused.to(running)
    stop = running.to(ready) | paused.to(ready)
    dispose = uninitialized.to(disposed) | ready.to(disposed) | running.to(disposed) | paused.to(disposed)

    def __init__(self, presenter_name: str, hooks: PresenterHooks | None = None) -> None:
        self.presenter_name = presenter_name
        super().__init__()
        self.add_listener(LifecycleLogListener(presenter_name, hooks or PresenterHooks()))

    # ==========================================================================
    # State Check Properties
    # ==========================================================================

    @property
    def presenter_state(self) -> PresenterState:
        return PresenterState(self.current_state.id)

    @property
    def is_disposed(self) -> bool:
        return self.disposed.is_active

    @property
    def is_running(self) -> bool:
        return self.running.is_active

    @property
    def is_initialized(self) -> bool:
        """True once initialize() completed and before dispose()."""
        return self.ready.is_active or self.running.is_active or self.paused.is_active

    # ==========================================================================
    # Event Helpers
    # ==========================================================================

    def fire(self, event: str) -> None:
        """Send an event, raising StateError if it is not allowed.

        Raises:
            StateError: If ``event`` is not valid from the current state.
        """
        try:
            self.send(event)
        except TransitionNotAllowed as exc:
            raise StateError(
                f"{self.presenter_name}: cannot {event} while {self.presenter_state.value}"
            ) from exc

    def require(self, *states: PresenterState, action: str) -> None:
        """Raise StateError unless the current state is one of ``states``."""
        if self.presenter_state not in states:
            raise StateError(f"{self.presenter_name}: cannot {action} while {self.presenter_state.value}")

    def __repr__(self) -> str:
        return f"PresenterLifecycle(presenter={self.presenter_name}, state={self.presenter_state.value})"
