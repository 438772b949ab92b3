"""Mode-switch coordinator.

Replaces the world's active presenter while keeping every display handle
(same SceneNode objects, same entity ids) on screen.

Switch sequence:
    0. origin     - world.set_origin() for an `origin` option not applied yet
    1. drain      - old.detach_all() plus any orphans from a failed switch
    2. stop       - old presenter stops rendering (kept for a possible restore)
    3. create     - factory.create(mode, mode defaults + shared options), await initialize()
    4. re-attach  - every ContentBinding, wrapped for the new presenter's frame
    5. wire       - entity input forwarding, presenter session (immersive), then
                   update_origin() for any rebase made while the session was pending
    6. start      - new presenter runs; the old one is disposed

On failure the new presenter is disposed and the old one is restored
(re-attached, re-wired, restarted). If that is impossible, no presenter is
active and the handles are kept in ``orphans`` until the next successful
switch. Either way ModeSwitchError is raised; content is never dropped.
"""

import logging
import time

from geoscene.errors import ModeSwitchError, StateError
from geoscene.model.options import PresentationMode, PresenterOptions
from geoscene.model.points import GeographicPoint
from geoscene.presenter.base import Presenter
from geoscene.presenter.content import ContentBinding
from geoscene.presenter.factory import PresenterFactory, create_presenter_config
from geoscene.presenter.lifecycle import PresenterState
from geoscene.world.world import World

logger = logging.getLogger(__name__)


class ModeSwitchCoordinator:
    """Owns the active presenter of a World and switches it at runtime.

    Attributes:
        world: The world whose presenter is managed
        factory: Creates presenters for a mode
        shared_options: Options carried across switches (caller-supplied values only)
        mode: Active presentation mode, None if no presenter is active
        orphans: Bindings waiting for a presenter after an unrecoverable failure

    Example:
        coordinator = ModeSwitchCoordinator(world, factory, PresenterOptions(reference_system="EPSG:32633"))
        await coordinator.switch_mode(PresentationMode.MAP, {"extent": "400000,5650000,420000,5670000"})
        await coordinator.switch_mode(PresentationMode.INLINE)
    """

    def __init__(self, world: World, factory: PresenterFactory, options: PresenterOptions | None = None) -> None:
        self.world = world
        self.factory = factory
        self.shared_options = options or PresenterOptions()
        self.mode: PresentationMode | None = None
        self.orphans: list[ContentBinding] = []
        self._switching = False
        self._applied_origin: GeographicPoint | None = None

    @property
    def presenter(self) -> Presenter | None:
        return self.world.presenter

    @property
    def is_switching(self) -> bool:
        return self._switching

    async def switch_mode(
        self,
        mode: PresentationMode,
        options: PresenterOptions | dict | None = None,
    ) -> Presenter:
        """Switch the world to ``mode``; also used for the first presenter.

        Args:
            mode: Target presentation mode
            options: Overrides merged into the shared options (kept for later switches)

        Returns:
            The new, running presenter.

        Raises:
            StateError: If another switch is in progress.
            ConfigurationError: If ``options`` contains unknown keys.
            ModeSwitchError: If the new presenter could not be brought up
                (``restored`` tells whether the previous one runs again).
        """
        if self._switching:
            raise StateError("A mode switch is already in progress")
        self._switching = True
        try:
            return await self._switch(PresentationMode(mode), options)
        finally:
            self._switching = False

    async def _switch(self, mode: PresentationMode, overrides: PresenterOptions | dict | None) -> Presenter:
        shared = self.shared_options.merged(overrides)
        presenter_options = create_presenter_config(mode).merged(shared)
        await self._apply_origin(shared.origin)
        old = self.world.presenter
        old_mode = self.mode
        started = time.perf_counter()
        logger.info(f"[SWITCH] {old_mode.value if old_mode else 'none'} -> {mode.value}")

        bindings = self._drain(old)
        self.world.presenter = None

        new: Presenter | None = None
        try:
            new = self.factory.create(mode, presenter_options)
            await new.initialize()
            if new.is_disposed:
                raise StateError(f"{new.name} was disposed during initialization")
            for binding in bindings:
                new.attach_content(binding)
            await self._wire(new)
            # the origin may have moved while the session request was pending
            new.update_origin()
            new.start()
        except Exception as exc:
            restored = await self._recover(old, new, bindings)
            outcome = f"restored {old_mode.value}" if restored and old_mode else f"{len(self.orphans)} orphaned handle(s)"
            logger.error(f"[SWITCH] {mode.value} failed ({exc}); {outcome}")
            raise ModeSwitchError(f"Switching to {mode.value} failed: {exc}", restored=restored) from exc

        if old is not None and not old.is_disposed:
            old.dispose()
        self.world.presenter = new
        self.mode = mode
        self.shared_options = shared
        self._attach_pending(new)
        elapsed = time.perf_counter() - started
        logger.info(f"[SWITCH] now {mode.value} with {len(new.attached_handles)} handle(s) in {elapsed:.3f}s")
        return new

    async def _apply_origin(self, origin: GeographicPoint | None) -> None:
        """Rebase the world onto an ``origin`` option it has not applied yet."""
        if origin is None or origin == self._applied_origin:
            return
        if not self.world.adapter.is_initialized:
            await self.world.adapter.initialize()
        self.world.set_origin(origin.lat, origin.lon, origin.height)
        self._applied_origin = origin

    def _drain(self, old: Presenter | None) -> list[ContentBinding]:
        """Take every handle off the old presenter (and out of ``orphans``), then stop it."""
        bindings: list[ContentBinding] = []
        if old is not None and old.lifecycle.is_initialized:
            bindings = old.detach_all()
            if old.state in (PresenterState.RUNNING, PresenterState.PAUSED):
                old.stop()
        bindings.extend(self.orphans)
        self.orphans = []
        return bindings

    async def _wire(self, presenter: Presenter) -> None:
        self.world.bind_input(presenter)
        await presenter.establish_session()

    async def _recover(
        self,
        old: Presenter | None,
        new: Presenter | None,
        bindings: list[ContentBinding],
    ) -> bool:
        """Dispose the failed presenter and bring the old one back. Returns True if restored."""
        if new is not None and not new.is_disposed:
            new.dispose()  # releases any handles attached so far

        if old is None or old.is_disposed:
            self._orphan(bindings)
            return False
        try:
            for binding in bindings:
                old.attach_content(binding)
            old.update_origin()
            await self._wire(old)
            old.start()
        except Exception:
            logger.exception(f"[SWITCH] could not restore {old.name}")
            if not old.is_disposed:
                old.dispose()
            self._orphan(bindings)
            return False

        self.world.presenter = old
        self._attach_pending(old)
        return True

    def _orphan(self, bindings: list[ContentBinding]) -> None:
        self.orphans = list(bindings)
        self.mode = None
        self.world.presenter = None
        if bindings:
            logger.warning(f"[SWITCH] no active presenter; keeping {len(bindings)} handle(s) as orphans")

    def _attach_pending(self, presenter: Presenter) -> None:
        for handle in self.world.take_removed():
            presenter.remove_object(handle)
        for handle, native_frame in self.world.take_unattached():
            presenter.add_object(handle, native_frame=native_frame)

    def shutdown(self) -> None:
        """Dispose the active presenter; its handles become orphans (not destroyed)."""
        presenter = self.world.presenter
        if presenter is None:
            return
        if presenter.lifecycle.is_initialized:
            self.orphans.extend(presenter.detach_all())
        if not presenter.is_disposed:
            presenter.dispose()
        self.world.presenter = None
        self.mode = None
        logger.info(f"[SWITCH] shut down; {len(self.orphans)} handle(s) kept")
