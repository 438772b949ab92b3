"""Presenter factory.

Builds a presenter for a PresentationMode, with per-mode default options
(create_presenter_config) and capability probing delegated to
CapabilityProbe.

Mode -> presenter:
    map           -> MapPresenter (pydeck)
    immersive-vr  -> ImmersivePresenter, "immersive-vr" session
    immersive-ar  -> ImmersivePresenter, "immersive-ar" session
    inline        -> ImmersivePresenter, "inline" session
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from geoscene.constants import CameraConfig, ImmersiveConfig, MapConfig
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.errors import ConfigurationError
from geoscene.model.options import PresentationMode, PresenterOptions
from geoscene.presenter.base import Presenter
from geoscene.presenter.capabilities import CapabilityProbe
from geoscene.presenter.hooks import PresenterHooks
from geoscene.presenter.immersive import ImmersivePresenter
from geoscene.presenter.map_presenter import MapPresenter
from geoscene.presenter.session import ImmersiveHost, InlineHost

if TYPE_CHECKING:
    from geoscene.runtime import GeoRuntime

logger = logging.getLogger(__name__)


def create_presenter_config(mode: PresentationMode, **overrides: Any) -> PresenterOptions:
    """Default options for ``mode`` with keyword overrides applied.

    Example:
        options = create_presenter_config(PresentationMode.MAP, reference_system="EPSG:32633",
                                          extent="400000,5650000,420000,5670000")
    """
    mode = PresentationMode(mode)
    if mode is PresentationMode.IMMERSIVE_AR:
        defaults: dict[str, Any] = {
            "session_mode": ImmersiveConfig.SESSION_AR,
            "reference_space": ImmersiveConfig.REFERENCE_SPACE,
            "required_features": ImmersiveConfig.AR_REQUIRED_FEATURES,
            "optional_features": ImmersiveConfig.AR_OPTIONAL_FEATURES,
        }
    elif mode is PresentationMode.IMMERSIVE_VR:
        defaults = {
            "session_mode": ImmersiveConfig.SESSION_VR,
            "reference_space": ImmersiveConfig.REFERENCE_SPACE,
            "optional_features": ImmersiveConfig.VR_OPTIONAL_FEATURES,
        }
    elif mode is PresentationMode.INLINE:
        defaults = {
            "session_mode": ImmersiveConfig.SESSION_INLINE,
            "reference_space": ImmersiveConfig.INLINE_REFERENCE_SPACE,
        }
    else:
        defaults = {
            "background_color": MapConfig.BACKGROUND_COLOR,
            "enable_terrain": MapConfig.ENABLE_TERRAIN,
            "initial_altitude": CameraConfig.INITIAL_ALTITUDE_M,
        }
    return PresenterOptions.from_dict({**defaults, **overrides})


class PresenterFactory:
    """Creates presenters sharing one adapter, runtime and immersive host.

    Attributes:
        adapter: Coordinate adapter handed to every presenter
        runtime: Registries (reference systems, capabilities, layer builders)
        probe: Capability probe backed by ``runtime.capabilities``
    """

    def __init__(
        self,
        adapter: CoordinateAdapter,
        runtime: GeoRuntime,
        host: ImmersiveHost | None = None,
        hooks: PresenterHooks | None = None,
        map_backend: str = "pydeck",
    ) -> None:
        self.adapter = adapter
        self.runtime = runtime
        self.host = host or InlineHost()
        self.hooks = hooks
        self.probe = CapabilityProbe(runtime.capabilities, self.host, map_backend=map_backend)

    def create(self, mode: PresentationMode, options: PresenterOptions | None = None) -> Presenter:
        """Construct (not initialize) a presenter for ``mode``.

        Raises:
            ConfigurationError: If ``mode`` is not a known presentation mode.
        """
        try:
            mode = PresentationMode(mode)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown presentation mode {mode!r}") from exc
        options = options or create_presenter_config(mode)

        if mode is PresentationMode.MAP:
            presenter: Presenter = MapPresenter(self.adapter, options, self.runtime, self.probe, hooks=self.hooks)
        else:
            if options.session_mode is not None and options.session_mode != mode.value:
                logger.warning(f"Ignoring session_mode={options.session_mode!r}, presenting as {mode.value}")
            presenter = ImmersivePresenter(
                self.adapter,
                options,
                self.runtime,
                host=self.host,
                session_mode=mode.value,
                hooks=self.hooks,
            )
        logger.info(f"Created {type(presenter).__name__} for {mode.value}")
        return presenter

    async def is_mode_supported(self, mode: PresentationMode) -> bool:
        return await self.probe.is_supported(mode)

    async def get_supported_modes(self) -> list[PresentationMode]:
        return await self.probe.get_supported_modes()

    async def get_best_mode(self, preferred: PresentationMode | None = None) -> PresentationMode:
        return await self.probe.get_best_mode(preferred)
