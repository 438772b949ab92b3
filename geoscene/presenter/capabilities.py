"""Capability probe for presentation modes.

The map back-end (pydeck) is only imported when the map mode is first
probed or initialized, and the result is cached in the runtime's
CapabilityCache. If it cannot be imported, callers get an
ExternalResourceError and are expected to pick another mode via
get_best_mode().
"""

import asyncio
import importlib
import logging
from types import ModuleType

from geoscene.core.registry import CapabilityCache
from geoscene.errors import ExternalResourceError
from geoscene.model.options import PresentationMode
from geoscene.presenter.session import ImmersiveHost, InlineHost

logger = logging.getLogger(__name__)

# Fallback order when the preferred mode is unavailable
MODE_PRIORITY = (
    PresentationMode.IMMERSIVE_AR,
    PresentationMode.IMMERSIVE_VR,
    PresentationMode.MAP,
    PresentationMode.INLINE,
)


class CapabilityProbe:
    """Resolves which presentation modes this process can offer.

    Example:
        probe = CapabilityProbe(runtime.capabilities, host)
        mode = await probe.get_best_mode(preferred=PresentationMode.IMMERSIVE_VR)
    """

    def __init__(
        self,
        cache: CapabilityCache,
        host: ImmersiveHost | None = None,
        map_backend: str = "pydeck",
    ) -> None:
        self.cache = cache
        self.host = host or InlineHost()
        self.map_backend = map_backend

    async def load_map_backend(self) -> ModuleType:
        """Import (once) and return the map back-end module.

        Raises:
            ExternalResourceError: If the module is not installed.
        """
        module = self.cache.module(self.map_backend)
        if module is not None:
            return module
        try:
            module = await asyncio.to_thread(importlib.import_module, self.map_backend)
        except ImportError as exc:
            self.cache.set(PresentationMode.MAP.value, False)
            raise ExternalResourceError(
                f"The map presenter needs '{self.map_backend}' (pip install {self.map_backend}); "
                f"choose another presentation mode"
            ) from exc
        self.cache.store_module(self.map_backend, module)
        self.cache.set(PresentationMode.MAP.value, True)
        logger.info(f"Loaded map back-end {self.map_backend} {getattr(module, '__version__', '')}".rstrip())
        return module

    async def is_supported(self, mode: PresentationMode) -> bool:
        mode = PresentationMode(mode)
        cached = self.cache.get(mode.value)
        if cached is not None:
            return cached
        if mode is PresentationMode.MAP:
            try:
                await self.load_map_backend()
                supported = True
            except ExternalResourceError:
                supported = False
        elif mode is PresentationMode.INLINE:
            supported = True
        else:
            supported = await self.host.is_session_supported(mode.value)
        self.cache.set(mode.value, supported)
        logger.info(f"Capability {mode.value}: {'supported' if supported else 'unavailable'}")
        return supported

    async def get_supported_modes(self) -> list[PresentationMode]:
        return [mode for mode in PresentationMode if await self.is_supported(mode)]

    async def get_best_mode(self, preferred: PresentationMode | None = None) -> PresentationMode:
        """Preferred mode if supported, else the first supported of AR > VR > map > inline."""
        if preferred is not None and await self.is_supported(preferred):
            return PresentationMode(preferred)
        for mode in MODE_PRIORITY:
            if await self.is_supported(mode):
                return mode
        return PresentationMode.INLINE
