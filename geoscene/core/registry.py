"""Process-scoped registries.

ReferenceSystemRegistry: CRS code -> definition, immutable per code
CapabilityCache: resolved capability probes and lazily loaded back-end modules

Both are plain objects owned by a GeoRuntime (geoscene.runtime) and handed
to the components that need them. ``reset()`` returns them to a clean state.
"""

import logging
from types import ModuleType

import pyproj
from pyproj.exceptions import CRSError

from geoscene.errors import ConfigurationError
from geoscene.model.reference_system import ReferenceSystem, normalize_code

logger = logging.getLogger(__name__)


def _same_crs(a: pyproj.CRS, b: pyproj.CRS) -> bool:
    """True if two CRS describe the same system, whatever their spelling."""
    if a.equals(b, ignore_axis_order=True):
        return True
    epsg = a.to_epsg()
    return epsg is not None and epsg == b.to_epsg()


class ReferenceSystemRegistry:
    """Registered reference systems.

    A code maps to exactly one definition for the registry's lifetime.
    Re-registering the same definition is a no-op; a different definition
    raises ConfigurationError.

    Example:
        registry = ReferenceSystemRegistry()
        registry.register("EPSG:32633", "+proj=utm +zone=33 +datum=WGS84 +units=m +no_defs")
        crs = registry.resolve("EPSG:32633")
    """

    def __init__(self) -> None:
        self._systems: dict[str, ReferenceSystem] = {}
        self._crs_cache: dict[str, pyproj.CRS] = {}

    def register(self, code: str, definition: str) -> ReferenceSystem:
        """Register a code with its PROJ/WKT definition.

        Raises:
            ConfigurationError: If the code is registered with a different
                definition, or the definition cannot be parsed.
        """
        system = ReferenceSystem(code=code, definition=definition.strip())
        existing = self._systems.get(system.code)
        if existing is not None and existing.definition == system.definition:
            return existing
        try:
            crs = pyproj.CRS.from_user_input(system.definition)
        except CRSError as exc:
            raise ConfigurationError(f"Invalid definition for {system.code}: {exc}") from exc
        if existing is not None:
            # a code resolved from the PROJ database is stored as WKT
            if not _same_crs(self._crs_cache[system.code], crs):
                raise ConfigurationError(
                    f"Reference system {system.code} is already registered with a different definition"
                )
            return existing
        self._systems[system.code] = system
        self._crs_cache[system.code] = crs
        logger.info(f"Registered reference system {system.code} ({crs.name})")
        return system

    def resolve(self, code: str) -> pyproj.CRS:
        """Return the pyproj CRS for a code.

        Registered codes use their registered definition. Unregistered codes
        are looked up in the PROJ database (e.g. "EPSG:25833") and registered.

        Raises:
            ConfigurationError: If the code is unknown everywhere.
        """
        key = normalize_code(code)
        cached = self._crs_cache.get(key)
        if cached is not None:
            return cached
        try:
            crs = pyproj.CRS.from_user_input(key)
        except CRSError as exc:
            raise ConfigurationError(f"Unknown reference system '{code}': {exc}") from exc
        self._systems[key] = ReferenceSystem(code=key, definition=crs.to_wkt())
        self._crs_cache[key] = crs
        logger.info(f"Resolved reference system {key} from PROJ database ({crs.name})")
        return crs

    def get(self, code: str) -> ReferenceSystem | None:
        return self._systems.get(normalize_code(code))

    def __contains__(self, code: str) -> bool:
        return normalize_code(code) in self._systems

    @property
    def codes(self) -> list[str]:
        return sorted(self._systems)

    def reset(self) -> None:
        self._systems.clear()
        self._crs_cache.clear()


class CapabilityCache:
    """Memoized capability probe results and loaded back-end modules."""

    def __init__(self) -> None:
        self._supported: dict[str, bool] = {}
        self._modules: dict[str, ModuleType] = {}

    def get(self, key: str) -> bool | None:
        return self._supported.get(key)

    def set(self, key: str, supported: bool) -> None:
        self._supported[key] = supported

    def module(self, name: str) -> ModuleType | None:
        return self._modules.get(name)

    def store_module(self, name: str, module: ModuleType) -> None:
        self._modules[name] = module

    def reset(self) -> None:
        self._supported.clear()
        self._modules.clear()
