"""Tests for the process-scoped registries.

Tests: ReferenceSystemRegistry, CapabilityCache, GeoRuntime
Focus: One definition per code, PROJ database fallback, reset()
"""

import math

import pyproj
import pytest

from conftest import UTM33
from geoscene.core.registry import CapabilityCache, ReferenceSystemRegistry
from geoscene.errors import ConfigurationError
from geoscene.runtime import GeoRuntime

UTM33_PROJ = "+proj=utm +zone=33 +datum=WGS84 +units=m +no_defs"
LOCAL_CODE = "LOCAL:DRESDEN"


class TestReferenceSystemRegistry:
    """register() / resolve()."""

    def test_register_and_resolve(self) -> None:
        registry = ReferenceSystemRegistry()
        system = registry.register(LOCAL_CODE, UTM33_PROJ)

        assert system.code == LOCAL_CODE
        assert LOCAL_CODE in registry
        crs = registry.resolve(LOCAL_CODE)
        assert isinstance(crs, pyproj.CRS)
        assert crs.is_projected

    def test_same_definition_is_noop(self) -> None:
        registry = ReferenceSystemRegistry()
        first = registry.register(LOCAL_CODE, UTM33_PROJ)
        second = registry.register(LOCAL_CODE, f"  {UTM33_PROJ}\n")
        assert second is first

    def test_conflicting_definition_raises(self) -> None:
        registry = ReferenceSystemRegistry()
        registry.register(LOCAL_CODE, UTM33_PROJ)
        with pytest.raises(ConfigurationError, match="different definition"):
            registry.register(LOCAL_CODE, "+proj=utm +zone=32 +datum=WGS84 +units=m +no_defs")
        assert registry.get(LOCAL_CODE).definition == UTM33_PROJ

    def test_invalid_definition_raises(self) -> None:
        registry = ReferenceSystemRegistry()
        with pytest.raises(ConfigurationError, match="Invalid definition"):
            registry.register(LOCAL_CODE, "+proj=not_a_projection")
        assert LOCAL_CODE not in registry

    def test_code_is_normalized(self) -> None:
        registry = ReferenceSystemRegistry()
        registry.register("local:dresden ", UTM33_PROJ)
        assert registry.get(LOCAL_CODE) is not None
        assert registry.codes == [LOCAL_CODE]

    def test_unregistered_code_resolves_from_database(self) -> None:
        registry = ReferenceSystemRegistry()
        crs = registry.resolve("epsg:32633")
        assert crs.to_epsg() == 32633
        assert UTM33 in registry
        assert registry.resolve(UTM33) is crs

    def test_equivalent_definition_after_resolve(self) -> None:
        """A database code stored as WKT accepts the same CRS spelled as PROJ."""
        registry = ReferenceSystemRegistry()
        crs = registry.resolve(UTM33)

        system = registry.register(UTM33, UTM33_PROJ)

        assert system is registry.get(UTM33)
        assert registry.resolve(UTM33) is crs
        with pytest.raises(ConfigurationError, match="different definition"):
            registry.register(UTM33, "+proj=utm +zone=32 +datum=WGS84 +units=m +no_defs")

    def test_unknown_code_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown reference system"):
            ReferenceSystemRegistry().resolve("EPSG:999999")

    def test_registered_definition_is_used(self) -> None:
        """A custom projection registered under a code is what resolve() returns."""
        registry = ReferenceSystemRegistry()
        registry.register(LOCAL_CODE, UTM33_PROJ)
        transformer = pyproj.Transformer.from_crs("EPSG:4326", registry.resolve(LOCAL_CODE), always_xy=True)
        x, y = transformer.transform(15.0, 0.0)
        assert math.isclose(x, 500_000.0, abs_tol=1e-6)
        assert math.isclose(y, 0.0, abs_tol=1e-6)

    def test_reset_forgets_everything(self) -> None:
        registry = ReferenceSystemRegistry()
        registry.register(LOCAL_CODE, UTM33_PROJ)
        registry.reset()
        assert registry.codes == []
        # After reset the code may be registered with another definition
        registry.register(LOCAL_CODE, "+proj=utm +zone=32 +datum=WGS84 +units=m +no_defs")


class TestCapabilityCache:
    """Memoized probe results and modules."""

    def test_unknown_key_is_none(self) -> None:
        assert CapabilityCache().get("mode:vr") is None

    def test_set_get_and_reset(self) -> None:
        cache = CapabilityCache()
        cache.set("mode:vr", False)
        cache.store_module("math", math)

        assert cache.get("mode:vr") is False
        assert cache.module("math") is math

        cache.reset()
        assert cache.get("mode:vr") is None
        assert cache.module("math") is None


class TestGeoRuntime:
    """Grouped registries."""

    def test_runtimes_are_independent(self) -> None:
        first, second = GeoRuntime(), GeoRuntime()
        first.reference_systems.register(LOCAL_CODE, UTM33_PROJ)
        assert LOCAL_CODE not in second.reference_systems

    def test_reset_clears_all_registries(self) -> None:
        runtime = GeoRuntime()
        runtime.reference_systems.register(LOCAL_CODE, UTM33_PROJ)
        runtime.capabilities.set("mode:vr", True)
        runtime.reset()
        assert LOCAL_CODE not in runtime.reference_systems
        assert runtime.capabilities.get("mode:vr") is None
