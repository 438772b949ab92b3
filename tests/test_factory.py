"""Tests for presenter creation and capability probing.

Tests: create_presenter_config, PresenterOptions, PresenterFactory, CapabilityProbe
Focus: Per-mode defaults, option validation, missing map back-end, best-mode fallback
"""

import asyncio
import logging

import pytest

from conftest import FakeImmersiveHost, UTM33
from geoscene.constants import CameraConfig, ImmersiveConfig, MapConfig
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.errors import ConfigurationError, ExternalResourceError
from geoscene.model.extent import Extent
from geoscene.model.options import PresentationMode, PresenterOptions
from geoscene.presenter.factory import PresenterFactory, create_presenter_config
from geoscene.presenter.immersive import ImmersivePresenter
from geoscene.presenter.lifecycle import PresenterState
from geoscene.presenter.map_presenter import MapPresenter
from geoscene.runtime import GeoRuntime

M = PresentationMode
MISSING_BACKEND = "geoscene_missing_map_backend"


class TestPresenterConfig:
    """create_presenter_config defaults and overrides."""

    def test_ar_defaults(self) -> None:
        options = create_presenter_config(M.IMMERSIVE_AR)
        assert options.session_mode == ImmersiveConfig.SESSION_AR
        assert options.reference_space == "local-floor"
        assert options.required_features == ImmersiveConfig.AR_REQUIRED_FEATURES
        assert "hit-test" in options.optional_features

    def test_vr_defaults(self) -> None:
        options = create_presenter_config(M.IMMERSIVE_VR)
        assert options.session_mode == ImmersiveConfig.SESSION_VR
        assert options.required_features == ()
        assert options.optional_features == ImmersiveConfig.VR_OPTIONAL_FEATURES

    def test_inline_defaults(self) -> None:
        options = create_presenter_config(M.INLINE)
        assert options.session_mode == ImmersiveConfig.SESSION_INLINE
        assert options.reference_space == ImmersiveConfig.INLINE_REFERENCE_SPACE

    def test_map_defaults(self) -> None:
        options = create_presenter_config(M.MAP)
        assert options.session_mode is None
        assert options.background_color == MapConfig.BACKGROUND_COLOR
        assert options.initial_altitude == CameraConfig.INITIAL_ALTITUDE_M

    def test_overrides_and_coercion(self) -> None:
        options = create_presenter_config(
            M.MAP,
            reference_system=UTM33,
            extent="400000,5650000,420000,5670000",
            initial_altitude=5000.0,
            origin={"lat": 51.05, "lon": 13.74},
        )
        assert options.initial_altitude == 5000.0
        assert isinstance(options.extent, Extent)
        assert options.extent.min_x == 400000.0
        assert options.origin is not None and options.origin.lat == 51.05

    def test_mode_given_as_string(self) -> None:
        assert create_presenter_config("inline").session_mode == "inline"

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown presenter options"):
            create_presenter_config(M.MAP, zoom=12)


class TestPresenterOptions:
    """Validation and merging."""

    @pytest.mark.parametrize(
        "values",
        [
            {"near": 0.0},
            {"near": 10.0, "far": 5.0},
            {"fov": 180.0},
            {"initial_altitude": -1.0},
            {"up_axis": "x"},
            {"extent": "400000,5650000,390000,5670000"},
            {"extent": "400000,5650000,420000"},
            {"extent": {"minX": 400000, "maxX": 420000, "minY": 5650000}},
            {"origin": {"lat": 51.05}},
        ],
    )
    def test_invalid_values(self, values: dict) -> None:
        with pytest.raises(ConfigurationError):
            PresenterOptions.from_dict(values)

    def test_dict_merge_overrides_named_keys_only(self) -> None:
        base = PresenterOptions(reference_system=UTM33, fov=60.0)
        merged = base.merged({"fov": 90.0})
        assert merged.fov == 90.0
        assert merged.reference_system == UTM33

    def test_options_merge_ignores_defaults(self) -> None:
        base = PresenterOptions(reference_system=UTM33, fov=60.0)
        merged = base.merged(PresenterOptions(eye_height=1.5))
        assert merged.fov == 60.0
        assert merged.eye_height == 1.5

    def test_camel_case_extent_dict(self) -> None:
        options = PresenterOptions.from_dict(
            {"extent": {"minX": 400000, "maxX": 420000, "minY": 5650000, "maxY": 5670000, "referenceSystem": UTM33}}
        )
        assert options.extent == Extent(min_x=400000.0, max_x=420000.0, min_y=5650000.0, max_y=5670000.0, reference_system=UTM33)

    def test_reset_to_default_needs_dict(self) -> None:
        """An options override skips default values; a dict names them explicitly."""
        base = PresenterOptions(basemap=False)
        assert base.merged(PresenterOptions(basemap=True)).basemap is False
        assert base.merged({"basemap": True}).basemap is True

    def test_merge_none_is_identity(self) -> None:
        base = PresenterOptions(reference_system=UTM33)
        assert base.merged(None) is base


class TestFactoryCreate:
    """Mode -> presenter type."""

    @pytest.mark.parametrize(
        "mode,presenter_type",
        [
            (M.MAP, MapPresenter),
            (M.IMMERSIVE_VR, ImmersivePresenter),
            (M.IMMERSIVE_AR, ImmersivePresenter),
            (M.INLINE, ImmersivePresenter),
        ],
    )
    def test_presenter_types(self, factory: PresenterFactory, mode: PresentationMode, presenter_type: type) -> None:
        presenter = factory.create(mode)
        assert isinstance(presenter, presenter_type)
        assert presenter.state is PresenterState.UNINITIALIZED

    def test_session_mode_follows_presentation_mode(self, factory: PresenterFactory, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            presenter = factory.create(M.IMMERSIVE_VR, create_presenter_config(M.IMMERSIVE_AR))
        assert isinstance(presenter, ImmersivePresenter)
        assert presenter.session_mode == "immersive-vr"
        assert "Ignoring session_mode" in caplog.text

    def test_unknown_mode(self, factory: PresenterFactory) -> None:
        with pytest.raises(ConfigurationError, match="Unknown presentation mode"):
            factory.create("hologram")

    def test_map_without_extent_fails_before_loading(self, factory: PresenterFactory) -> None:
        presenter = factory.create(M.MAP, create_presenter_config(M.MAP, reference_system=UTM33))
        with pytest.raises(ConfigurationError, match="extent"):
            asyncio.run(presenter.initialize())
        assert presenter.state is PresenterState.UNINITIALIZED

    def test_map_reference_system_must_match_adapter(self, factory: PresenterFactory) -> None:
        options = create_presenter_config(M.MAP, reference_system="EPSG:3857", extent="0,0,1000,1000")
        presenter = factory.create(M.MAP, options)
        with pytest.raises(ConfigurationError, match="does not match"):
            asyncio.run(presenter.initialize())


class TestMissingMapBackend:
    """The map back-end is optional."""

    @pytest.fixture
    def factory_without_map(
        self, adapter: CoordinateAdapter, runtime: GeoRuntime, host: FakeImmersiveHost
    ) -> PresenterFactory:
        return PresenterFactory(adapter, runtime, host=host, map_backend=MISSING_BACKEND)

    def test_map_not_supported(self, factory_without_map: PresenterFactory) -> None:
        assert asyncio.run(factory_without_map.is_mode_supported(M.MAP)) is False
        assert M.MAP not in asyncio.run(factory_without_map.get_supported_modes())

    def test_initialize_raises_external_resource_error(
        self, factory_without_map: PresenterFactory, map_options: PresenterOptions
    ) -> None:
        presenter = factory_without_map.create(M.MAP, map_options)
        with pytest.raises(ExternalResourceError, match=MISSING_BACKEND):
            asyncio.run(presenter.initialize())
        assert presenter.state is PresenterState.UNINITIALIZED

    def test_failure_cached(self, factory_without_map: PresenterFactory, runtime: GeoRuntime) -> None:
        asyncio.run(factory_without_map.is_mode_supported(M.MAP))
        assert runtime.capabilities.get(M.MAP.value) is False

    def test_best_mode_falls_back_to_inline(
        self, adapter: CoordinateAdapter, runtime: GeoRuntime
    ) -> None:
        factory = PresenterFactory(
            adapter, runtime, host=FakeImmersiveHost(supported=("inline",)), map_backend=MISSING_BACKEND
        )
        assert asyncio.run(factory.get_best_mode(M.IMMERSIVE_VR)) is M.INLINE


class TestCapabilityProbe:
    """Supported modes, priority and caching."""

    def test_all_modes_with_capable_host(self, factory: PresenterFactory) -> None:
        assert asyncio.run(factory.get_supported_modes()) == list(PresentationMode)

    def test_preferred_mode_when_supported(self, factory: PresenterFactory) -> None:
        assert asyncio.run(factory.get_best_mode(M.IMMERSIVE_VR)) is M.IMMERSIVE_VR

    def test_priority_without_preference(self, factory: PresenterFactory) -> None:
        assert asyncio.run(factory.get_best_mode()) is M.IMMERSIVE_AR

    def test_unsupported_preference_falls_back_to_map(self, adapter: CoordinateAdapter, runtime: GeoRuntime) -> None:
        factory = PresenterFactory(adapter, runtime, host=FakeImmersiveHost(supported=("inline",)))
        assert asyncio.run(factory.get_best_mode(M.IMMERSIVE_VR)) is M.MAP

    def test_host_probed_once_per_mode(self, factory: PresenterFactory, host: FakeImmersiveHost) -> None:
        for _ in range(3):
            assert asyncio.run(factory.is_mode_supported(M.IMMERSIVE_VR))
        assert host.probe_calls == 1

    def test_inline_needs_no_probe(self, factory: PresenterFactory, host: FakeImmersiveHost) -> None:
        assert asyncio.run(factory.is_mode_supported(M.INLINE))
        assert host.probe_calls == 0

    def test_cache_reset_probes_again(self, factory: PresenterFactory, runtime: GeoRuntime, host: FakeImmersiveHost) -> None:
        asyncio.run(factory.is_mode_supported(M.IMMERSIVE_AR))
        runtime.capabilities.reset()
        asyncio.run(factory.is_mode_supported(M.IMMERSIVE_AR))
        assert host.probe_calls == 2
