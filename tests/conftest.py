"""Shared pytest fixtures for geoscene tests.

Provides a fake immersive device host, recording presenter hooks and
initialized adapters/presenters around one fixed origin.

COORDINATE SYSTEM:
    Tests use Dresden (lat 51.05, lon 13.74) in UTM zone 33N (EPSG:32633).
    The origin lies about 1.26 deg west of the zone's central meridian, so
    the CRS is locally Cartesian there (convergence ~ -0.98 deg, scale ~ 0.9997)
    and the adapter logs no distortion warning.
"""

import asyncio

import pytest

from geoscene.constants import ImmersiveConfig
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.errors import ExternalResourceError
from geoscene.model.options import PresentationMode, PresenterOptions
from geoscene.model.points import GeographicPoint
from geoscene.presenter.factory import PresenterFactory, create_presenter_config
from geoscene.presenter.hooks import PresenterHooks, RenderStats
from geoscene.presenter.immersive import ImmersivePresenter
from geoscene.presenter.map_presenter import MapPresenter
from geoscene.presenter.session import ImmersiveHost, ImmersiveSession, SessionRequest
from geoscene.runtime import GeoRuntime
from geoscene.world.coordinator import ModeSwitchCoordinator
from geoscene.world.world import World

UTM33 = "EPSG:32633"
DRESDEN = GeographicPoint(lat=51.05, lon=13.74, height=0.0)
# UTM 33N easting/northing window around the origin (~411.8 km E, ~5656 km N)
MAP_EXTENT_BBOX = "400000,5650000,420000,5670000,EPSG:32633"


# =============================================================================
# FAKE DEVICE HOST
# =============================================================================


class FakeImmersiveHost(ImmersiveHost):
    """Immersive host supporting a configurable set of session modes.

    Attributes:
        supported: Modes reported as supported
        fail_requests: When True, request_session raises ExternalResourceError
        requests: Every SessionRequest received
        sessions: Every session handed out
        probe_calls: Number of is_session_supported calls
        probe_delay_s: Await this long inside is_session_supported (lets other tasks run)
        on_request: Called with the request before the session is returned
    """

    def __init__(
        self,
        supported: tuple[str, ...] = (
            ImmersiveConfig.SESSION_VR,
            ImmersiveConfig.SESSION_AR,
            ImmersiveConfig.SESSION_INLINE,
        ),
    ) -> None:
        self.supported = supported
        self.fail_requests = False
        self.requests: list[SessionRequest] = []
        self.sessions: list[ImmersiveSession] = []
        self.probe_calls = 0
        self.probe_delay_s = 0.0
        self.on_request = None

    async def is_session_supported(self, mode: str) -> bool:
        self.probe_calls += 1
        if self.probe_delay_s:
            await asyncio.sleep(self.probe_delay_s)
        return mode in self.supported

    async def request_session(self, request: SessionRequest) -> ImmersiveSession:
        self.requests.append(request)
        if self.fail_requests:
            raise ExternalResourceError(f"Device refused {request.mode}")
        if self.on_request is not None:
            self.on_request(request)
        session = ImmersiveSession(request, granted_features=request.required_features + request.optional_features)
        self.sessions.append(session)
        return session


class RecordingHooks(PresenterHooks):
    """Collects frame stats and lifecycle transitions."""

    def __init__(self) -> None:
        self.frames: list[RenderStats] = []
        self.transitions: list[tuple[str, str, str, str]] = []

    def on_frame_rendered(self, stats: RenderStats) -> None:
        self.frames.append(stats)

    def on_state_changed(self, presenter: str, source: str, target: str, event: str) -> None:
        self.transitions.append((presenter, source, target, event))


# =============================================================================
# RUNTIME & ADAPTER
# =============================================================================


@pytest.fixture
def runtime() -> GeoRuntime:
    """Fresh registries per test."""
    return GeoRuntime()


@pytest.fixture
def adapter(runtime: GeoRuntime) -> CoordinateAdapter:
    """Initialized UTM 33N adapter with its origin at Dresden (h=0)."""
    adapter = CoordinateAdapter(UTM33, DRESDEN, runtime.reference_systems)
    asyncio.run(adapter.initialize())
    return adapter


@pytest.fixture
def host() -> FakeImmersiveHost:
    return FakeImmersiveHost()


@pytest.fixture
def hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def factory(adapter: CoordinateAdapter, runtime: GeoRuntime, host: FakeImmersiveHost, hooks: RecordingHooks) -> PresenterFactory:
    return PresenterFactory(adapter, runtime, host=host, hooks=hooks)


# =============================================================================
# PRESENTERS
# =============================================================================


@pytest.fixture
def map_options() -> PresenterOptions:
    """Map options in UTM 33N with a projected extent and the default basemap."""
    return create_presenter_config(PresentationMode.MAP, reference_system=UTM33, extent=MAP_EXTENT_BBOX)


@pytest.fixture
def map_presenter(factory: PresenterFactory, map_options: PresenterOptions) -> MapPresenter:
    """Initialized and running map presenter."""
    presenter = factory.create(PresentationMode.MAP, map_options)
    assert isinstance(presenter, MapPresenter)
    asyncio.run(presenter.initialize())
    presenter.start()
    return presenter


@pytest.fixture
def inline_presenter(factory: PresenterFactory) -> ImmersivePresenter:
    """Initialized and running inline presenter with an established session."""
    presenter = factory.create(PresentationMode.INLINE)
    assert isinstance(presenter, ImmersivePresenter)
    asyncio.run(presenter.initialize())
    asyncio.run(presenter.establish_session())
    presenter.start()
    return presenter


# =============================================================================
# WORLD
# =============================================================================


@pytest.fixture
def world(adapter: CoordinateAdapter) -> World:
    return World(adapter)


@pytest.fixture
def coordinator(world: World, factory: PresenterFactory) -> ModeSwitchCoordinator:
    """Coordinator whose shared options carry the UTM 33N map configuration."""
    return ModeSwitchCoordinator(
        world,
        factory,
        PresenterOptions.from_dict({"reference_system": UTM33, "extent": MAP_EXTENT_BBOX}),
    )
