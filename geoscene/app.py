"""geoscene demo - one world shown on a map and in an inline 3D view.

Places a few Dresden landmarks as tangent-plane markers, renders them with
the pydeck map presenter (written to an HTML file), switches to the inline
presenter and back, and checks that every entity kept its display handle.

Run: python -m geoscene.app [output.html]
"""

import asyncio
import logging
import sys
from pathlib import Path

from geoscene.core.axes import AxisConvention
from geoscene.core.coordinate_adapter import CoordinateAdapter
from geoscene.model.extent import Extent
from geoscene.model.options import PresentationMode, PresenterOptions
from geoscene.model.points import GeographicPoint
from geoscene.presenter.factory import PresenterFactory
from geoscene.presenter.map_presenter import MapPresenter
from geoscene.presenter.pointer import PointerEventType, RawPointerInput
from geoscene.runtime import GeoRuntime
from geoscene.scene.node import SceneNode
from geoscene.world.coordinator import ModeSwitchCoordinator
from geoscene.world.world import EntityEvent, World

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REFERENCE_SYSTEM = "EPSG:32633"  # UTM zone 33N
ORIGIN = GeographicPoint(lat=51.05, lon=13.74, height=110.0)
EXTENT_BBOX = "13.70,51.03,13.78,51.07"

LANDMARKS = {
    "frauenkirche": GeographicPoint(lat=51.0519, lon=13.7416, height=110.0),
    "zwinger": GeographicPoint(lat=51.0530, lon=13.7338, height=110.0),
    "semperoper": GeographicPoint(lat=51.0543, lon=13.7351, height=110.0),
}

FRAME_S = 1 / 60


def log_entity_event(event: EntityEvent) -> None:
    if event.type is PointerEventType.SELECT:
        where = event.event.geographic
        location = f" at ({where.lat:.5f}, {where.lon:.5f})" if where else ""
        logger.info(f"Selected entity {event.entity_id}{location}")


def run_frames(world: World, count: int) -> int:
    return sum(1 for _ in range(count) if world.tick(FRAME_S))


async def run_demo(output: Path) -> None:
    runtime = GeoRuntime()
    adapter = CoordinateAdapter(REFERENCE_SYSTEM, ORIGIN, runtime.reference_systems)
    await adapter.initialize()

    world = World(adapter)
    world.on_entity_event(log_entity_event)
    factory = PresenterFactory(adapter, runtime)
    coordinator = ModeSwitchCoordinator(
        world,
        factory,
        PresenterOptions(reference_system=REFERENCE_SYSTEM, extent=Extent.from_bbox(EXTENT_BBOX)),
    )

    mode = await factory.get_best_mode(preferred=PresentationMode.MAP)
    presenter = await coordinator.switch_mode(mode)

    tangent_axis = AxisConvention.Y_UP
    for name, point in LANDMARKS.items():
        enu = adapter.geographic_to_enu(point).as_array()
        world.add_entity(name, SceneNode(name=name, position=tangent_axis.enu_to_scene(enu), pick_radius=25.0))
    handles_before = world.entity_handles()

    target = world.handle_for("frauenkirche")
    assert target is not None
    landmark = LANDMARKS["frauenkirche"]
    presenter.enqueue_input(
        RawPointerInput(
            type=PointerEventType.SELECT,
            device="mouse",
            payload={"coordinate": [landmark.lon, landmark.lat], "object": {"id": target.uuid}},
        )
    )
    presenter.fly_to(landmark)
    drawn = run_frames(world, 90)
    logger.info(f"{presenter.name}: drew {drawn} frame(s), camera at {presenter.get_camera_position().lat_lon}")

    if isinstance(presenter, MapPresenter):
        presenter.to_html(str(output))

    await coordinator.switch_mode(PresentationMode.INLINE)
    run_frames(world, 10)
    world.set_origin(51.06, 13.75, 110.0)
    run_frames(world, 10)

    if await factory.is_mode_supported(PresentationMode.MAP):
        await coordinator.switch_mode(PresentationMode.MAP)
        run_frames(world, 10)

    handles_after = world.entity_handles()
    identical = all(handles_after[name] is handle for name, handle in handles_before.items())
    logger.info(f"Entity handles preserved across switches: {identical}")
    coordinator.shutdown()


def main() -> None:
    """Demo entry point."""
    output = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("geoscene_demo.html")
    asyncio.run(run_demo(output))


if __name__ == "__main__":
    main()
