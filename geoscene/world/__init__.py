"""World (entity registry, frame loop) and the mode-switch coordinator."""

from geoscene.world.coordinator import ModeSwitchCoordinator
from geoscene.world.world import EntityEvent, World

__all__ = ["EntityEvent", "ModeSwitchCoordinator", "World"]
