"""Scene graph primitives (SceneNode is the display handle type)."""

from geoscene.scene.node import SceneNode

__all__ = ["SceneNode"]
