"""SceneNode - minimal scene graph used as the display handle type.

A node has a local transform (position + 3x3 rotation), a parent and
children. Entities attach exactly one node (their display handle) to a
presenter; presenters re-home the same object on a mode switch instead
of recreating it, so ``uuid`` stays stable for the node's whole life.

Presenter-owned helper nodes (scene roots, offset wrappers) are created
with ``renderable=False`` and are skipped by pickers and layer builders.
"""

import uuid as uuid_lib
from collections.abc import Iterator
from typing import Any

import numpy as np


class SceneNode:
    """A node in a scene graph.

    Attributes:
        uuid: Stable identifier (never reused)
        name: Human-readable name
        position: Local translation (3,)
        rotation: Local rotation (3, 3)
        visible: Invisible nodes (and their subtrees) are not rendered or picked
        renderable: False for structural helper nodes
        pick_radius: Sphere radius used by ray picking, None = not pickable
        user_data: Free-form metadata (e.g. {"color": [r, g, b, a]})

    Example:
        marker = SceneNode(name="summit", position=(100.0, 0.0, 0.0), pick_radius=2.0)
        presenter.add_object(marker)
    """

    def __init__(
        self,
        name: str = "",
        position: tuple[float, float, float] | np.ndarray = (0.0, 0.0, 0.0),
        rotation: np.ndarray | None = None,
        pick_radius: float | None = None,
        user_data: dict[str, Any] | None = None,
        renderable: bool = True,
    ) -> None:
        self.uuid = uuid_lib.uuid4().hex
        self.name = name
        self.position = np.array(position, dtype=float)
        self.rotation = np.eye(3) if rotation is None else np.array(rotation, dtype=float)
        self.visible = True
        self.renderable = renderable
        self.pick_radius = pick_radius
        self.user_data: dict[str, Any] = dict(user_data or {})
        self.parent: SceneNode | None = None
        self.children: list[SceneNode] = []

    # =========================================================================
    # HIERARCHY
    # =========================================================================

    def add(self, child: "SceneNode") -> None:
        """Attach ``child``, detaching it from any previous parent first."""
        if child is self:
            raise ValueError("A node cannot be its own child")
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)

    def remove(self, child: "SceneNode") -> None:
        if child.parent is not self:
            raise ValueError(f"{child!r} is not a child of {self!r}")
        self.children.remove(child)
        child.parent = None

    def remove_from_parent(self) -> None:
        if self.parent is not None:
            self.parent.remove(self)

    def traverse(self) -> Iterator["SceneNode"]:
        """Depth-first iteration including self."""
        yield self
        for child in list(self.children):
            yield from child.traverse()

    def traverse_visible(self) -> Iterator["SceneNode"]:
        if not self.visible:
            return
        yield self
        for child in list(self.children):
            yield from child.traverse_visible()

    # =========================================================================
    # TRANSFORMS
    # =========================================================================

    @property
    def local_matrix(self) -> np.ndarray:
        matrix = np.eye(4)
        matrix[:3, :3] = self.rotation
        matrix[:3, 3] = self.position
        return matrix

    @property
    def world_matrix(self) -> np.ndarray:
        if self.parent is None:
            return self.local_matrix
        return self.parent.world_matrix @ self.local_matrix

    @property
    def world_position(self) -> np.ndarray:
        return self.world_matrix[:3, 3].copy()

    def set_transform(self, position: np.ndarray, rotation: np.ndarray | None = None) -> None:
        self.position = np.array(position, dtype=float)
        if rotation is not None:
            self.rotation = np.array(rotation, dtype=float)

    def __repr__(self) -> str:
        return f"SceneNode(name={self.name!r}, uuid={self.uuid[:8]})"
