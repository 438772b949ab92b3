"""Scene axis conventions.

Scene frames store (east, north, up) with a permuted/signed axis order:

    Y_UP: x = east, y = up,    z = -north   (tangent-plane scenes)
    Z_UP: x = east, y = north, z = up       (projected map scenes, default)

``matrix`` maps ENU column vectors into scene coordinates; the rotation
between two conventions is ``dst.matrix @ src.matrix.T``.
"""

from enum import Enum

import numpy as np

_Y_UP_MATRIX = np.array(
    [
        [1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, -1.0, 0.0],
    ]
)
_Z_UP_MATRIX = np.eye(3)


class AxisConvention(str, Enum):
    Y_UP = "y"
    Z_UP = "z"

    @property
    def matrix(self) -> np.ndarray:
        return _Y_UP_MATRIX if self is AxisConvention.Y_UP else _Z_UP_MATRIX

    @property
    def up_vector(self) -> np.ndarray:
        return self.matrix @ np.array([0.0, 0.0, 1.0])

    def enu_to_scene(self, enu: np.ndarray) -> np.ndarray:
        """(..., 3) ENU -> (..., 3) scene coordinates."""
        return np.asarray(enu, dtype=float) @ self.matrix.T

    def scene_to_enu(self, xyz: np.ndarray) -> np.ndarray:
        """(..., 3) scene -> (..., 3) ENU coordinates."""
        return np.asarray(xyz, dtype=float) @ self.matrix

    def rotation_to(self, other: "AxisConvention") -> np.ndarray:
        """Rotation taking vectors in this convention to ``other``."""
        return other.matrix @ self.matrix.T

    def conjugate(self, enu_rotation: np.ndarray) -> np.ndarray:
        """Express an ENU-frame rotation in this scene convention."""
        return self.matrix @ enu_rotation @ self.matrix.T
