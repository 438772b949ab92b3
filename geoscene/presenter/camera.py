"""Camera state and per-frame fly-to animation.

Animations never block: CameraAnimator.update(delta) is called from the
presenter's post_update once per frame. Starting a new animation cancels
the running one (last-write-wins). After dispose() every update and
completion callback is a no-op.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)


def ease_in_out_cubic(t: float) -> float:
    """Cubic ease-in/ease-out on [0, 1]."""
    if t < 0.5:
        return 4 * t * t * t
    return 1 - (-2 * t + 2) ** 3 / 2


@dataclass
class Camera:
    """Perspective camera in scene coordinates.

    Attributes:
        position: Eye position
        target: Look-at point
        fov_deg: Vertical field of view
        near / far: Clip planes
        up: Scene up vector
    """

    position: np.ndarray
    target: np.ndarray
    fov_deg: float
    near: float
    far: float
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))

    @property
    def direction(self) -> np.ndarray:
        """Unit view direction (position -> target)."""
        offset = self.target - self.position
        norm = np.linalg.norm(offset)
        if norm == 0:
            return -self.up
        return offset / norm

    def move_to(self, position: np.ndarray, target: np.ndarray | None = None) -> None:
        self.position = np.array(position, dtype=float)
        if target is not None:
            self.target = np.array(target, dtype=float)


@dataclass
class CameraAnimation:
    """One interpolation between two camera poses."""

    start_position: np.ndarray
    end_position: np.ndarray
    start_target: np.ndarray
    end_target: np.ndarray
    duration_s: float
    on_complete: Callable[[], None] | None = None
    elapsed_s: float = 0.0
    cancelled: bool = False

    @property
    def progress(self) -> float:
        if self.duration_s <= 0:
            return 1.0
        return min(self.elapsed_s / self.duration_s, 1.0)

    @property
    def done(self) -> bool:
        return self.cancelled or self.progress >= 1.0

    def pose_at(self, progress: float) -> tuple[np.ndarray, np.ndarray]:
        k = ease_in_out_cubic(progress)
        position = self.start_position + (self.end_position - self.start_position) * k
        target = self.start_target + (self.end_target - self.start_target) * k
        return position, target


class CameraAnimator:
    """Drives at most one CameraAnimation on a camera.

    Example:
        animator.animate_to(position, target, duration_s=1.0)
        # each frame:
        animator.update(delta)
    """

    def __init__(self, camera: Camera) -> None:
        self.camera = camera
        self._active: CameraAnimation | None = None
        self._disposed = False

    @property
    def is_animating(self) -> bool:
        return self._active is not None and not self._active.done

    def animate_to(
        self,
        position: np.ndarray,
        target: np.ndarray,
        duration_s: float,
        on_complete: Callable[[], None] | None = None,
    ) -> CameraAnimation | None:
        """Start a new animation, cancelling the current one.

        A non-positive duration jumps immediately.
        """
        if self._disposed:
            logger.debug("Ignoring camera animation request after dispose")
            return None
        self.cancel()
        animation = CameraAnimation(
            start_position=self.camera.position.copy(),
            end_position=np.array(position, dtype=float),
            start_target=self.camera.target.copy(),
            end_target=np.array(target, dtype=float),
            duration_s=duration_s,
            on_complete=on_complete,
        )
        self._active = animation
        if duration_s <= 0:
            self._finish(animation)
        return animation

    def update(self, delta_s: float) -> None:
        animation = self._active
        if self._disposed or animation is None or animation.cancelled:
            return
        animation.elapsed_s += delta_s
        position, target = animation.pose_at(animation.progress)
        self.camera.move_to(position, target)
        if animation.progress >= 1.0:
            self._finish(animation)

    def cancel(self) -> None:
        if self._active is not None and not self._active.done:
            self._active.cancelled = True
            logger.debug("Camera animation cancelled by a newer request")
        self._active = None

    def dispose(self) -> None:
        self.cancel()
        self._disposed = True

    def _finish(self, animation: CameraAnimation) -> None:
        self.camera.move_to(animation.end_position, animation.end_target)
        self._active = None
        if animation.on_complete is not None and not self._disposed:
            try:
                animation.on_complete()
            except Exception:
                logger.exception("Camera animation completion callback failed")
