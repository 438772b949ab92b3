"""Instrumentation hooks injected into presenters.

Subclass PresenterHooks and pass it to the factory (or a presenter) to
observe frames and lifecycle changes. Hook exceptions are logged and never
interrupt rendering.

Example:
    class FrameCounter(PresenterHooks):
        def __init__(self) -> None:
            self.frames = 0

        def on_frame_rendered(self, stats: RenderStats) -> None:
            self.frames += 1
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RenderStats:
    """Per-frame statistics.

    Attributes:
        presenter: Presenter name ("map", "immersive")
        frame: Frame counter (rendered frames only)
        node_count: Renderable nodes drawn
        layer_count: Back-end layers drawn
        duration_s: Wall time spent in render()
    """

    presenter: str
    frame: int
    node_count: int
    layer_count: int
    duration_s: float


class PresenterHooks:
    """No-op base; override what you need."""

    def on_frame_rendered(self, stats: RenderStats) -> None:
        pass

    def on_state_changed(self, presenter: str, source: str, target: str, event: str) -> None:
        pass
