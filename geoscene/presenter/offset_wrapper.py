"""Geometry offset wrapper.

Places content authored in one frame inside a presenter scene that uses
another frame, without touching the content's own transform. Two
presenter-owned nodes sit above the content:

    wrapper  - frame conversion at the presenter's current frame origin
               (translation + axis rotation)
    anchor   - compensation for origin rebases since the content was authored
    content  - the display handle, never mutated or reparented by a rebase

Cases (content frame -> scene frame):
    TANGENT -> PROJECTED: wrapper = T(origin CRS position incl. height) * R(axis);
        anchor = origin_authored - origin_current (CRS meters, tangent axis).
        ENU -> CRS is a pure translation, so world positions do not move on rebase.
    PROJECTED -> TANGENT: wrapper = R(axis) then minus origin CRS position.
    TANGENT -> TANGENT (different origins): anchor = exact rigid ENU rebase.
    PROJECTED -> PROJECTED (different axes): wrapper = R(axis).
"""

import logging

import numpy as np

from geoscene.core.axes import AxisConvention
from geoscene.core.geodesy import Geodesy
from geoscene.model.origin import OriginFrame
from geoscene.presenter.content import ContentBinding, ContentFrame
from geoscene.scene.node import SceneNode

logger = logging.getLogger(__name__)


class OffsetWrapper:
    """Presenter-owned nodes wrapping one foreign-frame display handle.

    Example:
        wrapper = OffsetWrapper(binding, ContentFrame.PROJECTED, AxisConvention.Z_UP, adapter.origin)
        scene.add(wrapper.wrapper)
        ...
        wrapper.update_origin(adapter.origin)  # after a rebase
    """

    def __init__(
        self,
        binding: ContentBinding,
        scene_frame: ContentFrame,
        scene_axis: AxisConvention,
        frame_origin: OriginFrame,
    ) -> None:
        self.binding = binding
        self.scene_frame = scene_frame
        self.scene_axis = scene_axis
        content = binding.handle
        self.wrapper = SceneNode(name=f"wrapper:{content.name or content.uuid[:8]}", renderable=False)
        self.anchor = SceneNode(name=f"anchor:{content.name or content.uuid[:8]}", renderable=False)
        self.wrapper.add(self.anchor)
        self.anchor.add(content)
        self.frame_origin = frame_origin
        self.update_origin(frame_origin)

    @property
    def content(self) -> SceneNode:
        return self.binding.handle

    @staticmethod
    def needed(binding: ContentBinding, scene_frame: ContentFrame, scene_axis: AxisConvention, frame_origin: OriginFrame) -> bool:
        """True if ``binding`` cannot be added to the scene as-is."""
        if binding.frame is not scene_frame or binding.axis is not scene_axis:
            return True
        if binding.frame is ContentFrame.TANGENT_PLANE:
            assert binding.origin is not None
            return binding.origin.generation != frame_origin.generation or binding.origin.ecef != frame_origin.ecef
        return False

    def update_origin(self, frame_origin: OriginFrame) -> None:
        """Recompute wrapper and anchor for the presenter's new frame origin.

        The content's represented geographic location stays unchanged.
        """
        self.frame_origin = frame_origin
        source, target = self.binding.frame, self.scene_frame
        content_axis = self.binding.axis

        if source is ContentFrame.TANGENT_PLANE and target is ContentFrame.PROJECTED:
            authored = self.binding.origin
            assert authored is not None
            self.wrapper.set_transform(
                self.scene_axis.enu_to_scene(frame_origin.projected_array),
                content_axis.rotation_to(self.scene_axis),
            )
            self.anchor.set_transform(
                content_axis.enu_to_scene(authored.projected_array - frame_origin.projected_array),
                np.eye(3),
            )
        elif source is ContentFrame.PROJECTED and target is ContentFrame.TANGENT_PLANE:
            self.wrapper.set_transform(
                -self.scene_axis.enu_to_scene(frame_origin.projected_array),
                content_axis.rotation_to(self.scene_axis),
            )
            self.anchor.set_transform(np.zeros(3), np.eye(3))
        elif source is ContentFrame.TANGENT_PLANE:
            authored = self.binding.origin
            assert authored is not None
            rotation, translation = Geodesy.tangent_rebase(authored, frame_origin)
            self.wrapper.set_transform(np.zeros(3), content_axis.rotation_to(self.scene_axis))
            self.anchor.set_transform(content_axis.enu_to_scene(translation), content_axis.conjugate(rotation))
        else:
            self.wrapper.set_transform(np.zeros(3), content_axis.rotation_to(self.scene_axis))
            self.anchor.set_transform(np.zeros(3), np.eye(3))
        logger.debug(f"Wrapper for {self.content!r} updated to origin generation {frame_origin.generation}")

    def unwrap(self) -> SceneNode:
        """Detach the content and drop the helper nodes. Returns the untouched content."""
        content = self.content
        content.remove_from_parent()
        self.wrapper.remove_from_parent()
        return content
