"""Presenters: lifecycle, content wrapping, picking and the two back-ends."""

from geoscene.presenter.base import Presenter
from geoscene.presenter.camera import Camera, CameraAnimator
from geoscene.presenter.capabilities import CapabilityProbe
from geoscene.presenter.content import ContentBinding, ContentFrame
from geoscene.presenter.factory import PresenterFactory, create_presenter_config
from geoscene.presenter.hooks import PresenterHooks, RenderStats
from geoscene.presenter.immersive import ImmersivePresenter
from geoscene.presenter.layers import LayerBuilderRegistry
from geoscene.presenter.lifecycle import PresenterLifecycle, PresenterState
from geoscene.presenter.map_presenter import MapPresenter
from geoscene.presenter.offset_wrapper import OffsetWrapper
from geoscene.presenter.pointer import PickHit, PointerEvent, PointerEventType, RawPointerInput
from geoscene.presenter.session import ImmersiveHost, ImmersiveSession, InlineHost, SessionRequest

__all__ = [
    "Camera",
    "CameraAnimator",
    "CapabilityProbe",
    "ContentBinding",
    "ContentFrame",
    "ImmersiveHost",
    "ImmersivePresenter",
    "ImmersiveSession",
    "InlineHost",
    "LayerBuilderRegistry",
    "MapPresenter",
    "OffsetWrapper",
    "PickHit",
    "PointerEvent",
    "PointerEventType",
    "Presenter",
    "PresenterFactory",
    "PresenterHooks",
    "PresenterLifecycle",
    "PresenterState",
    "RawPointerInput",
    "RenderStats",
    "SessionRequest",
    "create_presenter_config",
]
