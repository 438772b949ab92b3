"""geoscene - Geospatial scenes with interchangeable presenters.

One world of addressable entities, shown either through an immersive
(tangent-plane, stereo) presenter or a tiled 2.5D map presenter, with
stable entity identity across runtime mode switches.

Modules:
    core: Geodetic math, projections, reference-system registry, coordinate adapter
    model: Data structures (GeographicPoint, OriginFrame, Extent, layers, options)
    scene: Scene graph nodes used as display handles
    presenter: Presenter contract, lifecycle, map and immersive presenters, factory
    world: Entity registry, frame loop and mode-switch coordinator

Example:
    from geoscene.runtime import GeoRuntime
    from geoscene.core import CoordinateAdapter
    from geoscene.world import World, ModeSwitchCoordinator
"""
