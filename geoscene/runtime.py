"""GeoRuntime - the process-scoped registries, grouped and injectable.

Nothing in geoscene reads a module-level registry. Components receive the
runtime (or one of its registries) explicitly, and tests build a fresh
runtime per case or call ``reset()``.
"""

import logging
from dataclasses import dataclass, field

from geoscene.core.registry import CapabilityCache, ReferenceSystemRegistry
from geoscene.presenter.layers import LayerBuilderRegistry

logger = logging.getLogger(__name__)


@dataclass
class GeoRuntime:
    """Registries shared by adapters, presenters and the factory.

    Attributes:
        reference_systems: CRS code -> definition
        capabilities: Cached capability probes and loaded back-end modules
        layer_builders: Map layer source kind -> layer builder
    """

    reference_systems: ReferenceSystemRegistry = field(default_factory=ReferenceSystemRegistry)
    capabilities: CapabilityCache = field(default_factory=CapabilityCache)
    layer_builders: LayerBuilderRegistry = field(default_factory=LayerBuilderRegistry.with_defaults)

    def reset(self) -> None:
        """Forget registered reference systems, probe results and custom layer builders."""
        self.reference_systems.reset()
        self.capabilities.reset()
        self.layer_builders.reset()
        logger.info("GeoRuntime reset")
