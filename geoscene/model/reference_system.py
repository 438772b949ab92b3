"""ReferenceSystem - a registered projected CRS code and its definition."""

from dataclasses import dataclass


def normalize_code(code: str) -> str:
    """Canonical form of a CRS code ("epsg:32633 " -> "EPSG:32633")."""
    return code.strip().upper()


@dataclass(frozen=True)
class ReferenceSystem:
    """A CRS code bound to its definition (PROJ string or WKT).

    Immutable once registered: a code maps to exactly one definition
    for the lifetime of its registry.
    """

    code: str
    definition: str

    def __post_init__(self) -> None:
        if not self.code.strip():
            raise ValueError("ReferenceSystem code must not be empty")
        if not self.definition.strip():
            raise ValueError(f"ReferenceSystem {self.code} has an empty definition")
        object.__setattr__(self, "code", normalize_code(self.code))
