"""Domain models for the boundary dataset."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union

Coordinate = tuple[float, float]
Ring = tuple[Coordinate, ...]


@dataclass(frozen=True, slots=True)
class Polygon:
    """Ordered rings; the first ring is the outer boundary, the rest are holes."""

    rings: tuple[Ring, ...]

    @property
    def outer_ring(self) -> Ring | None:
        return self.rings[0] if self.rings else None

    @property
    def geom_type(self) -> str:
        return "Polygon"

    def iter_rings(self) -> Iterator[Ring]:
        yield from self.rings


@dataclass(frozen=True, slots=True)
class MultiPolygon:
    parts: tuple[Polygon, ...]

    @property
    def geom_type(self) -> str:
        return "MultiPolygon"

    def iter_rings(self) -> Iterator[Ring]:
        for part in self.parts:
            yield from part.rings


Geometry = Union[Polygon, MultiPolygon]


@dataclass(frozen=True, slots=True)
class Region:
    """One administrative boundary unit."""

    code: str
    name: str
    geometry: Geometry


@dataclass(frozen=True, slots=True)
class BoundaryDataset:
    """Immutable, ordered collection of regions keyed by unique code."""

    regions: tuple[Region, ...]
    _index: dict[str, Region] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, Region] = {}
        for region in self.regions:
            if region.code in index:
                raise ValueError(f"Duplicate region code '{region.code}'")
            index[region.code] = region
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self.regions)

    def __contains__(self, code: object) -> bool:
        return code in self._index

    def get(self, code: str) -> Region:
        try:
            return self._index[code]
        except KeyError:
            raise KeyError(f"Unknown region code '{code}'") from None

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(region.code for region in self.regions)
