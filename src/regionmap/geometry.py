"""Label anchor and bounds computations over region geometry.

The label anchor is a vertex average of a single ring, not an area-weighted
centroid. It is cheap and stable, but for strongly concave outlines the point
can land outside the polygon. MultiPolygons are anchored on the outer ring of
their first part only; any further parts are ignored.
"""

from __future__ import annotations

from typing import Iterable

from .models import Coordinate, Geometry, MultiPolygon, Polygon, Region, Ring

MIN_RING_POINTS = 3

Bounds = tuple[float, float, float, float]


class GeometryError(ValueError):
    """Geometry cannot be used for the requested computation."""


class DegenerateRingError(GeometryError):
    """Ring has fewer than the minimum number of coordinates."""


def ring_average(ring: Ring) -> Coordinate:
    """Arithmetic mean of every coordinate pair in ``ring``."""
    if len(ring) < MIN_RING_POINTS:
        raise DegenerateRingError(
            f"Ring has {len(ring)} coordinate(s); at least {MIN_RING_POINTS} are required"
        )
    sum_x = 0.0
    sum_y = 0.0
    for x, y in ring:
        sum_x += x
        sum_y += y
    count = len(ring)
    return (sum_x / count, sum_y / count)


def _anchor_ring(geometry: Geometry) -> Ring:
    if isinstance(geometry, MultiPolygon):
        if not geometry.parts:
            raise DegenerateRingError("MultiPolygon has no parts")
        polygon = geometry.parts[0]
    elif isinstance(geometry, Polygon):
        polygon = geometry
    else:
        raise GeometryError(f"Unsupported geometry: {type(geometry).__name__}")
    ring = polygon.outer_ring
    if ring is None:
        raise DegenerateRingError("Polygon has no rings")
    return ring


def label_anchor(geometry: Geometry) -> Coordinate:
    """Return the ``(x, y)`` point a region label is anchored at."""
    return ring_average(_anchor_ring(geometry))


def dataset_bounds(regions: Iterable[Region]) -> Bounds:
    """Union bounds ``(min_x, min_y, max_x, max_y)`` over every ring of every region."""
    min_x = min_y = float("inf")
    max_x = max_y = float("-inf")
    for region in regions:
        for ring in region.geometry.iter_rings():
            for x, y in ring:
                min_x = min(min_x, x)
                min_y = min(min_y, y)
                max_x = max(max_x, x)
                max_y = max(max_y, y)
    if min_x > max_x:
        raise GeometryError("Cannot compute bounds of an empty dataset")
    return (min_x, min_y, max_x, max_y)
