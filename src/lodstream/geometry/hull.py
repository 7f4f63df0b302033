"""Screen-space area of a projected bounding box.

The projected corners are wrapped in a convex hull (gift wrapping), the hull
is clipped against the unit viewport and the clipped ring is measured with the
shoelace formula.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from shapely.geometry import Polygon, box


Point2 = Tuple[float, float]

_UNIT_SQUARE = box(0.0, 0.0, 1.0, 1.0)


def _orientation(p: Point2, q: Point2, r: Point2) -> float:
    return (q[1] - p[1]) * (r[0] - q[0]) - (q[0] - p[0]) * (r[1] - q[1])


def _dist2(a: Point2, b: Point2) -> float:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2


def convex_hull(points: Sequence[Sequence[float]]) -> List[Point2]:
    """Gift-wrap hull starting from the leftmost point.

    Duplicate points are collapsed first. Among collinear candidates the
    farthest one wins, so hull vertices never include interior edge points.
    """
    unique = sorted({(float(p[0]), float(p[1])) for p in points})
    if len(unique) < 3:
        return list(unique)

    start = unique[0]
    hull: List[Point2] = []
    on_hull = start
    for _ in range(len(unique) + 1):
        hull.append(on_hull)
        endpoint = unique[0] if unique[0] != on_hull else unique[1]
        for candidate in unique:
            if candidate == on_hull:
                continue
            val = _orientation(on_hull, candidate, endpoint)
            if val < 0 or (val == 0 and _dist2(on_hull, candidate) > _dist2(on_hull, endpoint)):
                endpoint = candidate
        on_hull = endpoint
        if on_hull == start:
            break
    return hull


def clip_to_unit_square(ring: Sequence[Point2]) -> List[Point2]:
    """Intersect a convex ring with ``[0, 1]^2``; degenerate results are empty."""
    if len(ring) < 3:
        return []
    clipped = Polygon(ring).intersection(_UNIT_SQUARE)
    if clipped.is_empty or not isinstance(clipped, Polygon):
        return []
    return [(float(x), float(y)) for x, y in clipped.exterior.coords]


def shoelace_area(ring: Sequence[Point2]) -> float:
    if len(ring) < 3:
        return 0.0
    pts = np.asarray(ring, dtype=float)
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * abs(float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def surface_on_screen(points: Sequence[Sequence[float]]) -> float:
    """Fraction of the unit viewport covered by the hull of ``points``."""
    if len(points) < 3:
        return 0.0
    hull = convex_hull(points)
    if len(hull) < 3:
        return 0.0
    return shoelace_area(clip_to_unit_square(hull))


__all__ = ["clip_to_unit_square", "convex_hull", "shoelace_area", "surface_on_screen"]
