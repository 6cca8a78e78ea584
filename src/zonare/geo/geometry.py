"""Planar geometry for zone resolution: WKT points, bboxes, point-in-polygon.

All coordinates are assumed to be in a projected CRS (e.g., EPSG:3844
Stereo 70); no geodesic correction is applied. Points exactly on a ring's
boundary count as inside that ring.
"""

import re
from collections.abc import Sequence

from zonare.core.types import Point

EPSILON = 1e-9
DEFAULT_CRS = "EPSG:3844"

_NUM = r"(-?[\d.]+(?:[eE][-+]?\d+)?)"
MULTIPOINT_Z_PATTERN = re.compile(rf"MULTIPOINT Z \({_NUM}\s+{_NUM}\s+{_NUM}\)")
POINT_PATTERN = re.compile(rf"POINT \({_NUM}\s+{_NUM}\)")

Ring = Sequence[Sequence[float]]


def parse_wkt_point(wkt: str | None) -> Point | None:
    """Extract x, y from 'MULTIPOINT Z (x y z)' or 'POINT (x y)'.

    Returns None when neither form matches: the address was found but has
    no usable coordinate.
    """
    if not wkt:
        return None

    match = MULTIPOINT_Z_PATTERN.search(wkt) or POINT_PATTERN.search(wkt)
    if not match:
        return None
    try:
        return Point(x=float(match.group(1)), y=float(match.group(2)))
    except ValueError:
        return None


def _fmt(value: float) -> str:
    """Shortest round-trip repr, without a trailing '.0' on whole numbers."""
    s = repr(float(value))
    return s[:-2] if s.endswith(".0") else s


def calculate_bbox(point: Point, buffer: float, crs: str = DEFAULT_CRS) -> str:
    """Axis-aligned box of half-width `buffer` around point: 'minX,minY,maxX,maxY,CRS'."""
    min_x = point.x - buffer
    min_y = point.y - buffer
    max_x = point.x + buffer
    max_y = point.y + buffer
    return f"{_fmt(min_x)},{_fmt(min_y)},{_fmt(max_x)},{_fmt(max_y)},{crs}"


def point_in_ring(point: Point, ring: Ring) -> bool:
    """Even-odd ray casting over a single implicitly closed ring.

    A point collinear with an edge and inside its bounding box (1e-9
    tolerance) is on the boundary and returns True immediately.
    """
    x, y = point.x, point.y
    inside = False
    n = len(ring)

    for i in range(n):
        x1, y1 = ring[i][0], ring[i][1]
        x2, y2 = ring[(i + 1) % n][0], ring[(i + 1) % n][1]

        cross = (x2 - x1) * (y - y1) - (y2 - y1) * (x - x1)
        if abs(cross) < EPSILON:
            if (
                min(x1, x2) - EPSILON <= x <= max(x1, x2) + EPSILON
                and min(y1, y2) - EPSILON <= y <= max(y1, y2) + EPSILON
            ):
                return True

        if (y1 > y) != (y2 > y):
            x_intersect = (x2 - x1) * (y - y1) / (y2 - y1) + x1
            if x <= x_intersect:
                inside = not inside

    return inside


def point_in_polygon(point: Point, rings: Sequence[Ring]) -> bool:
    """True iff point is inside the outer ring (rings[0]) and inside no hole.

    A point on a hole's boundary is inside the hole, hence excluded.
    """
    if not rings:
        return False
    if not point_in_ring(point, rings[0]):
        return False
    return not any(point_in_ring(point, hole) for hole in rings[1:])
