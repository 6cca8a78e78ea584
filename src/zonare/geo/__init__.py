"""Planar geometry and zone resolution. Pure functions, no I/O."""

from zonare.geo.geometry import calculate_bbox, parse_wkt_point, point_in_polygon, point_in_ring
from zonare.geo.zones import ZONE_FIELD_ALIASES, find_zones_for_point

__all__ = [
    "ZONE_FIELD_ALIASES",
    "calculate_bbox",
    "find_zones_for_point",
    "parse_wkt_point",
    "point_in_polygon",
    "point_in_ring",
]
