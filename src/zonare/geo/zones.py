"""Resolve which zoning polygons of a GeoJSON feature collection contain a point."""

import logging
from typing import Any

from zonare.core.types import Point, ZoneInfo
from zonare.geo.geometry import point_in_polygon

logger = logging.getLogger(__name__)

# Canonical ZoneInfo field → accepted source property names, in priority order.
# Portals disagree on casing and language (Romanian vs. English keys).
ZONE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "zona": ("zona", "zone", "ZONA"),
    "subzona": ("subzona", "subzone", "SUBZONA"),
    "cod_zona": ("cod_zona", "zoneCode", "COD_ZONA"),
    "definitie": ("definitie", "definition", "DEFINITIE"),
    "pot": ("pot", "POT"),
    "cut": ("cut", "CUT"),
    "hmax": ("hmax", "HMAX"),
    "hrmax": ("hrmax", "HRMAX"),
    "regulament": ("regulament", "regulation", "REGULAMENT"),
}


def _first_present(props: dict[str, Any], aliases: tuple[str, ...]) -> str | None:
    for key in aliases:
        val = props.get(key)
        if val is not None and val != "":
            return str(val)
    return None


def zone_info_from_feature(feature: dict[str, Any]) -> ZoneInfo:
    """Map a feature's property bag onto ZoneInfo using ZONE_FIELD_ALIASES."""
    props = feature.get("properties") or {}
    feature_id = feature.get("id")
    attrs = {name: _first_present(props, aliases) for name, aliases in ZONE_FIELD_ALIASES.items()}
    return ZoneInfo(feature_id=str(feature_id) if feature_id is not None else None, **attrs)


def find_zones_for_point(point: Point, feature_collection: dict[str, Any] | None) -> list[ZoneInfo]:
    """Return a ZoneInfo for every Polygon feature containing point, in feature order.

    Features without geometry or with any type other than Polygon
    (MultiPolygon included) are skipped.
    """
    zones: list[ZoneInfo] = []
    features = (feature_collection or {}).get("features") or []
    skipped = 0

    for feature in features:
        geom = feature.get("geometry")
        if not geom or geom.get("type") != "Polygon":
            skipped += 1
            continue

        if point_in_polygon(point, geom.get("coordinates") or []):
            zones.append(zone_info_from_feature(feature))

    if skipped:
        logger.debug("Skipped %d non-Polygon features", skipped)
    return zones
