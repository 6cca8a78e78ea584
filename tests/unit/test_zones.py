"""Tests for resolving containing zones from a GeoJSON feature collection."""

from zonare.core.types import Point
from zonare.geo.zones import find_zones_for_point, zone_info_from_feature

SQUARE = [[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]
FAR_SQUARE = [[20, 20], [30, 20], [30, 30], [20, 30], [20, 20]]


def _feature(fid, rings, gtype="Polygon", **props):
    return {
        "type": "Feature",
        "id": fid,
        "geometry": {"type": gtype, "coordinates": rings},
        "properties": props,
    }


class TestZoneInfoFromFeature:
    def test_lowercase_romanian_keys(self):
        zone = zone_info_from_feature(_feature(
            7, SQUARE, zona="L", subzona="L1", cod_zona="L1a", definitie="Locuinte individuale",
            pot="30", cut="0.6", hmax="10", hrmax="P+1", regulament="https://x.ro/L1a.pdf",
        ))
        assert zone.feature_id == "7"
        assert (zone.zona, zone.subzona, zone.cod_zona) == ("L", "L1", "L1a")
        assert (zone.pot, zone.cut, zone.hmax, zone.hrmax) == ("30", "0.6", "10", "P+1")
        assert zone.regulament == "https://x.ro/L1a.pdf"
        assert zone.building_types is None

    def test_english_and_uppercase_aliases(self):
        zone = zone_info_from_feature(_feature(
            "f1", SQUARE, zone="M", subzone="M2", zoneCode="M2a", definition="Mixt",
            POT=60, CUT=2.4, HMAX=28, HRMAX="P+8", regulation="https://x.ro/M2.pdf",
        ))
        assert (zone.zona, zone.subzona, zone.cod_zona, zone.definitie) == ("M", "M2", "M2a", "Mixt")
        assert (zone.pot, zone.cut, zone.hmax) == ("60", "2.4", "28")
        assert zone.regulament == "https://x.ro/M2.pdf"

    def test_first_alias_wins(self):
        zone = zone_info_from_feature(_feature(1, SQUARE, zona="A", zone="B", ZONA="C"))
        assert zone.zona == "A"

    def test_empty_value_falls_through_to_next_alias(self):
        zone = zone_info_from_feature(_feature(1, SQUARE, cod_zona="", COD_ZONA="V1"))
        assert zone.cod_zona == "V1"

    def test_missing_attributes_are_none(self):
        zone = zone_info_from_feature({"geometry": None})
        assert zone.feature_id is None
        assert zone.zona is None and zone.regulament is None


class TestFindZonesForPoint:
    def test_returns_containing_polygons_in_feature_order(self):
        fc = {"features": [
            _feature(1, [SQUARE], cod_zona="L1a"),
            _feature(2, [FAR_SQUARE], cod_zona="M1"),
            _feature(3, [SQUARE], cod_zona="CP"),
        ]}
        zones = find_zones_for_point(Point(5, 5), fc)
        assert [z.cod_zona for z in zones] == ["L1a", "CP"]

    def test_point_in_hole_excluded(self):
        hole = [[4, 4], [6, 4], [6, 6], [4, 6], [4, 4]]
        fc = {"features": [_feature(1, [SQUARE, hole], cod_zona="L1a")]}
        assert find_zones_for_point(Point(5, 5), fc) == []
        assert len(find_zones_for_point(Point(1, 1), fc)) == 1

    def test_non_polygon_geometries_skipped(self):
        fc = {"features": [
            _feature(1, [[SQUARE]], gtype="MultiPolygon", cod_zona="MP"),
            _feature(2, [5, 5], gtype="Point", cod_zona="PT"),
            {"id": 3, "geometry": None, "properties": {"cod_zona": "NG"}},
            _feature(4, [SQUARE], cod_zona="OK"),
        ]}
        assert [z.cod_zona for z in find_zones_for_point(Point(5, 5), fc)] == ["OK"]

    def test_empty_or_missing_collection(self):
        assert find_zones_for_point(Point(5, 5), {}) == []
        assert find_zones_for_point(Point(5, 5), {"features": []}) == []
        assert find_zones_for_point(Point(5, 5), None) == []
