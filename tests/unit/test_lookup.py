"""Tests for the address lookup and building analysis pipelines."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from zonare.core.errors import PortalError
from zonare.core.types import AddressSearchResult, BuildingDetails, Point, get_city_config
from zonare.pipeline.lookup import analyze_building, lookup_address, lookup_address_with_analysis

SQUARE = [[587000, 329000], [587200, 329000], [587200, 329200], [587000, 329200], [587000, 329000]]
REGULAMENT = "https://urbanism.pmb.ro/docs/L1a.pdf"


def _hit(wkt: str = "MULTIPOINT Z (587100 329100 0)") -> AddressSearchResult:
    return AddressSearchResult(
        id_map_search="3", name="Bulevardul Unirii 1", icon_class="address", wkt=wkt, data_source_name="Adrese",
    )


def _feature_collection(*codes, regulament=REGULAMENT):
    return {"type": "FeatureCollection", "features": [
        {
            "id": i,
            "geometry": {"type": "Polygon", "coordinates": [SQUARE]},
            "properties": {"cod_zona": code, "regulament": regulament},
        }
        for i, code in enumerate(codes)
    ]}


def _portal(search_results=None, features=None, initialized=False):
    portal = MagicMock()
    portal.config = get_city_config("bucuresti-ilfov")
    portal.session_initialized = initialized
    portal.initialize_session = AsyncMock(return_value=True)
    portal.search_address = AsyncMock(return_value=search_results if search_results is not None else [_hit()])
    portal.get_features = AsyncMock(return_value=features if features is not None else _feature_collection("L1a"))
    return portal


class TestLookupAddress:
    @pytest.mark.asyncio
    async def test_full_lookup(self):
        portal = _portal(features=_feature_collection("L1a", "CP"))

        result = await lookup_address(portal, "Bulevardul Unirii 1")

        portal.initialize_session.assert_awaited_once()
        portal.search_address.assert_awaited_once_with("Bulevardul Unirii 1")
        portal.get_features.assert_awaited_once_with("586400,328400,587800,329800,EPSG:3844")
        assert result.point == Point(587100.0, 329100.0)
        assert result.selected_address.name == "Bulevardul Unirii 1"
        assert [z.cod_zona for z in result.zones] == ["L1a", "CP"]

    @pytest.mark.asyncio
    async def test_existing_session_reused(self):
        portal = _portal(initialized=True)
        await lookup_address(portal, "Bulevardul Unirii 1")
        portal.initialize_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_search_results(self):
        portal = _portal(search_results=[])

        result = await lookup_address(portal, "Strada Inexistentă 999")

        assert result.address == "Strada Inexistentă 999"
        assert result.search_results == [] and result.zones == []
        assert result.point is None
        portal.get_features.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparseable_wkt(self):
        portal = _portal(search_results=[_hit(wkt="")])

        result = await lookup_address(portal, "Bulevardul Unirii 1")

        assert result.selected_address is not None
        assert result.point is None and result.zones == []
        portal.get_features.assert_not_called()

    @pytest.mark.asyncio
    async def test_point_outside_every_zone(self):
        portal = _portal(search_results=[_hit(wkt="POINT (1 1)")])
        result = await lookup_address(portal, "x")
        assert result.point == Point(1.0, 1.0)
        assert result.zones == []

    @pytest.mark.asyncio
    async def test_portal_error_propagates(self):
        portal = _portal()
        portal.get_features.side_effect = PortalError("bucuresti-ilfov feature fetch failed: HTTP 500")
        with pytest.raises(PortalError):
            await lookup_address(portal, "x")


class TestLookupAddressWithAnalysis:
    @pytest.mark.asyncio
    async def test_without_llm_returns_plain_lookup(self):
        with patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock) as mock_download:
            result = await lookup_address_with_analysis(_portal(), None, "x")
        assert result.zones[0].building_types is None
        mock_download.assert_not_called()

    @pytest.mark.asyncio
    async def test_building_types_per_zone(self):
        features = _feature_collection("L1a")
        features["features"].append({
            "id": 9, "geometry": {"type": "Polygon", "coordinates": [SQUARE]}, "properties": {"cod_zona": "V1"},
        })
        llm = MagicMock()

        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value="text") as dl,
            patch("zonare.pipeline.lookup.extract_building_types", new_callable=AsyncMock,
                  return_value=["birouri"]) as extract,
        ):
            result = await lookup_address_with_analysis(_portal(features=features), llm, "x")

        l1a, v1 = result.zones
        assert l1a.building_types == ["birouri"]
        assert v1.building_types is None
        dl.assert_awaited_once_with(REGULAMENT)
        extract.assert_awaited_once_with(llm, "text", "L1a")

    @pytest.mark.asyncio
    async def test_empty_pdf_gives_empty_list(self):
        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value=""),
            patch("zonare.pipeline.lookup.extract_building_types", new_callable=AsyncMock) as extract,
        ):
            result = await lookup_address_with_analysis(_portal(), MagicMock(), "x")
        assert result.zones[0].building_types == []
        extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_zone_failure_does_not_fail_lookup(self):
        with patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock,
                   side_effect=RuntimeError("disk full")):
            result = await lookup_address_with_analysis(_portal(), MagicMock(), "x")
        assert result.zones[0].building_types == []


class TestAnalyzeBuilding:
    @pytest.mark.asyncio
    async def test_zone_not_found(self):
        result = await analyze_building(_portal(), None, MagicMock(), "x", "M2", "birouri")
        assert result is None

    @pytest.mark.asyncio
    async def test_zone_without_regulation(self):
        portal = _portal(features=_feature_collection("L1a", regulament=None))
        assert await analyze_building(portal, None, MagicMock(), "x", "L1a", "birouri") is None

    @pytest.mark.asyncio
    async def test_unreadable_pdf_is_unknown(self):
        llm = MagicMock()
        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value=""),
            patch("zonare.pipeline.lookup.analyze_building_details", new_callable=AsyncMock) as analyze,
        ):
            result = await analyze_building(_portal(), None, llm, "x", "L1a", "birouri")
        assert result == BuildingDetails()
        analyze.assert_not_called()

    @pytest.mark.asyncio
    async def test_indexes_then_analyzes_with_context(self):
        rag = MagicMock()
        rag.index_document = AsyncMock(return_value=3)
        llm = MagicMock()
        details = BuildingDetails(pot="30%")

        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value="regulament"),
            patch("zonare.pipeline.lookup.gather_regulation_context", new_callable=AsyncMock,
                  return_value="context") as gather,
            patch("zonare.pipeline.lookup.analyze_building_details", new_callable=AsyncMock,
                  return_value=details) as analyze,
        ):
            result = await analyze_building(_portal(), rag, llm, "x", "L1a", "birouri")

        assert result is details
        rag.index_document.assert_awaited_once_with("L1a", REGULAMENT, "regulament")
        gather.assert_awaited_once_with(rag, "regulament", "L1a", "birouri", limit=30)
        analyze.assert_awaited_once_with(llm, "context", "L1a", "birouri")

    @pytest.mark.asyncio
    async def test_index_failure_still_analyzes(self):
        rag = MagicMock()
        rag.index_document = AsyncMock(side_effect=RuntimeError("pgvector down"))

        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value="regulament"),
            patch("zonare.pipeline.lookup.gather_regulation_context", new_callable=AsyncMock, return_value="ctx"),
            patch("zonare.pipeline.lookup.analyze_building_details", new_callable=AsyncMock,
                  return_value=BuildingDetails(cut="0.9")),
        ):
            result = await analyze_building(_portal(), rag, MagicMock(), "x", "L1a", "birouri")

        assert result.cut == "0.9"

    @pytest.mark.asyncio
    async def test_without_rag_uses_document_context(self):
        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value="regulament"),
            patch("zonare.pipeline.lookup.gather_regulation_context", new_callable=AsyncMock,
                  return_value="ctx") as gather,
            patch("zonare.pipeline.lookup.analyze_building_details", new_callable=AsyncMock,
                  return_value=BuildingDetails()),
        ):
            await analyze_building(_portal(), None, MagicMock(), "x", "L1a", "birouri")

        gather.assert_awaited_once_with(None, "regulament", "L1a", "birouri", limit=30)

    @pytest.mark.asyncio
    async def test_context_limit_reaches_retrieval(self):
        rag = MagicMock()
        rag.index_document = AsyncMock(return_value=1)
        rag.retrieve_context = AsyncMock(return_value=[])

        with (
            patch("zonare.pipeline.lookup.download_pdf_text", new_callable=AsyncMock, return_value="regulament"),
            patch("zonare.pipeline.lookup.analyze_building_details", new_callable=AsyncMock,
                  return_value=BuildingDetails()),
        ):
            await analyze_building(_portal(), rag, MagicMock(), "x", "L1a", "birouri", context_limit=12)

        assert rag.retrieve_context.await_args.kwargs["limit"] == 12
