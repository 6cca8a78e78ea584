"""Address lookup pipeline: portal search → point → bbox → features → zones.

Optional analysis on top:
  - lookup_address_with_analysis(): permitted building types per zone
  - analyze_building(): POT / CUT / parcel / setback / frontage figures for
    one building type, answered from a RAG-assembled regulation context
"""

import logging
import time

from zonare.core.types import BuildingDetails, LookupResult
from zonare.geo.geometry import calculate_bbox, parse_wkt_point
from zonare.geo.zones import find_zones_for_point
from zonare.observability.tracing import trace
from zonare.retrieval.context import RAG_CONTEXT_LIMIT, gather_regulation_context
from zonare.retrieval.documents import download_pdf_text
from zonare.retrieval.llm import LLMClient, analyze_building_details, extract_building_types
from zonare.retrieval.portal import PortalClient
from zonare.retrieval.rag import RagService

logger = logging.getLogger(__name__)


@trace(name="lookup_address", span_type="CHAIN")
async def lookup_address(portal: PortalClient, address: str) -> LookupResult:
    """Resolve an address to the zoning polygons that contain it.

    Steps:
      1. Initialize the portal session if the portal requires one
      2. Search the address; no hits → empty result
      3. Parse the first hit's WKT; unparseable → result without point/zones
      4. Fetch features in a bbox around the point and keep the containing ones

    Raises:
        PortalError: the portal failed or answered with something unusable.
    """
    config = portal.config
    city = config.id
    start = time.monotonic()

    if config.requires_auth and not portal.session_initialized:
        logger.info("No session for %s, initializing", city, extra={"city": city})
        await portal.initialize_session()

    search_results = await portal.search_address(address)
    if not search_results:
        logger.info("No search results for %s in %s", address, city, extra={"city": city, "address": address})
        return LookupResult(address=address)

    selected = search_results[0]
    point = parse_wkt_point(selected.wkt)
    if point is None:
        logger.warning("%s: could not parse WKT point from: %s", city, selected.wkt, extra={"city": city})
        return LookupResult(address=address, search_results=search_results, selected_address=selected)

    bbox = calculate_bbox(point, config.default_buffer, config.epsg)
    logger.info("%s point %s (%s), bbox %s", city, point, config.epsg, bbox, extra={"city": city, "step": "bbox"})

    feature_collection = await portal.get_features(bbox)
    zones = find_zones_for_point(point, feature_collection)

    logger.info(
        "Found %d zones for address in %s", len(zones), city,
        extra={
            "city": city, "address": address, "step": "zones",
            "duration_ms": round((time.monotonic() - start) * 1000),
        },
    )
    return LookupResult(
        address=address,
        search_results=search_results,
        selected_address=selected,
        point=point,
        zones=zones,
    )


@trace(name="lookup_address_with_analysis", span_type="CHAIN")
async def lookup_address_with_analysis(
    portal: PortalClient, llm: LLMClient | None, address: str,
) -> LookupResult:
    """lookup_address() plus the permitted building types of every zone.

    Only zones carrying both a regulation URL and a zone code are analyzed.
    A zone whose analysis fails gets an empty list; the lookup still succeeds.
    """
    result = await lookup_address(portal, address)
    if llm is None:
        logger.warning("LLM not configured, skipping building type analysis")
        return result

    for zone in result.zones:
        if not (zone.regulament and zone.cod_zona):
            continue
        try:
            pdf_text = await download_pdf_text(zone.regulament)
            zone.building_types = (
                await extract_building_types(llm, pdf_text, zone.cod_zona) if pdf_text else []
            )
        except Exception as e:
            logger.error("Failed to analyze zone %s: %s", zone.cod_zona, e, extra={"zone_code": zone.cod_zona})
            zone.building_types = []

    return result


@trace(name="analyze_building", span_type="CHAIN")
async def analyze_building(
    portal: PortalClient,
    rag: RagService | None,
    llm: LLMClient,
    address: str,
    zone_code: str,
    building_type: str,
    context_limit: int = RAG_CONTEXT_LIMIT,
) -> BuildingDetails | None:
    """Regulation figures for building_type in the zone zone_code at address.

    Returns None when the address has no zone with that code, or the zone
    carries no regulation URL. An unreadable regulation PDF yields "??"
    for every field. At most context_limit chunks are retrieved from RAG.
    """
    result = await lookup_address(portal, address)
    zone = next((z for z in result.zones if z.cod_zona == zone_code), None)
    if zone is None or not zone.regulament:
        logger.info("Zone %s or its regulation not found", zone_code, extra={"zone_code": zone_code})
        return None

    pdf_text = await download_pdf_text(zone.regulament)
    if not pdf_text:
        logger.warning("Regulation PDF for %s is empty or unreadable", zone_code, extra={"zone_code": zone_code})
        return BuildingDetails()

    if rag is not None:
        try:
            await rag.index_document(zone_code, zone.regulament, pdf_text)
        except Exception as e:
            logger.warning(
                "Indexing regulation for %s failed, continuing without fresh chunks: %s", zone_code, e,
                extra={"zone_code": zone_code, "step": "index"},
            )

    context = await gather_regulation_context(rag, pdf_text, zone_code, building_type, limit=context_limit)
    return await analyze_building_details(llm, context, zone_code, building_type)
