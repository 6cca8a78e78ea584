"""Zonare CLI: address lookup, regulation indexing and RAG search commands."""

import asyncio
import logging
import sys

from zonare.config import settings
from zonare.container import build_services
from zonare.core.types import CITY_CONFIGS
from zonare.observability.logging import bind_correlation_id, setup_logging
from zonare.observability.tracing import init_tracing

logger = logging.getLogger(__name__)


def _init(json_logs: bool = False) -> None:
    setup_logging(json_format=json_logs, level=settings.log_level)
    init_tracing(settings.mlflow_tracking_uri, settings.mlflow_experiment_name)


def main() -> None:
    """Run an address lookup: zonare <city_id> <address>"""
    if len(sys.argv) < 3:
        print("Usage: zonare <city_id> <address>")
        print(f"  Cities: {', '.join(CITY_CONFIGS)}")
        print('  Example: zonare bucuresti-ilfov "Bulevardul Unirii 1"')
        sys.exit(1)

    _init()
    city_id = sys.argv[1]
    if city_id not in CITY_CONFIGS:
        print(f"Unknown city: {city_id}. Available: {', '.join(CITY_CONFIGS)}")
        sys.exit(1)

    address = " ".join(sys.argv[2:])
    with bind_correlation_id():
        asyncio.run(_lookup(city_id, address))


async def _lookup(city_id: str, address: str) -> None:
    from zonare.pipeline.lookup import lookup_address_with_analysis

    services = build_services(settings)
    try:
        portal = services.portal(city_id)
        print("\nZonare Zoning Lookup")
        print(f"{'=' * 50}")
        print(f"Looking up: {address} ({portal.config.name})\n")

        result = await lookup_address_with_analysis(portal, services.llm, address)
    finally:
        await services.aclose()

    if not result.selected_address:
        print("No address found. Check the address and try again.")
        return

    print(f"Address:  {result.selected_address.name}")
    if result.point is None:
        print(f"Location could not be resolved from: {result.selected_address.wkt}")
        return
    print(f"Point:    {result.point.x}, {result.point.y} ({portal.config.epsg})")
    print()

    if not result.zones:
        print("No zoning polygon contains this point.")
        return

    for zone in result.zones:
        print(f"{'─' * 50}")
        print(f"Zone:       {zone.cod_zona or '?'}  {zone.zona or ''} {zone.subzona or ''}".rstrip())
        if zone.definitie:
            print(f"Definition: {zone.definitie}")
        if zone.pot or zone.cut:
            print(f"POT / CUT:  {zone.pot or '?'} / {zone.cut or '?'}")
        if zone.hmax or zone.hrmax:
            print(f"Max height: {zone.hmax or '?'} (regime {zone.hrmax or '?'})")
        if zone.regulament:
            print(f"Regulation: {zone.regulament}")
        if zone.building_types:
            print("Permitted building types:")
            for building_type in zone.building_types:
                print(f"  - {building_type}")
    print()


def index_main() -> None:
    """Index one regulation PDF: zonare-index <zone_code> <pdf_url>"""
    if len(sys.argv) < 3:
        print("Usage: zonare-index <zone_code> <pdf_url>")
        sys.exit(1)

    _init()
    with bind_correlation_id():
        count = asyncio.run(_index(sys.argv[1], sys.argv[2]))
    print(f"Indexed {count} chunks for zone {sys.argv[1]}")


async def _index(zone_code: str, pdf_url: str) -> int:
    from zonare.pipeline.ingest import index_regulation
    from zonare.storage.db import init_db

    services = build_services(settings)
    try:
        if services.rag is None or services.engine is None:
            logger.error("OPENAI_API_KEY not set, cannot index")
            return 0
        await init_db(services.engine)
        return await index_regulation(services.rag, zone_code, pdf_url)
    finally:
        await services.aclose()


def search_main() -> None:
    """Search indexed regulation chunks: zonare-search <zone_code> <query>"""
    if len(sys.argv) < 3:
        print("Usage: zonare-search <zone_code> <query>")
        print('  Example: zonare-search L1a "POT maxim locuinte individuale"')
        sys.exit(1)

    _init()
    zone_code = sys.argv[1]
    query = " ".join(sys.argv[2:])
    with bind_correlation_id():
        asyncio.run(_search(zone_code, query))


async def _search(zone_code: str, query: str) -> None:
    services = build_services(settings)
    try:
        if services.rag is None:
            print("OPENAI_API_KEY not set, RAG search unavailable")
            return
        results = await services.rag.retrieve_context(zone_code, query, limit=settings.rag_context_limit)
    finally:
        await services.aclose()

    print(f"\n{len(results)} chunks for zone {zone_code}: {query}\n")
    for idx, r in enumerate(results, 1):
        snippet = " ".join(r.chunk[:300].split())
        print(f"[{idx}] score={r.score:.4f} chars {r.start}-{r.end}  {r.source_url}")
        print(f"    {snippet}")
        print()
