"""API route handlers for Zonare.

GET  /api/v1/counties                     counties with a configured portal
GET  /api/v1/counties/{county}/cities     cities of one county
GET  /api/v1/cities/{city_id}             public info for one city
POST /api/v1/lookup                       address → zones (optionally building types)
POST /api/v1/analyze-building             regulation figures for one building type
"""

import asyncio
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request

from zonare.api.schemas import (
    AnalyzeBuildingRequest,
    BuildingDetailsResponse,
    CityInfoResponse,
    ErrorResponse,
    LookupRequest,
    LookupResponse,
)
from zonare.container import Services
from zonare.core.types import CityConfig, cities_by_county, get_city_config, list_counties
from zonare.pipeline.lookup import analyze_building, lookup_address, lookup_address_with_analysis
from zonare.retrieval.portal import PortalClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["zoning"])


def get_services(request: Request) -> Services:
    return request.app.state.services


def _city_info(config: CityConfig) -> CityInfoResponse:
    return CityInfoResponse(
        id=config.id,
        name=config.name,
        county=config.county,
        epsg=config.epsg,
        default_buffer=config.default_buffer,
        requires_auth=config.requires_auth,
    )


def _portal_or_404(services: Services, city_id: str) -> PortalClient:
    try:
        return services.portal(city_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/counties", response_model=list[str])
async def counties():
    return list_counties()


@router.get("/counties/{county}/cities", response_model=list[CityInfoResponse])
async def cities(county: str):
    return [_city_info(c) for c in cities_by_county(county)]


@router.get(
    "/cities/{city_id}",
    response_model=CityInfoResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown city"}},
)
async def city_info(city_id: str):
    try:
        config = get_city_config(city_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="City not found")
    return _city_info(config)


@router.post(
    "/lookup",
    response_model=LookupResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        404: {"model": ErrorResponse, "description": "Unknown city"},
        500: {"model": ErrorResponse, "description": "Portal or pipeline error"},
        504: {"model": ErrorResponse, "description": "Pipeline timeout"},
    },
)
async def lookup(body: LookupRequest, services: Services = Depends(get_services)):
    """Find the zoning polygons containing an address."""
    portal = _portal_or_404(services, body.city_id)
    timeout = services.settings.pipeline_timeout

    if body.include_analysis:
        pipeline = lookup_address_with_analysis(portal, services.llm, body.address)
    else:
        pipeline = lookup_address(portal, body.address)

    try:
        result = await asyncio.wait_for(pipeline, timeout=timeout)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail=f"Pipeline timed out after {timeout:g}s")
    except Exception:
        logger.exception("Lookup failed for address in %s", body.city_id, extra={"city": body.city_id})
        raise HTTPException(status_code=500, detail="Failed to lookup address")

    return LookupResponse(**asdict(result))


@router.post(
    "/analyze-building",
    response_model=BuildingDetailsResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        404: {"model": ErrorResponse, "description": "Unknown city, zone or regulation"},
        500: {"model": ErrorResponse, "description": "Portal or pipeline error"},
        503: {"model": ErrorResponse, "description": "LLM not configured"},
        504: {"model": ErrorResponse, "description": "Pipeline timeout"},
    },
)
async def analyze_building_details(body: AnalyzeBuildingRequest, services: Services = Depends(get_services)):
    """POT, CUT, minimum parcel, setbacks and frontage for a building type in a zone."""
    portal = _portal_or_404(services, body.city_id)
    if services.llm is None:
        raise HTTPException(status_code=503, detail="Building analysis requires OPENAI_API_KEY")
    timeout = services.settings.pipeline_timeout

    try:
        details = await asyncio.wait_for(
            analyze_building(
                portal, services.rag, services.llm,
                body.address, body.zone_code, body.building_type,
                context_limit=services.settings.rag_context_limit,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail=f"Pipeline timed out after {timeout:g}s")
    except Exception:
        logger.exception(
            "Building analysis failed for zone %s", body.zone_code,
            extra={"city": body.city_id, "zone_code": body.zone_code},
        )
        raise HTTPException(status_code=500, detail="Failed to analyze building details")

    if details is None:
        raise HTTPException(status_code=404, detail="Zone or regulation not found")
    return BuildingDetailsResponse(**asdict(details))
