"""Pydantic request/response models for the Zonare API.

These are the API contract, decoupled from the internal domain dataclasses.
Route handlers bridge them with dataclasses.asdict().
"""

from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class LookupRequest(BaseModel):
    """Request body for POST /api/v1/lookup."""

    address: NonBlankStr = Field(..., max_length=300, examples=["Bulevardul Unirii 1"])
    city_id: NonBlankStr = Field(..., examples=["bucuresti-ilfov"])
    include_analysis: bool = Field(
        default=False,
        description="Also extract permitted building types from each zone's regulation",
    )


class AnalyzeBuildingRequest(BaseModel):
    """Request body for POST /api/v1/analyze-building."""

    address: NonBlankStr = Field(..., max_length=300)
    city_id: NonBlankStr
    zone_code: NonBlankStr = Field(..., examples=["L1a"])
    building_type: NonBlankStr = Field(..., examples=["locuințe individuale"])


class PointResponse(BaseModel):
    x: float
    y: float


class AddressSearchResultResponse(BaseModel):
    id_map_search: str | None = None
    name: str = ""
    icon_class: str = ""
    wkt: str = ""
    data_source_name: str = ""


class ZoneInfoResponse(BaseModel):
    feature_id: str | None = None
    zona: str | None = None
    subzona: str | None = None
    cod_zona: str | None = None
    definitie: str | None = None
    pot: str | None = None
    cut: str | None = None
    hmax: str | None = None
    hrmax: str | None = None
    regulament: str | None = None
    building_types: list[str] | None = None


class LookupResponse(BaseModel):
    address: str
    search_results: list[AddressSearchResultResponse] = []
    selected_address: AddressSearchResultResponse | None = None
    point: PointResponse | None = None
    zones: list[ZoneInfoResponse] = []


class BuildingDetailsResponse(BaseModel):
    pot: str
    cut: str
    suprafata_minima: str
    distanta_limite: str
    deschidere_strada: str


class CityInfoResponse(BaseModel):
    """Public city info; portal URLs and headers are not exposed."""

    id: str
    name: str
    county: str
    epsg: str
    default_buffer: float
    requires_auth: bool


class ErrorResponse(BaseModel):
    detail: str
