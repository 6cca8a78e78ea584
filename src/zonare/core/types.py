"""Domain types for the zonare zoning lookup platform.

All shared dataclasses and type definitions live here to prevent
circular imports and establish a single source of truth for the
domain model. Every other module imports from here.
"""

from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Geometry types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A point in a projected coordinate system (e.g., EPSG:3844)."""

    x: float
    y: float


# ---------------------------------------------------------------------------
# Chunk / embedding types
# ---------------------------------------------------------------------------

@dataclass
class TextChunk:
    """A window of regulation text with its character offsets in the source."""

    text: str
    start: int
    end: int


def embedding_record_id(zone_code: str, start: int, end: int) -> str:
    """Deterministic record id; re-indexing the same chunk overwrites it."""
    return f"{zone_code}:{start}:{end}"


@dataclass
class EmbeddingRecord:
    """A chunk of regulation text with its embedding vector, keyed by zone."""

    id: str
    zone_code: str
    source_url: str
    chunk: str
    embedding: list[float]
    start: int
    end: int


@dataclass
class RetrievedChunk:
    """A single result from zone-scoped similarity search."""

    chunk: str
    score: float
    start: int
    end: int
    source_url: str


# ---------------------------------------------------------------------------
# Portal / zoning types
# ---------------------------------------------------------------------------

@dataclass
class AddressSearchResult:
    """One hit from a municipal portal address search."""

    id_map_search: str | None
    name: str
    icon_class: str
    wkt: str
    data_source_name: str


@dataclass
class ZoneInfo:
    """Zoning attributes of a polygon feature containing the looked-up point.

    Attribute names follow the Romanian GIS schema: zona/subzona (zone and
    subzone), cod_zona (zone code), definitie (definition), pot/cut (land
    occupancy percentage / utilization coefficient), hmax/hrmax (max heights)
    and regulament (URL of the regulation PDF). None = not available.
    """

    feature_id: str | None
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


@dataclass
class LookupResult:
    """Output of the address → zones pipeline."""

    address: str
    search_results: list[AddressSearchResult] = field(default_factory=list)
    selected_address: AddressSearchResult | None = None
    point: Point | None = None
    zones: list[ZoneInfo] = field(default_factory=list)


UNKNOWN = "??"


@dataclass
class BuildingDetails:
    """Regulation figures for one building type in a zone. "??" = not found."""

    pot: str = UNKNOWN                  # e.g., "40%"
    cut: str = UNKNOWN                  # e.g., "0.8"
    suprafata_minima: str = UNKNOWN     # minimum parcel area, e.g., "150mp"
    distanta_limite: str = UNKNOWN      # distance to property limits, e.g., "3m"
    deschidere_strada: str = UNKNOWN    # street frontage, e.g., "12m"


# ---------------------------------------------------------------------------
# City portal configs
# ---------------------------------------------------------------------------

@dataclass
class CityConfig:
    """Municipal urbanism portal endpoints and coordinate settings.

    search_url and features_url are paths relative to base_url with
    {address} / {bbox} placeholders.
    """

    id: str
    name: str
    county: str
    base_url: str
    search_url: str
    features_url: str
    requires_auth: bool = False
    custom_headers: dict[str, str] = field(default_factory=dict)
    epsg: str = "EPSG:3844"
    default_buffer: float = 700.0


_DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

CITY_CONFIGS: dict[str, CityConfig] = {
    "bucuresti-ilfov": CityConfig(
        id="bucuresti-ilfov",
        name="București",
        county="Ilfov",
        base_url="https://urbanism.pmb.ro/xportalurb",
        search_url=(
            "/Map/MapSearch?searchText={address}&idMap=2&idMapSearch=%5B3%2C4%5D"
            "&filter%5Bfilters%5D%5B0%5D%5Bvalue%5D={address}"
            "&filter%5Bfilters%5D%5B0%5D%5Bfield%5D=Name"
            "&filter%5Bfilters%5D%5B0%5D%5Boperator%5D=contains"
            "&filter%5Bfilters%5D%5B0%5D%5BignoreCase%5D=true&filter%5Blogic%5D=and"
        ),
        features_url="/map/getfeature?layer=8&srs=EPSG:3844&bbox={bbox}&idMap=1",
        requires_auth=True,
        custom_headers={
            "User-Agent": (
                "Mozilla/5.0 (Linux; Android 6.0; Nexus 5 Build/MRA58N) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/144.0.0.0 Mobile Safari/537.36"
            ),
            "Referer": "https://urbanism.pmb.ro/xportalurb/general/xpsw.js",
            "x-app": "6",
        },
        epsg="EPSG:3844",
        default_buffer=700.0,
    ),
    "cluj-napoca": CityConfig(
        id="cluj-napoca",
        name="Cluj-Napoca",
        county="Cluj",
        base_url="https://gis.primariaclujnapoca.ro",
        search_url="/api/search?q={address}",
        features_url="/api/features?bbox={bbox}&layers=urbanism",
        custom_headers={"User-Agent": _DESKTOP_UA},
        epsg="EPSG:4326",
        default_buffer=500.0,
    ),
    "timisoara": CityConfig(
        id="timisoara",
        name="Timișoara",
        county="Timiș",
        base_url="https://gistm.primariatm.ro",
        search_url="/api/v1/urbanism/search?term={address}",
        features_url="/api/v1/urbanism/zones?bbox={bbox}",
        requires_auth=True,
        custom_headers={"User-Agent": _DESKTOP_UA},
        epsg="EPSG:4326",
        default_buffer=600.0,
    ),
    "iasi": CityConfig(
        id="iasi",
        name="Iași",
        county="Iași",
        base_url="https://eportal.primaria-iasi.ro",
        search_url="/api/urbanism/search?query={address}",
        features_url="/api/urbanism/features?bbox={bbox}",
        requires_auth=True,
        custom_headers={"User-Agent": _DESKTOP_UA},
        epsg="EPSG:4326",
        default_buffer=550.0,
    ),
    "brasov": CityConfig(
        id="brasov",
        name="Brașov",
        county="Brașov",
        base_url="https://gis.cjbrasov.ro",
        search_url="/services/urbanism/search?q={address}",
        features_url="/services/urbanism/zones?bbox={bbox}",
        custom_headers={"User-Agent": _DESKTOP_UA},
        epsg="EPSG:4326",
        default_buffer=500.0,
    ),
    "constanta": CityConfig(
        id="constanta",
        name="Constanța",
        county="Constanța",
        base_url="https://geoportal.primariaconstanta.ro",
        search_url="/api/v1/urbanism/search?address={address}",
        features_url="/api/v1/urbanism/zones?bbox={bbox}",
        custom_headers={"User-Agent": _DESKTOP_UA},
        epsg="EPSG:4326",
        default_buffer=650.0,
    ),
}


def get_city_config(city_id: str) -> CityConfig:
    """Return the portal config for a city id, or raise ValueError."""
    config = CITY_CONFIGS.get(city_id)
    if not config:
        available = list(CITY_CONFIGS.keys())
        raise ValueError(f"Unknown city id: {city_id!r}. Available: {available}")
    return config


def list_counties() -> list[str]:
    """Distinct counties, in config order."""
    return list(dict.fromkeys(c.county for c in CITY_CONFIGS.values()))


def cities_by_county(county: str) -> list[CityConfig]:
    return [c for c in CITY_CONFIGS.values() if c.county == county]
