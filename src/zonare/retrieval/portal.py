"""Municipal urbanism portal client: address search and zoning features.

One PortalClient per city. Portals that require auth hand out a session
cookie on their landing page; the owned httpx.AsyncClient's cookie jar
carries it across requests, so the client itself is the session cache.

Portals disagree on the search response shape, so results are normalized
into AddressSearchResult before leaving this module.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from zonare.core.errors import PortalError
from zonare.core.types import AddressSearchResult, CityConfig
from zonare.observability.tracing import trace

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
MAX_SESSION_RETRIES = 2

# Substrings of an error body that mean the session expired or is missing.
SESSION_ISSUE_MARKERS = ("login", "session", "auth")
# Title of the HTML shell the București portal serves instead of JSON
# when no session cookie is present.
SESSION_PAGE_MARKER = "UrbOnLine"

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,ro;q=0.8",
}


def geometry_to_wkt(geometry: dict[str, Any] | None) -> str:
    """GeoJSON Point / MultiPoint → WKT. Anything else → ""."""
    if not geometry:
        return ""
    gtype = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if gtype == "Point" and len(coords) >= 2:
        return f"POINT ({coords[0]} {coords[1]})"
    if gtype == "MultiPoint" and coords:
        points = ",".join(f"({c[0]} {c[1]})" for c in coords)
        return f"MULTIPOINT ({points})"
    return ""


def _first(item: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        val = item.get(key)
        if val:
            return val
    return default


def _normalize_item(item: dict[str, Any], source_name: str) -> AddressSearchResult:
    id_map_search = _first(item, "IdMapSearch", "id", "Id")
    wkt = _first(item, "Wkt", "geometry", "wkt", default="")
    if isinstance(wkt, dict):
        wkt = geometry_to_wkt(wkt)
    return AddressSearchResult(
        id_map_search=str(id_map_search) if id_map_search is not None else None,
        name=_first(item, "Name", "name", "displayName", default=""),
        icon_class=_first(item, "IconClass", "icon", default="default"),
        wkt=wkt,
        data_source_name=_first(item, "DataSourceName", "source", default=source_name),
    )


def normalize_search_results(data: Any, source_name: str) -> list[AddressSearchResult]:
    """Map any known portal search response shape to AddressSearchResult.

    Accepted shapes:
      - a list of items (XPortal style keys or lowercase alternates)
      - {"results": [...]} wrapping such a list
      - a GeoJSON FeatureCollection of Point / MultiPoint features
    """
    if isinstance(data, list):
        return [_normalize_item(item, source_name) for item in data if isinstance(item, dict)]

    if isinstance(data, dict):
        if isinstance(data.get("results"), list):
            return normalize_search_results(data["results"], source_name)

        if isinstance(data.get("features"), list):
            results = []
            for feature in data["features"]:
                props = feature.get("properties") or {}
                feature_id = feature.get("id")
                results.append(AddressSearchResult(
                    id_map_search=str(feature_id) if feature_id is not None else None,
                    name=_first(props, "name", "Name", "displayName", default="Unknown"),
                    icon_class=props.get("icon") or "default",
                    wkt=geometry_to_wkt(feature.get("geometry")),
                    data_source_name=source_name,
                ))
            return results

    logger.warning("%s: unknown search response format, returning no results", source_name)
    return []


class PortalClient:
    """HTTP client for one city's urbanism portal."""

    def __init__(
        self,
        config: CityConfig,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._session_initialized = False

    @property
    def session_initialized(self) -> bool:
        return self._session_initialized

    def _url(self, template: str, **values: str) -> str:
        path = template
        for key, val in values.items():
            path = path.replace("{" + key + "}", val)
        return f"{self.config.base_url}{path}"

    async def initialize_session(self, force: bool = False) -> bool:
        """Visit the portal landing page so its session cookie lands in the jar.

        Tries base_url, base_url/ and base_url/Map in order and stops at the
        first 2xx. Returns whether a session is in place.
        """
        city = self.config.id
        if self._session_initialized and not force:
            logger.debug("%s session already initialized", city, extra={"city": city})
            return True

        if not self.config.requires_auth:
            self._session_initialized = True
            return True

        headers = {**BROWSER_HEADERS, **self.config.custom_headers}
        base = self.config.base_url
        for url in (base, f"{base}/", f"{base}/Map"):
            try:
                resp = await self._client.get(url, headers=headers)
            except httpx.HTTPError as e:
                logger.warning("Failed to initialize %s session with %s: %s", city, url, e)
                continue

            logger.info(
                "%s session init %s -> HTTP %d", city, url, resp.status_code,
                extra={"city": city, "step": "session"},
            )
            if resp.is_success:
                self._session_initialized = True
                return True

        logger.error("Failed to initialize %s session with all URLs", city, extra={"city": city})
        self._session_initialized = False
        return False

    @trace(name="portal_search_address", span_type="TOOL")
    async def search_address(self, address: str) -> list[AddressSearchResult]:
        """Search the portal for an address.

        An error or HTML response that looks like an expired session triggers a
        session re-initialization and a retry (at most MAX_SESSION_RETRIES).

        Raises:
            PortalError: non-2xx or non-JSON response, or transport failure.
        """
        city = self.config.id
        url = self._url(self.config.search_url, address=quote(address, safe=""))
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            **self.config.custom_headers,
        }

        for attempt in range(MAX_SESSION_RETRIES + 1):
            can_retry = attempt < MAX_SESSION_RETRIES
            logger.info("Searching %s for address", city, extra={"city": city, "address": address})
            try:
                resp = await self._client.get(url, headers=headers)
            except httpx.HTTPError as e:
                raise PortalError(f"{city} address search failed: {e}") from e

            if not resp.is_success:
                body = resp.text
                logger.error(
                    "%s address search failed. Status: %d. Body: %s", city, resp.status_code, body[:500],
                )
                lowered = body.lower()
                if can_retry and any(marker in lowered for marker in SESSION_ISSUE_MARKERS):
                    logger.info("%s session issue detected, reinitializing", city)
                    await self.initialize_session(force=True)
                    continue
                raise PortalError(f"{city} address search failed: HTTP {resp.status_code}")

            content_type = resp.headers.get("content-type", "")
            if "application/json" not in content_type:
                body = resp.text
                logger.error(
                    "%s expected JSON but got %s. Body: %s", city, content_type or "nothing", body[:500],
                )
                if can_retry and SESSION_PAGE_MARKER in body:
                    logger.info("%s served the portal shell page, reinitializing session", city)
                    await self.initialize_session(force=True)
                    continue
                raise PortalError(f"{city} expected JSON response but got {content_type or 'nothing'}")

            try:
                data = resp.json()
            except ValueError as e:
                raise PortalError(f"{city} returned malformed JSON: {e}") from e

            results = normalize_search_results(data, city)
            logger.info("%s search returned %d results", city, len(results), extra={"city": city})
            return results

        raise PortalError(f"{city} address search failed after {MAX_SESSION_RETRIES} session retries")

    @trace(name="portal_get_features", span_type="TOOL")
    async def get_features(self, bbox: str) -> dict[str, Any]:
        """Fetch the zoning feature collection intersecting bbox.

        Raises:
            PortalError: non-2xx response, non-JSON body or transport failure.
        """
        city = self.config.id
        url = self._url(self.config.features_url, bbox=bbox)
        headers = {"Accept": "application/json", **self.config.custom_headers}

        try:
            resp = await self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise PortalError(f"{city} feature fetch failed: {e}") from e

        if not resp.is_success:
            logger.error(
                "%s feature fetch failed. Status: %d. Body: %s", city, resp.status_code, resp.text[:500],
            )
            raise PortalError(f"{city} feature fetch failed: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise PortalError(f"{city} features response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise PortalError(f"{city} features response is not a feature collection")

        logger.info(
            "%s returned %d features", city, len(data.get("features") or []),
            extra={"city": city, "step": "features"},
        )
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
