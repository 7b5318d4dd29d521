"""
Delivery route planning for material logistics.

Each end point is either a literal "lat,lng" pair or free text resolved
through Nominatim; the driving route comes from OSRM.
"""
import asyncio
from typing import Any, Dict, List, NamedTuple, Optional

import httpx
import structlog

from ..config import settings
from .geocoding import build_headers


log = structlog.get_logger(__name__)


class RoutingError(Exception):
    pass


class Coordinate(NamedTuple):
    lat: float
    lng: float
    label: str


def _valid(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180


def try_parse_coordinate(query: Optional[str]) -> Optional[Coordinate]:
    text = (query or "").strip()
    if not text:
        return None
    for sep in (",", " "):
        parts = [p.strip() for p in text.split(sep) if p.strip()]
        if len(parts) != 2:
            continue
        try:
            lat, lng = float(parts[0]), float(parts[1])
        except ValueError:
            continue
        if _valid(lat, lng):
            return Coordinate(lat, lng, text)
    return None


async def _get_with_retry(client: httpx.AsyncClient, url: str, params: Dict[str, str], timeout_message: str) -> httpx.Response:
    last_error: Optional[Exception] = None
    for attempt in range(settings.routing_retries + 1):
        try:
            return await client.get(url, params=params)
        except httpx.TimeoutException:
            last_error = RoutingError(timeout_message)
        except httpx.HTTPError as e:
            last_error = e
        log.warning("routing_request_retry", url=url, attempt=attempt + 1, error=str(last_error))
        if attempt < settings.routing_retries:
            await asyncio.sleep(settings.routing_retry_delay_s * (attempt + 1))
    raise last_error


async def geocode(client: httpx.AsyncClient, query: str) -> Coordinate:
    params = {
        "q": query,
        "format": "jsonv2",
        "limit": "1",
        "addressdetails": "0",
        "polygon_geojson": "0",
    }
    r = await _get_with_retry(
        client,
        f"{settings.nominatim_base_url}/search",
        params,
        "Geocoding request timed out. Please refine the address or try again.",
    )
    if r.status_code >= 400:
        raise RoutingError(f"Geocoding failed with status {r.status_code}")
    data = r.json() or []
    feature = data[0] if data else {}
    if not feature.get("lat") or not feature.get("lon"):
        raise RoutingError(f"No results found for query: {query}")
    lat, lng = float(feature["lat"]), float(feature["lon"])
    if not _valid(lat, lng):
        raise RoutingError(f"Geocoding returned invalid coordinates for query: {query}")
    return Coordinate(lat, lng, feature.get("display_name") or query)


async def resolve_coordinate(client: httpx.AsyncClient, query: str) -> Coordinate:
    return try_parse_coordinate(query) or await geocode(client, query)


async def plan_route(
    start_query: str, end_query: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, Any]:
    async with httpx.AsyncClient(
        timeout=settings.routing_timeout_s, transport=transport, headers=build_headers()
    ) as client:
        start, end = await asyncio.gather(
            resolve_coordinate(client, start_query),
            resolve_coordinate(client, end_query),
        )
        coords = f"{start.lng},{start.lat};{end.lng},{end.lat}"
        r = await _get_with_retry(
            client,
            f"{settings.osrm_base_url}/route/v1/driving/{coords}",
            {"overview": "full", "geometries": "geojson", "alternatives": "false", "steps": "false"},
            "Route planning request timed out. Please try again with different points.",
        )
    if r.status_code >= 400:
        raise RoutingError(f"Directions request failed with status {r.status_code}")
    data = r.json()
    if data.get("code") and data["code"] != "Ok":
        raise RoutingError(f"Routing service returned code: {data['code']}")
    routes = data.get("routes") or []
    primary = routes[0] if routes else {}
    geometry: List[List[float]] = (primary.get("geometry") or {}).get("coordinates") or []
    if not geometry:
        raise RoutingError("Unable to compute a driving route between the provided locations.")

    return {
        "start": start._asdict(),
        "end": end._asdict(),
        "distanceKm": round((primary.get("distance") or 0) / 1000, 2),
        "durationMinutes": round((primary.get("duration") or 0) / 60, 1),
        # OSRM is lng,lat; callers draw lat,lng
        "polyline": [[lat, lng] for lng, lat in geometry],
    }
