"""
Nominatim forward/reverse geocoding proxy.

Upstream JSON is returned untouched. A non-2xx answer raises
``GeocodingUpstreamError``; transport failures surface as ``httpx.HTTPError``.
"""
from typing import Any, Dict, Optional

import httpx
import structlog

from ..config import settings


log = structlog.get_logger(__name__)


class GeocodingUpstreamError(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"Geocoding service responded with {status_code}")
        self.status_code = status_code


def get_geocoding_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for the geocoding client; ``None`` means the default network transport."""
    return None


def build_headers() -> Dict[str, str]:
    headers = {
        "User-Agent": settings.nominatim_user_agent,
        "Accept-Language": "en",
    }
    if settings.nominatim_contact_email:
        headers["From"] = settings.nominatim_contact_email
    return headers


async def _get(path: str, params: Dict[str, str], transport: Optional[httpx.AsyncBaseTransport]) -> Any:
    async with httpx.AsyncClient(
        base_url=settings.nominatim_base_url,
        timeout=settings.geocoding_timeout_s,
        transport=transport,
        headers=build_headers(),
    ) as client:
        r = await client.get(path, params=params)
    if r.status_code < 200 or r.status_code >= 300:
        log.warning("geocoding_upstream_error", path=path, status=r.status_code)
        raise GeocodingUpstreamError(r.status_code)
    return r.json()


async def search_locations(
    query: str, limit: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Any:
    params = {
        "format": "json",
        "addressdetails": "1",
        "q": query,
        "limit": limit or "5",
    }
    return await _get("/search", params, transport)


async def reverse_geocode(
    lat: str, lon: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Any:
    params = {
        "format": "json",
        "lat": lat,
        "lon": lon,
        "zoom": "14",
        "addressdetails": "1",
    }
    return await _get("/reverse", params, transport)
