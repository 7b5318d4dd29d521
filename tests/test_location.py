import httpx
import pytest

from verdepm.config import settings
from verdepm.main import app
from verdepm.services.geocoding import build_headers, get_geocoding_transport
from verdepm.services.logistics import try_parse_coordinate


@pytest.fixture
def upstream(client):
    """Install a fake geocoding upstream; returns the list of captured requests."""
    seen = []

    def install(handler):
        def _record(request):
            seen.append(request)
            return handler(request)

        app.dependency_overrides[get_geocoding_transport] = lambda: httpx.MockTransport(_record)
        return seen

    return install


def test_search_requires_query(client):
    r = client.get("/api/location/search", params={"q": "   "})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing search query"}


def test_search_passes_through_upstream_json(client, upstream):
    seen = upstream(lambda req: httpx.Response(200, json=[{"display_name": "Makati, Metro Manila"}]))

    r = client.get("/api/location/search", params={"q": "Makati"})

    assert r.status_code == 200
    assert r.json() == [{"display_name": "Makati, Metro Manila"}]
    sent = seen[0]
    assert sent.url.path == "/search"
    assert sent.url.params["format"] == "json"
    assert sent.url.params["limit"] == "5"
    assert sent.url.params["addressdetails"] == "1"
    assert sent.headers["user-agent"] == settings.nominatim_user_agent
    assert sent.headers["accept-language"] == "en"
    assert "from" not in sent.headers


def test_search_upstream_failure_is_502(client, upstream):
    upstream(lambda req: httpx.Response(503, text="busy"))
    r = client.get("/api/location/search", params={"q": "Makati"})
    assert r.status_code == 502
    assert r.json() == {"error": "Location lookup failed"}


def test_search_transport_failure_is_500(client, upstream):
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream(boom)
    r = client.get("/api/location/search", params={"q": "Makati"})
    assert r.status_code == 500
    assert r.json() == {"error": "Unable to complete location search"}


def test_reverse_requires_both_coordinates(client):
    r = client.get("/api/location/reverse", params={"lat": "14.55"})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing latitude or longitude"}


def test_reverse_uses_zoom_14(client, upstream):
    seen = upstream(lambda req: httpx.Response(200, json={"display_name": "Taguig"}))

    r = client.get("/api/location/reverse", params={"lat": "14.55", "lon": "121.05"})

    assert r.json() == {"display_name": "Taguig"}
    assert seen[0].url.path == "/reverse"
    assert seen[0].url.params["zoom"] == "14"


def test_reverse_upstream_failure_is_502(client, upstream):
    upstream(lambda req: httpx.Response(429))
    r = client.get("/api/location/reverse", params={"lat": "1", "lon": "2"})
    assert r.status_code == 502
    assert r.json() == {"error": "Reverse geocoding failed"}


def test_contact_header_only_when_configured(monkeypatch):
    monkeypatch.setattr(settings, "nominatim_contact_email", "ops@verdepm.io")
    assert build_headers()["From"] == "ops@verdepm.io"


def test_coordinate_parsing():
    assert try_parse_coordinate("14.55, 121.05")[:2] == (14.55, 121.05)
    assert try_parse_coordinate("14.55 121.05")[:2] == (14.55, 121.05)
    assert try_parse_coordinate("95, 10") is None
    assert try_parse_coordinate("Makati City") is None


def test_route_planning(client, upstream):
    def handler(request):
        if request.url.path == "/search":
            return httpx.Response(200, json=[{"lat": "14.60", "lon": "121.00", "display_name": "Warehouse"}])
        return httpx.Response(200, json={
            "code": "Ok",
            "routes": [{
                "distance": 12500,
                "duration": 1500,
                "geometry": {"coordinates": [[121.00, 14.60], [121.05, 14.55]]},
            }],
        })

    upstream(handler)
    r = client.post("/api/logistics/route", json={"startQuery": "Warehouse", "endQuery": "14.55,121.05"})

    assert r.status_code == 200
    body = r.json()
    assert body["distanceKm"] == 12.5
    assert body["durationMinutes"] == 25.0
    assert body["polyline"] == [[14.60, 121.00], [14.55, 121.05]]
    assert body["start"]["label"] == "Warehouse"


def test_route_planning_requires_both_points(client):
    r = client.post("/api/logistics/route", json={"startQuery": "Warehouse"})
    assert r.status_code == 400
