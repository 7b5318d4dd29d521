from typing import Optional

import httpx
import structlog
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import get_optional_user
from ..db import get_db
from ..models.models import OrganizationMember, User
from ..services import geocoding, logistics
from ..services.members import user_view


router = APIRouter(prefix="/api", tags=["api"])
log = structlog.get_logger(__name__)


@router.get("/location/search")
async def location_search(
    q: Optional[str] = None,
    limit: Optional[str] = None,
    transport=Depends(geocoding.get_geocoding_transport),
):
    if not q or not q.strip():
        return JSONResponse({"error": "Missing search query"}, status_code=400)
    try:
        return await geocoding.search_locations(q, limit, transport=transport)
    except geocoding.GeocodingUpstreamError:
        return JSONResponse({"error": "Location lookup failed"}, status_code=502)
    except (httpx.HTTPError, ValueError) as e:
        log.error("location_search_failed", error=str(e))
        return JSONResponse({"error": "Unable to complete location search"}, status_code=500)


@router.get("/location/reverse")
async def location_reverse(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    transport=Depends(geocoding.get_geocoding_transport),
):
    if not lat or not lon:
        return JSONResponse({"error": "Missing latitude or longitude"}, status_code=400)
    try:
        return await geocoding.reverse_geocode(lat, lon, transport=transport)
    except geocoding.GeocodingUpstreamError:
        return JSONResponse({"error": "Reverse geocoding failed"}, status_code=502)
    except (httpx.HTTPError, ValueError) as e:
        log.error("reverse_geocoding_failed", error=str(e))
        return JSONResponse({"error": "Unable to complete reverse geocoding"}, status_code=500)


@router.post("/logistics/route")
async def logistics_route(
    payload: Optional[dict] = Body(None),
    transport=Depends(geocoding.get_geocoding_transport),
):
    if not payload:
        return JSONResponse({"message": "Request body is required."}, status_code=400)
    start, end = payload.get("startQuery"), payload.get("endQuery")
    if not start or not end:
        return JSONResponse({"message": "Both startQuery and endQuery must be provided."}, status_code=400)
    try:
        return await logistics.plan_route(start, end, transport=transport)
    except (logistics.RoutingError, httpx.HTTPError, ValueError) as e:
        log.error("route_planning_failed", error=str(e))
        return JSONResponse({"message": str(e) or "Unable to resolve route."}, status_code=500)


@router.get("/profile")
def profile(db: Session = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    if user is None:
        return JSONResponse({"error": "You must be signed in."}, status_code=401)
    try:
        roles = [
            (role or "").strip()
            for (role,) in db.query(OrganizationMember.role).filter(OrganizationMember.user_id == user.user_id).all()
        ]
    except SQLAlchemyError as e:
        log.error("profile_lookup_failed", user_id=str(user.user_id), error=str(e))
        return JSONResponse({"error": str(e)}, status_code=500)
    roles = [r for r in roles if r]
    membership_role = next((r for r in roles if r.lower() == "owner"), roles[0] if roles else None)
    view = user_view(user)
    view.pop("role")
    return {
        "user": {"id": view["user_id"], "email": user.email},
        "profile": view,
        "membershipRole": membership_role,
    }


_BUCKETS = ("preconstruction-docs", "construction-docs", "esg-reports")


def _read_policy(bucket: str) -> dict:
    return {
        "name": f"Enable read access for {bucket} bucket",
        "sql": (
            f"-- Policy: Enable read access for {bucket} bucket\n"
            f'CREATE POLICY "Enable read access for {bucket}"\n'
            "ON storage.objects FOR SELECT\n"
            f"USING (bucket_id = '{bucket}');"
        ),
    }


def _insert_policy(bucket: str) -> dict:
    return {
        "name": f"Enable insert access for authenticated users on {bucket}",
        "sql": (
            f"-- Policy: Enable insert access for authenticated users on {bucket}\n"
            f'CREATE POLICY "Enable insert for authenticated users on {bucket}"\n'
            "ON storage.objects FOR INSERT\n"
            f"WITH CHECK (bucket_id = '{bucket}' AND auth.role() = 'authenticated');"
        ),
    }


@router.get("/storage/policies")
def storage_policies():
    return {
        "message": "Copy these SQL policies into your database SQL editor to enable file access",
        "policies": [_read_policy(b) for b in _BUCKETS] + [_insert_policy(b) for b in _BUCKETS],
        "instructions": [
            "1. Go to your database dashboard",
            "2. Navigate to SQL Editor",
            "3. Create a new query",
            "4. Copy and paste each SQL policy above",
            "5. Run each policy individually",
            "6. Verify policies are created in Storage > Policies section",
        ],
    }


@router.post("/storage/policies")
def storage_policies_guide():
    return {
        "message": "Storage policies setup guide",
        "note": "These policies need to be created manually in the database dashboard",
    }
