from typing import Optional

from fastapi import APIRouter, Depends, Query

from profiti.core.errors import service_errors
from profiti.core.security import get_current_user
from profiti.integrations import geocoding

router = APIRouter(prefix="/geo", tags=["Geo"], dependencies=[Depends(get_current_user)])


@router.get("/search", response_model=geocoding.GeocodedAddress)
def search_place(q: str = Query(..., min_length=1)):
    """Free-text place search for the delivery address picker."""
    with service_errors("geocode"):
        return geocoding.geocode(q)


@router.get("/reverse")
def reverse(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    q: Optional[str] = None,
):
    with service_errors("reverse geocode"):
        return {"adresse": geocoding.reverse_geocode(lat, lng, q)}
