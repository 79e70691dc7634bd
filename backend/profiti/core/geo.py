"""
profiti/core/geo.py - Great-circle distance helpers.

Distances are haversine distances in kilometres on a sphere of radius 6371 km.
Nothing is validated: NaN coordinates produce a NaN distance.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in km between two (lat, lon) points given in degrees."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class GeoPoint(BaseModel):
    latitude: float
    longitude: float

    def distance_to(self, other: "GeoPoint") -> float:
        return haversine_km(self.latitude, self.longitude, other.latitude, other.longitude)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def point_from_doc(data: Optional[Dict[str, Any]]) -> Optional[GeoPoint]:
    """
    Read a point stored by the mobile app.
    Accepts {latitude, longitude} (expo-location) or {lat, lng} (geocoder output).
    """
    if not isinstance(data, dict):
        return None
    lat = data.get("latitude", data.get("lat"))
    lng = data.get("longitude", data.get("lng"))
    if _is_number(lat) and _is_number(lng):
        return GeoPoint(latitude=float(lat), longitude=float(lng))
    return None


def shop_point(item: Dict[str, Any]) -> Optional[GeoPoint]:
    """Shop location snapshotted on a cart line (boutiqueLatitude / boutiqueLongitude)."""
    lat = item.get("boutiqueLatitude")
    lng = item.get("boutiqueLongitude")
    if _is_number(lat) and _is_number(lng):
        return GeoPoint(latitude=float(lat), longitude=float(lng))
    return None


def profile_point(profile: Optional[Dict[str, Any]]) -> Optional[GeoPoint]:
    """Location of a user profile; older profiles store it under `localisation`."""
    if not profile:
        return None
    return point_from_doc(profile.get("location")) or point_from_doc(profile.get("localisation"))
