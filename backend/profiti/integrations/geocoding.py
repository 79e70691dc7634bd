# profiti/integrations/geocoding.py
"""
Google Geocoding API (minimum).
- geocode(query): free text -> (point, readable address)
- reverse_geocode(lat, lng, searched_name): point -> readable address

Readable addresses favour the place name, then the sublocality and city, which is
what couriers need on the delivery card.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel

from profiti.config import settings
from profiti.core.errors import NotFoundError, UpstreamError
from profiti.core.geo import GeoPoint, point_from_doc

logger = logging.getLogger("profiti.geocoding")

_PLACE_TYPES = ("premise", "point_of_interest", "establishment", "route", "neighborhood")
NO_RESULT_MSG = "Aucun résultat trouvé pour ce lieu."


class GeocodingError(UpstreamError):
    pass


class GeocodedAddress(BaseModel):
    localisation: GeoPoint
    adresse: str


def _first_of(components: List[Dict[str, Any]], *types: str) -> Optional[str]:
    for t in types:
        for c in components:
            if t in (c.get("types") or []):
                return c.get("long_name")
    return None


def custom_address(components: List[Dict[str, Any]], searched_name: Optional[str] = None) -> str:
    place = _first_of(components, *_PLACE_TYPES)
    sublocality = _first_of(components, "sublocality", "sublocality_level_1")
    city = _first_of(components, "locality", "administrative_area_level_2")
    address = ", ".join(p for p in (place, sublocality, city) if p)
    name = (searched_name or "").strip()
    if name and name.lower() not in address.lower():
        address = f"{name}, {address}" if address else name
    return address


def _call(params: Dict[str, Any]) -> Dict[str, Any]:
    if not settings.google_maps_api_key:
        raise GeocodingError("Service de géolocalisation non configuré.")
    params = {**params, "key": settings.google_maps_api_key}
    try:
        resp = requests.get(settings.geocoding_url, params=params, timeout=settings.geocoding_timeout)
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Geocoding request failed: %s", exc)
        raise GeocodingError("Échec de la recherche de lieu.") from exc


def _first_result(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    results = data.get("results") or []
    return results[0] if results else None


def geocode(query: str) -> GeocodedAddress:
    if not query or not query.strip():
        raise NotFoundError(NO_RESULT_MSG)
    result = _first_result(_call({"address": query}))
    if not result:
        raise NotFoundError(NO_RESULT_MSG)
    point = point_from_doc((result.get("geometry") or {}).get("location"))
    if point is None:
        logger.warning("Geocoding result without coordinates for %r", query)
        raise NotFoundError(NO_RESULT_MSG)
    address = custom_address(result.get("address_components") or [], query) or result.get("formatted_address", "")
    return GeocodedAddress(localisation=point, adresse=address)


def reverse_geocode(latitude: float, longitude: float, searched_name: Optional[str] = None) -> str:
    """Readable address at a point; empty string when the geocoder has nothing."""
    result = _first_result(_call({"latlng": f"{latitude},{longitude}"}))
    if not result:
        return ""
    return custom_address(result.get("address_components") or [], searched_name) or result.get("formatted_address", "")
