# profiti/services/matching.py
"""
Courier-side delivery matching.

An order spanning several shops yields one delivery leg per shop. A leg is offered to a
courier when the shop lies within `radius_km` of the courier (boundary inclusive).
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from profiti.core.geo import GeoPoint, shop_point
from profiti.services.cart_summary import group_by_shop

STATUS_PENDING = "en_attente"
STATUS_DELIVERED = "livree"
FULFILLMENT_DELIVERY = "livraison"
FULFILLMENT_PICKUP = "sur_place"

DEFAULT_RADIUS_KM = 3.0


class AvailableDelivery(BaseModel):
    commandeId: str
    boutiqueId: str
    boutiqueNom: Optional[str] = None
    boutiqueLatitude: float
    boutiqueLongitude: float
    produits: List[Dict[str, Any]] = Field(default_factory=list)
    distance: float
    acheteur: Optional[str] = None
    adresse: Optional[str] = None
    telephone: Optional[str] = None
    localisation: Optional[Dict[str, Any]] = None
    prixLivraison: Optional[float] = None
    prixProduits: Optional[float] = None
    livreurAccepte: Optional[str] = None


def visible_to_courier(order: Mapping[str, Any], courier_id: str) -> bool:
    """An accepted order stays visible to its courier only; a declined one disappears for the decliner."""
    accepted_by = order.get("livreurAccepte")
    if accepted_by:
        return accepted_by == courier_id
    return courier_id not in (order.get("livreursRefuses") or [])


def _shop_detail(order: Mapping[str, Any], shop_id: str) -> Optional[Mapping[str, Any]]:
    for detail in order.get("detailsBoutiques") or []:
        if isinstance(detail, dict) and detail.get("id") == shop_id:
            return detail
    return None


def nearby_deliveries(
    orders: Iterable[Mapping[str, Any]],
    courier_position: Optional[GeoPoint],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> List[AvailableDelivery]:
    if courier_position is None:
        return []
    legs: List[AvailableDelivery] = []
    for order in orders:
        panier = order.get("panier")
        if not isinstance(panier, list):
            continue
        for shop_id, produits in group_by_shop(panier).items():
            if shop_id is None:
                continue
            shop = shop_point(produits[0])
            if shop is None:
                continue
            distance = courier_position.distance_to(shop)
            if not distance <= radius_km:
                continue
            detail = _shop_detail(order, shop_id) or {}
            legs.append(AvailableDelivery(
                commandeId=order.get("id"),
                boutiqueId=shop_id,
                boutiqueNom=produits[0].get("boutique"),
                boutiqueLatitude=shop.latitude,
                boutiqueLongitude=shop.longitude,
                produits=[dict(p) for p in produits],
                distance=distance,
                acheteur=order.get("nom"),
                adresse=order.get("adresse"),
                telephone=order.get("telephone"),
                localisation=order.get("localisation"),
                prixLivraison=detail.get("prixLivraison"),
                prixProduits=detail.get("prixProduits"),
                livreurAccepte=order.get("livreurAccepte"),
            ))
    return legs


def is_open_delivery(order: Mapping[str, Any]) -> bool:
    return order.get("statut") == STATUS_PENDING and order.get("choix") == FULFILLMENT_DELIVERY


def available_for_courier(
    orders: Iterable[Mapping[str, Any]],
    courier_id: str,
    courier_position: Optional[GeoPoint],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> List[AvailableDelivery]:
    """Pending delivery orders the courier may see, reduced to legs within the radius."""
    candidates = [o for o in orders if is_open_delivery(o) and visible_to_courier(o, courier_id)]
    return nearby_deliveries(candidates, courier_position, radius_km)
