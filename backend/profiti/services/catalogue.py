# profiti/services/catalogue.py
"""
Seller product management and the buyer-facing catalogue.

The catalogue joins every product with its shop and, when the buyer's position is known,
keeps only shops within `settings.catalogue_radius_km`.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from profiti.config import PRODUITS
from profiti.core.errors import ForbiddenError, InvalidRequest, NotFoundError
from profiti.core.geo import GeoPoint, shop_point
from profiti.repositories import products
from profiti.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger("profiti.catalogue")

_PICKUP_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")


def _minutes(hours: str, minutes: str) -> int:
    h, m = int(hours), int(minutes)
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise InvalidRequest("Format d'heure invalide. Heures: 00-23, Minutes: 00-59")
    return h * 60 + m


def validate_product(data: Mapping[str, Any]) -> None:
    """Rules of the product form, applied to the full (merged) product."""
    normal = data.get("prixNormal")
    promo = data.get("prixPromotionnel")
    if normal is not None and promo is not None and float(normal) < float(promo):
        raise InvalidRequest("Le prix promotionnel doit être inférieur au prix normal.")

    window = (data.get("horairePickup") or "").strip()
    if not window:
        return
    match = _PICKUP_RE.match(window)
    if not match:
        raise InvalidRequest("Format d'heure invalide. Heures: 00-23, Minutes: 00-59")
    start = _minutes(match.group(1), match.group(2))
    end = _minutes(match.group(3), match.group(4))
    if start >= end:
        raise InvalidRequest("L'heure de fin doit être après l'heure de début.")


def _sort_key(product: Mapping[str, Any]) -> float:
    created = product.get("createdAt")
    return created.timestamp() if isinstance(created, datetime) else 0.0


def newest_first(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(items, key=_sort_key, reverse=True)


def catalogue(
    items: Iterable[Dict[str, Any]],
    shops: Mapping[str, Dict[str, Any]],
    position: Optional[GeoPoint],
    radius_km: float,
) -> List[Dict[str, Any]]:
    """
    Products joined with their shop, newest first.
    With a position, products of shops without a location or farther than `radius_km` are left out.
    """
    out: List[Dict[str, Any]] = []
    for item in items:
        joined = products.with_shop(item, shops.get(item.get("ownerId")))
        if position is not None:
            shop = shop_point(joined)
            if shop is None:
                continue
            distance = position.distance_to(shop)
            if distance > radius_km:
                continue
            joined["distance"] = distance
        out.append(joined)
    return newest_first(out)


def _owned(db, product_id: str, seller_id: str, forbidden_msg: str):
    ref = db.collection(PRODUITS).document(product_id)
    snap = ref.get()
    if not snap.exists:
        raise NotFoundError("Produit non trouvé.")
    data = snap.to_dict() or {}
    if data.get("ownerId") != seller_id:
        raise ForbiddenError(forbidden_msg)
    return ref, data


def create_product(db, seller: Mapping[str, Any], payload: ProductCreate) -> Dict[str, Any]:
    data = payload.model_dump()
    validate_product(data)
    ref = db.collection(PRODUITS).document()
    ref.set({**data, "ownerId": seller["id"], "createdAt": SERVER_TIMESTAMP})
    logger.info("Product %s created by %s", ref.id, seller["id"])
    return products.with_shop(products.get_product(db, ref.id), seller)


def update_product(db, seller: Mapping[str, Any], product_id: str, payload: ProductUpdate) -> Dict[str, Any]:
    ref, current = _owned(db, product_id, seller["id"], "Vous n'avez pas la permission de modifier ce produit.")
    patch = payload.model_dump(exclude_unset=True, exclude_none=True)
    validate_product({**current, **patch})
    patch["updatedAt"] = datetime.now(timezone.utc)
    ref.update(patch)
    return products.with_shop({**current, **patch, "id": product_id}, seller)


def delete_product(db, seller: Mapping[str, Any], product_id: str) -> None:
    ref, _ = _owned(db, product_id, seller["id"], "Vous n'avez pas la permission de supprimer ce produit.")
    ref.delete()
    logger.info("Product %s deleted by %s", product_id, seller["id"])
