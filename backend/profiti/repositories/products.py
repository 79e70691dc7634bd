"""
Product documents (`produits`) and the shop snapshot joined onto them.

Products are stored as the seller writes them (`nom`, `ownerId`, prices, `quantite`, ...).
The shop name and location live on the seller's profile and are copied onto the product
whenever it is shown to a buyer or put in a cart.
"""
from typing import Any, Dict, Iterable, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from profiti.config import PRODUITS, USERS
from profiti.core.geo import profile_point
from profiti.core.security import ROLE_SELLER


def shop_snapshot(profile: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    point = profile_point(profile)
    return {
        "boutique": (profile or {}).get("nom") or "",
        "boutiqueLatitude": point.latitude if point else None,
        "boutiqueLongitude": point.longitude if point else None,
    }


def with_shop(product: Dict[str, Any], profile: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {**product, **shop_snapshot(profile)}


def load_shop(db, owner_id: Optional[str]) -> Dict[str, Any]:
    if not owner_id:
        return {}
    snap = db.collection(USERS).document(owner_id).get()
    return (snap.to_dict() or {}) if snap.exists else {}


def get_product(db, product_id: str) -> Dict[str, Any]:
    """Raw product document with `id`, or {} when missing."""
    snap = db.collection(PRODUITS).document(product_id).get()
    if not snap.exists:
        return {}
    data = snap.to_dict() or {}
    data["id"] = product_id
    return data


def load_product(db, product_id: str) -> Dict[str, Any]:
    """Product joined with its shop (name and location), or {} when missing."""
    product = get_product(db, product_id)
    if not product:
        return {}
    return with_shop(product, load_shop(db, product.get("ownerId")))


def stream_products(db, owner_id: Optional[str] = None, categorie: Optional[str] = None) -> Iterable[Dict[str, Any]]:
    query = db.collection(PRODUITS)
    if owner_id:
        query = query.where(filter=FieldFilter("ownerId", "==", owner_id))
    if categorie:
        query = query.where(filter=FieldFilter("categorie", "==", categorie))
    for doc in query.stream():
        data = doc.to_dict() or {}
        data["id"] = doc.id
        yield data


def shops_by_id(db) -> Dict[str, Dict[str, Any]]:
    """Every seller profile, keyed by uid."""
    docs = db.collection(USERS).where(filter=FieldFilter("role", "==", ROLE_SELLER)).stream()
    return {d.id: d.to_dict() or {} for d in docs}
