# profiti/services/orders_helpers.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from google.api_core.exceptions import Aborted, FailedPrecondition, GoogleAPICallError

from profiti.config import COMMANDES, PRODUITS, USERS, settings
from profiti.core.errors import ConflictError, InvalidRequest
from profiti.core.geo import GeoPoint, profile_point
from profiti.repositories import carts
from profiti.schemas.order import OrderCreate
from profiti.services import notifications
from profiti.services.cart_summary import (
    delivery_total,
    find_over_stock,
    grand_total,
    products_total,
    purchase_quantity,
    shop_details,
    shop_ids,
)
from profiti.services.matching import FULFILLMENT_DELIVERY, FULFILLMENT_PICKUP, STATUS_DELIVERED, STATUS_PENDING
from profiti.services.pricing import distance_fee

logger = logging.getLogger("profiti.orders")

__all__ = [
    "validate_checkout",
    "fetch_shop_profiles",
    "calc_delivery_fees",
    "check_delivery_zone",
    "calc_totals",
    "build_order_doc",
    "commit_order",
    "place_order",
    "order_doc_to_out",
    "split_active_past",
]


# ──────────────────────────────────────────────────────────────────────────────
# Validation
# ──────────────────────────────────────────────────────────────────────────────

def _contact_missing(payload: OrderCreate) -> bool:
    return not (payload.nom.strip() and payload.prenom.strip() and payload.telephone.strip())


def validate_checkout(payload: OrderCreate) -> None:
    """Form rules of the confirmation screen, checked in the same order."""
    if not payload.choix:
        raise InvalidRequest("Veuillez choisir un mode de réception.")
    if not payload.paiement:
        raise InvalidRequest("Veuillez choisir la méthode de paiement.")
    if payload.choix == FULFILLMENT_DELIVERY:
        if payload.localisation is None or not payload.adresse.strip():
            raise InvalidRequest("Veuillez sélectionner votre adresse sur la carte.")
        if _contact_missing(payload):
            raise InvalidRequest("Veuillez remplir vos informations.")
    if payload.choix == FULFILLMENT_PICKUP and _contact_missing(payload):
        raise InvalidRequest("Veuillez remplir tous les champs pour sur place.")
    if payload.paiement == "d17" and payload.carte is None:
        raise InvalidRequest("Veuillez remplir toutes les informations de la carte.")


def validate_cart(items: List[Dict[str, Any]]) -> None:
    if not items:
        raise InvalidRequest("Votre panier est vide.")
    over = find_over_stock(items)
    if over is not None:
        raise InvalidRequest(
            f"Vous avez dépassé la quantité disponible pour {over.get('nom')} (max {over.get('quantite')})."
        )


# ──────────────────────────────────────────────────────────────────────────────
# Delivery pricing
# ──────────────────────────────────────────────────────────────────────────────

def fetch_shop_profiles(db, items: List[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """users/{ownerId} for every distinct shop of the cart (missing shops are left out)."""
    profiles: Dict[str, Dict[str, Any]] = {}
    for sid in shop_ids(items):
        if not sid:
            continue
        snap = db.collection(USERS).document(sid).get()
        if snap.exists:
            profiles[sid] = snap.to_dict() or {}
        else:
            logger.debug("Shop profile %s not found", sid)
    return profiles


def shop_distances(profiles: Mapping[str, Mapping[str, Any]], point: GeoPoint) -> Dict[str, float]:
    distances: Dict[str, float] = {}
    for sid, profile in profiles.items():
        shop = profile_point(profile)
        if shop is not None:
            distances[sid] = point.distance_to(shop)
    return distances


def calc_delivery_fees(profiles: Mapping[str, Mapping[str, Any]], point: GeoPoint) -> Dict[str, float]:
    """Per-shop distance fee; shops without a known location get no entry."""
    return {
        sid: distance_fee(dist, bool(profiles[sid].get("livraisonFree", False)))
        for sid, dist in shop_distances(profiles, point).items()
    }


def check_delivery_zone(items: List[Mapping[str, Any]], profiles: Mapping[str, Mapping[str, Any]], point: GeoPoint) -> None:
    distances = shop_distances(profiles, point)
    for item in items:
        dist = distances.get(item.get("ownerId"))
        if dist is not None and dist > settings.delivery_zone_km:
            raise InvalidRequest(
                f'Le produit "{item.get("nom")}" n\'est pas disponible pour la livraison '
                f"(distance boutique > {settings.delivery_zone_km:g}km)."
            )


def calc_totals(items: List[Mapping[str, Any]], fees: Mapping[str, float], delivery: bool) -> Dict[str, Any]:
    fees = dict(fees) if delivery else {}
    return {
        "prixTotal": products_total(items),
        "prixLivraisonTotal": delivery_total(items, fees) if delivery else 0.0,
        "totalAPayer": grand_total(items, fees, delivery=delivery),
        "prixLivraisons": fees,
        "detailsBoutiques": [d.model_dump() for d in shop_details(items, fees)],
    }


def quote(db, items: List[Dict[str, Any]], choix: str, point: Optional[GeoPoint]) -> Dict[str, Any]:
    delivery = choix == FULFILLMENT_DELIVERY
    fees: Dict[str, float] = {}
    if delivery and point is not None:
        fees = calc_delivery_fees(fetch_shop_profiles(db, items), point)
    return calc_totals(items, fees, delivery)


# ──────────────────────────────────────────────────────────────────────────────
# Order document
# ──────────────────────────────────────────────────────────────────────────────

def _mask_card(payload: OrderCreate) -> Optional[Dict[str, str]]:
    # The CVV and full number are never persisted.
    if payload.paiement != "d17" or payload.carte is None:
        return None
    digits = "".join(ch for ch in payload.carte.cardNumber if ch.isdigit())
    return {"last4": digits[-4:], "expiry": payload.carte.expiry}


def build_order_doc(uid: str, payload: OrderCreate, items: List[Dict[str, Any]], totals: Mapping[str, Any]) -> Dict[str, Any]:
    delivery = payload.choix == FULFILLMENT_DELIVERY
    return {
        "uid": uid,
        "nom": payload.nom.strip(),
        "prenom": payload.prenom.strip(),
        "telephone": payload.telephone.strip(),
        "choix": payload.choix,
        "paiement": payload.paiement,
        "commentaire": payload.commentaire,
        "prixTotal": totals["prixTotal"],  # without delivery
        "totalAPayer": totals["totalAPayer"],
        "prixLivraisons": totals["prixLivraisons"] if delivery else {},
        "adresse": payload.adresse.strip() if delivery else "",
        "localisation": payload.localisation.model_dump() if delivery and payload.localisation else None,
        "date": datetime.now(timezone.utc).isoformat(),
        "carte": _mask_card(payload),
        "panier": items,
        "statut": STATUS_PENDING,
        "idVendeur": items[0].get("ownerId") if items else None,
        "boutiques": [sid for sid in shop_ids(items) if sid],
        "detailsBoutiques": totals["detailsBoutiques"],
        "livreursRefuses": [],
    }


def commit_order(db, order_doc: Dict[str, Any]) -> str:
    """
    Write the order and decrement product stock in one atomic batch.
    Every stock write is conditioned on the product being unchanged since it was read;
    on conflict the whole batch is retried with fresh reads.
    """
    items = order_doc.get("panier") or []
    attempts = max(1, int(settings.stock_update_attempts))
    for attempt in range(1, attempts + 1):
        batch = db.batch()
        for item in items:
            pid = item.get("id")
            if not pid or not item.get("quantiteAchat"):
                continue
            ref = db.collection(PRODUITS).document(pid)
            snap = ref.get()
            if not snap.exists:
                continue
            stock = int((snap.to_dict() or {}).get("quantite") or 0)
            wanted = purchase_quantity(item)
            if wanted > stock:
                raise InvalidRequest(
                    f"Vous avez dépassé la quantité disponible pour {item.get('nom')} (max {stock})."
                )
            batch.update(ref, {"quantite": max(0, stock - wanted)},
                         option=db.write_option(last_update_time=snap.update_time))
        order_ref = db.collection(COMMANDES).document()
        batch.set(order_ref, order_doc)
        try:
            batch.commit()
            return order_ref.id
        except (FailedPrecondition, Aborted) as exc:
            logger.warning("Stock changed during checkout (attempt %d/%d): %s", attempt, attempts, exc)
    raise ConflictError("Le stock a changé pendant la commande. Veuillez réessayer.")


def place_order(db, uid: str, payload: OrderCreate) -> Dict[str, Any]:
    validate_checkout(payload)
    items = carts.load_items(db, uid)
    validate_cart(items)

    delivery = payload.choix == FULFILLMENT_DELIVERY
    fees: Dict[str, float] = {}
    if delivery:
        profiles = fetch_shop_profiles(db, items)
        check_delivery_zone(items, profiles, payload.localisation)
        fees = calc_delivery_fees(profiles, payload.localisation)

    order_doc = build_order_doc(uid, payload, items, calc_totals(items, fees, delivery))
    order_id = commit_order(db, order_doc)
    logger.info("Order %s placed by %s (%s, %d line(s))", order_id, uid, payload.choix, len(items))

    carts.clear(db, uid)
    if delivery:
        try:
            notifications.notify_couriers_delivery_available(db, order_doc)
        except GoogleAPICallError:
            logger.exception("Courier notification failed for order %s", order_id)

    return {**order_doc, "id": order_id}


# ──────────────────────────────────────────────────────────────────────────────
# Read side
# ──────────────────────────────────────────────────────────────────────────────

def order_doc_to_out(doc) -> Dict[str, Any]:
    data = doc.to_dict() or {}
    data["id"] = doc.id
    data.setdefault("livreursRefuses", [])
    return data


def split_active_past(orders: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    active, past = [], []
    for order in sorted(orders, key=lambda o: o.get("date") or "", reverse=True):
        (past if order.get("statut") == STATUS_DELIVERED else active).append(order)
    return active, past


def can_view(order: Mapping[str, Any], user: Mapping[str, Any]) -> bool:
    uid = user.get("id")
    if order.get("uid") == uid or order.get("livreurAccepte") == uid:
        return True
    shops = set(order.get("boutiques") or []) | set(shop_ids(order.get("panier") or []))
    return uid in shops or uid == order.get("idVendeur")
