# profiti/services/deliveries.py
"""
Courier actions on an order: accept, decline, complete one shop's leg.

Writes that depend on what was just read (accept, complete) carry a last-update-time
precondition, so a concurrent change makes them fail with a conflict instead of
overwriting another courier's assignment.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from google.api_core.exceptions import Aborted, FailedPrecondition
from google.cloud.firestore_v1 import ArrayUnion

from profiti.config import COMMANDES
from profiti.core.errors import ConflictError, ForbiddenError, NotFoundError
from profiti.services import notifications
from profiti.services.matching import FULFILLMENT_DELIVERY, STATUS_DELIVERED, STATUS_PENDING

logger = logging.getLogger("profiti.deliveries")

TAKEN_MSG = "Cette livraison a déjà été acceptée par un autre livreur."
CHANGED_MSG = "La commande a été modifiée entre-temps. Veuillez réessayer."


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load(db, order_id: str) -> Tuple[Any, Any, Dict[str, Any]]:
    ref = db.collection(COMMANDES).document(order_id)
    snap = ref.get()
    if not snap.exists:
        raise NotFoundError("Commande introuvable !")
    order = snap.to_dict() or {}
    order["id"] = order_id
    return ref, snap, order


def _update_if_unchanged(db, ref, snap, patch: Dict[str, Any], conflict_msg: str) -> None:
    try:
        ref.update(patch, option=db.write_option(last_update_time=snap.update_time))
    except (FailedPrecondition, Aborted) as exc:
        logger.warning("Concurrent update on order %s: %s", ref.id, exc)
        raise ConflictError(conflict_msg) from exc


def accept_delivery(db, order_id: str, courier_id: str) -> Dict[str, Any]:
    ref, snap, order = _load(db, order_id)
    if order.get("statut") != STATUS_PENDING or order.get("choix") != FULFILLMENT_DELIVERY:
        raise ConflictError("Cette livraison n'est plus disponible.")

    accepted_by = order.get("livreurAccepte")
    if accepted_by == courier_id:
        return order
    if accepted_by:
        raise ConflictError(TAKEN_MSG)
    if courier_id in (order.get("livreursRefuses") or []):
        raise ConflictError("Vous avez refusé cette livraison.")

    patch = {"livreurAccepte": courier_id, "dateAcceptation": _now_iso()}
    _update_if_unchanged(db, ref, snap, patch, TAKEN_MSG)
    order.update(patch)
    logger.info("Order %s accepted by courier %s", order_id, courier_id)

    notifications.notify_delivery_accepted(db, order, courier_id)
    return order


def decline_delivery(db, order_id: str, courier_id: str) -> Dict[str, Any]:
    ref, _snap, order = _load(db, order_id)
    if order.get("livreurAccepte") == courier_id:
        raise ConflictError("Vous avez déjà accepté cette livraison.")

    ref.update({"livreursRefuses": ArrayUnion([courier_id])})
    refused = list(order.get("livreursRefuses") or [])
    if courier_id not in refused:
        refused.append(courier_id)
    order["livreursRefuses"] = refused
    logger.info("Order %s declined by courier %s", order_id, courier_id)
    return order


def complete_delivery(db, order_id: str, shop_id: str, courier_id: str) -> Dict[str, Any]:
    """
    Mark one shop's leg as delivered.
    The shop's lines leave the order's cart; the order is `livree` once no line remains.
    """
    ref, snap, order = _load(db, order_id)
    if order.get("livreurAccepte") != courier_id:
        raise ForbiddenError("Cette livraison n'est pas assignée à ce livreur.")
    if order.get("statut") == STATUS_DELIVERED:
        raise ConflictError("Cette commande est déjà livrée.")

    panier = order.get("panier") or []
    remaining = [p for p in panier if p.get("ownerId") != shop_id]
    if len(remaining) == len(panier):
        raise NotFoundError("Aucun produit de cette boutique dans la commande.")

    if remaining:
        patch: Dict[str, Any] = {"panier": remaining}
    else:
        patch = {"statut": STATUS_DELIVERED, "dateLivraison": _now_iso()}
    _update_if_unchanged(db, ref, snap, patch, CHANGED_MSG)

    delivered = dict(order)
    order.update(patch)
    logger.info(
        "Order %s: shop %s delivered by %s (%d line(s) left)",
        order_id, shop_id, courier_id, len(remaining),
    )

    notifications.notify_order_delivered(db, delivered, courier_id, shop_id)
    notifications.log_delivery_confirmation(db, delivered, shop_id, courier_id)
    return order
