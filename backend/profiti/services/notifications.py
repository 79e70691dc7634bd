# profiti/services/notifications.py
"""
In-app notifications stored under users/{uid}/notifications.

Delivery to devices is out of scope here; the mobile app listens to this subcollection.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from profiti.config import NOTIFICATIONS, USERS, settings
from profiti.core.security import ROLE_COURIER

logger = logging.getLogger("profiti.notifications")


def add_notification_for_user(db, uid: Optional[str], message: str) -> Optional[str]:
    if not uid:
        logger.debug("Notification skipped (no recipient): %s", message)
        return None
    ref = db.collection(USERS).document(uid).collection("notifications").document()
    ref.set({
        "message": message,
        "createdAt": SERVER_TIMESTAMP,
        "read": False,
    })
    return ref.id


def notify_couriers_delivery_available(db, order: Mapping[str, Any]) -> int:
    """Tell every courier that a delivery is available. Returns the number notified."""
    couriers = db.collection(USERS).where(filter=FieldFilter("role", "==", ROLE_COURIER)).stream()
    count = 0
    for courier in couriers:
        add_notification_for_user(
            db,
            courier.id,
            f"Une livraison est disponible pour la commande à {order.get('adresse')}.",
        )
        count += 1
    logger.info("Delivery available: %d courier(s) notified", count)
    return count


def notify_delivery_accepted(db, order: Mapping[str, Any], courier_id: str) -> None:
    add_notification_for_user(db, order.get("uid"), "Votre commande est en cours de livraison.")
    add_notification_for_user(
        db,
        courier_id,
        f"Vous avez accepté la livraison pour la commande à {order.get('adresse')}.",
    )


def notify_order_delivered(db, order: Mapping[str, Any], courier_id: str, shop_id: Optional[str] = None) -> None:
    add_notification_for_user(db, order.get("uid"), "Votre commande a été livrée avec succès.")
    add_notification_for_user(
        db,
        shop_id or order.get("idVendeur"),
        f"La commande a été livrée au client à {order.get('adresse')}.",
    )
    add_notification_for_user(db, courier_id, "Vous avez livré la commande avec succès.")


def notify_seller_reservation(db, seller_id: Optional[str], product_name: str, buyer_name: str) -> None:
    add_notification_for_user(
        db,
        seller_id,
        f'Nouvelle commande : "{product_name}" réservée par {buyer_name}.',
    )


def log_delivery_confirmation(db, order: Mapping[str, Any], shop_id: str, courier_id: str) -> str:
    """Append an audit record to the global notifications collection."""
    record: Dict[str, Any] = {
        **{k: v for k, v in order.items() if k != "carte"},
        "boutiqueId": shop_id,
        "livreurId": courier_id,
        "dateNotification": datetime.now(timezone.utc).isoformat(),
        "type": "livraison_confirmee",
    }
    ref = db.collection(NOTIFICATIONS).document()
    ref.set(record)
    return ref.id


def _expired(created: Any, cutoff: datetime) -> bool:
    if not isinstance(created, datetime):
        return False
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created < cutoff


def list_notifications(db, uid: str, limit: int = 50):
    """Newest first. Notifications older than `settings.notification_ttl_days` are deleted on the way."""
    col = db.collection(USERS).document(uid).collection("notifications")
    cutoff = datetime.now(timezone.utc) - timedelta(days=settings.notification_ttl_days)
    out = []
    purged = 0
    for doc in col.stream():
        data = doc.to_dict() or {}
        if _expired(data.get("createdAt"), cutoff):
            doc.reference.delete()
            purged += 1
            continue
        data["id"] = doc.id
        out.append(data)
    if purged:
        logger.debug("Purged %d expired notification(s) of %s", purged, uid)
    out.sort(key=lambda n: _sort_key(n.get("createdAt")), reverse=True)
    return out[:limit]


def mark_all_read(db, uid: str) -> int:
    col = db.collection(USERS).document(uid).collection("notifications")
    changed = 0
    for doc in col.where(filter=FieldFilter("read", "==", False)).stream():
        doc.reference.update({"read": True})
        changed += 1
    return changed


def _sort_key(value: Any) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    return 0.0
