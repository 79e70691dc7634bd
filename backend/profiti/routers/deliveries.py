"""
profiti/routers/deliveries.py
Courier endpoints (role='livreur').

- GET  /deliveries/available: delivery legs near the courier. Position comes from the query
  string, else from the courier's stored profile location.
- POST /deliveries/{order_id}/accept
- POST /deliveries/{order_id}/decline
- POST /deliveries/{order_id}/shops/{shop_id}/complete
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from google.cloud.firestore_v1.base_query import FieldFilter

from profiti.config import COMMANDES, get_db, settings
from profiti.core.errors import service_errors
from profiti.core.geo import GeoPoint, profile_point
from profiti.core.security import get_current_courier
from profiti.schemas.order import OrderOut
from profiti.services import deliveries
from profiti.services.matching import (
    FULFILLMENT_DELIVERY,
    STATUS_PENDING,
    AvailableDelivery,
    available_for_courier,
)
from profiti.services.orders_helpers import order_doc_to_out

logger = logging.getLogger("profiti.deliveries")

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])


def _pending_delivery_orders(db) -> List[dict]:
    docs = (
        db.collection(COMMANDES)
        .where(filter=FieldFilter("statut", "==", STATUS_PENDING))
        .where(filter=FieldFilter("choix", "==", FULFILLMENT_DELIVERY))
        .stream()
    )
    return [order_doc_to_out(d) for d in docs]


@router.get("/available", response_model=List[AvailableDelivery])
def list_available_deliveries(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    current_user: dict = Depends(get_current_courier),
    db=Depends(get_db),
):
    if latitude is not None and longitude is not None:
        position = GeoPoint(latitude=latitude, longitude=longitude)
    else:
        position = profile_point(current_user)
    if position is None:
        logger.debug("Courier %s has no known position", current_user["id"])
        return []
    with service_errors("list deliveries"):
        orders = _pending_delivery_orders(db)
    return available_for_courier(orders, current_user["id"], position, settings.courier_radius_km)


@router.post("/{order_id}/accept", response_model=OrderOut)
def accept_delivery(order_id: str, current_user: dict = Depends(get_current_courier), db=Depends(get_db)):
    with service_errors("accept delivery"):
        return deliveries.accept_delivery(db, order_id, current_user["id"])


@router.post("/{order_id}/decline", response_model=OrderOut)
def decline_delivery(order_id: str, current_user: dict = Depends(get_current_courier), db=Depends(get_db)):
    with service_errors("decline delivery"):
        return deliveries.decline_delivery(db, order_id, current_user["id"])


@router.post("/{order_id}/shops/{shop_id}/complete", response_model=OrderOut)
def complete_delivery(
    order_id: str,
    shop_id: str,
    current_user: dict = Depends(get_current_courier),
    db=Depends(get_db),
):
    with service_errors("complete delivery"):
        return deliveries.complete_delivery(db, order_id, shop_id, current_user["id"])
