"""
# `profiti/routers/orders.py`: Orders (commandes)

## Endpoints
- `POST /orders/quote`: price the current cart for a fulfillment choice (no write).
- `POST /orders`: confirm the cart as an order.
- `GET /orders/my`: buyer's orders, split into `active` / `past`.
- `GET /orders/seller`: orders containing the current seller's products.
- `GET /orders/{order_id}`: one order (buyer, assigned courier or seller of a line).

## Confirmation flow
1. Form checks (fulfillment, payment, address/contact, card for `d17`).
2. Cart checks (not empty, no line above stock).
3. Delivery only: every shop must be within the delivery zone; per-shop fee from distance.
4. Order write + stock decrement in one conditional batch.
5. Cart cleared; couriers notified for delivery orders.
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from google.cloud.firestore_v1.base_query import FieldFilter

from profiti.config import COMMANDES, get_db
from profiti.core.errors import service_errors
from profiti.core.security import get_current_seller, get_current_user
from profiti.repositories import carts
from profiti.schemas.order import MyOrdersOut, OrderCreate, OrderOut, QuoteOut, QuoteRequest
from profiti.services import orders_helpers

logger = logging.getLogger("profiti.orders")

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/quote", response_model=QuoteOut)
def quote_order(payload: QuoteRequest, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("quote order"):
        items = carts.load_items(db, current_user["id"])
        return orders_helpers.quote(db, items, payload.choix, payload.localisation)


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("create order"):
        return orders_helpers.place_order(db, current_user["id"], payload)


def _query(db, field: str, op: str, value) -> List[Dict]:
    docs = db.collection(COMMANDES).where(filter=FieldFilter(field, op, value)).stream()
    return [orders_helpers.order_doc_to_out(d) for d in docs]


@router.get("/my", response_model=MyOrdersOut)
def list_my_orders(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("list my orders"):
        orders = _query(db, "uid", "==", current_user["id"])
    active, past = orders_helpers.split_active_past(orders)
    return {"active": active, "past": past}


@router.get("/seller", response_model=List[OrderOut])
def list_seller_orders(current_user: dict = Depends(get_current_seller), db=Depends(get_db)):
    with service_errors("list seller orders"):
        orders = _query(db, "boutiques", "array_contains", current_user["id"])
    active, past = orders_helpers.split_active_past(orders)
    return active + past


@router.get("/{order_id}", response_model=OrderOut)
def get_order_detail(order_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("get order"):
        snap = db.collection(COMMANDES).document(order_id).get()
    if not snap.exists:
        raise HTTPException(status_code=404, detail="Commande introuvable !")
    order = orders_helpers.order_doc_to_out(snap)
    if not orders_helpers.can_view(order, current_user):
        raise HTTPException(status_code=403, detail="Accès refusé.")
    return order
