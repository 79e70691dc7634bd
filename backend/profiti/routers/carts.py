"""
profiti/routers/carts.py
Cart endpoints (logged-in users): view, add by product id, edit quantity, remove one, clear.

Behavior
- The cart is one document per buyer: panier/{uid} = {"items": [...]}.
- Add copies the product snapshot (price, stock, shop name and location) into the cart
  with quantiteAchat = 1. A product can only be added once.
- Quantity edits are clamped to [1, available stock].
- GET /cart reports the flat shop-count delivery estimate; the distance-based fee is
  only known at checkout, once the delivery point is chosen (see /orders/quote).
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from profiti.config import get_db
from profiti.core.errors import service_errors
from profiti.core.security import get_current_user
from profiti.repositories import carts, products
from profiti.schemas.cart import AddItemBody, CartOut, QuantityBody
from profiti.services import notifications
from profiti.services.cart_summary import clamp_quantity, products_total, shop_details, shop_ids
from profiti.services.pricing import shop_count_fee

logger = logging.getLogger("profiti.carts")

router = APIRouter(prefix="/cart", tags=["Cart"])


def _cart_out(uid: str, items) -> Dict:
    shops = shop_ids(items)
    return {
        "user_id": uid,
        "items": items,
        "prixTotal": products_total(items),
        "nombreBoutiques": len(shops),
        "prixLivraison": shop_count_fee(len(shops)) if items else 0.0,
        "detailsBoutiques": shop_details(items),
    }


def _display_name(user: Dict) -> str:
    return " ".join(p for p in (user.get("prenom"), user.get("nom")) if p) or "un client"


@router.get("", response_model=CartOut)
def get_cart(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    uid = current_user["id"]
    with service_errors("get cart"):
        items = carts.load_items(db, uid)
    return _cart_out(uid, items)


@router.post("/items", response_model=CartOut)
def add_to_cart(payload: AddItemBody, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Add a product snapshot to the cart and notify the buyer and the seller."""
    uid = current_user["id"]
    with service_errors("add to cart"):
        items = carts.load_items(db, uid)
        if any(it.get("id") == payload.product_id for it in items):
            raise HTTPException(status_code=409, detail="Ce produit est déjà dans votre panier.")

        product = products.load_product(db, payload.product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Produit introuvable.")
        if int(product.get("quantite") or 0) < 1:
            raise HTTPException(status_code=400, detail="Ce produit n'est plus disponible.")

        items.append({**product, "quantiteAchat": 1})
        carts.save_items(db, uid, items)

        notifications.add_notification_for_user(
            db, uid, f"Votre commande de {product.get('nom')} a été ajoutée au panier."
        )
        notifications.notify_seller_reservation(
            db, product.get("ownerId"), product.get("nom"), _display_name(current_user)
        )
    logger.debug("Product %s added to cart of %s", payload.product_id, uid)
    return _cart_out(uid, items)


@router.patch("/items/{product_id}", response_model=CartOut)
def update_quantity(
    product_id: str,
    payload: QuantityBody,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    uid = current_user["id"]
    with service_errors("update cart quantity"):
        items = carts.load_items(db, uid)
        for it in items:
            if it.get("id") == product_id:
                it["quantiteAchat"] = clamp_quantity(payload.quantity, it.get("quantite"))
                break
        else:
            raise HTTPException(status_code=404, detail="Produit absent du panier.")
        carts.save_items(db, uid, items)
    return _cart_out(uid, items)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_cart_item(product_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    uid = current_user["id"]
    with service_errors("remove cart item"):
        items = carts.load_items(db, uid)
        kept = [it for it in items if it.get("id") != product_id]
        if len(kept) == len(items):
            raise HTTPException(status_code=404, detail="Produit absent du panier.")
        carts.save_items(db, uid, kept)
    return _cart_out(uid, kept)


@router.delete("", status_code=204)
def clear_cart(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("clear cart"):
        carts.clear(db, current_user["id"])
