"""
profiti/schemas/cart.py - Pydantic models for the cart (`panier`).
"""
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator

from profiti.services.cart_summary import ShopDetail


class AddItemBody(BaseModel):
    product_id: str = Field(..., description="Product document id in `produits`.")

    @field_validator("product_id")
    @classmethod
    def _clean_pid(cls, v: str) -> str:
        v = (v or "").strip()
        for ch in ("\u200b", "\u200c", "\u200d", "\ufeff", "\xa0"):
            v = v.replace(ch, "")
        if not v:
            raise ValueError("product_id cannot be empty")
        return v


class QuantityBody(BaseModel):
    quantity: int = Field(..., description="Requested quantity; clamped to [1, stock].")


class CartOut(BaseModel):
    user_id: str
    items: List[Dict[str, Any]] = Field(default_factory=list)
    prixTotal: float = Field(0, description="Products only.")
    nombreBoutiques: int = 0
    prixLivraison: float = Field(0, description="Flat estimate by shop count.")
    detailsBoutiques: List[ShopDetail] = Field(default_factory=list)
