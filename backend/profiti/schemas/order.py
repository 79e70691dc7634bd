# profiti/schemas/order.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from profiti.core.geo import GeoPoint
from profiti.services.cart_summary import ShopDetail

# Order statuses as stored by the mobile app
OrderStatus = Literal["en_attente", "livree"]
Fulfillment = Literal["livraison", "sur_place"]
PaymentMethod = Literal["cash", "d17"]


# Keep unknown fields so documents written by the app round-trip untouched
class _Base(BaseModel):
    model_config = ConfigDict(extra="allow")


class CardInfo(BaseModel):
    cardNumber: str = Field(..., min_length=12, max_length=23)
    expiry: str = Field(..., min_length=4, max_length=7)
    cvv: str = Field(..., min_length=3, max_length=4)


class OrderCreate(BaseModel):
    """Checkout form. Cross-field rules are checked in orders_helpers.validate_checkout."""
    choix: Optional[Fulfillment] = None
    paiement: Optional[PaymentMethod] = None
    nom: str = ""
    prenom: str = ""
    telephone: str = ""
    commentaire: str = ""
    adresse: str = ""
    localisation: Optional[GeoPoint] = None
    carte: Optional[CardInfo] = None


class QuoteRequest(BaseModel):
    choix: Fulfillment = "livraison"
    localisation: Optional[GeoPoint] = None

    @model_validator(mode="after")
    def _needs_point(self):
        if self.choix == "livraison" and self.localisation is None:
            raise ValueError("localisation requise pour une livraison")
        return self


class QuoteOut(BaseModel):
    prixTotal: float
    prixLivraisonTotal: float
    totalAPayer: float
    prixLivraisons: Dict[str, float] = Field(default_factory=dict)
    detailsBoutiques: List[ShopDetail] = Field(default_factory=list)


class OrderOut(_Base):
    id: str
    uid: str
    choix: Optional[str] = None
    paiement: Optional[str] = None
    statut: OrderStatus
    prixTotal: float = 0
    totalAPayer: float = 0
    prixLivraisons: Dict[str, float] = Field(default_factory=dict)
    adresse: str = ""
    localisation: Optional[Dict[str, Any]] = None
    panier: List[Dict[str, Any]] = Field(default_factory=list)
    detailsBoutiques: List[Dict[str, Any]] = Field(default_factory=list)
    idVendeur: Optional[str] = None
    livreurAccepte: Optional[str] = None
    livreursRefuses: List[str] = Field(default_factory=list)
    date: Optional[str] = None
    dateLivraison: Optional[str] = None


class MyOrdersOut(BaseModel):
    active: List[OrderOut] = Field(default_factory=list)
    past: List[OrderOut] = Field(default_factory=list)
