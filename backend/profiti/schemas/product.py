"""
profiti/schemas/product.py - Product models (`produits`).

Prices and stock use the keys the mobile app stores. Image upload is handled by the
client; `image` is the resulting download URL.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductCreate(BaseModel):
    nom: str = Field(..., min_length=1)
    description: str = ""
    prixPromotionnel: float = Field(..., ge=0, description="Discounted price actually charged.")
    prixNormal: float = Field(..., ge=0)
    quantite: int = Field(..., ge=0, description="Units in stock.")
    categorie: str = ""
    horairePickup: str = Field("", description='Pickup window, "HH:MM - HH:MM".')
    image: str = ""


class ProductUpdate(BaseModel):
    """Partial edit; only the fields sent are written."""
    nom: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    prixPromotionnel: Optional[float] = Field(None, ge=0)
    prixNormal: Optional[float] = Field(None, ge=0)
    quantite: Optional[int] = Field(None, ge=0)
    categorie: Optional[str] = None
    horairePickup: Optional[str] = None
    image: Optional[str] = None


class ProductOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    nom: str = ""
    ownerId: Optional[str] = None
    description: str = ""
    prixPromotionnel: float = 0
    prixNormal: float = 0
    quantite: int = 0
    categorie: str = ""
    horairePickup: str = ""
    image: str = ""
    boutique: Optional[str] = None
    boutiqueLatitude: Optional[float] = None
    boutiqueLongitude: Optional[float] = None
    distance: Optional[float] = None
