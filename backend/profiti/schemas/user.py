"""
profiti/schemas/user.py - User profile models (subset used by the API).
"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["acheteur", "vendeur", "livreur"]


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    role: Optional[Role] = None
    nom: Optional[str] = None
    prenom: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    livraisonFree: Optional[bool] = None


class LocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ShopSettingsUpdate(BaseModel):
    livraisonFree: bool
