"""
# `profiti/routers/users.py`: Profile, location and shop settings

- `GET /users/me`: current profile.
- `PUT /users/me/location`: store the device position (`location {latitude, longitude, updatedAt}`).
  Couriers use it as their default position for matching; sellers as their shop location.
- `PUT /users/me/shop`: sellers toggle free delivery (`livraisonFree`).
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from profiti.config import USERS, get_db
from profiti.core.errors import service_errors
from profiti.core.security import get_current_seller, get_current_user
from profiti.schemas.user import LocationUpdate, ShopSettingsUpdate, UserProfile

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserProfile)
def get_my_profile(current_user: dict = Depends(get_current_user)):
    # current_user is retrieved from Firestore in the security dependency
    return current_user


@router.put("/me/location", response_model=UserProfile)
def update_my_location(payload: LocationUpdate, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    location = {
        "latitude": payload.latitude,
        "longitude": payload.longitude,
        "updatedAt": datetime.now(timezone.utc),
    }
    with service_errors("update location"):
        db.collection(USERS).document(current_user["id"]).set({"location": location}, merge=True)
    return {**current_user, "location": location}


@router.put("/me/shop", response_model=UserProfile)
def update_shop_settings(payload: ShopSettingsUpdate, current_user: dict = Depends(get_current_seller), db=Depends(get_db)):
    with service_errors("update shop settings"):
        db.collection(USERS).document(current_user["id"]).set({"livraisonFree": payload.livraisonFree}, merge=True)
    return {**current_user, "livraisonFree": payload.livraisonFree}
