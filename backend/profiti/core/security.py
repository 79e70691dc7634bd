"""
# `profiti/core/security.py`: Authentication & roles

Firebase ID token verification as FastAPI dependencies, plus role guards.

- **Authentication:** `Authorization: Bearer <Firebase ID token>` is verified with the Firebase
  Admin SDK (`check_revoked=True`).
- **Profile:** `users/{uid}` is read from Firestore. When missing, a default buyer profile
  (`role="acheteur"`) is created from the token claims.
- **Roles:** `acheteur` (buyer), `vendeur` (seller), `livreur` (courier).
  `get_current_courier` / `get_current_seller` reject other roles with 403.
"""
import logging
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import firestore

from profiti.config import USERS, get_db, init_firebase

logger = logging.getLogger("profiti.security")

ROLE_BUYER = "acheteur"
ROLE_SELLER = "vendeur"
ROLE_COURIER = "livreur"

# HTTPBearer is a FastAPI provided security scheme for "Authorization: Bearer <token>" header
oauth2_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _verify(id_token: str) -> Dict:
    init_firebase()
    try:
        # check_revoked=True -> tokens are rejected after sign-out
        return firebase_auth.verify_id_token(id_token, check_revoked=True)
    except firebase_auth.ExpiredIdTokenError:
        raise _unauthorized("Session expirée. Veuillez vous reconnecter.")
    except firebase_auth.RevokedIdTokenError:
        raise _unauthorized("Session révoquée. Veuillez vous reconnecter.")
    except firebase_auth.UserDisabledError:
        raise _unauthorized("Compte désactivé.")
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.CertificateFetchError) as exc:
        logger.debug("Token rejected: %s", exc)
        raise _unauthorized("Jeton d'authentification invalide.")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
    db=Depends(get_db),
) -> Dict:
    """
    Verify the Firebase ID token and return the user profile (with `id`).
    Creates a default buyer profile when the user document does not exist yet.
    """
    if not credentials or not credentials.scheme or not credentials.credentials:
        raise _unauthorized("Utilisateur non connecté.")

    decoded = _verify(credentials.credentials)
    uid = decoded.get("uid")
    if not uid:
        raise _unauthorized("Jeton d'authentification invalide.")

    user_ref = db.collection(USERS).document(uid)
    doc = user_ref.get()
    if not doc.exists:
        user_data = {
            "nom": decoded.get("name", "") or "",
            "prenom": "",
            "email": decoded.get("email", "") or "",
            "phone": decoded.get("phone_number", "") or "",
            "role": ROLE_BUYER,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }
        user_ref.set(user_data)
        logger.info("Created default profile for %s", uid)
        # Re-read so createdAt holds the stored timestamp, not the sentinel
        doc = user_ref.get()

    user = doc.to_dict() or {}
    user["id"] = uid
    return user


def _require_role(user: Dict, role: str, detail: str) -> Dict:
    if user.get("role") != role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return user


def get_current_courier(current_user: Dict = Depends(get_current_user)) -> Dict:
    """Only couriers (role='livreur')."""
    return _require_role(current_user, ROLE_COURIER, "Réservé aux livreurs.")


def get_current_seller(current_user: Dict = Depends(get_current_user)) -> Dict:
    """Only sellers (role='vendeur')."""
    return _require_role(current_user, ROLE_SELLER, "Réservé aux vendeurs.")
