"""
profiti/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and initializes the Firebase Admin SDK lazily. Other modules import `settings` for
configuration and depend on `get_db` (Firestore client) as a FastAPI dependency, so
tests can swap the client with `app.dependency_overrides`.
"""
import logging
from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("profiti.config")


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    firebase_cred_file: str = Field("firebase_service_account.json")
    firebase_project_id: Optional[str] = None

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None

    # Prefix applied to every collection name (e.g. "staging_")
    firebase_collection_prefix: str = ""

    google_maps_api_key: str = ""
    geocoding_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    geocoding_timeout: int = 10

    courier_radius_km: float = 3.0
    delivery_zone_km: float = 10.0
    stock_update_attempts: int = 3
    catalogue_radius_km: float = 10.0
    notification_ttl_days: int = 7

    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"  # Comma-separated list or '*' for all


# Load settings from environment (.env file, etc.)
settings = Settings()


def prefixed(name: str) -> str:
    prefix = (settings.firebase_collection_prefix or "").strip()
    return f"{prefix}{name}" if prefix else name


USERS = prefixed("users")
PRODUITS = prefixed("produits")
PANIER = prefixed("panier")
COMMANDES = prefixed("commandes")
NOTIFICATIONS = prefixed("notifications")


def _credentials():
    # Check if we have environment variables for Firebase credentials (Cloud Run)
    if all([
        settings.firebase_private_key_id,
        settings.firebase_private_key,
        settings.firebase_client_email,
        settings.firebase_client_id,
        settings.firebase_auth_uri,
        settings.firebase_token_uri,
        settings.firebase_auth_provider_x509_cert_url,
        settings.firebase_client_x509_cert_url,
    ]):
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key_id": settings.firebase_private_key_id,
            "private_key": settings.firebase_private_key.replace("\\n", "\n"),
            "client_email": settings.firebase_client_email,
            "client_id": settings.firebase_client_id,
            "auth_uri": settings.firebase_auth_uri,
            "token_uri": settings.firebase_token_uri,
            "auth_provider_x509_cert_url": settings.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": settings.firebase_client_x509_cert_url,
        })
    # Use service account file (local development)
    return credentials.Certificate(settings.firebase_cred_file)


def init_firebase() -> firebase_admin.App:
    """Initialize the default Firebase app once and return it."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        app = firebase_admin.initialize_app(_credentials(), options)
    except ValueError as e:
        if "already exists" in str(e):
            return firebase_admin.get_app()
        raise
    logger.info("Firebase initialized for project %s", settings.firebase_project_id or "<default>")
    return app


@lru_cache(maxsize=1)
def get_db():
    """Firestore client shared by the whole application."""
    init_firebase()
    return firestore.client()
