"""Firebase initialization and the push gateway client.

Integration details:
- Reads Firebase identifiers and secrets from `settings` (env-backed).
- Accepts either a service-account JSON file (`FIREBASE_CREDENTIALS_PATH`) or the
  project id / client email / private key triple.
- Initialization happens once at application startup; the resulting `FirebaseGateway` is stored
  on `app.state` and shared by reference, never re-created per request.
- Falls back to "no gateway" on initialization failures so the service can start (and answer
  zero-device sends) without FCM.
"""

import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, messaging

logger = logging.getLogger(__name__)

APP_NAME = "push-delivery"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def _build_credentials(settings) -> credentials.Certificate:
    if settings.firebase_credentials_path:
        return credentials.Certificate(settings.firebase_credentials_path)
    return credentials.Certificate(
        {
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key": settings.firebase_private_key,
            "client_email": settings.firebase_client_email,
            "token_uri": TOKEN_URI,
        }
    )


def initialize_firebase(settings) -> Optional[firebase_admin.App]:
    """Initialize (or reuse) the named Firebase app from env-backed settings.

    Returns the app on success; returns None and logs when credentials are absent/invalid
    so non-dispatch code paths remain operational.
    """
    if not settings.firebase_configured:
        logger.warning("Firebase credentials not configured; push gateway disabled")
        return None

    try:
        return firebase_admin.get_app(APP_NAME)
    except ValueError:
        pass

    try:
        app = firebase_admin.initialize_app(
            _build_credentials(settings),
            {
                "projectId": settings.firebase_project_id,
                "httpTimeout": settings.PUSH_DISPATCH_TIMEOUT,
            },
            name=APP_NAME,
        )
        logger.info("Firebase initialized successfully")
        return app
    except Exception as e:
        # Fail open: log and return None so the rest of the app can run without push delivery.
        logger.error("Failed to initialize Firebase: %s", e)
        return None


class FirebaseGateway:
    """Thin wrapper over FCM's batch-native multicast send."""

    name = "fcm"

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    def send_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        """Send one multicast message; the response preserves token order."""
        return messaging.send_each_for_multicast(message, app=self.app)


def build_gateway(settings) -> Optional[FirebaseGateway]:
    """One-time startup step: return a shared gateway, or None when FCM is unavailable."""
    app = initialize_firebase(settings)
    if app is None:
        return None
    return FirebaseGateway(app)


__all__ = ["FirebaseGateway", "build_gateway", "initialize_firebase"]
