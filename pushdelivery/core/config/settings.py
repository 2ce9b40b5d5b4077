"""Application settings loaded from environment with safe fallbacks.

Environment precedence:
- Loads `.env` from the repo root before reading process env vars.
- Most values are pulled straight from env; booleans go through `_env_flag` so `"0"/"false"` work.
- CORS is normalized from `CORS_ORIGINS` (comma-separated); the default allows any origin because
  `/notify` is called by trusted backend event handlers.

Key expectations (defaults in parentheses):
- `APP_ENV` controls settings class selection (`production` default).
- Database: `DATABASE_URL` or `TEST_DATABASE_URL`, with `_test` suffix enforced in tests.
- Firebase: `FIREBASE_CREDENTIALS_PATH` or the `FIREBASE_PROJECT_ID`/`FIREBASE_CLIENT_EMAIL`/
  `FIREBASE_PRIVATE_KEY` triple; missing credentials keep the gateway disabled without failing startup.
- Timeouts: `DIRECTORY_LOOKUP_TIMEOUT` (5s) and `PUSH_DISPATCH_TIMEOUT` (10s) bound the two
  calls that leave the process.
"""

import logging
import os
from pathlib import Path
from typing import ClassVar, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Base directory of the project; used for resolving relative paths reliably.
# (__file__ is pushdelivery/core/config/settings.py, so we need to traverse three levels up)
BASE_DIR = Path(__file__).resolve().parents[3]


load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger(__name__)

# FCM rejects multicast messages addressed to more than 500 registration tokens.
FCM_MULTICAST_LIMIT = 500


def _env_flag(name: str, *, default: Optional[bool] = False) -> Optional[bool]:
    """
    Helper to parse boolean-like environment variables.
    """
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Behavior highlights:
    - Loads `.env` at repo root, then lets process env override.
    - Enforces safe DB URLs (prefers `DATABASE_URL`, ensures `_test` suffix for test DBs).
    - Feature toggles parsed via `_env_flag` to accept common truthy/falsey strings.
    - Firebase private keys arriving with escaped newlines are restored before use.
    - Push batch size is clamped to the FCM multicast ceiling.
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: Optional[str] = os.getenv("DATABASE_URL")
    test_database_url: Optional[str] = os.getenv("TEST_DATABASE_URL")
    environment: str = os.getenv("APP_ENV", "production")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: Optional[str] = os.getenv("LOG_DIR", "logs")
    use_json_logs: bool = _env_flag("USE_JSON_LOGS", default=True)
    # Accept raw string from env to avoid JSON parse errors; we normalize to list in __init__
    cors_origins: Optional[str] = None
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")
    SITE_NAME: str = os.getenv("SITE_NAME", "Push Delivery")

    firebase_project_id: Optional[str] = os.getenv("FIREBASE_PROJECT_ID")
    firebase_client_email: Optional[str] = os.getenv("FIREBASE_CLIENT_EMAIL")
    firebase_private_key: Optional[str] = os.getenv("FIREBASE_PRIVATE_KEY")
    firebase_credentials_path: Optional[str] = os.getenv("FIREBASE_CREDENTIALS_PATH")
    disable_external_notifications: bool = bool(
        _env_flag("DISABLE_EXTERNAL_NOTIFICATIONS", default=False)
    )

    DIRECTORY_LOOKUP_TIMEOUT: float = float(os.getenv("DIRECTORY_LOOKUP_TIMEOUT", 5))
    PUSH_DISPATCH_TIMEOUT: float = float(os.getenv("PUSH_DISPATCH_TIMEOUT", 10))
    PUSH_PRUNE_TIMEOUT: float = float(os.getenv("PUSH_PRUNE_TIMEOUT", 5))
    PUSH_MAX_BATCH_SIZE: int = int(os.getenv("PUSH_MAX_BATCH_SIZE", FCM_MULTICAST_LIMIT))
    PUSH_FANOUT_GROUP_SIZE: int = int(os.getenv("PUSH_FANOUT_GROUP_SIZE", 10))
    PUSH_ANDROID_CHANNEL_ID: str = os.getenv("PUSH_ANDROID_CHANNEL_ID", "default")
    PUSH_DEFAULT_URL: str = os.getenv("PUSH_DEFAULT_URL", "/")
    PUSH_DEFAULT_ICON: str = os.getenv("PUSH_DEFAULT_ICON", "/vite.svg")
    PUSH_BADGE_ICON: str = os.getenv("PUSH_BADGE_ICON", "/vite.svg")
    PUSH_REQUIRE_INTERACTION: bool = bool(
        _env_flag("PUSH_REQUIRE_INTERACTION", default=True)
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        env_override = os.getenv("APP_ENV")
        if env_override:
            object.__setattr__(self, "environment", env_override)

        cors_env = os.getenv("CORS_ORIGINS")
        if cors_env:
            origins = [
                origin.strip() for origin in cors_env.split(",") if origin.strip()
            ]
        elif isinstance(self.cors_origins, str) and self.cors_origins.strip():
            origins = [
                origin.strip()
                for origin in self.cors_origins.split(",")
                if origin.strip()
            ]
        else:
            origins = ["*"]
        object.__setattr__(self, "cors_origins", origins)

        if self.firebase_private_key:
            # Private keys copied into env files usually carry literal "\n" sequences.
            object.__setattr__(
                self,
                "firebase_private_key",
                self.firebase_private_key.replace("\\n", "\n"),
            )

        if not 0 < self.PUSH_MAX_BATCH_SIZE <= FCM_MULTICAST_LIMIT:
            logger.warning(
                "PUSH_MAX_BATCH_SIZE=%s is outside 1..%s; clamping.",
                self.PUSH_MAX_BATCH_SIZE,
                FCM_MULTICAST_LIMIT,
            )
            object.__setattr__(
                self,
                "PUSH_MAX_BATCH_SIZE",
                min(max(self.PUSH_MAX_BATCH_SIZE, 1), FCM_MULTICAST_LIMIT),
            )

    def get_database_url(self, *, use_test: bool = False) -> str:
        """Resolve the SQLAlchemy database URL for runtime or tests.

        Priority: explicit `DATABASE_URL` (or the test URL when requested), then
        `TEST_DATABASE_URL`, finally a local sqlite file.
        Enforces dedicated test DB names to avoid destructive writes to prod data.
        """
        if use_test:
            test_url = self.test_database_url or "sqlite:///./test.db"
            if test_url.startswith("sqlite"):
                return test_url
            if "_test" not in test_url:
                raise ValueError(
                    "Test database URL must point to a dedicated test database (contains '_test')."
                )
            return test_url

        if self.database_url:
            return self.database_url

        if self.test_database_url:
            return self.test_database_url

        return "sqlite:///./push_delivery.db"

    @property
    def firebase_configured(self) -> bool:
        """True when enough credentials are present to bootstrap the Firebase app."""
        if self.disable_external_notifications:
            return False
        if self.firebase_credentials_path:
            return True
        return bool(
            self.firebase_project_id
            and self.firebase_client_email
            and self.firebase_private_key
        )
