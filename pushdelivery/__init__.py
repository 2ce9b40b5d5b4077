"""Push delivery service package."""

from pushdelivery.core.config import Settings, settings
from pushdelivery.core.database import Base, SessionLocal, engine, get_db

__all__ = [
    "settings",
    "Settings",
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
]
