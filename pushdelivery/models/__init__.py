"""Lightweight models package initialiser.

- Exposes the shared SQLAlchemy `Base`.
- Lazily exposes the notification domain models via module-level attribute access so importing
  `pushdelivery.core.database` (which pulls `Base`) doesn't eagerly import every model.
- `load_models()` imports the domain modules so `Base.metadata` is complete (Alembic, tests).
"""

import importlib

from pushdelivery.models.base import Base

_DOMAIN_MODULE = "pushdelivery.modules.notifications.models"

__all__ = ["Base", "load_models"]


def load_models():
    """Import every ORM module and return the populated metadata."""
    importlib.import_module(_DOMAIN_MODULE)
    return Base.metadata


def __getattr__(name: str):
    """
    Lazily load domain model attributes to avoid circular imports during
    early DB setup (e.g., when pushdelivery.core.database imports Base).
    """
    module = importlib.import_module(_DOMAIN_MODULE)
    if hasattr(module, name):
        return getattr(module, name)
    raise AttributeError(f"module 'pushdelivery.models' has no attribute {name!r}")
