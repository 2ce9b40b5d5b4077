"""FastAPI dependency wiring for the push delivery service.

The gateway is created once at startup and read from `app.state`; the token store is bound to
the per-request session. Tests override `get_push_gateway` to inject a fake gateway.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from pushdelivery.core.config import settings
from pushdelivery.core.database import get_db

from .dispatch import DispatchEngine, PushGateway
from .payloads import PayloadBuilder
from .pruner import TokenPruner
from .repository import DeviceTokenStore
from .resolver import RecipientResolver
from .service import PushNotificationService


def get_push_gateway(request: Request) -> Optional[PushGateway]:
    return getattr(request.app.state, "push_gateway", None)


def get_token_store(db: Session = Depends(get_db)) -> DeviceTokenStore:
    return DeviceTokenStore(db)


def build_push_service(
    store: DeviceTokenStore, gateway: Optional[PushGateway], config=settings
) -> PushNotificationService:
    payload_builder = PayloadBuilder.from_settings(config)
    return PushNotificationService(
        resolver=RecipientResolver(store, timeout=config.DIRECTORY_LOOKUP_TIMEOUT),
        payload_builder=payload_builder,
        engine=DispatchEngine(
            gateway,
            payload_builder,
            timeout=config.PUSH_DISPATCH_TIMEOUT,
            max_batch_size=config.PUSH_MAX_BATCH_SIZE,
        ),
        pruner=TokenPruner(store, timeout=config.PUSH_PRUNE_TIMEOUT),
        fanout_group_size=config.PUSH_FANOUT_GROUP_SIZE,
    )


def get_push_service(
    store: DeviceTokenStore = Depends(get_token_store),
    gateway: Optional[PushGateway] = Depends(get_push_gateway),
) -> PushNotificationService:
    return build_push_service(store, gateway)


__all__ = [
    "build_push_service",
    "get_push_gateway",
    "get_push_service",
    "get_token_store",
]
