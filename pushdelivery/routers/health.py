"""Liveness/readiness probes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from pushdelivery.core.database import get_db
from pushdelivery.modules.notifications.dependencies import get_push_gateway
from pushdelivery.modules.notifications.dispatch import PushGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/livez")
async def livez():
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    db: Session = Depends(get_db),
    gateway: Optional[PushGateway] = Depends(get_push_gateway),
):
    """Ready when the directory answers; an unconfigured gateway is reported, not fatal."""
    health_status = {"database": "unknown", "gateway": "unknown"}
    is_ready = True

    try:
        db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        logger.error("Readiness check failed (Database): %s", e)
        health_status["database"] = "disconnected"
        is_ready = False

    health_status["gateway"] = "configured" if gateway is not None else "disabled"

    if not is_ready:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "details": health_status},
        )

    return {"status": "ready", "details": health_status}
