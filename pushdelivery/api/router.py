"""Centralized API router registration.

Groups:
- Delivery: the `/notify` endpoint called by event producers.
- Operations: liveness/readiness probes.
"""

from fastapi import APIRouter

from pushdelivery.routers import health, notify

api_router = APIRouter()

api_router.include_router(notify.router)
api_router.include_router(health.router)
