"""Application factory helpers to keep pushdelivery/main.py lightweight."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import orjson
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from pushdelivery.api.router import api_router
from pushdelivery.core.config import settings
from pushdelivery.core.error_handlers import register_exception_handlers
from pushdelivery.core.logging_config import setup_logging
from pushdelivery.core.middleware import LoggingMiddleware
from pushdelivery.core.monitoring import setup_monitoring
from pushdelivery.firebase_config import build_gateway

logger = logging.getLogger(__name__)

# Headers the event producers send with /notify requests.
CORS_ALLOWED_HEADERS = [
    "X-CSRF-Token",
    "X-Requested-With",
    "X-Request-ID",
    "Accept",
    "Accept-Version",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "X-Api-Version",
    "Authorization",
]


def _configure_app(app: FastAPI) -> None:
    # Logs all requests and responses with timing
    app.add_middleware(LoggingMiddleware)

    origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS", "PATCH", "DELETE", "POST", "PUT"],
        allow_headers=CORS_ALLOWED_HEADERS,
    )

    app.include_router(api_router)


def _lifespan_factory():
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: the gateway client is created once and shared by reference.
        if getattr(app.state, "push_gateway", None) is None:
            app.state.push_gateway = build_gateway(settings)

        yield

        # Shutdown
        app.state.push_gateway = None

    return lifespan


def create_app() -> FastAPI:
    """
    Application Factory to create and configure the FastAPI application.
    Integrates Logging, Error Handling, Monitoring, and Middleware.
    """
    setup_logging(
        log_level=getattr(settings, "log_level", "INFO"),
        log_dir=getattr(settings, "log_dir", None),
        app_name="push_delivery",
        use_json=getattr(settings, "use_json_logs", False),
        use_colors=settings.environment.lower() != "production",
    )

    app = FastAPI(
        title=settings.SITE_NAME,
        description="Resolves a recipient's devices and delivers push notifications in one multicast batch",
        version="1.0.0",
        lifespan=_lifespan_factory(),
        default_response_class=ORJSONResponse,
        json_dumps=lambda v, *, default: orjson.dumps(v, default=default),
        json_loads=orjson.loads,
    )

    app.state.environment = settings.environment
    app.state.push_gateway = None

    _configure_app(app)
    register_exception_handlers(app)
    setup_monitoring(app)

    logger.info("Application startup complete")

    return app


__all__ = ["create_app"]
