"""
Application factory.

Run with:
    uvicorn api.app:create_app --factory

Startup is fatal when required configuration or ledger tables are missing;
there is no per-request recovery from either.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from api.config import Settings
from api.errors import ErrorHandlerMiddleware
from api.log_config import configure_logging
from api.routes import gateway, health
from api.services import GatewayServices, build_services
from ledger.readiness import require_ledger

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[GatewayServices] = None,
) -> FastAPI:
    settings = settings or (services.settings if services else Settings.from_env())
    services = services or build_services(settings)

    configure_logging(
        settings.log_level,
        session_factory=services.session_factory,
        diagnostic_log_enabled=settings.diagnostic_log_enabled,
    )
    require_ledger(services.engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        services.close()

    app = FastAPI(
        title="Premium Gate API",
        description="Entitlement resolution, checkout and payment webhooks for the extension",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_middleware(ErrorHandlerMiddleware)
    app.include_router(health.router)
    app.include_router(gateway.router)

    logger.info("Premium gate started", extra={"cache_backend": services.cache.backend})
    return app
