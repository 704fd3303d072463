"""
FastAPI application entry point for the AgendaHof access service.

Exposes access evaluation and the store receipt webhook.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from agenda_access import __version__
from agenda_access.api.routes import access
from agenda_access.api.routes import health
from agenda_access.api.routes import webhooks_store
from agenda_access.entitlements.loader import get_access_policy

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting AgendaHof access API")

    # Fail fast on a broken policy file instead of on the first request
    policy = get_access_policy()
    logger.info("Access policy loaded", extra={
        "trial_duration_days": policy.trial_duration_days,
        "active_status_policy": policy.active_status_policy.value,
        "store_entitlement_policy": policy.store_entitlement_policy.value,
    })

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error(
            "DATABASE_URL is not set. Access endpoints will return 503."
        )
        app.state.database_configured = False
    else:
        masked = database_url.split("@")[-1] if "@" in database_url else "(local)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})
        app.state.database_configured = True

    yield

    logger.info("Shutting down AgendaHof access API")


app = FastAPI(
    title="AgendaHof Access API",
    description="Subscription access-state evaluation",
    version=__version__,
    lifespan=lifespan
)

# Include health route
app.include_router(health.router)

# Include access evaluation routes
app.include_router(access.router)

# Include store receipt webhook
app.include_router(webhooks_store.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
