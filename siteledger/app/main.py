"""
FastAPI Application Entry Point.

SiteLedger: equipment rental billing and multi-ledger accounting.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from siteledger.app.core.config import settings
from siteledger.app.api.v1.router import router as api_v1_router
from siteledger.app.core.observability import ObservabilityMiddleware, configure_logging
from siteledger.app.core.redis_client import ping_redis
from siteledger.app.core.dependencies import close_earnings_feed
from siteledger.app.db.session import engine, Base
from siteledger.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from siteledger.app.models.account import Account, AccountBalance
from siteledger.app.models.ledger_entry import LedgerEntry
from siteledger.app.models.equipment import Equipment
from siteledger.app.models.rental_assignment import RentalAssignment, PauseInterval
from siteledger.app.models.audit_log import AuditLog


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup; closes the earnings feed and the
    engine on shutdown.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_earnings_feed()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Equipment rental billing and multi-ledger accounting for construction sites",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and lock backend reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


app.include_router(api_v1_router, prefix=f"/{settings.api_version}")
