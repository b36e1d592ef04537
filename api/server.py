"""FastAPI server for the ledger reconciliation engine.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import reconciliation_error_handler
from api.routes import (
    health,
    invoices,
    metrics,
    vat,
)
from core import __version__
from core.config import Settings, load_settings
from core.errors import ReconciliationError
from core.observability import SyncStatsCollector, configure_logging, get_logger
from reconciliation.engine import build_synchronizer
from storage.repository import LedgerRepository
from storage.sqlite_repository import SqliteLedgerRepository


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings: Settings = app.state.settings
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    logger.info("Ledger reconciliation API starting up...")

    yield

    # Shutdown
    logger.info("Ledger reconciliation API shutting down...")


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[LedgerRepository] = None,
    stats: Optional[SyncStatsCollector] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Defaults to load_settings()
        repository: Defaults to a SqliteLedgerRepository on settings.db_path,
            created if missing
        stats: Defaults to a fresh collector
    """
    settings = settings or load_settings()
    if repository is None:
        repository = SqliteLedgerRepository(settings.db_path)
        repository.init_db()
    stats = stats or SyncStatsCollector()

    app = FastAPI(
        title="Ledger Reconciliation API",
        description="Turns electronic invoices into cash-flow ledger movements, exactly once",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.repository = repository
    app.state.stats = stats
    app.state.synchronizer = build_synchronizer(repository, settings, stats)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ReconciliationError, reconciliation_error_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
    app.include_router(vat.router, prefix="/vat", tags=["VAT"])
    app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
