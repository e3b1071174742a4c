"""
FastAPI application entry point for the Shopify ingestion and insights API.

Collaborators are created once per application and stored on app.state;
routes receive them through shopsync.api.dependencies.

Run locally:
    uvicorn main:app --reload --port 3001
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from shopsync import __version__
from shopsync.api.routes import health, tenants, sync, insights
from shopsync.config.settings import IngestionSettings, load_settings
from shopsync.database.session import create_db_engine, create_session_factory
from shopsync.platform.secrets import CredentialCipher
from shopsync.services.sync_guard import TenantSyncGuard

load_dotenv()

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Shopify ingestion API", extra={"version": __version__})

    engine = None
    if app.state.session_factory is None:
        settings = app.state.settings
        if settings.database_url:
            engine = create_db_engine(settings.database_url)
            app.state.session_factory = create_session_factory(engine)
        else:
            logger.warning("DATABASE_URL not set - database routes will return 503")

    yield

    if engine is not None:
        engine.dispose()
    logger.info("Shopify ingestion API stopped")


def create_app(
    settings: Optional[IngestionSettings] = None,
    session_factory: Optional[sessionmaker] = None,
    cipher: Optional[CredentialCipher] = None,
    client_factory: Optional[Callable] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Resolved settings (default: load_settings())
        session_factory: Session factory (default: built from DATABASE_URL at startup)
        cipher: Credential cipher (default: built from ENCRYPTION_KEY on first use)
        client_factory: Shopify client factory (default: get_shopify_client)
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Shopify Ingestion & Insights API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.cipher = cipher
    app.state.client_factory = client_factory
    app.state.sync_guard = TenantSyncGuard()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(health.router)
    app.include_router(tenants.router)
    app.include_router(sync.router)
    app.include_router(insights.router)

    @app.get("/")
    async def root():
        return {
            "message": "Shopify Data Ingestion & Insights Service API",
            "version": __version__,
            "endpoints": {
                "health": "/api/health",
                "tenants": "/api/tenants",
                "sync": "/api/tenants/{tenant_id}/sync",
                "insights": "/api/tenants/{tenant_id}/insights",
            },
        }

    return app


app = create_app()
