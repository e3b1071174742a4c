"""
FastAPI dependencies.

Collaborators live on app.state and are set up by create_app() in main.py:
settings, session_factory, cipher, client_factory and sync_guard.
"""

import logging
from typing import Generator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from shopsync.config.settings import IngestionSettings
from shopsync.database.session import session_scope
from shopsync.integrations.shopify.client import get_shopify_client
from shopsync.platform.secrets import CredentialCipher, EncryptionError
from shopsync.services.ingestion_service import ShopifyIngestionService
from shopsync.services.sync_guard import TenantSyncGuard
from shopsync.services.tenant_service import TenantService

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> IngestionSettings:
    return request.app.state.settings


def get_db_session(request: Request) -> Generator[Session, None, None]:
    """
    Creates a new session for each request and ensures proper cleanup.
    Raises HTTP 503 if database is not configured.
    """
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured",
        )
    yield from session_scope(session_factory)


def get_cipher(request: Request) -> CredentialCipher:
    cipher = getattr(request.app.state, "cipher", None)
    if cipher is None:
        try:
            cipher = CredentialCipher(request.app.state.settings.encryption_key)
        except EncryptionError:
            logger.error("ENCRYPTION_KEY is not configured")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Credential encryption not configured",
            )
        request.app.state.cipher = cipher
    return cipher


def get_client_factory(request: Request):
    return getattr(request.app.state, "client_factory", None) or get_shopify_client


def get_sync_guard(request: Request) -> TenantSyncGuard:
    return request.app.state.sync_guard


def get_ingestion_service(
    db_session: Session = Depends(get_db_session),
    settings: IngestionSettings = Depends(get_settings),
    cipher: CredentialCipher = Depends(get_cipher),
    client_factory=Depends(get_client_factory),
    sync_guard: TenantSyncGuard = Depends(get_sync_guard),
) -> ShopifyIngestionService:
    return ShopifyIngestionService(
        db_session,
        settings=settings,
        client_factory=client_factory,
        cipher=cipher,
        sync_guard=sync_guard,
    )


def get_tenant_service(
    db_session: Session = Depends(get_db_session),
    settings: IngestionSettings = Depends(get_settings),
    cipher: CredentialCipher = Depends(get_cipher),
    client_factory=Depends(get_client_factory),
) -> TenantService:
    return TenantService(
        db_session,
        cipher=cipher,
        client_factory=client_factory,
        settings=settings,
    )
