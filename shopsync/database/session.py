"""
Database engine and session factory construction.

Engines are built from IngestionSettings.database_url and handed to the
API lifespan and the scheduler; there is no module-level engine.

Usage:
    from shopsync.database.session import create_db_engine, create_session_factory

    engine = create_db_engine(settings.database_url)
    SessionLocal = create_session_factory(engine)
    session = SessionLocal()
"""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from shopsync.config.settings import normalize_database_url

logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str]) -> Engine:
    """
    Create a database engine.

    PostgreSQL gets connection pooling with sensible defaults:
    - pool_size: 5 connections
    - max_overflow: 10 additional connections under load
    - pool_pre_ping: Verify connections before use

    Raises:
        ValueError: If database_url is not set
    """
    if not database_url:
        logger.error("Failed to create database engine", extra={"error": "DATABASE_URL is not set"})
        raise ValueError("DATABASE_URL environment variable is not set")

    database_url = normalize_database_url(database_url)

    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connection health
            pool_recycle=1800,   # Recycle connections after 30 minutes
        )

    logger.info("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Yield one session and always close it.

    Usage:
        for session in session_scope(SessionLocal):
            # use session
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
