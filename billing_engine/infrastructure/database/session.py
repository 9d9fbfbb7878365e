"""Database session management with connection pooling"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from billing_engine.config import settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Build the engine on first use so importing this module needs no database driver"""
    if settings.database_url.startswith("sqlite"):
        return create_engine(settings.database_url, connect_args={"check_same_thread": False})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def new_session() -> Session:
    return SessionLocal(bind=get_engine())
