"""Database connection and session management."""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rentledger.models import Base
from rentledger.services.config import load_config

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine (SQLite uses StaticPool for simplicity in dev/test)."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_db(database_url: Optional[str] = None, create_tables: bool = True) -> Engine:
    """Configure the module-wide engine and session factory.

    Args:
        database_url: Overrides DATABASE_URL from configuration
        create_tables: Create missing tables (local SQLite setups)
    """
    global _engine, _session_factory

    url = database_url or load_config().database_url
    _engine = build_engine(url)
    _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    if create_tables:
        Base.metadata.create_all(_engine)
    logger.info("Database initialized (%s)", _engine.url.render_as_string(hide_password=True))
    return _engine


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        init_db()
    return _session_factory


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


__all__ = ["build_engine", "init_db", "get_session_factory", "get_db"]
