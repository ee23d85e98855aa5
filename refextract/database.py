"""
Database configuration and session management.

This module sets up the SQLAlchemy engine and session factory used by the
master references table and the extraction job history.
"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

# Base class for declarative models
Base = declarative_base()


def create_session_factory(
    database_url: str,
    echo: bool = False,
) -> sessionmaker[Session]:
    """
    Create a session factory bound to a new engine.

    Args:
        database_url: SQLAlchemy database URL.
        echo: Log emitted SQL statements.

    Returns:
        A configured sessionmaker.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are opened from worker threads as well as the event loop
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    """Get the application-wide session factory."""
    settings = get_settings()
    return create_session_factory(settings.database_url, echo=settings.sql_debug)


def init_db(session_factory: sessionmaker[Session] | None = None) -> None:
    """
    Initialize the database by creating all tables.

    Args:
        session_factory: Factory whose engine should be initialized.
            Defaults to the application-wide factory.
    """
    # Import models to ensure they are registered with Base
    from . import models_db  # noqa: F401

    factory = session_factory or get_session_factory()
    Base.metadata.create_all(bind=factory.kw["bind"])
