# client/apunto/db/session.py
from __future__ import annotations

"""
Database session and Base ORM declarations.

The local history cache is a single key-value slot stored in a SQL table,
by default an on-device SQLite file configured through DATABASE_URL.

It is imported by:
- apunto.models (for Base)
- apunto.services.history.storage (for session factories)
"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Base class for all ORM models
Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    """
    Build an engine for ``database_url``, make sure the schema exists and
    return a session factory bound to it.
    """
    # Register the models on Base before create_all
    from apunto import models  # noqa: F401

    engine = create_engine(database_url, future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
    )


@lru_cache(maxsize=4)
def get_session_factory(database_url: str) -> sessionmaker:
    """Return a cached session factory per database URL."""
    return create_session_factory(database_url)
