"""Database engine and session factory.

The engine is created on first use so importing the package never needs a
database driver or a reachable server.
"""

from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from clearance.core.config import Settings, get_settings


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``."""
    kwargs = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(database_url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@lru_cache
def _default_session_factory(database_url: str) -> sessionmaker:
    return build_session_factory(build_engine(database_url))


def get_session_factory(settings: Optional[Settings] = None) -> sessionmaker:
    """Return the process-wide session factory for the configured database."""
    settings = settings or get_settings()
    return _default_session_factory(settings.database_url)
