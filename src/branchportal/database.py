"""
Process-wide database engine and session factory.

The engine is created lazily on first use and reused afterwards. Services never
reach for it directly: they are handed a session factory so tests can swap in
an in-memory store.
"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from . import config
from .models import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _engine_kwargs(db_url: str) -> dict:
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)


def create_session_factory(db_url: str) -> sessionmaker:
    """Build an engine for ``db_url``, create the tables and return a factory."""
    engine = create_engine(db_url, echo=False, **_engine_kwargs(db_url))
    init_db(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        db_url = config.get_database_url()
        _engine = create_engine(db_url, echo=False, **_engine_kwargs(db_url))
        init_db(_engine)
        logger.info("Initialized database engine: %s", _engine.url)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory
