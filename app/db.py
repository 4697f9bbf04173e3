"""Database configuration and session management."""
from __future__ import annotations

from collections.abc import Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings
from app.models.base import SCHEMAS, Base

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _engine_kwargs() -> dict[str, object]:
    settings = get_settings()
    if _is_sqlite(settings.database_url):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def schema_translate_map(url: str) -> dict[str, str | None]:
    """SQLite has no schemas: map every logical schema onto the main database."""

    if _is_sqlite(url):
        return {name: None for name in SCHEMAS}
    return {}


def build_engine(url: str, **kwargs: object) -> Engine:
    """Create an engine whose statements honour the logical schema layout."""

    base_engine = create_engine(url, future=True, echo=False, **kwargs)
    translate = schema_translate_map(url)
    if translate:
        return base_engine.execution_options(schema_translate_map=translate)
    return base_engine


def init_engine() -> Engine:
    """Initialise the synchronous SQLAlchemy engine lazily."""

    global engine, SessionLocal
    if engine is None:
        settings = get_settings()
        engine = build_engine(settings.database_url, **_engine_kwargs())
        SessionLocal = sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
    return engine


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine, creating it if necessary."""

    if engine is None:
        return init_engine()
    return engine


def get_sessionmaker() -> sessionmaker[Session]:
    """Return the configured session factory, initialising the engine on demand."""

    if SessionLocal is None:
        init_engine()
    assert SessionLocal is not None  # for type-checkers
    return SessionLocal


def create_all() -> None:
    """Create the described tables (local development and tests only)."""

    Base.metadata.create_all(bind=get_engine())


def close_engine() -> None:
    """Dispose of the SQLAlchemy engine and reset the session factory."""

    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
        engine = None
        SessionLocal = None


def get_session_factory() -> Callable[[], Session]:
    """Provide a session factory for handlers that outlive a single request.

    Long-lived consumers such as WebSocket handlers open a session per unit of
    work and close it straight away so they never pin a pooled connection.
    """

    return get_sessionmaker()


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for FastAPI dependencies."""

    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "build_engine",
    "create_all",
    "get_db",
    "get_engine",
    "get_session_factory",
    "get_sessionmaker",
    "init_engine",
    "close_engine",
    "schema_translate_map",
]
