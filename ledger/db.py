"""Engine and session factory helpers for the ledger database."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledger.models import Base


def normalize_database_url(database_url: str) -> str:
    if not database_url:
        raise ValueError("DATABASE_URL is required")
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """
    Create an engine for the ledger.

    SQLite connections are shared across FastAPI worker threads, and an
    in-memory database must keep a single connection or every session would
    see an empty schema.
    """
    url = normalize_database_url(database_url)
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_schema(engine: Engine, tables: Optional[list[str]] = None) -> None:
    """Create ledger tables that do not exist yet."""
    if tables is None:
        Base.metadata.create_all(engine)
        return
    selected = [Base.metadata.tables[name] for name in tables]
    Base.metadata.create_all(engine, tables=selected)
