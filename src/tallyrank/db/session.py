"""Engine, session factory and the declarative base."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from tallyrank.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Model modules register their tables on Base.metadata at import time.
import tallyrank.models  # noqa: E402,F401


def build_engine(url: str, **kwargs: Any) -> Engine:
    """Create an engine for ``url``.

    SQLite connections are shared with FastAPI's worker threads, so the
    same-thread check is disabled for them.
    """
    if url.startswith("sqlite"):
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    return create_engine(url, **kwargs)


engine = build_engine(
    settings.effective_database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
