"""Database engine, sessions and time helpers."""

from .session import Base, SessionLocal, build_engine, get_db

__all__ = ["Base", "SessionLocal", "build_engine", "get_db"]
