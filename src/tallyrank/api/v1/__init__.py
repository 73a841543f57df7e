# src/tallyrank/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import rankings_router, votes_router

__all__ = [
    "rankings_router",
    "votes_router",
]
