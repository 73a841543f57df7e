# src/tallyrank/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .rankings import router as rankings_router
from .votes import router as votes_router

__all__ = [
    "rankings_router",
    "votes_router",
]
