# src/tallyrank/models/__init__.py
"""SQLAlchemy models for the Tallyrank application."""

from .product import Product
from .rank_snapshot import RankSnapshot
from .review import Review
from .vote import VOTE_DOWN, VOTE_UP, ProductVote

__all__ = [
    "Product",
    "ProductVote", "VOTE_UP", "VOTE_DOWN",
    "RankSnapshot",
    "Review",
]
