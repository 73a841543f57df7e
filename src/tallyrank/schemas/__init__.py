# src/tallyrank/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import ErrorResponse
from .ranking import RankingEntry
from .vote import VoteCast, VoteHistoryItem, VoteStatus

__all__ = [
    "ErrorResponse",
    "RankingEntry",
    "VoteCast", "VoteHistoryItem", "VoteStatus",
]
