"""Client-side vote cache and HTTP transport."""

from .api import VoteApiClient, VoteTransportError
from .vote_cache import CacheEntry, ClientVoteCache, SyncState

__all__ = [
    "VoteApiClient", "VoteTransportError",
    "ClientVoteCache", "CacheEntry", "SyncState",
]
