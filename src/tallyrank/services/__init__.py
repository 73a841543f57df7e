# src/tallyrank/services/__init__.py
"""Business logic services for the Tallyrank application."""

from .identity import Identity, IdentityKind, resolve_identity, validate_fingerprint
from .rate_limiter import InMemoryCooldownStore, RateLimiter, RedisCooldownStore
from .toggle import VoteDirection, VoteView, apply_toggle
from .vote_store import VoteOutcome, VoteStore

__all__ = [
    "Identity", "IdentityKind", "resolve_identity", "validate_fingerprint",
    "RateLimiter", "InMemoryCooldownStore", "RedisCooldownStore",
    "VoteDirection", "VoteView", "apply_toggle",
    "VoteStore", "VoteOutcome",
]
