"""Per-identity vote cooldown.

The limiter consults a ``CooldownStore`` that owns the last-accepted
timestamp per identity. The in-process store suits a single instance; the
Redis store shares the gate between instances. A request is accepted only if
the cooldown window has elapsed, and acceptance is recorded immediately so
that rapid retries cannot slip past before the vote itself completes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from functools import lru_cache
from threading import Lock
from typing import Any, Final, Protocol

import redis

from tallyrank.core.errors import CooldownError
from tallyrank.core.settings import settings
from tallyrank.services.identity import Identity

logger = logging.getLogger(__name__)

_KEY_PREFIX: Final[str] = "votecool:"
_PRUNE_THRESHOLD: Final[int] = 10_000
_REDIS_RETRY_MS: Final[int] = 30_000


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class CooldownStore(Protocol):
    """Keyed store implementing an atomic check-and-record."""

    def acquire(self, key: str, now_ms: int, cooldown_ms: int) -> int:
        """Record ``now_ms`` for ``key`` if its cooldown has elapsed.

        Returns:
            ``0`` when accepted, otherwise the milliseconds still remaining.
        """
        ...


class InMemoryCooldownStore:
    """Process-local store guarded by a lock."""

    def __init__(self) -> None:
        self._last_accepted: dict[str, int] = {}
        self._lock = Lock()

    def acquire(self, key: str, now_ms: int, cooldown_ms: int) -> int:
        with self._lock:
            last = self._last_accepted.get(key)
            if last is not None:
                elapsed = now_ms - last
                if elapsed < cooldown_ms:
                    return cooldown_ms - elapsed
            self._last_accepted[key] = now_ms
            if len(self._last_accepted) > _PRUNE_THRESHOLD:
                self._prune(now_ms, cooldown_ms)
            return 0

    def _prune(self, now_ms: int, cooldown_ms: int) -> None:
        expired = [k for k, ts in self._last_accepted.items() if now_ms - ts >= cooldown_ms]
        for k in expired:
            del self._last_accepted[k]

    def clear(self) -> None:
        with self._lock:
            self._last_accepted.clear()


class RedisCooldownStore:
    """Redis-backed store shared across instances.

    Uses ``SET NX PX`` so the check and the record are one atomic step; the
    key's remaining TTL is the remaining cooldown. While Redis is unreachable
    an in-process store is used, and Redis is tried again after
    ``retry_after_ms``.
    """

    def __init__(
        self,
        client: Any | None = None,
        url: str | None = None,
        retry_after_ms: int = _REDIS_RETRY_MS,
    ) -> None:
        self._redis = client
        if self._redis is None and url:
            self._redis = redis.from_url(url)
        self._fallback = InMemoryCooldownStore()
        self.retry_after_ms = retry_after_ms
        self._down_until: int | None = None

    def acquire(self, key: str, now_ms: int, cooldown_ms: int) -> int:
        if self._redis is not None and (
            self._down_until is None or now_ms >= self._down_until
        ):
            redis_key = f"{_KEY_PREFIX}{key}"
            try:
                accepted = self._redis.set(redis_key, now_ms, nx=True, px=cooldown_ms)
                self._down_until = None
                if accepted:
                    return 0
                remaining = int(self._redis.pttl(redis_key))
                if remaining > 0:
                    return remaining
                # Expired between SET and PTTL.
                self._redis.set(redis_key, now_ms, px=cooldown_ms)
                return 0
            except redis.RedisError as exc:
                logger.warning(
                    "Cooldown store unreachable, using local fallback for %d ms: %s",
                    self.retry_after_ms,
                    exc,
                )
                self._down_until = now_ms + self.retry_after_ms

        return self._fallback.acquire(key, now_ms, cooldown_ms)


class RateLimiter:
    """Identity-keyed cooldown gate consulted before any vote mutation."""

    def __init__(
        self,
        store: CooldownStore | None = None,
        cooldown_ms: int | None = None,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        self.store = store or InMemoryCooldownStore()
        self.cooldown_ms = settings.vote_cooldown_ms if cooldown_ms is None else cooldown_ms
        self._clock = clock

    def check_and_record(self, identity: Identity) -> None:
        """Accept the request or raise ``CooldownError``.

        The gate is advisory abuse protection; an internal failure is logged
        and the request is let through.
        """
        if self.cooldown_ms <= 0:
            return
        try:
            remaining = self.store.acquire(identity.key, self._clock(), self.cooldown_ms)
        except Exception:
            logger.exception("Rate limiter failed for %s; allowing request", identity.key)
            return

        if remaining > 0:
            logger.debug("Vote cooldown for %s: %d ms remaining", identity.key, remaining)
            raise CooldownError(remaining)


def build_cooldown_store() -> CooldownStore:
    """Return the store selected by configuration."""
    if settings.redis_url:
        return RedisCooldownStore(url=settings.redis_url)
    return InMemoryCooldownStore()


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter."""
    return RateLimiter(build_cooldown_store())
