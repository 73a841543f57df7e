"""Composite ranking score for products.

The score blends four terms computed from a product's votes and reviews:

- confidence: Wilson lower bound of the upvote proportion (95%), which
  rewards both a high ratio and a high volume of votes;
- review quality: mean normalized rating, each review decaying
  exponentially with age;
- recency: votes and reviews inside a trailing window (reviews count
  double), normalized by a fixed constant and capped at 1;
- controversy: ``|up - down| / (up + down)``, subtracted from the total.

Everything here is a pure function of its inputs. Ranking many products is
embarrassingly parallel and may be spread over a thread pool.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from tallyrank.core.settings import Settings, settings
from tallyrank.db.time import as_utc

WILSON_Z = 1.96  # 95% confidence
REVIEW_MAX_RATING = 5
RECENT_REVIEW_WEIGHT = 2


@dataclass(frozen=True)
class ReviewSample:
    rating: int
    created_at: datetime


@dataclass(frozen=True)
class RankingInput:
    """Read-only projection of a product used for scoring."""

    product_id: int
    upvotes: int = 0
    downvotes: int = 0
    reviews: Sequence[ReviewSample] = ()
    last_vote_at: datetime | None = None

    @property
    def total_votes(self) -> int:
        return self.upvotes + self.downvotes


@dataclass(frozen=True)
class RankingConfig:
    """Weights and windows for the composite score."""

    weight_confidence: float = 0.60
    weight_review: float = 0.20
    weight_recency: float = 0.15
    weight_controversy: float = 0.05
    review_decay: timedelta = timedelta(days=30)
    recent_window: timedelta = timedelta(days=7)
    recent_normalizer: float = 100.0
    z: float = WILSON_Z

    @classmethod
    def from_settings(cls, config: Settings = settings) -> RankingConfig:
        weights = config.ranking_weights
        return cls(
            weight_confidence=weights["confidence"],
            weight_review=weights["review"],
            weight_recency=weights["recency"],
            weight_controversy=weights["controversy"],
            review_decay=timedelta(days=config.review_decay_days),
            recent_window=timedelta(days=config.recent_activity_days),
            recent_normalizer=config.recent_activity_normalizer,
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    confidence: float
    review_quality: float
    recency: float
    controversy: float
    score: float


@dataclass(frozen=True, order=True)
class RankedProduct:
    rank: int
    product_id: int
    score: float = field(compare=False)


def wilson_lower_bound(upvotes: int, downvotes: int, z: float = WILSON_Z) -> float:
    """Return the Wilson score interval lower bound for the upvote ratio.

    Returns ``0.0`` when there are no votes. The bound is always within
    ``[0, 1)`` for any finite number of votes.
    """
    n = upvotes + downvotes
    if n <= 0:
        return 0.0

    p = upvotes / n
    z2 = z * z
    centre = p + z2 / (2 * n)
    spread = z * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n))
    return max(0.0, (centre - spread) / (1 + z2 / n))


def review_quality(
    reviews: Iterable[ReviewSample],
    now: datetime,
    decay: timedelta = timedelta(days=30),
) -> float:
    """Mean of ``rating/5 * exp(-age/decay)`` over all reviews; 0 with none."""
    samples = list(reviews)
    if not samples:
        return 0.0

    now = as_utc(now)
    decay_seconds = decay.total_seconds()
    total = 0.0
    for review in samples:
        age = max(0.0, (now - as_utc(review.created_at)).total_seconds())
        total += (review.rating / REVIEW_MAX_RATING) * math.exp(-age / decay_seconds)
    return total / len(samples)


def recency_activity(
    item: RankingInput,
    now: datetime,
    window: timedelta = timedelta(days=7),
    normalizer: float = 100.0,
) -> float:
    """Normalized recent activity in ``[0, 1]``.

    Votes are aggregated, so a product's votes count as recent when its last
    vote falls inside the window. Recent reviews weigh double.
    """
    now = as_utc(now)
    recent_votes = 0
    if item.last_vote_at is not None and now - as_utc(item.last_vote_at) < window:
        recent_votes = item.total_votes

    recent_reviews = sum(
        1 for review in item.reviews if now - as_utc(review.created_at) < window
    )

    activity = (recent_votes + RECENT_REVIEW_WEIGHT * recent_reviews) / normalizer
    return min(1.0, max(0.0, activity))


def controversy(upvotes: int, downvotes: int) -> float:
    """Return ``|up - down| / (up + down)``; 0 with no votes."""
    total = upvotes + downvotes
    if total <= 0:
        return 0.0
    return abs(upvotes - downvotes) / total


def score_breakdown(
    item: RankingInput,
    now: datetime,
    config: RankingConfig | None = None,
) -> ScoreBreakdown:
    """Compute every term of the composite score and the total."""
    config = config or RankingConfig()
    confidence_term = wilson_lower_bound(item.upvotes, item.downvotes, config.z)
    review_term = review_quality(item.reviews, now, config.review_decay)
    recency_term = recency_activity(
        item, now, config.recent_window, config.recent_normalizer
    )
    controversy_term = controversy(item.upvotes, item.downvotes)

    score = (
        config.weight_confidence * confidence_term
        + config.weight_review * review_term
        + config.weight_recency * recency_term
        - config.weight_controversy * controversy_term
    )
    return ScoreBreakdown(confidence_term, review_term, recency_term, controversy_term, score)


def compute_score(
    item: RankingInput,
    now: datetime,
    config: RankingConfig | None = None,
) -> float:
    """Return the composite ranking score of one product."""
    return score_breakdown(item, now, config).score


def rank_products(scores: Mapping[int, float]) -> list[RankedProduct]:
    """Assign dense 1-based ranks by score descending, product id ascending."""
    ordered = sorted(scores.items(), key=lambda pair: (-pair[1], pair[0]))
    return [
        RankedProduct(rank=position, product_id=product_id, score=score)
        for position, (product_id, score) in enumerate(ordered, start=1)
    ]


def compute_rankings(
    inputs: Iterable[RankingInput],
    now: datetime,
    config: RankingConfig | None = None,
    max_workers: int = 1,
) -> list[RankedProduct]:
    """Score and rank a batch of products."""
    items = list(inputs)
    config = config or RankingConfig()

    if max_workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            values = list(pool.map(lambda item: compute_score(item, now, config), items))
    else:
        values = [compute_score(item, now, config) for item in items]

    return rank_products({item.product_id: value for item, value in zip(items, values)})
