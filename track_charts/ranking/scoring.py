"""Monthly popularity scoring.

Scoring formula:
    score = monthly_plays * 100 + lifetime_plays * 0.1 + recency_bonus

The recency bonus is a step function of the track's age in days with
inclusive upper bounds:

    age <= 30   -> 1000
    age <= 90   ->  500
    age <= 180  ->  100
    otherwise   ->    0

Everything here is pure: the same tracks, aggregates and ``now`` always
produce the same scores and order.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime

from track_charts.core.models import MonthlyAggregate, ScoredTrack, Track

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400

MONTHLY_PLAY_WEIGHT = 100
LIFETIME_PLAY_WEIGHT = 0.1

# (max age in days, bonus), checked in order
RECENCY_TIERS: tuple[tuple[float, int], ...] = (
    (30, 1000),
    (90, 500),
    (180, 100),
)


def age_in_days(created_at: datetime | None, now: datetime) -> float:
    """Days elapsed since *created_at*; future timestamps come out negative.

    A missing timestamp counts as brand new (0.0).
    """
    if created_at is None:
        return 0.0
    return (now - created_at).total_seconds() / SECONDS_PER_DAY


def recency_bonus(days: float) -> int:
    for max_age, bonus in RECENCY_TIERS:
        if days <= max_age:
            return bonus
    return 0


def compute_score(monthly_plays: int, lifetime_plays: int, days: float) -> float:
    return (
        monthly_plays * MONTHLY_PLAY_WEIGHT
        + lifetime_plays * LIFETIME_PLAY_WEIGHT
        + recency_bonus(days)
    )


def score_tracks(
    tracks: Sequence[Track],
    monthly: Mapping[str, MonthlyAggregate],
    now: datetime,
) -> list[ScoredTrack]:
    """Annotate every track with its monthly stats, age and score, in input order."""
    scored: list[ScoredTrack] = []
    undated = 0

    for track in tracks:
        stats = monthly.get(track.id)
        monthly_plays = stats.play_count if stats else 0
        unique_listeners = stats.unique_listeners if stats else 0

        if track.created_at is None:
            undated += 1
        days = age_in_days(track.created_at, now)

        scored.append(
            ScoredTrack(
                track=track,
                monthly_plays=monthly_plays,
                unique_listeners=unique_listeners,
                age_in_days=days,
                score=compute_score(monthly_plays, track.plays, days),
            )
        )

    if undated:
        logger.warning(
            "%d track(s) without a usable creation date scored as brand new",
            undated,
        )
    return scored


def rank_tracks(
    scored: Sequence[ScoredTrack],
    limit: int | None = None,
) -> list[ScoredTrack]:
    """Sort by score descending and keep the first *limit*.

    Equal scores keep their input order. A missing or non-positive
    *limit* returns every track.
    """
    ranked = sorted(scored, key=lambda s: s.score, reverse=True)
    if limit is not None and limit > 0:
        return ranked[:limit]
    return ranked
