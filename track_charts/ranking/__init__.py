"""Chart scoring and ranking."""

from track_charts.ranking.scoring import (
    age_in_days,
    compute_score,
    rank_tracks,
    recency_bonus,
    score_tracks,
)
from track_charts.ranking.trending_engine import TrendingEngine

__all__ = [
    "TrendingEngine",
    "age_in_days",
    "compute_score",
    "rank_tracks",
    "recency_bonus",
    "score_tracks",
]
