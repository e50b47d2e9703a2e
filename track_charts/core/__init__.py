"""Core models, types, and utilities."""

from track_charts.core.models import (
    HealthStatus,
    MonthlyAggregate,
    PlayEvent,
    ScoredTrack,
    Track,
)
from track_charts.core.types import TrackType

__all__ = [
    "HealthStatus",
    "MonthlyAggregate",
    "PlayEvent",
    "ScoredTrack",
    "Track",
    "TrackType",
]
