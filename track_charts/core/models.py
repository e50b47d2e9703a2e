"""Domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from track_charts.core.utils import coerce_timestamp


@dataclass(frozen=True, slots=True)
class Track:
    """A single uploaded audio item with its lifetime play counter."""

    id: str
    creator_id: str
    type: str
    plays: int = 0
    created_at: datetime | None = None
    title: str = ""
    creator_name: str | None = None
    payment_type: str = "free"

    def __post_init__(self) -> None:
        # Missing or malformed timestamps end up as None, never raise
        object.__setattr__(self, "created_at", coerce_timestamp(self.created_at))
        if not self.payment_type:
            object.__setattr__(self, "payment_type", "free")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "creatorId": self.creator_id,
            "creatorName": self.creator_name,
            "type": self.type,
            "plays": self.plays,
            "createdAt": (
                self.created_at.isoformat() if self.created_at else None
            ),
            "paymentType": self.payment_type,
        }


@dataclass(frozen=True, slots=True)
class PlayEvent:
    """One recorded playback — maps 1:1 to a play_history row."""

    track_id: str
    ip_address: str
    played_at: datetime
    user_id: str | None = None
    user_agent: str | None = None

    def __post_init__(self) -> None:
        # Ensure timezone-aware timestamp
        if self.played_at.tzinfo is None:
            object.__setattr__(
                self, "played_at", self.played_at.replace(tzinfo=timezone.utc)
            )

    @property
    def year(self) -> int:
        return self.played_at.astimezone(timezone.utc).year

    @property
    def month(self) -> int:
        return self.played_at.astimezone(timezone.utc).month


@dataclass(frozen=True, slots=True)
class MonthlyAggregate:
    """Per-track play summary for one calendar month."""

    track_id: str
    play_count: int = 0
    unique_listeners: int = 0


@dataclass(slots=True)
class ScoredTrack:
    """A track annotated with its monthly chart score."""

    track: Track
    monthly_plays: int = 0
    unique_listeners: int = 0
    age_in_days: float = 0.0
    score: float = 0.0

    @property
    def id(self) -> str:
        return self.track.id

    def to_dict(self) -> dict[str, Any]:
        payload = self.track.to_dict()
        payload.update(
            {
                "monthlyPlays": self.monthly_plays,
                "uniqueListeners": self.unique_listeners,
                "ageInDays": self.age_in_days,
                "score": self.score,
            }
        )
        return payload


@dataclass(slots=True)
class HealthStatus:
    """Application health snapshot."""

    uptime_seconds: float = 0.0
    chart_requests: int = 0
    plays_recorded: int = 0
    db_connected: bool = False
    storage_backend: str = ""
