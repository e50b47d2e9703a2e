"""Abstract storage interface — allows swapping PostgreSQL for an in-memory store, etc."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from track_charts.core.models import MonthlyAggregate, Track


class TrackNotFound(LookupError):
    """Raised when a track id does not exist."""

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track not found: {track_id}")
        self.track_id = track_id


class TrackStore(ABC):
    """Read access to track records."""

    @abstractmethod
    async def fetch_tracks(
        self,
        *,
        types: Iterable[str] | None = None,
        exclude_types: Iterable[str] | None = None,
    ) -> list[Track]:
        """Return tracks filtered by type.

        Parameters
        ----------
        types:
            Keep only tracks whose type is exactly one of these.
        exclude_types:
            Drop tracks whose type matches one of these, ignoring case.
        """
        ...


class PlayEventStore(ABC):
    """Aggregate access to the play-history log."""

    @abstractmethod
    async def aggregate_month(
        self,
        year: int,
        month: int,
    ) -> dict[str, MonthlyAggregate]:
        """Summarise play events stored under (*year*, *month*), keyed by track id.

        Tracks without plays in that month are absent from the result.
        """
        ...


class BaseRepository(TrackStore, PlayEventStore):
    """Contract for all storage backends."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection / pool and ensure schema exists."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all connections."""
        ...

    @abstractmethod
    async def is_connected(self) -> bool:
        """Whether the backend is reachable."""
        ...

    @abstractmethod
    async def record_play(
        self,
        track_id: str,
        *,
        ip_address: str,
        user_id: str | None = None,
        user_agent: str | None = None,
        played_at: datetime | None = None,
    ) -> Track:
        """Bump the lifetime play counter and append a play event.

        Returns the updated track. Raises :class:`TrackNotFound` for an
        unknown id.
        """
        ...


def check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month} (year {year})")
