"""Shared fixtures for track_charts tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from track_charts.core.models import PlayEvent, Track

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

TrackFactory = Callable[..., Track]
PlayFactory = Callable[..., PlayEvent]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_track(now: datetime) -> TrackFactory:
    def _make(
        track_id: str,
        *,
        days_old: float = 0.0,
        plays: int = 0,
        track_type: str = "song",
        creator_id: str = "creator-1",
    ) -> Track:
        return Track(
            id=track_id,
            creator_id=creator_id,
            type=track_type,
            plays=plays,
            created_at=now - timedelta(days=days_old),
            title=f"Track {track_id}",
        )

    return _make


@pytest.fixture
def make_play(now: datetime) -> PlayFactory:
    def _make(
        track_id: str,
        ip_address: str = "10.0.0.1",
        *,
        played_at: datetime | None = None,
    ) -> PlayEvent:
        return PlayEvent(
            track_id=track_id,
            ip_address=ip_address,
            played_at=played_at or now,
        )

    return _make
