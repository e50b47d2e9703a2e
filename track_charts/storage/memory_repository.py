"""In-process storage backend for local runs and tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from track_charts.core.models import MonthlyAggregate, PlayEvent, Track
from track_charts.core.utils import coerce_timestamp, normalize_ip_address, utcnow
from track_charts.storage.base_repository import (
    BaseRepository,
    TrackNotFound,
    check_month,
)

logger = logging.getLogger(__name__)


class MemoryRepository(BaseRepository):
    """Keeps tracks and play events in plain Python containers.

    Tracks are returned in the order they were added, which mirrors the
    natural order of the PostgreSQL backend for tracks added over time.
    """

    def __init__(
        self,
        tracks: Iterable[Track] = (),
        plays: Iterable[PlayEvent] = (),
    ) -> None:
        self._tracks: dict[str, Track] = {}
        self._plays: list[PlayEvent] = []
        self._connected = False
        for track in tracks:
            self.add_track(track)
        for event in plays:
            self.add_play(event)

    @classmethod
    def from_seed_file(cls, path: str | Path) -> MemoryRepository:
        """Build a store from a JSON seed file.

        The file holds ``{"tracks": [...], "plays": [...]}`` using the same
        camelCase keys the API returns; ``plays`` is optional.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        repo = cls(
            tracks=(_track_from_seed(item) for item in data.get("tracks", [])),
            plays=(_play_from_seed(item) for item in data.get("plays", [])),
        )
        logger.info(
            "Seeded in-memory store from %s (%d tracks, %d plays)",
            path,
            len(repo._tracks),
            len(repo._plays),
        )
        return repo

    def add_track(self, track: Track) -> None:
        self._tracks[track.id] = track

    def add_play(self, event: PlayEvent) -> None:
        """Append a raw play event without touching the lifetime counter."""
        self._plays.append(event)

    @property
    def plays(self) -> list[PlayEvent]:
        return list(self._plays)

    async def connect(self) -> None:
        self._connected = True
        logger.info(
            "In-memory store ready (%d tracks, %d plays)",
            len(self._tracks),
            len(self._plays),
        )

    async def close(self) -> None:
        self._connected = False

    async def is_connected(self) -> bool:
        return self._connected

    async def fetch_tracks(
        self,
        *,
        types: Iterable[str] | None = None,
        exclude_types: Iterable[str] | None = None,
    ) -> list[Track]:
        include = set(types) if types is not None else None
        exclude = {t.lower() for t in exclude_types or ()}
        return [
            track
            for track in self._tracks.values()
            if (include is None or track.type in include)
            and track.type.lower() not in exclude
        ]

    async def aggregate_month(
        self,
        year: int,
        month: int,
    ) -> dict[str, MonthlyAggregate]:
        check_month(year, month)
        counts: dict[str, int] = {}
        addresses: dict[str, set[str]] = {}
        for event in self._plays:
            if event.year != year or event.month != month:
                continue
            counts[event.track_id] = counts.get(event.track_id, 0) + 1
            addresses.setdefault(event.track_id, set()).add(event.ip_address)

        return {
            track_id: MonthlyAggregate(
                track_id=track_id,
                play_count=count,
                unique_listeners=len(addresses[track_id]),
            )
            for track_id, count in counts.items()
        }

    async def record_play(
        self,
        track_id: str,
        *,
        ip_address: str,
        user_id: str | None = None,
        user_agent: str | None = None,
        played_at: datetime | None = None,
    ) -> Track:
        track = self._tracks.get(track_id)
        if track is None:
            raise TrackNotFound(track_id)

        updated = replace(track, plays=track.plays + 1)
        self._tracks[track_id] = updated
        self._plays.append(
            PlayEvent(
                track_id=track_id,
                ip_address=normalize_ip_address(ip_address),
                played_at=played_at or utcnow(),
                user_id=user_id,
                user_agent=user_agent,
            )
        )
        return updated


def _track_from_seed(item: dict[str, Any]) -> Track:
    return Track(
        id=str(item["id"]),
        creator_id=str(item["creatorId"]),
        type=item["type"],
        plays=int(item.get("plays", 0)),
        created_at=item.get("createdAt"),
        title=item.get("title", ""),
        creator_name=item.get("creatorName"),
        payment_type=item.get("paymentType") or "free",
    )


def _play_from_seed(item: dict[str, Any]) -> PlayEvent:
    played_at = coerce_timestamp(item.get("playedAt"))
    if played_at is None:
        raise ValueError(f"Seed play for {item.get('trackId')!r} has no valid playedAt")
    return PlayEvent(
        track_id=str(item["trackId"]),
        ip_address=normalize_ip_address(item.get("ipAddress")),
        played_at=played_at,
        user_id=item.get("userId"),
    )
