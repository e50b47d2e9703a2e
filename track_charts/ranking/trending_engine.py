"""Chart engine: monthly popularity, all-time trending and per-type listings."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from track_charts.config import RankingConfig
from track_charts.core.models import ScoredTrack, Track
from track_charts.core.types import TRENDING_EXCLUDED_TYPES, resolve_type_filter
from track_charts.core.utils import utcnow
from track_charts.ranking.scoring import rank_tracks, score_tracks
from track_charts.storage.base_repository import PlayEventStore, TrackStore

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _by_plays_then_newest(tracks: list[Track]) -> list[Track]:
    # Tracks without a creation date go last among equal play counts
    return sorted(
        tracks,
        key=lambda t: (t.plays, t.created_at or _OLDEST),
        reverse=True,
    )


def _truncate(tracks: list[Track], limit: int | None) -> list[Track]:
    if limit is not None and limit > 0:
        return tracks[:limit]
    return tracks


class TrendingEngine:
    """Builds the track charts from a track store and a play-event store.

    The monthly chart reads every candidate track and the current month's
    play aggregates concurrently, then scores and ranks them in memory.
    """

    def __init__(
        self,
        tracks: TrackStore,
        plays: PlayEventStore,
        config: RankingConfig,
    ) -> None:
        self._tracks = tracks
        self._plays = plays
        self._cfg = config

    async def monthly_popular(
        self,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[ScoredTrack]:
        """Return the monthly popularity chart.

        Parameters
        ----------
        limit:
            Keep the top *limit* tracks; ``None`` or a non-positive value
            returns the full ranking.
        now:
            Reference instant for track ages and the calendar month.
            Defaults to the current UTC time; a naive value is taken as UTC.
        """
        now = now or utcnow()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        month_ref = now.astimezone(timezone.utc)

        # Either read failing fails the whole ranking
        candidates, monthly = await asyncio.gather(
            self._tracks.fetch_tracks(types=self._cfg.candidate_types),
            self._plays.aggregate_month(month_ref.year, month_ref.month),
        )

        if not candidates:
            return []

        ranked = rank_tracks(score_tracks(candidates, monthly, now), limit)

        top = ranked[:5]
        logger.info(
            "Monthly chart %04d-%02d: %d candidates, %d with plays; top %d: %s",
            month_ref.year,
            month_ref.month,
            len(candidates),
            len(monthly),
            len(top),
            ", ".join(f"{s.id}(s={s.score:.1f})" for s in top),
        )
        return ranked

    async def all_time_trending(self, limit: int | None = None) -> list[Track]:
        """Most played tracks overall, beats excluded."""
        tracks = await self._tracks.fetch_tracks(
            exclude_types=TRENDING_EXCLUDED_TYPES
        )
        return _truncate(_by_plays_then_newest(tracks), limit)

    async def tracks_by_type(
        self,
        track_type: str,
        limit: int | None = None,
    ) -> list[Track]:
        """Most played tracks of one type; ``beat`` also covers legacy ``beta``."""
        tracks = await self._tracks.fetch_tracks(
            types=resolve_type_filter(track_type)
        )
        logger.debug("Found %d tracks of type %r", len(tracks), track_type)
        return _truncate(_by_plays_then_newest(tracks), limit)
