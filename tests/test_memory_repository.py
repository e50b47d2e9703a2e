"""Tests for the in-memory storage backend."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from track_charts.core.models import PlayEvent, Track
from track_charts.storage import MemoryRepository, TrackNotFound

TrackFactory = Callable[..., Track]
PlayFactory = Callable[..., PlayEvent]


class TestAggregateMonth:
    @pytest.mark.asyncio
    async def test_counts_plays_and_distinct_addresses(
        self, make_play: PlayFactory
    ) -> None:
        repo = MemoryRepository(
            plays=[
                make_play("a", "10.0.0.1"),
                make_play("a", "10.0.0.1"),
                make_play("a", "10.0.0.2"),
                make_play("b", "10.0.0.1"),
            ]
        )

        monthly = await repo.aggregate_month(2026, 10)

        assert set(monthly) == {"a", "b"}
        assert monthly["a"].play_count == 3
        assert monthly["a"].unique_listeners == 2
        assert monthly["b"].play_count == 1
        assert monthly["b"].unique_listeners == 1

    @pytest.mark.asyncio
    async def test_other_months_are_absent(self, make_play: PlayFactory) -> None:
        repo = MemoryRepository(
            plays=[
                make_play(
                    "a", played_at=datetime(2026, 9, 30, 23, 59, tzinfo=timezone.utc)
                ),
                make_play(
                    "b", played_at=datetime(2025, 10, 1, tzinfo=timezone.utc)
                ),
            ]
        )

        assert await repo.aggregate_month(2026, 10) == {}

    @pytest.mark.asyncio
    async def test_month_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            await MemoryRepository().aggregate_month(2026, 13)


class TestFetchTracks:
    @pytest.mark.asyncio
    async def test_include_is_exact(self, make_track: TrackFactory) -> None:
        repo = MemoryRepository(
            tracks=[
                make_track("1", track_type="song"),
                make_track("2", track_type="Song"),
            ]
        )
        tracks = await repo.fetch_tracks(types=["song"])
        assert [t.id for t in tracks] == ["1"]

    @pytest.mark.asyncio
    async def test_exclude_ignores_case(self, make_track: TrackFactory) -> None:
        repo = MemoryRepository(
            tracks=[
                make_track("1", track_type="song"),
                make_track("2", track_type="BEAT"),
            ]
        )
        tracks = await repo.fetch_tracks(exclude_types=["beat"])
        assert [t.id for t in tracks] == ["1"]


class TestRecordPlay:
    @pytest.mark.asyncio
    async def test_increments_and_appends_event(
        self, make_track: TrackFactory, now: datetime
    ) -> None:
        repo = MemoryRepository(tracks=[make_track("a", plays=4)])
        played_at = now - timedelta(days=2)

        track = await repo.record_play(
            "a",
            ip_address="::ffff:192.168.1.7",
            user_id="u1",
            user_agent="pytest",
            played_at=played_at,
        )

        assert track.plays == 5
        assert (await repo.fetch_tracks())[0].plays == 5
        [event] = repo.plays
        assert event.ip_address == "192.168.1.7"
        assert event.user_id == "u1"
        assert (event.year, event.month) == (2026, 10)

    @pytest.mark.asyncio
    async def test_unknown_track(self) -> None:
        repo = MemoryRepository()
        with pytest.raises(TrackNotFound):
            await repo.record_play("missing", ip_address="10.0.0.1")
        assert repo.plays == []

    @pytest.mark.asyncio
    async def test_recorded_play_shows_in_aggregate(
        self, make_track: TrackFactory, now: datetime
    ) -> None:
        repo = MemoryRepository(tracks=[make_track("a")])
        await repo.record_play("a", ip_address="10.0.0.1", played_at=now)
        await repo.record_play("a", ip_address="::ffff:10.0.0.1", played_at=now)

        monthly = await repo.aggregate_month(now.year, now.month)
        assert monthly["a"].play_count == 2
        assert monthly["a"].unique_listeners == 1


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_and_close(self) -> None:
        repo = MemoryRepository()
        assert not await repo.is_connected()
        await repo.connect()
        assert await repo.is_connected()
        await repo.close()
        assert not await repo.is_connected()


class TestSeedFile:
    @pytest.mark.asyncio
    async def test_loads_tracks_and_plays(self, tmp_path: Path) -> None:
        seed = tmp_path / "seed.json"
        seed.write_text(
            json.dumps(
                {
                    "tracks": [
                        {
                            "id": "a",
                            "creatorId": "c1",
                            "type": "song",
                            "plays": 12,
                            "createdAt": "2026-10-01T00:00:00Z",
                            "title": "Night Drive",
                        },
                        {"id": "b", "creatorId": "c2", "type": "beat"},
                    ],
                    "plays": [
                        {"trackId": "a", "ipAddress": "10.0.0.1", "playedAt": "2026-10-02T10:00:00Z"},
                        {"trackId": "a", "ipAddress": "::ffff:10.0.0.1", "playedAt": "2026-10-03T10:00:00Z"},
                        {"trackId": "b", "ipAddress": "10.0.0.2", "playedAt": "2026-09-30T10:00:00Z"},
                    ],
                }
            ),
            encoding="utf-8",
        )

        repo = MemoryRepository.from_seed_file(seed)

        tracks = {t.id: t for t in await repo.fetch_tracks()}
        assert tracks["a"].plays == 12
        assert tracks["a"].created_at == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert tracks["b"].plays == 0
        assert tracks["b"].payment_type == "free"

        monthly = await repo.aggregate_month(2026, 10)
        assert set(monthly) == {"a"}
        assert monthly["a"].play_count == 2
        assert monthly["a"].unique_listeners == 1

    def test_plays_are_optional(self, tmp_path: Path) -> None:
        seed = tmp_path / "seed.json"
        seed.write_text(
            json.dumps({"tracks": [{"id": "a", "creatorId": "c1", "type": "mix"}]}),
            encoding="utf-8",
        )
        repo = MemoryRepository.from_seed_file(str(seed))
        assert repo.plays == []

    def test_play_without_timestamp_is_rejected(self, tmp_path: Path) -> None:
        seed = tmp_path / "seed.json"
        seed.write_text(
            json.dumps(
                {
                    "tracks": [{"id": "a", "creatorId": "c1", "type": "song"}],
                    "plays": [{"trackId": "a", "ipAddress": "10.0.0.1", "playedAt": "soon"}],
                }
            ),
            encoding="utf-8",
        )
        with pytest.raises(ValueError, match="playedAt"):
            MemoryRepository.from_seed_file(seed)
