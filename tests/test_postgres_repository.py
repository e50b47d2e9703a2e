"""Tests for the asyncpg backend against a stub connection pool."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import asyncpg
import pytest

from track_charts.config import DatabaseConfig
from track_charts.storage import PostgresRepository, TrackNotFound

_LOGGER = "track_charts.storage.postgres_repository"


class _StubConnection:
    def __init__(
        self,
        row: dict[str, Any] | None,
        execute_error: BaseException | None = None,
        rows: list[dict[str, Any]] | None = None,
    ) -> None:
        self._row = row
        self._execute_error = execute_error
        self._rows = rows or []
        self.executed: list[tuple[Any, ...]] = []

    async def fetchrow(self, sql: str, *args: Any) -> dict[str, Any] | None:
        return self._row

    async def fetch(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        return self._rows

    async def execute(self, sql: str, *args: Any) -> str:
        if self._execute_error is not None:
            raise self._execute_error
        self.executed.append(args)
        return "INSERT 0 1"


class _StubPool:
    def __init__(self, conn: _StubConnection) -> None:
        self._conn = conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[_StubConnection]:
        yield self._conn


def _track_row(plays: int) -> dict[str, Any]:
    return {
        "id": "t1",
        "title": "Night Drive",
        "creator_id": "c1",
        "creator_name": "DJ",
        "type": "song",
        "plays": plays,
        "payment_type": None,
        "created_at": datetime(2026, 10, 1, tzinfo=timezone.utc),
    }


def _repository(conn: _StubConnection) -> PostgresRepository:
    repo = PostgresRepository(DatabaseConfig(password="secret"))
    repo._pool = _StubPool(conn)  # type: ignore[assignment]
    return repo


class TestRecordPlay:
    @pytest.mark.asyncio
    async def test_writes_history_row(self) -> None:
        conn = _StubConnection(_track_row(plays=8))
        played_at = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)

        track = await _repository(conn).record_play(
            "t1", ip_address="::ffff:10.0.0.4", played_at=played_at
        )

        assert track.plays == 8
        assert track.payment_type == "free"
        [args] = conn.executed
        assert args[0] == "t1"
        assert args[2] == "10.0.0.4"
        assert args[5:] == (2026, 10)

    @pytest.mark.parametrize(
        "error",
        [
            asyncpg.InterfaceError(
                "cannot perform operation: another operation is in progress"
            ),
            ConnectionResetError("reset by peer"),
            TimeoutError(),
            asyncpg.PostgresError("insert failed"),
        ],
    )
    @pytest.mark.asyncio
    async def test_history_failure_keeps_counted_play(
        self, error: BaseException, caplog: pytest.LogCaptureFixture
    ) -> None:
        conn = _StubConnection(_track_row(plays=42), execute_error=error)

        with caplog.at_level(logging.ERROR, logger=_LOGGER):
            track = await _repository(conn).record_play("t1", ip_address="10.0.0.4")

        assert track.plays == 42
        assert any(
            "Failed to record play history for track t1" in r.getMessage()
            for r in caplog.records
            if r.name == _LOGGER
        )

    @pytest.mark.asyncio
    async def test_unknown_track(self) -> None:
        conn = _StubConnection(None)
        with pytest.raises(TrackNotFound):
            await _repository(conn).record_play("nope", ip_address="10.0.0.4")
        assert conn.executed == []


class TestAggregateMonth:
    @pytest.mark.asyncio
    async def test_maps_rows_by_track(self) -> None:
        conn = _StubConnection(
            None,
            rows=[
                {"track_id": "a", "play_count": 3, "unique_listeners": 2},
                {"track_id": "b", "play_count": 1, "unique_listeners": 1},
            ],
        )

        monthly = await _repository(conn).aggregate_month(2026, 10)

        assert monthly["a"].play_count == 3
        assert monthly["a"].unique_listeners == 2
        assert set(monthly) == {"a", "b"}
