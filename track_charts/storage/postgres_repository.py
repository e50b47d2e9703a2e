"""PostgreSQL storage backend using asyncpg."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

import asyncpg

from track_charts.config import DatabaseConfig
from track_charts.core.models import MonthlyAggregate, PlayEvent, Track
from track_charts.core.utils import normalize_ip_address, utcnow
from track_charts.storage.base_repository import (
    BaseRepository,
    TrackNotFound,
    check_month,
)

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tracks (
    id              TEXT            PRIMARY KEY,
    title           TEXT            NOT NULL DEFAULT '',
    creator_id      TEXT            NOT NULL,
    creator_name    TEXT,
    type            TEXT            NOT NULL,
    plays           BIGINT          NOT NULL DEFAULT 0,
    payment_type    TEXT,
    created_at      TIMESTAMPTZ     DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_tracks_type
    ON tracks (type);

CREATE TABLE IF NOT EXISTS play_history (
    id              BIGSERIAL       PRIMARY KEY,
    track_id        TEXT            NOT NULL REFERENCES tracks (id) ON DELETE CASCADE,
    user_id         TEXT,
    ip_address      TEXT            NOT NULL DEFAULT '',
    user_agent      TEXT,
    played_at       TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
    year            INTEGER         NOT NULL,
    month           INTEGER         NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_play_history_year_month_track
    ON play_history (year, month, track_id);
"""

_TRACK_COLUMNS = (
    "id, title, creator_id, creator_name, type, plays, payment_type, created_at"
)


def _row_to_track(row: asyncpg.Record) -> Track:
    return Track(
        id=row["id"],
        title=row["title"],
        creator_id=row["creator_id"],
        creator_name=row["creator_name"],
        type=row["type"],
        plays=row["plays"],
        payment_type=row["payment_type"],
        created_at=row["created_at"],
    )


class PostgresRepository(BaseRepository):
    """asyncpg-backed storage with connection pooling."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(
            dsn=self._config.dsn,
            min_size=self._config.pool_min,
            max_size=self._config.pool_max,
        )
        async with self._pool.acquire() as conn:
            await conn.execute(_SCHEMA_SQL)
        logger.info(
            "PostgreSQL pool created (%d-%d) and schema ensured",
            self._config.pool_min,
            self._config.pool_max,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")

    async def is_connected(self) -> bool:
        if not self._pool:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, OSError):
            return False

    async def fetch_tracks(
        self,
        *,
        types: Iterable[str] | None = None,
        exclude_types: Iterable[str] | None = None,
    ) -> list[Track]:
        assert self._pool is not None

        clauses: list[str] = []
        params: list[list[str]] = []
        if types is not None:
            params.append(list(types))
            clauses.append(f"type = ANY(${len(params)}::text[])")
        if exclude_types is not None:
            params.append([t.lower() for t in exclude_types])
            clauses.append(f"NOT (lower(type) = ANY(${len(params)}::text[]))")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        # A fixed row order keeps chart tie-breaks reproducible
        sql = f"SELECT {_TRACK_COLUMNS} FROM tracks {where} ORDER BY created_at NULLS LAST, id"

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, *params)
        return [_row_to_track(r) for r in rows]

    async def aggregate_month(
        self,
        year: int,
        month: int,
    ) -> dict[str, MonthlyAggregate]:
        assert self._pool is not None
        check_month(year, month)
        sql = """
            SELECT track_id,
                   COUNT(*)::int                       AS play_count,
                   COUNT(DISTINCT ip_address)::int     AS unique_listeners
            FROM play_history
            WHERE year = $1
              AND month = $2
            GROUP BY track_id
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, year, month)

        return {
            r["track_id"]: MonthlyAggregate(
                track_id=r["track_id"],
                play_count=r["play_count"],
                unique_listeners=r["unique_listeners"],
            )
            for r in rows
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
        assert self._pool is not None
        event = PlayEvent(
            track_id=track_id,
            ip_address=normalize_ip_address(ip_address),
            played_at=played_at or utcnow(),
            user_id=user_id,
            user_agent=user_agent,
        )

        update_sql = f"""
            UPDATE tracks SET plays = plays + 1
            WHERE id = $1
            RETURNING {_TRACK_COLUMNS}
        """
        insert_sql = """
            INSERT INTO play_history
                (track_id, user_id, ip_address, user_agent, played_at, year, month)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(update_sql, track_id)
            if row is None:
                raise TrackNotFound(track_id)

            # The counter stands even if the history row cannot be written
            try:
                await conn.execute(
                    insert_sql,
                    event.track_id,
                    event.user_id,
                    event.ip_address,
                    event.user_agent,
                    event.played_at.astimezone(timezone.utc),
                    event.year,
                    event.month,
                )
            except Exception:
                logger.exception(
                    "Failed to record play history for track %s", track_id
                )

        return _row_to_track(row)
