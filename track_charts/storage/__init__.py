"""Storage layer."""

from track_charts.storage.base_repository import (
    BaseRepository,
    PlayEventStore,
    TrackNotFound,
    TrackStore,
)
from track_charts.storage.memory_repository import MemoryRepository
from track_charts.storage.postgres_repository import PostgresRepository

__all__ = [
    "BaseRepository",
    "MemoryRepository",
    "PlayEventStore",
    "PostgresRepository",
    "TrackNotFound",
    "TrackStore",
]
