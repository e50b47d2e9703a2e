"""Environment-based configuration with validation."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from track_charts.core.types import DEFAULT_CANDIDATE_TYPES

# Load .env from project root or cwd
_env_path = Path(__file__).resolve().parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()

STORAGE_BACKENDS = ("postgres", "memory")


def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int = 0) -> int:
    return int(os.getenv(key, str(default)))


def _env_bool(key: str, default: bool = False) -> bool:
    return os.getenv(key, str(default)).lower() in ("1", "true", "yes")


def _env_list(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(key)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """PostgreSQL connection settings."""

    host: str = field(default_factory=lambda: _env("DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: _env_int("DB_PORT", 5432))
    user: str = field(default_factory=lambda: _env("DB_USER", "charts"))
    password: str = field(default_factory=lambda: _env("DB_PASSWORD"))
    database: str = field(
        default_factory=lambda: _env("DB_NAME", "track_charts")
    )
    pool_min: int = field(default_factory=lambda: _env_int("DB_POOL_MIN", 2))
    pool_max: int = field(default_factory=lambda: _env_int("DB_POOL_MAX", 10))

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Which repository backend to run against."""

    backend: str = field(
        default_factory=lambda: _env("STORAGE_BACKEND", "postgres").lower()
    )
    # JSON tracks/plays loaded into the in-memory backend at startup
    seed_file: str = field(
        default_factory=lambda: _env("STORAGE_SEED_FILE")
    )


@dataclass(frozen=True, slots=True)
class RankingConfig:
    """Chart candidates and default page sizes."""

    candidate_types: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "RANKING_CANDIDATE_TYPES", DEFAULT_CANDIDATE_TYPES
        )
    )
    monthly_default_limit: int = field(
        default_factory=lambda: _env_int("RANKING_MONTHLY_DEFAULT_LIMIT", 20)
    )
    trending_default_limit: int = field(
        default_factory=lambda: _env_int("RANKING_TRENDING_DEFAULT_LIMIT", 10)
    )


@dataclass(frozen=True, slots=True)
class HttpConfig:
    """Public HTTP API listener."""

    host: str = field(default_factory=lambda: _env("HTTP_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("HTTP_PORT", 8000))
    trust_proxy: bool = field(
        default_factory=lambda: _env_bool("HTTP_TRUST_PROXY", False)
    )


@dataclass(frozen=True, slots=True)
class MetricsConfig:
    """Prometheus metrics settings."""

    enabled: bool = field(
        default_factory=lambda: _env_bool("METRICS_ENABLED", False)
    )
    port: int = field(
        default_factory=lambda: _env_int("METRICS_PORT", 9090)
    )


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Root application configuration aggregating all sub-configs."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log_level: str = field(
        default_factory=lambda: _env("LOG_LEVEL", "INFO")
    )
    log_json: bool = field(
        default_factory=lambda: _env_bool("LOG_JSON", False)
    )

    def validate(self) -> None:
        """Validate required fields; exits on failure."""
        errors: list[str] = []
        if self.storage.backend not in STORAGE_BACKENDS:
            errors.append(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}"
            )
        if self.storage.backend == "postgres" and not self.database.password:
            errors.append("DB_PASSWORD is required")
        if self.storage.seed_file and not Path(self.storage.seed_file).is_file():
            errors.append(f"STORAGE_SEED_FILE not found: {self.storage.seed_file}")
        if not self.ranking.candidate_types:
            errors.append("RANKING_CANDIDATE_TYPES must name at least one type")
        if errors:
            for e in errors:
                print(f"[CONFIG ERROR] {e}", file=sys.stderr)
            raise SystemExit(1)
