"""Main application entry point — serves the track charts over HTTP.

Usage:
    python -m track_charts.app
    python -m track_charts.app --debug
    python -m track_charts.app --memory
    python -m track_charts.app --seed fixtures.json
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import time
from collections.abc import Awaitable, Callable

from aiohttp import web
from prometheus_client import Counter, Histogram, start_http_server

from track_charts.config import AppConfig, StorageConfig
from track_charts.core.models import HealthStatus
from track_charts.core.utils import normalize_ip_address, parse_limit, setup_logging
from track_charts.ranking import TrendingEngine
from track_charts.storage import (
    BaseRepository,
    MemoryRepository,
    PostgresRepository,
    TrackNotFound,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

CHART_REQUESTS_TOTAL = Counter(
    "charts_requests_total",
    "Chart requests served",
    ["chart"],
)
PLAYS_RECORDED_TOTAL = Counter(
    "charts_plays_recorded_total",
    "Plays recorded through the API",
)
MONTHLY_RANKING_SECONDS = Histogram(
    "charts_monthly_ranking_seconds",
    "Time spent building the monthly chart",
)

# ---------------------------------------------------------------------------
# Application keys
# ---------------------------------------------------------------------------

CONFIG_KEY = web.AppKey("config", AppConfig)
REPOSITORY_KEY = web.AppKey("repository", BaseRepository)
ENGINE_KEY = web.AppKey("engine", TrendingEngine)
STATUS_KEY = web.AppKey("status", HealthStatus)
STARTED_KEY = web.AppKey("started", float)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """Render every failure as ``{"message": ...}`` JSON."""
    try:
        return await handler(request)
    except web.HTTPNotFound:
        logger.info("404 - Route not found: %s %s", request.method, request.path)
        return web.json_response({"message": "Route not found"}, status=404)
    except web.HTTPException as exc:
        if exc.status < 400:
            raise
        headers = {"Allow": exc.headers["Allow"]} if "Allow" in exc.headers else None
        return web.json_response(
            {"message": exc.reason}, status=exc.status, headers=headers
        )
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response({"message": str(exc)}, status=500)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_monthly_popular(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    limit = parse_limit(
        request.query.get("limit"), config.ranking.monthly_default_limit
    )
    request.app[STATUS_KEY].chart_requests += 1
    CHART_REQUESTS_TOTAL.labels(chart="monthly").inc()

    with MONTHLY_RANKING_SECONDS.time():
        ranked = await request.app[ENGINE_KEY].monthly_popular(limit=limit)
    return web.json_response([s.to_dict() for s in ranked])


async def handle_trending(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    limit = parse_limit(
        request.query.get("limit"), config.ranking.trending_default_limit
    )
    request.app[STATUS_KEY].chart_requests += 1
    CHART_REQUESTS_TOTAL.labels(chart="trending").inc()

    tracks = await request.app[ENGINE_KEY].all_time_trending(limit=limit)
    return web.json_response([t.to_dict() for t in tracks])


async def handle_by_type(request: web.Request) -> web.Response:
    track_type = request.query.get("type", "").strip()
    if not track_type:
        return web.json_response(
            {"message": "Type parameter is required"}, status=400
        )
    # 0 means no limit
    limit = parse_limit(request.query.get("limit"), None)
    request.app[STATUS_KEY].chart_requests += 1
    CHART_REQUESTS_TOTAL.labels(chart="by_type").inc()

    tracks = await request.app[ENGINE_KEY].tracks_by_type(track_type, limit=limit)
    return web.json_response([t.to_dict() for t in tracks])


def _client_address(request: web.Request) -> str:
    if request.app[CONFIG_KEY].http.trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return normalize_ip_address(first)
    return normalize_ip_address(request.remote)


async def handle_record_play(request: web.Request) -> web.Response:
    track_id = request.match_info["track_id"]

    user_id: str | None = None
    if request.can_read_body:
        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"message": "Invalid JSON body"}, status=400)
        if isinstance(body, dict) and body.get("userId") is not None:
            user_id = str(body["userId"])

    try:
        track = await request.app[REPOSITORY_KEY].record_play(
            track_id,
            ip_address=_client_address(request),
            user_id=user_id,
            user_agent=request.headers.get("User-Agent"),
        )
    except TrackNotFound:
        return web.json_response({"message": "Track not found"}, status=404)

    request.app[STATUS_KEY].plays_recorded += 1
    PLAYS_RECORDED_TOTAL.inc()
    logger.debug("Play recorded for %s (now %d plays)", track.id, track.plays)
    return web.json_response(track.to_dict())


async def handle_health(request: web.Request) -> web.Response:
    status = request.app[STATUS_KEY]
    status.uptime_seconds = time.monotonic() - request.app[STARTED_KEY]
    status.db_connected = await request.app[REPOSITORY_KEY].is_connected()
    code = 200 if status.db_connected else 503
    return web.json_response(
        {
            "status": "healthy" if code == 200 else "degraded",
            "uptime_seconds": round(status.uptime_seconds, 1),
            "chart_requests": status.chart_requests,
            "plays_recorded": status.plays_recorded,
            "db_connected": status.db_connected,
            "storage_backend": status.storage_backend,
        },
        status=code,
    )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_repository(config: AppConfig) -> BaseRepository:
    if config.storage.backend == "memory":
        if config.storage.seed_file:
            return MemoryRepository.from_seed_file(config.storage.seed_file)
        return MemoryRepository()
    return PostgresRepository(config.database)


def create_web_app(
    config: AppConfig,
    repository: BaseRepository,
    engine: TrendingEngine | None = None,
) -> web.Application:
    """Build the aiohttp application around an already-chosen repository."""
    app = web.Application(middlewares=[error_middleware])
    app[CONFIG_KEY] = config
    app[REPOSITORY_KEY] = repository
    app[ENGINE_KEY] = engine or TrendingEngine(
        tracks=repository,
        plays=repository,
        config=config.ranking,
    )
    app[STATUS_KEY] = HealthStatus(storage_backend=config.storage.backend)
    app[STARTED_KEY] = time.monotonic()

    app.router.add_get("/api/tracks/popular/monthly", handle_monthly_popular)
    app.router.add_get("/api/tracks/trending", handle_trending)
    app.router.add_get("/api/tracks/by-type", handle_by_type)
    app.router.add_post("/api/tracks/{track_id}/play", handle_record_play)
    app.router.add_get("/health", handle_health)
    app.router.add_get("/", handle_health)
    return app


class ChartsApp:
    """Top-level orchestrator: wires storage -> engine -> HTTP API."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._repo = build_repository(config)
        self._runner: web.AppRunner | None = None
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Initialize all components and serve until shutdown."""
        logger.info("Starting track charts (storage=%s)", self._config.storage.backend)

        # 1. Storage
        await self._repo.connect()

        # 2. Prometheus metrics endpoint
        if self._config.metrics.enabled:
            start_http_server(self._config.metrics.port)
            logger.info(
                "Prometheus metrics on :%d/metrics",
                self._config.metrics.port,
            )

        # 3. HTTP API
        app = create_web_app(self._config, self._repo)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.http.host, self._config.http.port)
        await site.start()
        logger.info(
            "Chart API on %s:%d", self._config.http.host, self._config.http.port
        )

        await self._stopped.wait()

    def stop(self) -> None:
        """Ask ``start`` to return; safe to call from a signal handler."""
        self._stopped.set()

    async def shutdown(self) -> None:
        """Graceful shutdown — stop serving, close connections."""
        logger.info("Shutting down track charts...")
        self._stopped.set()

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        await self._repo.close()
        logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Track charts — monthly popularity and trending API"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help=(
            "Use the in-memory store instead of PostgreSQL; it starts empty "
            "unless --seed (or STORAGE_SEED_FILE) names a JSON seed file"
        ),
    )
    parser.add_argument(
        "--seed",
        metavar="PATH",
        help='JSON file with {"tracks": [...], "plays": [...]} for the in-memory store',
    )
    return parser.parse_args()


async def _main() -> None:
    args = parse_args()

    config = AppConfig()
    if args.memory or args.seed:
        config = dataclasses.replace(
            config,
            storage=StorageConfig(
                backend="memory",
                seed_file=args.seed or config.storage.seed_file,
            ),
        )

    # Override log level if --debug
    log_level = "DEBUG" if args.debug else config.log_level
    setup_logging(level=log_level, json_format=config.log_json)

    config.validate()

    app = ChartsApp(config=config)

    # Graceful shutdown on SIGINT / SIGTERM
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.stop)

    try:
        await app.start()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        await app.shutdown()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
