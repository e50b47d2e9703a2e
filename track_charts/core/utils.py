"""Shared utility helpers."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

_IPV4_MAPPED_PREFIX = "::ffff:"


def utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging for the application."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        fmt = (
            '{"time":"%(asctime)s","level":"%(levelname)s",'
            '"logger":"%(name)s","message":"%(message)s"}'
        )
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"

    logging.basicConfig(
        level=numeric_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    # Silence noisy third-party loggers
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def coerce_timestamp(value: Any) -> datetime | None:
    """Turn a stored creation timestamp into an aware datetime.

    Accepts datetimes, ISO-8601 strings and epoch milliseconds. Anything
    missing or unparseable becomes ``None``; naive values are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_limit(raw: str | None, default: int | None) -> int | None:
    """Parse a ``limit`` query value.

    A missing value yields *default*. Anything that is not a positive
    integer yields ``None``, which callers read as "no truncation".
    """
    if raw is None or raw == "":
        return default
    try:
        limit = int(raw.strip())
    except ValueError:
        return None
    return limit if limit > 0 else None


def normalize_ip_address(address: str | None) -> str:
    """Strip the IPv4-mapped IPv6 prefix so both forms count as one listener."""
    if not address:
        return ""
    address = address.strip()
    if address.lower().startswith(_IPV4_MAPPED_PREFIX):
        return address[len(_IPV4_MAPPED_PREFIX):]
    return address
