"""Shared type aliases and enumerations."""

from __future__ import annotations

from enum import Enum


class TrackType(str, Enum):
    """Track categories the charts know about."""

    SONG = "song"
    BEAT = "beat"
    MIX = "mix"
    # Legacy misspelling of "beat" still present in older uploads
    BETA = "beta"

    def __str__(self) -> str:
        return self.value


# Monthly chart candidates unless overridden by RANKING_CANDIDATE_TYPES
DEFAULT_CANDIDATE_TYPES: tuple[str, ...] = (
    str(TrackType.SONG),
    str(TrackType.BEAT),
    str(TrackType.MIX),
)

# Never shown in the all-time trending listing (matched case-insensitively)
TRENDING_EXCLUDED_TYPES: tuple[str, ...] = (
    str(TrackType.BEAT),
    str(TrackType.BETA),
)


def resolve_type_filter(track_type: str) -> tuple[str, ...]:
    """Map a requested type to the stored type values it covers.

    ``beat`` also matches the legacy ``beta`` value; anything else is
    lowercased and matched exactly.
    """
    normalized = track_type.strip().lower()
    if not normalized:
        raise ValueError("Type parameter is required")
    if normalized == TrackType.BEAT.value:
        return (str(TrackType.BEAT), str(TrackType.BETA))
    return (normalized,)
