"""
Version delta calculations against a registry's version history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

from .models import VersionRecord


logger = logging.getLogger(__name__)

UNKNOWN_VERSION = -1


@dataclass(frozen=True)
class VersionDeltas:
    """How far a recorded version trails the latest one."""

    major: int
    minor: int
    patch: int

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)


def strip_version_prefix(version: str) -> str:
    """Drop a leading ``v`` as used by Go module versions."""
    return version[1:] if version.startswith("v") else version


def parse_version_components(version: str) -> Tuple[int, int, int]:
    """Split a version into (major, minor, patch).

    Missing trailing components default to 0. Any non-numeric component
    collapses the whole triple to (0, 0, 0).
    """
    parts = version.split(".")
    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 else 0
        patch = int(parts[2]) if len(parts) > 2 else 0
    except ValueError:
        return (0, 0, 0)
    return (major, minor, patch)


def compute_version_deltas(
    recorded: str, latest: str, history: Sequence[VersionRecord]
) -> VersionDeltas:
    """Compute major, minor and patch deltas between ``recorded`` and ``latest``.

    The patch delta is the recorded version's position in the newest-first
    history, not a difference of patch numbers. A version the registry does
    not know yields -1 for all three.
    """
    recorded = strip_version_prefix(recorded)
    latest = strip_version_prefix(latest)

    position = UNKNOWN_VERSION
    for index, entry in enumerate(history):
        if strip_version_prefix(entry.version) == recorded:
            position = index
            break

    if position == UNKNOWN_VERSION:
        return VersionDeltas(UNKNOWN_VERSION, UNKNOWN_VERSION, UNKNOWN_VERSION)

    latest_components = parse_version_components(latest)
    recorded_components = parse_version_components(recorded)
    logger.debug(
        "Version components latest=%s recorded=%s", latest_components, recorded_components
    )
    return VersionDeltas(
        major=latest_components[0] - recorded_components[0],
        minor=latest_components[1] - recorded_components[1],
        patch=position,
    )


def versions_behind_head(version: str, history: Sequence[VersionRecord]) -> int:
    """Return how many releases are newer than ``version``, or 0 if it is unknown."""
    for index, entry in enumerate(history):
        if entry.version == version:
            return index
    return 0
