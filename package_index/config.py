"""
Runtime settings for registry queries and enrichment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Dict, Mapping, Optional


DEFAULT_REGISTRY_URLS: Dict[str, str] = {
    "maven": "https://search.maven.org/solrsearch/select",
    "npm": "https://registry.npmjs.org",
    "pypi": "https://pypi.org/pypi",
    "gem": "https://rubygems.org/api/v1/versions",
    "golang": "https://proxy.golang.org",
    "composer": "https://repo.packagist.org/p2",
    "cargo": "https://crates.io/api/v1/crates",
    "nuget": "https://api.nuget.org/v3/registration5-gz-semver2",
}


def _service_version() -> str:
    from . import __version__

    return __version__


@dataclass(frozen=True)
class IndexSettings:
    """Settings shared by the registry client, adapters and the enrichment service."""

    service_name: str = "package-index"
    service_version: str = field(default_factory=_service_version)
    base_delay_ms: int = 1000
    # None keeps retrying throttled requests until the registry lets them through.
    max_attempts: Optional[int] = None
    request_timeout: float = 30
    freshness_window: timedelta = timedelta(hours=24)
    registry_urls: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_REGISTRY_URLS)
    )

    @property
    def user_agent(self) -> str:
        return f"{self.service_name}/{self.service_version}"

    def registry_url(self, ecosystem: str) -> str:
        return self.registry_urls[ecosystem].rstrip("/")

    def with_overrides(self, **changes) -> "IndexSettings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IndexSettings":
        """Build settings from ``PACKAGE_INDEX_*`` environment variables."""
        env = os.environ if environ is None else environ
        changes = {}
        if env.get("PACKAGE_INDEX_MAX_ATTEMPTS"):
            changes["max_attempts"] = int(env["PACKAGE_INDEX_MAX_ATTEMPTS"])
        if env.get("PACKAGE_INDEX_BASE_DELAY_MS"):
            changes["base_delay_ms"] = int(env["PACKAGE_INDEX_BASE_DELAY_MS"])
        if env.get("PACKAGE_INDEX_REQUEST_TIMEOUT"):
            changes["request_timeout"] = float(env["PACKAGE_INDEX_REQUEST_TIMEOUT"])
        if env.get("PACKAGE_INDEX_FRESHNESS_HOURS"):
            changes["freshness_window"] = timedelta(
                hours=float(env["PACKAGE_INDEX_FRESHNESS_HOURS"])
            )
        return cls(**changes)
