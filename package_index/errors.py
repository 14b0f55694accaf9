"""Custom exceptions for package index enrichment."""

from __future__ import annotations

from typing import Optional


class PackageIndexError(Exception):
    """Base exception for all package index operations."""


class RegistryError(PackageIndexError):
    """Raised when a registry lookup cannot produce a version history."""


class RegistryRequestError(RegistryError):
    """Raised when a request never got an HTTP response."""


class RegistryResponseError(RegistryError):
    """Raised when a registry answers with a non-success status."""

    def __init__(self, status_code: int, uri: str) -> None:
        super().__init__(f"HTTP {status_code} from {uri}")
        self.status_code = status_code
        self.uri = uri


class RegistryThrottledError(RegistryError):
    """Raised when a registry is still throttling after the configured attempts."""

    def __init__(self, uri: str, attempts: int) -> None:
        super().__init__(f"Still throttled by {uri} after {attempts} attempts")
        self.uri = uri
        self.attempts = attempts


class RegistryDataError(RegistryError):
    """Raised when a registry payload cannot be turned into a version history."""


class NoVersionHistoryError(RegistryDataError):
    """Raised when a registry payload yields no usable versions."""


class MalformedResponseError(RegistryDataError):
    """Raised when a registry payload lacks required fields or is not decodable."""

    def __init__(self, message: str, uri: Optional[str] = None) -> None:
        super().__init__(f"{message} ({uri})" if uri else message)
        self.uri = uri


class PackageIdentityError(PackageIndexError):
    """Raised when a stored package URL cannot be parsed."""


class DuplicateRecordError(PackageIndexError):
    """Raised by a repository when a package record already exists."""
