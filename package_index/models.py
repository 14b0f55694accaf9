"""
Core data models for package index enrichment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class VersionRecord:
    """A published release with its release date."""

    version: str
    released_at: datetime


@dataclass(frozen=True)
class VersionHistory:
    """All known releases of a package, newest first."""

    latest: VersionRecord
    all: Tuple[VersionRecord, ...]

    @classmethod
    def from_records(cls, records: Iterable[VersionRecord]) -> "VersionHistory":
        ordered = tuple(sorted(records, key=lambda r: r.released_at, reverse=True))
        if not ordered:
            raise ValueError("A version history needs at least one release")
        return cls(latest=ordered[0], all=ordered)

    def __len__(self) -> int:
        return len(self.all)

    def find(self, version: str) -> Optional[VersionRecord]:
        for record in self.all:
            if record.version == version:
                return record
        return None


@dataclass(frozen=True)
class QueryContext:
    """Identifying details of a single registry query, used for diagnostics."""

    correlation_id: str
    namespace: Optional[str]
    name: str
    uri: str


@dataclass
class PackageRecord:
    """A tracked (type, namespace, name, version) row and its enrichment fields."""

    type: str
    namespace: Optional[str]
    name: str
    version: Optional[str]
    purl: str = ""
    id: Optional[int] = None
    most_recent_version: Optional[str] = None
    most_recent_version_published_at: Optional[datetime] = None
    this_version_published_at: Optional[datetime] = None
    number_major_versions_behind_head: Optional[int] = None
    number_minor_versions_behind_head: Optional[int] = None
    number_patch_versions_behind_head: Optional[int] = None
    number_versions_behind_head: Optional[int] = None
    updated_at: Optional[datetime] = None

    @property
    def identity(self) -> Tuple[str, Optional[str], str, Optional[str]]:
        return (self.type, self.namespace, self.name, self.version)


class EventStatus(str, Enum):
    PENDING = "PENDING"
    READY_FOR_NEXT_PROCESSING = "READY_FOR_NEXT_PROCESSING"
    PROCESSING_ERROR = "PROCESSING_ERROR"


@dataclass
class DatasourceEvent:
    """A batch of package URLs awaiting enrichment."""

    id: int
    package_urls: List[str] = field(default_factory=list)
    status: EventStatus = EventStatus.PENDING
    package_index_enriched: bool = False


class RecordOutcome(str, Enum):
    """What happened to one existing record during an enrichment pass."""

    UPDATED = "updated"
    SKIPPED_NO_VERSION = "skipped_no_version"
    SKIPPED_FRESH = "skipped_fresh"


class PackageStatus(str, Enum):
    """Terminal state of one package identity within an event."""

    UPDATED = "updated"
    CREATED = "created"
    SKIPPED = "skipped"
    ERRORED = "errored"


@dataclass
class EnrichmentResult:
    """Outcome of enriching a datasource event."""

    correlation_id: str
    received_at: datetime
    status: int
    updated_ids: List[int] = field(default_factory=list)
    created_ids: List[int] = field(default_factory=list)
    packages: Dict[str, PackageStatus] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def created_id(self) -> Optional[int]:
        return self.created_ids[0] if self.created_ids else None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "correlation_id": self.correlation_id,
            "received_at": self.received_at.isoformat(),
            "status": self.status,
            "updated_record_ids": list(self.updated_ids),
            "packages": {purl: status.value for purl, status in self.packages.items()},
        }
        if self.created_ids:
            payload["created_record_id"] = self.created_id
            payload["created_record_ids"] = list(self.created_ids)
        if self.message:
            payload["message"] = self.message
        return payload
