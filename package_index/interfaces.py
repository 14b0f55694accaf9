"""
Interfaces for registry adapters and the persistence collaborator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Protocol

from .http_client import RegistryResponse
from .models import DatasourceEvent, PackageRecord, QueryContext, VersionHistory


class RegistryAdapter(Protocol):
    """Query one ecosystem's registry and normalize its version history."""

    ecosystem: str

    def build_query(self, namespace: Optional[str], name: str) -> str:
        ...

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        ...

    def parse_timestamp(self, raw: Any) -> Optional[datetime]:
        ...

    def fetch_history(
        self, namespace: Optional[str], name: str, correlation_id: str
    ) -> VersionHistory:
        ...


class PackageRepository(Protocol):
    """Authoritative storage for package records and datasource events."""

    def find_event(self, event_id: int) -> Optional[DatasourceEvent]:
        ...

    def find_records_by_namespace_and_name(
        self, namespace: Optional[str], name: str
    ) -> List[PackageRecord]:
        ...

    def save(self, record: PackageRecord) -> PackageRecord:
        ...

    def mark_event_ready_for_next_stage(self, event_id: int) -> None:
        ...

    def mark_event_errored(self, event_id: int) -> None:
        ...
