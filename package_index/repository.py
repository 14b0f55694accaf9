"""
In-memory persistence for package records and datasource events.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, Iterable, List, Optional

from .errors import DuplicateRecordError
from .models import DatasourceEvent, EventStatus, PackageRecord


logger = logging.getLogger(__name__)


class InMemoryPackageRepository:
    """Dictionary-backed repository honouring the uniqueness of package identities."""

    def __init__(
        self,
        records: Iterable[PackageRecord] = (),
        events: Iterable[DatasourceEvent] = (),
    ) -> None:
        self._records: Dict[int, PackageRecord] = {}
        self._events: Dict[int, DatasourceEvent] = {}
        self._next_id = 1
        for record in records:
            self.save(record)
        for event in events:
            self.add_event(event)

    def add_event(self, event: DatasourceEvent) -> DatasourceEvent:
        self._events[event.id] = event
        return event

    def find_event(self, event_id: int) -> Optional[DatasourceEvent]:
        return self._events.get(event_id)

    def find_records_by_namespace_and_name(
        self, namespace: Optional[str], name: str
    ) -> List[PackageRecord]:
        # Callers get working copies; only save() changes stored state.
        return [
            copy.copy(record)
            for record in self._records.values()
            if record.namespace == namespace and record.name == name
        ]

    def get(self, record_id: int) -> Optional[PackageRecord]:
        record = self._records.get(record_id)
        return copy.copy(record) if record else None

    def all_records(self) -> List[PackageRecord]:
        return [copy.copy(record) for record in self._records.values()]

    def save(self, record: PackageRecord) -> PackageRecord:
        for existing in self._records.values():
            if existing.id != record.id and existing.identity == record.identity:
                raise DuplicateRecordError(f"Package record already exists: {record.identity}")

        if record.id is None:
            record.id = self._next_id
            self._next_id += 1
        else:
            self._next_id = max(self._next_id, record.id + 1)
        self._records[record.id] = copy.copy(record)
        logger.debug("Saved package record %s (%s)", record.id, record.purl)
        return record

    def mark_event_ready_for_next_stage(self, event_id: int) -> None:
        event = self._events[event_id]
        event.package_index_enriched = True
        event.status = EventStatus.READY_FOR_NEXT_PROCESSING

    def mark_event_errored(self, event_id: int) -> None:
        self._events[event_id].status = EventStatus.PROCESSING_ERROR
