"""
Package index enrichment: query each package's registry and record how far
its tracked versions trail the latest release.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from packageurl import PackageURL

from .adapters import get_adapter
from .config import IndexSettings
from .errors import DuplicateRecordError, PackageIdentityError, RegistryError
from .http_client import RegistryClient
from .interfaces import PackageRepository
from .models import (
    DatasourceEvent,
    EnrichmentResult,
    PackageRecord,
    PackageStatus,
    RecordOutcome,
    VersionHistory,
)
from .time_utils import ensure_utc, utcnow
from .versions import compute_version_deltas, versions_behind_head


logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_INTERNAL_SERVER_ERROR = 500


def parse_package_url(purl_string: str) -> PackageURL:
    """Parse a stored package URL, raising PackageIdentityError when it is invalid."""
    try:
        return PackageURL.from_string(purl_string)
    except ValueError as e:
        raise PackageIdentityError(f"Unparseable package URL {purl_string!r}: {e}") from e


class PackageIndexService:
    """Enrich the packages of a datasource event with registry version history."""

    def __init__(
        self,
        repository: PackageRepository,
        client: Optional[RegistryClient] = None,
        settings: Optional[IndexSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the enrichment service.

        Args:
            repository: Persistence collaborator holding records and events
            client: Registry client; one is built from ``settings`` if omitted
            settings: Shared settings; defaults to the client's settings
            clock: Source of the current UTC time
        """
        if settings is None:
            settings = client.settings if client is not None else IndexSettings()
        self.settings = settings
        self.client = client or RegistryClient(settings)
        self.repository = repository
        self.clock = clock

    def enrich_event(
        self, correlation_id: str, received_at: datetime, event_id: int
    ) -> EnrichmentResult:
        """Look up a datasource event and enrich it."""
        event = self.repository.find_event(event_id)
        if event is None:
            return EnrichmentResult(
                correlation_id=correlation_id,
                received_at=received_at,
                status=HTTP_BAD_REQUEST,
                message="datasourceEvent record does not exist",
            )
        return self.enrich(correlation_id, received_at, event)

    def enrich(
        self, correlation_id: str, received_at: datetime, event: DatasourceEvent
    ) -> EnrichmentResult:
        """Enrich every package of ``event``.

        Registry failures skip the affected package only. An unparseable
        package URL marks the whole event errored.
        """
        result = EnrichmentResult(
            correlation_id=correlation_id, received_at=received_at, status=HTTP_OK
        )
        logger.info("Package URLs for event %s: %s", event.id, event.package_urls)

        try:
            purls = [parse_package_url(purl_string) for purl_string in event.package_urls]
            for purl_string, purl in zip(event.package_urls, purls):
                result.packages[purl_string] = self._enrich_package(purl, correlation_id, result)
        except PackageIdentityError as e:
            logger.error("Aborting enrichment of event %s: %s", event.id, e)
            self.repository.mark_event_errored(event.id)
            result.status = HTTP_INTERNAL_SERVER_ERROR
            result.message = str(e)
            return result

        logger.info("Setting status flags for event %s", event.id)
        self.repository.mark_event_ready_for_next_stage(event.id)
        result.status = HTTP_CREATED if result.created_ids else HTTP_OK
        return result

    def _enrich_package(
        self, purl: PackageURL, correlation_id: str, result: EnrichmentResult
    ) -> PackageStatus:
        adapter = get_adapter(purl.type, self.client, self.settings)
        if adapter is None:
            logger.warning("Skipping package type %s because it's not yet supported", purl.type)
            return PackageStatus.SKIPPED

        records = [
            record
            for record in self.repository.find_records_by_namespace_and_name(purl.namespace, purl.name)
            if record.type == purl.type
        ]
        now = self.clock()
        if all(self._skip_reason(record, now) is not None for record in records):
            logger.info("Skipping %s: no record needs enrichment", purl.to_string())
            return PackageStatus.SKIPPED

        try:
            history = adapter.fetch_history(purl.namespace, purl.name, correlation_id)
        except RegistryError as e:
            logger.warning("Skipping %s: %s", purl.to_string(), e)
            return PackageStatus.SKIPPED

        logger.debug("Number of package versions tracked is: %s", len(history))
        outcomes = [self._apply_history(record, history, now) for record in records]
        updated_ids = [
            record.id for record, outcome in zip(records, outcomes) if outcome is RecordOutcome.UPDATED
        ]
        result.updated_ids.extend(updated_ids)

        latest_version = history.latest.version
        latest_recorded = any(record.version == latest_version for record in records)
        if latest_recorded or not updated_ids:
            return PackageStatus.UPDATED if updated_ids else PackageStatus.SKIPPED

        created = self._create_latest_record(purl, history, now)
        if created is None:
            return PackageStatus.UPDATED
        result.created_ids.append(created.id)
        return PackageStatus.CREATED

    def _skip_reason(self, record: PackageRecord, now: datetime) -> Optional[RecordOutcome]:
        if not record.version:
            return RecordOutcome.SKIPPED_NO_VERSION
        recently_updated = (
            record.updated_at is not None
            and now - self.settings.freshness_window < ensure_utc(record.updated_at)
        )
        if recently_updated and record.most_recent_version is not None:
            return RecordOutcome.SKIPPED_FRESH
        return None

    def _apply_history(
        self, record: PackageRecord, history: VersionHistory, now: datetime
    ) -> RecordOutcome:
        skip_reason = self._skip_reason(record, now)
        if skip_reason is RecordOutcome.SKIPPED_FRESH:
            logger.info("Skipping record %s because it's already been enriched recently", record.purl)
        if skip_reason is not None:
            return skip_reason

        latest = history.latest
        logger.info(
            "Determining version differences for %s (%s -> %s)",
            record.purl, record.version, latest.version,
        )
        deltas = compute_version_deltas(record.version, latest.version, history.all)
        this_version = history.find(record.version)

        record.most_recent_version = latest.version
        record.number_major_versions_behind_head = deltas.major
        record.number_minor_versions_behind_head = deltas.minor
        record.number_patch_versions_behind_head = deltas.patch
        record.number_versions_behind_head = versions_behind_head(record.version, history.all)
        record.most_recent_version_published_at = latest.released_at
        record.this_version_published_at = this_version.released_at if this_version else None
        record.updated_at = now

        self.repository.save(record)
        logger.info("Updated package record %s", record.purl)
        return RecordOutcome.UPDATED

    def _create_latest_record(
        self, purl: PackageURL, history: VersionHistory, now: datetime
    ) -> Optional[PackageRecord]:
        latest = history.latest
        try:
            latest_purl = PackageURL(
                type=purl.type, namespace=purl.namespace, name=purl.name, version=latest.version
            ).to_string()
        except ValueError as e:
            raise PackageIdentityError(
                f"Cannot build package URL for {purl.name}@{latest.version}: {e}"
            ) from e

        deltas = compute_version_deltas(latest.version, latest.version, history.all)
        record = PackageRecord(
            type=purl.type,
            namespace=purl.namespace,
            name=purl.name,
            version=latest.version,
            purl=latest_purl,
            most_recent_version=latest.version,
            most_recent_version_published_at=latest.released_at,
            this_version_published_at=latest.released_at,
            number_major_versions_behind_head=deltas.major,
            number_minor_versions_behind_head=deltas.minor,
            number_patch_versions_behind_head=deltas.patch,
            number_versions_behind_head=0,
            updated_at=now,
        )
        logger.info("Making record for latest version discovered through package index: %s", latest_purl)
        try:
            return self.repository.save(record)
        except DuplicateRecordError:
            logger.warning("Package record %s already exists; another enrichment created it", latest_purl)
            return None

