#!/usr/bin/env python3
"""
Example script showing how to use the package-index enrichment service.
"""

import uuid

from package_index.config import IndexSettings
from package_index.http_client import RegistryClient
from package_index.models import DatasourceEvent, PackageRecord
from package_index.repository import InMemoryPackageRepository
from package_index.service import PackageIndexService


def example_single_event():
    """Example: Enrich two packages from different ecosystems."""
    print("="*60)
    print("Example 1: Enrich a datasource event")
    print("="*60)

    repository = InMemoryPackageRepository(
        records=[
            PackageRecord(type="npm", namespace=None, name="left-pad", version="1.1.0",
                          purl="pkg:npm/left-pad@1.1.0"),
            PackageRecord(type="cargo", namespace=None, name="serde", version="1.0.100",
                          purl="pkg:cargo/serde@1.0.100"),
        ],
        events=[
            DatasourceEvent(id=1, package_urls=["pkg:npm/left-pad@1.1.0", "pkg:cargo/serde@1.0.100"]),
        ],
    )
    service = PackageIndexService(repository)

    result = service.enrich_event(str(uuid.uuid4()), service.clock(), 1)

    print(f"\nStatus: {result.status}")
    for record in repository.all_records():
        print(
            f"{record.purl}: latest {record.most_recent_version}, "
            f"{record.number_versions_behind_head} releases behind"
        )


def example_bounded_retries():
    """Example: Give up on a throttling registry after five attempts."""
    print("\n" + "="*60)
    print("Example 2: Bounded retries")
    print("="*60)

    settings = IndexSettings(max_attempts=5, base_delay_ms=500)
    client = RegistryClient(settings)
    repository = InMemoryPackageRepository(
        records=[PackageRecord(type="gem", namespace=None, name="rails", version="6.0.0",
                               purl="pkg:gem/rails@6.0.0")],
        events=[DatasourceEvent(id=1, package_urls=["pkg:gem/rails@6.0.0"])],
    )
    service = PackageIndexService(repository, client=client)

    result = service.enrich_event(str(uuid.uuid4()), service.clock(), 1)
    print(f"\nStatus: {result.status}, packages: {result.packages}")


if __name__ == "__main__":
    example_single_event()
    example_bounded_retries()
