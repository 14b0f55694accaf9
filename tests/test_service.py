"""Tests for the enrichment orchestrator against the in-memory repository."""

from datetime import datetime, timedelta, timezone

import pytest

from package_index.adapters import MavenAdapter
from package_index.errors import DuplicateRecordError
from package_index.models import DatasourceEvent, EventStatus, PackageRecord, PackageStatus
from package_index.repository import InMemoryPackageRepository
from package_index.service import PackageIndexService

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
NPM_URI = "https://registry.npmjs.org/left-pad"
NPM_BODY = {"time": {
    "created": "2019-12-31T00:00:00Z",
    "1.0.0": "2020-01-01T00:00:00Z",
    "1.1.0": "2021-01-01T00:00:00Z",
    "2.0.0": "2022-01-01T00:00:00Z",
    "modified": "2022-01-02T00:00:00Z",
}}


def _npm_record(version, **fields):
    return PackageRecord(
        type="npm",
        namespace=None,
        name="left-pad",
        version=version,
        purl=f"pkg:npm/left-pad@{version}" if version else "pkg:npm/left-pad",
        **fields,
    )


def _service(repository, client):
    return PackageIndexService(repository, client=client, clock=lambda: NOW)


def _run(repository, client, purls, event_id=1):
    repository.add_event(DatasourceEvent(id=event_id, package_urls=purls))
    return _service(repository, client).enrich_event("cid", NOW, event_id)


def test_outdated_record_is_updated_and_latest_created(make_client):
    repository = InMemoryPackageRepository([_npm_record("1.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert result.status == 201
    assert result.updated_ids == [1]
    assert result.created_id == 2
    assert result.packages == {"pkg:npm/left-pad@1.0.0": PackageStatus.CREATED}

    updated = repository.get(1)
    assert updated.most_recent_version == "2.0.0"
    assert updated.number_major_versions_behind_head == 1
    assert updated.number_minor_versions_behind_head == 0
    assert updated.number_patch_versions_behind_head == 2
    assert updated.number_versions_behind_head == 2
    assert updated.this_version_published_at == datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert updated.most_recent_version_published_at == datetime(2022, 1, 1, tzinfo=timezone.utc)
    assert updated.updated_at == NOW

    created = repository.get(2)
    assert created.purl == "pkg:npm/left-pad@2.0.0"
    assert created.version == "2.0.0"
    assert created.most_recent_version == "2.0.0"
    assert created.this_version_published_at == created.most_recent_version_published_at

    assert repository.find_event(1).status == EventStatus.READY_FOR_NEXT_PROCESSING
    assert repository.find_event(1).package_index_enriched


def test_no_record_created_when_latest_already_tracked(make_client):
    repository = InMemoryPackageRepository([_npm_record("1.1.0"), _npm_record("2.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.1.0"])

    assert result.status == 200
    assert sorted(result.updated_ids) == [1, 2]
    assert result.created_ids == []
    assert repository.get(2).number_patch_versions_behind_head == 0
    assert len(repository.all_records()) == 2


def test_recently_enriched_records_are_not_requeried(make_client):
    fresh = _npm_record("1.0.0", most_recent_version="2.0.0", updated_at=NOW - timedelta(hours=1))
    repository = InMemoryPackageRepository([fresh])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert client.calls == []
    assert result.status == 200
    assert result.packages["pkg:npm/left-pad@1.0.0"] is PackageStatus.SKIPPED
    assert repository.get(1).number_versions_behind_head is None
    assert len(repository.all_records()) == 1


def test_stale_records_are_enriched_again(make_client):
    stale = _npm_record("1.1.0", most_recent_version="1.1.0", updated_at=NOW - timedelta(days=2))
    repository = InMemoryPackageRepository([stale])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.1.0"])

    assert client.calls == [NPM_URI]
    assert result.updated_ids == [1]
    assert repository.get(1).most_recent_version == "2.0.0"


def test_updated_but_never_enriched_record_is_not_fresh(make_client):
    record = _npm_record("1.0.0", updated_at=NOW - timedelta(minutes=5))
    repository = InMemoryPackageRepository([record])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert result.updated_ids == [1]


def test_fresh_record_does_not_block_other_records(make_client):
    fresh = _npm_record("2.0.0", most_recent_version="2.0.0", updated_at=NOW - timedelta(hours=2))
    repository = InMemoryPackageRepository([fresh, _npm_record("1.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert result.status == 200
    assert result.updated_ids == [2]
    assert result.created_ids == []


def test_versionless_records_are_skipped(make_client):
    repository = InMemoryPackageRepository([_npm_record(None)])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad"])

    assert result.packages["pkg:npm/left-pad"] is PackageStatus.SKIPPED
    assert client.calls == []
    assert len(repository.all_records()) == 1


def test_unsupported_types_are_skipped(make_client):
    repository = InMemoryPackageRepository()
    client = make_client({})

    result = _run(repository, client, ["pkg:hex/phoenix@1.7.0"])

    assert result.status == 200
    assert result.packages["pkg:hex/phoenix@1.7.0"] is PackageStatus.SKIPPED
    assert repository.find_event(1).status == EventStatus.READY_FOR_NEXT_PROCESSING


def test_registry_errors_skip_only_that_package(make_client):
    crate = PackageRecord(type="cargo", namespace=None, name="gone", version="0.1.0", purl="pkg:cargo/gone@0.1.0")
    repository = InMemoryPackageRepository([crate, _npm_record("2.0.0")])
    client = make_client({
        "https://crates.io/api/v1/crates/gone": (500, "boom"),
        NPM_URI: NPM_BODY,
    })

    result = _run(repository, client, ["pkg:cargo/gone@0.1.0", "pkg:npm/left-pad@2.0.0"])

    assert result.status == 200
    assert result.packages == {
        "pkg:cargo/gone@0.1.0": PackageStatus.SKIPPED,
        "pkg:npm/left-pad@2.0.0": PackageStatus.UPDATED,
    }
    assert result.updated_ids == [2]


def test_empty_history_skips_package(make_client):
    repository = InMemoryPackageRepository([_npm_record("1.0.0")])
    client = make_client({NPM_URI: {"time": {"created": "2019-12-31T00:00:00Z"}}})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert result.packages["pkg:npm/left-pad@1.0.0"] is PackageStatus.SKIPPED
    assert repository.get(1).most_recent_version is None


def test_unparseable_package_url_errors_the_event(make_client):
    repository = InMemoryPackageRepository([_npm_record("1.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0", "not-a-purl"])

    assert result.status == 500
    assert client.calls == []
    assert repository.find_event(1).status == EventStatus.PROCESSING_ERROR
    assert repository.get(1).most_recent_version is None


def test_missing_event_is_a_bad_request(make_client):
    service = _service(InMemoryPackageRepository(), make_client({}))

    result = service.enrich_event("cid", NOW, 42)

    assert result.status == 400
    assert result.message == "datasourceEvent record does not exist"


class RacingRepository(InMemoryPackageRepository):
    """Pretends another enrichment inserted the latest version first."""

    def save(self, record):
        if record.id is None and self.find_event(1) is not None:
            raise DuplicateRecordError("already there")
        return super().save(record)


def test_creation_race_is_tolerated(make_client):
    repository = RacingRepository([_npm_record("1.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    result = _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert result.status == 200
    assert result.created_ids == []
    assert result.updated_ids == [1]
    assert result.packages["pkg:npm/left-pad@1.0.0"] is PackageStatus.UPDATED


def test_records_of_other_ecosystems_are_left_alone(make_client):
    pypi_twin = PackageRecord(type="pypi", namespace=None, name="left-pad", version="0.1", purl="pkg:pypi/left-pad@0.1")
    repository = InMemoryPackageRepository([pypi_twin, _npm_record("2.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    _run(repository, client, ["pkg:npm/left-pad@2.0.0"])

    assert repository.get(1).most_recent_version is None
    assert repository.get(2).most_recent_version == "2.0.0"


def test_go_versions_compare_with_v_prefix(make_client):
    base = "https://proxy.golang.org/github.com/gorilla/mux/@v"
    record = PackageRecord(
        type="golang", namespace="github.com/gorilla", name="mux", version="v1.7.0",
        purl="pkg:golang/github.com/gorilla/mux@v1.7.0",
    )
    repository = InMemoryPackageRepository([record])
    client = make_client({
        f"{base}/list": "v1.7.0\nv1.8.0",
        f"{base}/v1.7.0.info": {"Time": "2019-01-01T00:00:00Z"},
        f"{base}/v1.8.0.info": {"Time": "2020-08-22T00:00:00Z"},
    })

    result = _run(repository, client, ["pkg:golang/github.com/gorilla/mux@v1.7.0"])

    assert result.status == 201
    updated = repository.get(1)
    assert updated.number_major_versions_behind_head == 0
    assert updated.number_minor_versions_behind_head == 1
    assert updated.number_patch_versions_behind_head == 1
    assert repository.get(2).purl == "pkg:golang/github.com/gorilla/mux@v1.8.0"


def test_result_payload_shape(make_client):
    repository = InMemoryPackageRepository([_npm_record("1.0.0")])
    client = make_client({NPM_URI: NPM_BODY})

    payload = _run(repository, client, ["pkg:npm/left-pad@1.0.0"]).to_dict()

    assert payload["status"] == 201
    assert payload["updated_record_ids"] == [1]
    assert payload["created_record_id"] == 2
    assert payload["packages"] == {"pkg:npm/left-pad@1.0.0": "created"}


@pytest.mark.parametrize("hours, expected_calls", [(23, 0), (25, 1)])
def test_freshness_window_is_configurable(make_client, hours, expected_calls):
    record = _npm_record("1.0.0", most_recent_version="2.0.0", updated_at=NOW - timedelta(hours=hours))
    repository = InMemoryPackageRepository([record])
    client = make_client({NPM_URI: NPM_BODY})

    _run(repository, client, ["pkg:npm/left-pad@1.0.0"])

    assert len(client.calls) == expected_calls


def test_out_of_range_maven_timestamp_does_not_abort_event(make_client):
    maven_uri = MavenAdapter(make_client({})).build_query("g", "a")
    artifact = PackageRecord(type="maven", namespace="g", name="a", version="1.0", purl="pkg:maven/g/a@1.0")
    repository = InMemoryPackageRepository([artifact, _npm_record("2.0.0")])
    client = make_client({
        maven_uri: {"response": {"docs": [
            {"v": "1.0", "timestamp": 1600000000000},
            {"v": "9.9", "timestamp": 10**22},
        ]}},
        NPM_URI: NPM_BODY,
    })

    result = _run(repository, client, ["pkg:maven/g/a@1.0", "pkg:npm/left-pad@2.0.0"])

    assert result.status == 200
    assert result.packages["pkg:npm/left-pad@2.0.0"] is PackageStatus.UPDATED
    assert repository.get(1).most_recent_version == "1.0"
    assert repository.find_event(1).status == EventStatus.READY_FOR_NEXT_PROCESSING
