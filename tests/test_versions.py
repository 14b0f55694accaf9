"""Tests for version delta calculations."""

from datetime import datetime, timedelta, timezone

from package_index.models import VersionRecord
from package_index.versions import (
    compute_version_deltas,
    parse_version_components,
    strip_version_prefix,
    versions_behind_head,
)


def _history(*versions):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        VersionRecord(version=ver, released_at=base - timedelta(days=index))
        for index, ver in enumerate(versions)
    ]


HISTORY = _history("2.0.0", "1.3.0", "1.2.0", "1.1.0", "1.0.0")


def test_same_version_is_zero_major_and_minor_behind():
    deltas = compute_version_deltas("1.2.0", "1.2.0", HISTORY)

    assert deltas.as_tuple() == (0, 0, 2)


def test_unknown_version_yields_sentinels():
    assert compute_version_deltas("0.9.0", "2.0.0", HISTORY).as_tuple() == (-1, -1, -1)


def test_major_and_minor_come_from_components_patch_from_position():
    deltas = compute_version_deltas("1.1.0", "2.0.0", HISTORY)

    assert deltas.major == 1
    assert deltas.minor == -1
    assert deltas.patch == 3


def test_v_prefix_is_stripped_everywhere():
    go_history = _history("v2.0.0", "v1.3.0", "v1.2.0")

    assert (
        compute_version_deltas("v1.2.0", "v2.0.0", go_history)
        == compute_version_deltas("1.2.0", "2.0.0", go_history)
        == compute_version_deltas("1.2.0", "2.0.0", _history("2.0.0", "1.3.0", "1.2.0"))
    )


def test_non_numeric_components_collapse_to_zero():
    history = _history("2.0.0", "1.5.0-beta")

    assert parse_version_components("1.5.0-beta") == (0, 0, 0)
    assert compute_version_deltas("1.5.0-beta", "2.0.0", history).as_tuple() == (2, 0, 1)


def test_missing_components_default_to_zero():
    assert parse_version_components("3") == (3, 0, 0)
    assert parse_version_components("3.4") == (3, 4, 0)
    assert parse_version_components("3.4.5.6") == (3, 4, 5)


def test_strip_version_prefix_only_strips_leading_v():
    assert strip_version_prefix("v1.0") == "1.0"
    assert strip_version_prefix("1.0v") == "1.0v"


def test_versions_behind_head_uses_exact_match():
    assert versions_behind_head("1.1.0", HISTORY) == 3
    assert versions_behind_head("v1.1.0", HISTORY) == 0
