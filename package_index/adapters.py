"""
Ecosystem-specific registry adapters.

Each adapter knows how to address one registry and how to turn that
registry's response into a :class:`VersionHistory`.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Type
from urllib.parse import quote

from .config import IndexSettings
from .errors import (
    MalformedResponseError,
    NoVersionHistoryError,
    RegistryDataError,
    RegistryResponseError,
)
from .http_client import RegistryClient, RegistryResponse
from .interfaces import RegistryAdapter
from .models import QueryContext, VersionHistory, VersionRecord
from .time_utils import parse_epoch, parse_timestamp


logger = logging.getLogger(__name__)

SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def _encode(value: str, safe: str = "") -> str:
    return quote(value, safe=safe)


def _join_path(namespace: Optional[str], name: str) -> str:
    return f"{namespace}/{name}" if namespace else name


def _require(data: Any, key: str, context: QueryContext) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise MalformedResponseError(f"Missing '{key}' in registry response", context.uri)
    return data[key]


def _require_list(data: Any, key: str, context: QueryContext) -> List[Any]:
    value = _require(data, key, context)
    if not isinstance(value, list):
        raise MalformedResponseError(f"Expected '{key}' to be a list", context.uri)
    return value


class BaseRegistryAdapter:
    """Shared query and history-building behavior for all adapters."""

    ecosystem = ""
    label = ""

    def __init__(self, client: RegistryClient, settings: Optional[IndexSettings] = None) -> None:
        self.client = client
        self.settings = settings or client.settings

    @property
    def base_url(self) -> str:
        return self.settings.registry_url(self.ecosystem)

    def build_query(self, namespace: Optional[str], name: str) -> str:
        raise NotImplementedError

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        raise NotImplementedError

    def parse_timestamp(self, raw: Any) -> Optional[datetime]:
        return parse_timestamp(raw)

    def fetch_history(
        self, namespace: Optional[str], name: str, correlation_id: str
    ) -> VersionHistory:
        uri = self.build_query(namespace, name)
        response = self.client.query(uri)
        if not response.ok:
            logger.warning(
                "Request to %s resulted in error code: %s", self.label, response.status_code
            )
            raise RegistryResponseError(response.status_code, uri)
        context = QueryContext(
            correlation_id=correlation_id, namespace=namespace, name=name, uri=uri
        )
        return self.parse(response, context)

    def _required_timestamp(self, raw: Any, context: QueryContext) -> datetime:
        released_at = self.parse_timestamp(raw)
        if released_at is None:
            raise MalformedResponseError(f"Unreadable release timestamp {raw!r}", context.uri)
        return released_at

    def _build_history(
        self,
        records: List[VersionRecord],
        context: QueryContext,
        response: RegistryResponse,
    ) -> VersionHistory:
        # An empty history almost always means the query or the payload was wrong.
        if not records:
            debug_id = uuid.uuid4()
            logger.info("%s | NO PACKAGE VERSION HISTORY RECEIVED %s", debug_id, self.label.upper())
            logger.info("%s | correlation id: %s", debug_id, context.correlation_id)
            logger.info("%s | queried endpoint: %s", debug_id, context.uri)
            logger.info("%s | package namespace: %s", debug_id, context.namespace)
            logger.info("%s | package name: %s", debug_id, context.name)
            logger.info("%s | response from endpoint: %s", debug_id, response.text)
            raise NoVersionHistoryError(
                f"No package version history received from {context.uri}"
            )
        return VersionHistory.from_records(records)


class MavenAdapter(BaseRegistryAdapter):
    """Maven Central solr search, one doc per published GAV."""

    ecosystem = "maven"
    label = "Maven Central"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        # rows=200 is the largest page the search API honours.
        return (
            f"{self.base_url}?q=g:{_encode(namespace or '')}+AND+a:{_encode(name)}"
            "&rows=200&wt=json&core=gav"
        )

    def parse_timestamp(self, raw: Any) -> Optional[datetime]:
        return parse_epoch(raw)

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        docs = _require_list(_require(data, "response", context), "docs", context)

        records = []
        for doc in docs:
            if not isinstance(doc, dict) or "v" not in doc or "timestamp" not in doc:
                continue
            released_at = self.parse_timestamp(doc["timestamp"])
            if released_at is None:
                logger.debug("Skipping %s with unreadable timestamp %r", doc["v"], doc["timestamp"])
                continue
            records.append(VersionRecord(version=str(doc["v"]), released_at=released_at))
        return self._build_history(records, context, response)


class NpmAdapter(BaseRegistryAdapter):
    """npm registry packument; versions are the semver keys of ``time``."""

    ecosystem = "npm"
    label = "npm registry"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self.base_url}/{_encode(_join_path(namespace, name), safe='@')}"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        time_data = _require(data, "time", context)
        if not isinstance(time_data, dict):
            raise MalformedResponseError("Expected 'time' to be an object", context.uri)

        records = []
        for ver, timestamp in time_data.items():
            # drops the "created" and "modified" markers along with anything non-semver
            if not SEMVER_PATTERN.match(ver):
                continue
            records.append(
                VersionRecord(version=ver, released_at=self._required_timestamp(timestamp, context))
            )
        return self._build_history(records, context, response)


class PyPIAdapter(BaseRegistryAdapter):
    """PyPI JSON API; release dates come from the first uploaded file."""

    ecosystem = "pypi"
    label = "PyPI"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self.base_url}/{_encode(name)}/json"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        releases = _require(data, "releases", context)
        if not isinstance(releases, dict):
            raise MalformedResponseError("Expected 'releases' to be an object", context.uri)

        records = []
        for ver, release_files in releases.items():
            if not release_files:
                continue
            if not isinstance(release_files, list):
                raise MalformedResponseError(f"Expected release files for {ver} to be a list", context.uri)
            upload_time = _require(release_files[0], "upload_time_iso_8601", context)
            records.append(
                VersionRecord(version=ver, released_at=self._required_timestamp(upload_time, context))
            )
        return self._build_history(records, context, response)


class RubyGemsAdapter(BaseRegistryAdapter):
    ecosystem = "gem"
    label = "RubyGems"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self.base_url}/{_encode(name)}.json"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        if not isinstance(data, list):
            raise MalformedResponseError("Expected a list of gem versions", context.uri)

        records = []
        for entry in data:
            if not isinstance(entry, dict) or "number" not in entry or "created_at" not in entry:
                continue
            released_at = self.parse_timestamp(entry["created_at"])
            if released_at is None:
                continue
            records.append(VersionRecord(version=str(entry["number"]), released_at=released_at))
        return self._build_history(records, context, response)


def escape_module_path(path: str) -> str:
    """Case-encode a Go module path or version for the module proxy."""
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in path)


class GoProxyAdapter(BaseRegistryAdapter):
    """Go module proxy: a plain-text version list plus one ``.info`` lookup per version."""

    ecosystem = "golang"
    label = "Golang module proxy"

    def _module_url(self, namespace: Optional[str], name: str) -> str:
        module = escape_module_path(_join_path(namespace, name))
        return f"{self.base_url}/{_encode(module, safe='/!~')}"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self._module_url(namespace, name)}/@v/list"

    def build_info_query(self, namespace: Optional[str], name: str, version: str) -> str:
        escaped = _encode(escape_module_path(version), safe="!~+")
        return f"{self._module_url(namespace, name)}/@v/{escaped}.info"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        versions = [line.strip() for line in response.text.splitlines() if line.strip()]

        records = []
        for ver in versions:
            info_uri = self.build_info_query(context.namespace, context.name, ver)
            info_response = self.client.query(info_uri)
            if not info_response.ok:
                logger.warning(
                    "Version info lookup %s resulted in error code: %s",
                    info_uri, info_response.status_code,
                )
                continue
            try:
                info = info_response.json()
                released_at = self._required_timestamp(_require(info, "Time", context), context)
            except RegistryDataError as e:
                logger.warning("Skipping version %s of %s: %s", ver, context.name, e)
                continue
            records.append(VersionRecord(version=ver, released_at=released_at))
        return self._build_history(records, context, response)


class PackagistAdapter(BaseRegistryAdapter):
    ecosystem = "composer"
    label = "PHP Composer registry"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self.base_url}/{_encode(_join_path(namespace, name), safe='/')}.json"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        packages = _require(data, "packages", context)
        versions = _require_list(packages, _join_path(context.namespace, context.name), context)

        records = []
        for entry in versions:
            ver = _require(entry, "version", context)
            timestamp = _require(entry, "time", context)
            records.append(
                VersionRecord(version=str(ver), released_at=self._required_timestamp(timestamp, context))
            )
        return self._build_history(records, context, response)


class CratesIOAdapter(BaseRegistryAdapter):
    ecosystem = "cargo"
    label = "Rust crates registry"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self.base_url}/{_encode(name)}"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        versions = _require_list(data, "versions", context)

        records = []
        for entry in versions:
            if not isinstance(entry, dict) or "num" not in entry or "created_at" not in entry:
                continue
            released_at = self.parse_timestamp(entry["created_at"])
            if released_at is None:
                continue
            records.append(VersionRecord(version=str(entry["num"]), released_at=released_at))
        return self._build_history(records, context, response)


class NuGetAdapter(BaseRegistryAdapter):
    """NuGet registration index; versions live two levels deep in paged blocks."""

    ecosystem = "nuget"
    label = "NuGet gallery"

    def build_query(self, namespace: Optional[str], name: str) -> str:
        return f"{self.base_url}/{_encode(name.lower())}/index.json"

    def parse(self, response: RegistryResponse, context: QueryContext) -> VersionHistory:
        data = response.json()
        pages = _require_list(data, "items", context)

        records = []
        for page in pages:
            for leaf in self._page_items(page, context):
                entry = _require(leaf, "catalogEntry", context)
                ver = _require(entry, "version", context)
                published = _require(entry, "published", context)
                records.append(
                    VersionRecord(version=str(ver), released_at=self._required_timestamp(published, context))
                )
        return self._build_history(records, context, response)

    def _page_items(self, page: Dict[str, Any], context: QueryContext) -> List[Any]:
        # Large packages leave their pages out of the index; those must be fetched.
        if isinstance(page, dict) and "items" not in page and "@id" in page:
            page_uri = page["@id"]
            logger.debug("Fetching NuGet registration page %s", page_uri)
            page_response = self.client.query(page_uri)
            if not page_response.ok:
                raise RegistryResponseError(page_response.status_code, page_uri)
            page = page_response.json()
        return _require_list(page, "items", context)


ADAPTERS: Dict[str, Type[BaseRegistryAdapter]] = {
    adapter.ecosystem: adapter
    for adapter in (
        MavenAdapter,
        NpmAdapter,
        PyPIAdapter,
        RubyGemsAdapter,
        GoProxyAdapter,
        PackagistAdapter,
        CratesIOAdapter,
        NuGetAdapter,
    )
}


def get_adapter(
    purl_type: str, client: RegistryClient, settings: Optional[IndexSettings] = None
) -> Optional[RegistryAdapter]:
    """Return the adapter for a package URL type, or None when it is unsupported."""
    adapter_cls = ADAPTERS.get(purl_type)
    if adapter_cls is None:
        return None
    return adapter_cls(client, settings)
