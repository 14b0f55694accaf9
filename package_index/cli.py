"""
Command-line interface for package index enrichment.
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd
from tqdm import tqdm

from .config import IndexSettings
from .errors import PackageIdentityError
from .http_client import RegistryClient
from .models import DatasourceEvent, PackageRecord
from .reporting import (
    export_bulk_summary_csv,
    export_records_csv,
    print_summary,
    save_results_json,
    summary_row,
)
from .repository import InMemoryPackageRepository
from .service import HTTP_INTERNAL_SERVER_ERROR, PackageIndexService, parse_package_url


logger = logging.getLogger(__name__)


def _load_input_csv(path: Path) -> List[Dict[str, str]]:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    if "purl" not in df.columns:
        raise ValueError(f"{path} has no 'purl' column")
    return df.to_dict("records")


def _seed_records(repository: InMemoryPackageRepository, purl_strings: Iterable[str]) -> None:
    """Track each versioned package URL as a package record."""
    known = {record.identity for record in repository.all_records()}
    for purl_string in purl_strings:
        try:
            purl = parse_package_url(purl_string)
        except PackageIdentityError:
            # left for the enrichment run to report against its event
            continue
        record = PackageRecord(
            type=purl.type,
            namespace=purl.namespace,
            name=purl.name,
            version=purl.version,
            purl=purl_string,
        )
        if record.identity in known:
            continue
        known.add(record.identity)
        repository.save(record)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Report how far packages trail the latest release on their registries"
    )

    parser.add_argument(
        "--purl",
        action="append",
        default=[],
        help="Package URL to enrich, e.g. pkg:npm/left-pad@1.0.0 (repeatable)"
    )

    parser.add_argument(
        "--input-csv",
        default=None,
        help="CSV file with a 'purl' column; each row is enriched as its own event"
    )

    parser.add_argument(
        "--output-dir",
        default="./output",
        help="Output directory for results. Default: ./output"
    )

    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Give up on a throttled registry after this many attempts. Default: retry forever"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.purl and not args.input_csv:
        parser.error("provide at least one --purl or an --input-csv")
    if args.max_attempts is not None and args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = IndexSettings.from_env()
    if args.max_attempts is not None:
        settings = settings.with_overrides(max_attempts=args.max_attempts)

    output_dir = Path(args.output_dir)
    repository = InMemoryPackageRepository()
    client = RegistryClient(settings)
    service = PackageIndexService(repository, client=client, settings=settings)

    try:
        if args.input_csv:
            failed = _run_bulk(Path(args.input_csv), repository, service, output_dir)
        else:
            failed = _run_single(args.purl, repository, service, output_dir)
    finally:
        client.close()

    records_file = export_records_csv(repository.all_records(), output_dir, "packages")
    logger.info("Package records saved to: %s", records_file)

    if failed:
        sys.exit(1)


def _run_single(
    purl_strings: List[str],
    repository: InMemoryPackageRepository,
    service: PackageIndexService,
    output_dir: Path,
) -> bool:
    _seed_records(repository, purl_strings)
    repository.add_event(DatasourceEvent(id=1, package_urls=list(purl_strings)))
    result = service.enrich_event(str(uuid.uuid4()), service.clock(), 1)

    print_summary(result)
    results_file = save_results_json(result, output_dir, "enrichment")
    logger.info("Results saved to: %s", results_file)
    return result.status >= HTTP_INTERNAL_SERVER_ERROR


def _run_bulk(
    input_csv: Path,
    repository: InMemoryPackageRepository,
    service: PackageIndexService,
    output_dir: Path,
) -> bool:
    rows = _load_input_csv(input_csv)
    purl_strings = [row["purl"] for row in rows]
    _seed_records(repository, purl_strings)

    summary = []
    failed = False
    for event_id, purl_string in enumerate(tqdm(purl_strings, unit="package"), start=1):
        repository.add_event(DatasourceEvent(id=event_id, package_urls=[purl_string]))
        result = service.enrich_event(str(uuid.uuid4()), service.clock(), event_id)
        failed = failed or result.status >= HTTP_INTERNAL_SERVER_ERROR
        summary.append(summary_row(purl_string, result))

    summary_file = export_bulk_summary_csv(summary, output_dir, input_csv)
    logger.info("Bulk summary saved to: %s", summary_file)
    return failed


if __name__ == "__main__":
    main()
