"""
Reporting and export utilities.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Iterable

import pandas as pd

from .models import EnrichmentResult, PackageRecord


logger = logging.getLogger(__name__)

RECORD_COLUMNS = [
    "id",
    "purl",
    "type",
    "namespace",
    "name",
    "version",
    "most_recent_version",
    "most_recent_version_published_at",
    "this_version_published_at",
    "number_major_versions_behind_head",
    "number_minor_versions_behind_head",
    "number_patch_versions_behind_head",
    "number_versions_behind_head",
    "updated_at",
]

BULK_SUMMARY_COLUMNS = [
    "purl",
    "status",
    "package_status",
    "updated_record_ids",
    "created_record_id",
    "error",
]


def print_summary(result: EnrichmentResult) -> None:
    logger.info("=" * 60)
    logger.info("ENRICHMENT RESULTS")
    logger.info("=" * 60)
    logger.info("Correlation id: %s", result.correlation_id)
    logger.info("Status: %s", result.status)
    for purl, status in result.packages.items():
        logger.info("%s: %s", purl, status.value)
    logger.info("-" * 60)
    logger.info("Updated records: %s", len(result.updated_ids))
    logger.info("Created records: %s", len(result.created_ids))
    if result.message:
        logger.info("Message: %s", result.message)
    logger.info("=" * 60)


def save_results_json(result: EnrichmentResult, output_dir: Path, stem: str) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    results_file = output_dir / f"{stem}_results.json"
    with open(results_file, 'w') as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    return results_file


def _drop_timezones(df: pd.DataFrame) -> pd.DataFrame:
    for col in df.columns:
        if isinstance(df[col].dtype, pd.DatetimeTZDtype):
            df[col] = df[col].dt.tz_convert("UTC").dt.tz_localize(None)
    return df


def records_frame(records: Iterable[PackageRecord]) -> pd.DataFrame:
    df = pd.DataFrame([asdict(record) for record in records], columns=RECORD_COLUMNS)
    for col in ("most_recent_version_published_at", "this_version_published_at", "updated_at"):
        df[col] = pd.to_datetime(df[col], utc=True)
    return _drop_timezones(df)


def export_records_csv(records: Iterable[PackageRecord], output_dir: Path, stem: str) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    records_file = output_dir / f"{stem}_records.csv"
    records_frame(records).to_csv(records_file, index=False)
    return records_file


def export_bulk_summary_csv(
    rows: Iterable[Dict],
    output_dir: Path,
    input_csv: Path,
) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    summary_file = output_dir / f"{input_csv.stem}_bulk_results.csv"
    df = pd.DataFrame(list(rows), columns=BULK_SUMMARY_COLUMNS)
    df.to_csv(summary_file, index=False)
    return summary_file


def summary_row(purl: str, result: EnrichmentResult) -> Dict:
    package_status = result.packages.get(purl)
    return {
        "purl": purl,
        "status": result.status,
        "package_status": package_status.value if package_status else None,
        "updated_record_ids": " ".join(str(i) for i in result.updated_ids),
        "created_record_id": result.created_id,
        "error": result.message,
    }

