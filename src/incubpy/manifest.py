"""Build and validate manifests describing the artifacts of an analysis run."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pyarrow as pa  # type: ignore[import-untyped]
import pyarrow.parquet as pq  # type: ignore[import-untyped]

from .utils import file_sha256

SPEC_VERSION = "1.0.0"
MANIFEST_NAME = "manifest.json"


def _created_at_utc() -> str:
    """Return UTC ISO-8601 timestamp, honoring SOURCE_DATE_EPOCH when provided."""
    epoch = os.getenv("SOURCE_DATE_EPOCH")
    if epoch is not None:
        dt = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
    else:
        dt = datetime.now(timezone.utc)
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _map_portable_dtype(dtype: pa.DataType) -> str:
    """Map Arrow dtypes to portable manifest dtypes."""
    if pa.types.is_dictionary(dtype):
        return "categorical"
    if pa.types.is_date32(dtype) or pa.types.is_date64(dtype):
        return "date"
    if pa.types.is_timestamp(dtype):
        return "datetime"
    if pa.types.is_integer(dtype):
        return "int64"
    if pa.types.is_floating(dtype):
        return "float64"
    if pa.types.is_boolean(dtype):
        return "bool"
    return "string"


def _file_entry(path: Path) -> dict[str, Any]:
    """Build a manifest entry for one written artifact."""
    entry: dict[str, Any] = {
        "name": path.stem,
        "file": path.name,
        "format": path.suffix.lstrip(".").lower(),
        "size_bytes": path.stat().st_size,
        "sha256": file_sha256(path),
    }
    if path.suffix.lower() == ".parquet":
        parquet_file = pq.ParquetFile(path)
        entry["rows"] = parquet_file.metadata.num_rows
        entry["schema"] = [
            {"name": field.name, "dtype": _map_portable_dtype(field.type)}
            for field in parquet_file.schema_arrow
        ]
    return entry


def validate_manifest(manifest: dict[str, Any]) -> None:
    """Validate core manifest structure."""
    required = {"spec_version", "package_version", "created_at", "parameters", "files"}
    missing = required - set(manifest)
    if missing:
        raise ValueError(f"Invalid manifest: missing keys {sorted(missing)}")
    files = manifest["files"]
    if not isinstance(files, list) or not files:
        raise ValueError("Invalid manifest: 'files' must be a non-empty list")
    for item in files:
        if not isinstance(item, dict):
            raise ValueError("Invalid manifest: each file entry must be an object")
        for key in ("name", "file", "format", "size_bytes", "sha256"):
            if key not in item:
                raise ValueError(f"Invalid manifest file entry: missing '{key}'")


def build_manifest(
    files: list[Path], parameters: dict[str, Any], package_version: str, out_path: Path
) -> dict[str, Any]:
    """Build and write a deterministic manifest for the artifacts of a run.

    Args:
        files: Artifacts written by the run.
        parameters: Analysis settings (seed, replicates, family, input checksum...).
        package_version: Version of incubpy that produced the artifacts.
        out_path: Path for the output ``manifest.json``.

    Returns:
        The generated manifest dictionary.
    """
    if not files:
        raise ValueError("No artifacts to describe")
    entries = sorted((_file_entry(path) for path in files), key=lambda item: item["file"])
    manifest: dict[str, Any] = {
        "spec_version": SPEC_VERSION,
        "package_version": package_version,
        "created_at": _created_at_utc(),
        "parameters": parameters,
        "files": entries,
    }
    validate_manifest(manifest)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps(manifest, indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8"
    )
    return manifest
