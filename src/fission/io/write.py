"""
Append-only writer for canonical fission tables.

Overview
- Computes bucket partitioning (bucket = block_height // IoSettings.block_bucket_size).
- Validates frames against fission.core.tables descriptors.
- Writes Parquet parts with atomic tmp → final rename and embeds schema version, table
  name and run id in the Parquet key-value metadata.
- Records every new part in the per-table manifest.json.

Notes
- Single-writer semantics (the Indexer); no inter-process locking.
- Persisted parts are immutable; nothing here rewrites or deletes a part.
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime
from typing import Any

import polars as pl
import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from fission.core.grammar import TableName
from fission.core.tables import get_table
from fission.core.versioning import schema_version_tag

from .config import IoSettings
from .errors import IoManifestError, IoSchemaError, IoWriteError
from .fs import fsync_path, remove_quietly
from .manifest import PartRecord, empty_manifest, load_manifest, write_manifest
from .paths import bucket_dir, part_paths
from .validate import validate_frame_against_descriptor

# Parquet key-value metadata keys.
META_SCHEMA_VERSION = b"fission_schema_version"
META_TABLE_NAME = b"fission_table_name"
META_RUN_ID = b"fission_run_id"


def _bucketed(df: pl.DataFrame, bucket_size: int) -> dict[int, pl.DataFrame]:
    """
    Split a frame by ``block_height // bucket_size``, adding the ``bucket`` column.

    Raises:
        IoSchemaError: If 'block_height' is missing, null or negative.
    """
    if "block_height" not in df.columns:
        raise IoSchemaError("column 'block_height' is required to compute bucket partitioning")
    heights = df.get_column("block_height").cast(pl.Int64, strict=False)
    if heights.null_count() or (heights.min() or 0) < 0:
        raise IoSchemaError("column 'block_height' must hold non-negative integers")
    df = df.with_columns((heights // bucket_size).alias("bucket"))
    return {
        int(key[0]): part
        for key, part in sorted(df.partition_by("bucket", as_dict=True).items())
    }


def _write_part(
    settings: IoSettings, run_id: str, tname: str, bucket_id: int, table: pa.Table
) -> PartRecord:
    os.makedirs(bucket_dir(settings, run_id, tname, bucket_id), exist_ok=True)
    ppaths = part_paths(settings, run_id, tname, bucket_id, uuid.uuid4().hex)
    try:
        pq.write_table(
            table,
            ppaths.tmp_path,
            compression=settings.compression,
            row_group_size=settings.row_group_size,
        )
        fsync_path(ppaths.tmp_path)
        os.replace(ppaths.tmp_path, ppaths.final_path)
    except (OSError, pa.ArrowException) as exc:
        remove_quietly(ppaths.tmp_path)
        raise IoWriteError(f"failed to write parquet part {ppaths.final_path}: {exc}") from exc

    heights = table.column("block_height")
    return PartRecord(
        path=os.path.basename(ppaths.final_path),
        rows=table.num_rows,
        bytes=os.path.getsize(ppaths.final_path),
        height_min=int(pc.min(heights).as_py()),
        height_max=int(pc.max(heights).as_py()),
        created_at=datetime.now(UTC).isoformat(),
    )


def append(
    settings: IoSettings,
    run_id: str,
    table: TableName | str,
    df: pl.DataFrame,
    *,
    validate_schema: bool = True,
) -> dict[str, Any]:
    """
    Append a DataFrame to a canonical table with atomic semantics.

    Each touched bucket gets one new part; the manifest is rewritten once after all
    parts are in place.

    Args:
        settings (IoSettings): IO configuration (root_dir, compression, etc.).
        run_id (str): Run identifier used to construct dataset paths.
        table (TableName | str): Canonical table name (enum or lower_snake string).
        df (pl.DataFrame): Frame to append. Must include 'block_height'.
        validate_schema (bool): Validate against the fission.core.tables descriptor.

    Returns:
        dict[str, Any]: ``{"table", "run_id", "rows", "buckets", "parts"}`` where
        ``parts`` lists ``{"bucket_id", "path", "rows", "bytes", "height_min",
        "height_max"}`` per written file (absolute path).

    Raises:
        IoSchemaError: Frame failed validation against the core descriptor.
        IoWriteError: Parquet write/fsync/atomic-rename failed.
        IoManifestError: Manifest write failed.
    """
    tname = table.value if isinstance(table, TableName) else str(table)
    desc = get_table(TableName(tname))
    summary: dict[str, Any] = {"table": tname, "run_id": run_id, "rows": 0, "buckets": []}
    summary["parts"] = []
    if df.is_empty():
        return summary

    buckets = _bucketed(df, settings.block_bucket_size)
    if validate_schema:
        buckets = {
            b: validate_frame_against_descriptor(part, desc, strict=settings.strict_schema)
            for b, part in buckets.items()
        }

    manifest = load_manifest(settings, run_id, tname) or empty_manifest(tname, run_id)
    meta = {
        META_SCHEMA_VERSION: schema_version_tag(desc.version).encode("utf-8"),
        META_TABLE_NAME: tname.encode("utf-8"),
        META_RUN_ID: run_id.encode("utf-8"),
    }

    for bucket_id, part_df in buckets.items():
        arrow_table = part_df.to_arrow()
        arrow_table = arrow_table.replace_schema_metadata(
            {**(arrow_table.schema.metadata or {}), **meta}
        )
        part = _write_part(settings, run_id, tname, bucket_id, arrow_table)
        manifest.add_part(bucket_id, part)
        summary["rows"] += part.rows
        summary["parts"].append(
            {
                "bucket_id": bucket_id,
                "path": os.path.join(bucket_dir(settings, run_id, tname, bucket_id), part.path),
                "rows": part.rows,
                "bytes": part.bytes,
                "height_min": part.height_min,
                "height_max": part.height_max,
            }
        )
    summary["buckets"] = sorted(buckets)

    try:
        write_manifest(settings, run_id, tname, manifest)
    except OSError as exc:
        raise IoManifestError(f"failed to write manifest for table {tname!r}: {exc}") from exc
    return summary
