"""
Read utilities for canonical fission tables.

Overview
- scan(): Polars LazyFrame over the parts listed in the table manifest, pruned by
  block height when a filter is given.
- read(): Collects a DataFrame from scan(), with an optional pre-collect row cap.
- current(): Derives the current version per key for version-chained tables.

Every part's Parquet footer is checked for a compatible schema version tag before it is
scanned; incompatible or untagged parts raise VersionMismatch.

Pruning semantics
- Buckets are pruned by height_min/height_max overlap with the filter.
- Row-level block_height filters are applied explicitly after pruning.
"""

from __future__ import annotations

import os
from typing import Any

import polars as pl
import pyarrow.parquet as pq

from fission.core.errors import VersionMismatch
from fission.core.grammar import TableName
from fission.core.tables import get_table
from fission.core.versioning import ensure_compatible

from .config import IoSettings
from .errors import IoManifestError
from .manifest import TableManifest, load_manifest
from .paths import bucket_dir
from .write import META_SCHEMA_VERSION


def _normalize_table_name(table: TableName | str) -> str:
    return table.value if isinstance(table, TableName) else str(table)


def _paths_from_manifest(
    settings: IoSettings,
    run_id: str,
    tname: str,
    manifest: TableManifest,
    where: dict[str, Any] | None,
) -> list[str]:
    where = where or {}
    lo, hi = where.get("height_min"), where.get("height_max")
    buckets = manifest.overlapping(
        None if lo is None else int(lo), None if hi is None else int(hi)
    )
    return [
        os.path.join(bucket_dir(settings, run_id, tname, b.bucket_id), part.path)
        for b in buckets
        for part in b.parts
    ]


def check_part_version(path: str) -> str:
    """
    Verify that a Parquet part carries a compatible schema version tag.

    Returns:
        str: The tag found.

    Raises:
        VersionMismatch: If the tag is missing or incompatible.
    """
    meta = pq.read_schema(path).metadata or {}
    raw = meta.get(META_SCHEMA_VERSION)
    if raw is None:
        raise VersionMismatch(f"parquet part {path} has no schema version tag")
    tag = raw.decode("utf-8")
    ensure_compatible(tag, what=f"parquet part {path}")
    return tag


def scan(
    settings: IoSettings,
    run_id: str,
    table: TableName | str,
    where: dict[str, Any] | None = None,
) -> pl.LazyFrame:
    """
    Create a LazyFrame scanning the table's parts.

    Args:
        settings (IoSettings): IO configuration used to resolve paths/layout.
        run_id (str): Run identifier.
        table (TableName | str): Canonical table name.
        where (dict[str, Any] | None): Optional filter with keys "height_min" and
            "height_max" (inclusive, either may be None).

    Returns:
        pl.LazyFrame: Lazy scan; an empty frame with the descriptor's columns when the
        table has no parts in range.

    Raises:
        IoManifestError: If the table has no manifest.
        VersionMismatch: If a selected part has an incompatible schema version.
    """
    tname = _normalize_table_name(table)
    manifest = load_manifest(settings, run_id, tname)
    if manifest is None:
        raise IoManifestError(
            f"manifest missing for table {tname!r} in run {run_id!r}; "
            "call Dataset.rebuild_manifest()"
        )
    ensure_compatible(manifest.schema_version, what=f"manifest of {tname!r}")
    paths = _paths_from_manifest(settings, run_id, tname, manifest, where)

    if not paths:
        return empty_frame(tname).lazy()

    for p in paths:
        check_part_version(p)

    lf = pl.scan_parquet(paths)
    if where:
        if where.get("height_min") is not None:
            lf = lf.filter(pl.col("block_height") >= int(where["height_min"]))
        if where.get("height_max") is not None:
            lf = lf.filter(pl.col("block_height") <= int(where["height_max"]))
    return lf


def read(
    settings: IoSettings,
    run_id: str,
    table: TableName | str,
    where: dict[str, Any] | None = None,
    limit: int | None = None,
) -> pl.DataFrame:
    """Collect scan(...), applying an optional row cap before collect()."""
    lf = scan(settings, run_id, table, where=where)
    if limit is not None:
        lf = lf.limit(int(limit))
    return lf.collect()


def current(df: pl.DataFrame, table: TableName | str) -> pl.DataFrame:
    """
    Derive `is_current` for a version-chained table frame.

    Persisted version rows are immutable; the current version of a key is the one with
    the highest block height. Returns df with an added boolean `is_current` column.

    Raises:
        ValueError: If the table is not version-chained (has no key columns).
    """
    desc = get_table(TableName(_normalize_table_name(table)))
    if not desc.key:
        raise ValueError(f"table {desc.name.value!r} has no version key")
    if df.is_empty():
        return df.with_columns(pl.lit(False).alias("is_current"))
    # A replay after an interrupted flush can persist the same version twice.
    df = df.unique(subset=[*desc.key, "block_height"], keep="last", maintain_order=True)
    return df.with_columns(
        (pl.col("block_height") == pl.col("block_height").max().over(desc.key)).alias(
            "is_current"
        )
    ).sort([*desc.key, "block_height"])


def empty_frame(table: TableName | str) -> pl.DataFrame:
    """Zero-row frame with the descriptor's columns and dtypes."""
    desc = get_table(TableName(_normalize_table_name(table)))
    dtypes = {"i64": pl.Int64, "str": pl.Utf8}
    return pl.DataFrame(schema={c: dtypes[t] for c, t in desc.columns.items()})
