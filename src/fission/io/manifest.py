"""
Per-table manifests: the list of immutable Parquet parts that make up a table.

A manifest lives at ``<table_dir>/manifest.json`` and is the read path's source of
truth; parts that are on disk but not listed are invisible until
``rebuild_manifest_from_fs`` is run.

JSON shape::

    {
      "table": "token_balances",
      "run_id": "pion-1",
      "schema_version": "0.1@2024-09-02",
      "updated_at": "ISO-8601",
      "buckets": {
        "000185": {
          "height_min": 18538216, "height_max": 18539999, "row_count": 4, "byte_size": 2810,
          "parts": [{"path": "part-<uuid>.parquet", "rows": 4, "bytes": 2810,
                     "height_min": 18538216, "height_max": 18539999, "created_at": "..."}]
        }
      }
    }

Bucket aggregates are written for human readers; on load they are recomputed from the
parts.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

import polars as pl
import pyarrow.parquet as pq

from fission.core.versioning import schema_version_tag

from .config import IoSettings
from .errors import IoManifestError
from .fs import write_bytes_atomic
from .paths import bucket_dir, manifest_path, parse_bucket_dir, table_dir


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True, slots=True)
class PartRecord:
    """
    One Parquet part file.

    Attributes:
        path (str): File name relative to its bucket directory.
        rows (int): Row count.
        bytes (int): File size on disk.
        height_min (int): Lowest block height in the part.
        height_max (int): Highest block height in the part.
        created_at (str): ISO-8601 write time.
    """

    path: str
    rows: int
    bytes: int
    height_min: int
    height_max: int
    created_at: str


@dataclass(slots=True)
class Bucket:
    """Parts written under one ``bucket=NNNNNN`` directory, in write order."""

    bucket_id: int
    parts: list[PartRecord] = field(default_factory=list)

    @property
    def height_min(self) -> int:
        return min(p.height_min for p in self.parts)

    @property
    def height_max(self) -> int:
        return max(p.height_max for p in self.parts)

    @property
    def row_count(self) -> int:
        return sum(p.rows for p in self.parts)

    @property
    def byte_size(self) -> int:
        return sum(p.bytes for p in self.parts)

    def overlaps(self, height_min: int | None, height_max: int | None) -> bool:
        if not self.parts:
            return False
        if height_min is not None and self.height_max < height_min:
            return False
        return height_max is None or self.height_min <= height_max


@dataclass(slots=True)
class TableManifest:
    """
    In-memory form of ``manifest.json``.

    Attributes:
        table (str): Canonical table name.
        run_id (str): Run the table belongs to.
        schema_version (str): Compact schema tag of the listed parts.
        updated_at (str): ISO-8601 time of the last change.
        buckets (dict[int, Bucket]): Bucket id -> parts.
    """

    table: str
    run_id: str
    schema_version: str
    updated_at: str
    buckets: dict[int, Bucket] = field(default_factory=dict)

    @property
    def row_count(self) -> int:
        return sum(b.row_count for b in self.buckets.values())

    @property
    def height_max(self) -> int | None:
        filled = [b.height_max for b in self.buckets.values() if b.parts]
        return max(filled) if filled else None

    def add_part(self, bucket_id: int, part: PartRecord) -> None:
        self.buckets.setdefault(bucket_id, Bucket(bucket_id)).parts.append(part)
        self.updated_at = _utc_now_iso()

    def overlapping(
        self, height_min: int | None = None, height_max: int | None = None
    ) -> list[Bucket]:
        """Buckets whose height range intersects ``[height_min, height_max]``, by id."""
        return [
            self.buckets[k]
            for k in sorted(self.buckets)
            if self.buckets[k].overlaps(height_min, height_max)
        ]

    def to_json_obj(self) -> dict[str, Any]:
        buckets: dict[str, Any] = {}
        for bucket_id in sorted(self.buckets):
            b = self.buckets[bucket_id]
            if not b.parts:
                continue
            buckets[f"{bucket_id:06d}"] = {
                "height_min": b.height_min,
                "height_max": b.height_max,
                "row_count": b.row_count,
                "byte_size": b.byte_size,
                "parts": [asdict(p) for p in b.parts],
            }
        return {
            "table": self.table,
            "run_id": self.run_id,
            "schema_version": self.schema_version,
            "updated_at": self.updated_at,
            "buckets": buckets,
        }

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> TableManifest:
        buckets: dict[int, Bucket] = {}
        for key, raw in (obj.get("buckets") or {}).items():
            bucket_id = int(key)
            buckets[bucket_id] = Bucket(
                bucket_id, [PartRecord(**p) for p in raw.get("parts") or []]
            )
        return cls(
            table=obj["table"],
            run_id=obj["run_id"],
            schema_version=obj["schema_version"],
            updated_at=obj.get("updated_at") or _utc_now_iso(),
            buckets=buckets,
        )


def empty_manifest(table_name: str, run_id: str) -> TableManifest:
    return TableManifest(
        table=table_name,
        run_id=run_id,
        schema_version=schema_version_tag(),
        updated_at=_utc_now_iso(),
    )


def load_manifest(settings: IoSettings, run_id: str, table_name: str) -> TableManifest | None:
    """
    Load a table's manifest.

    Returns:
        TableManifest | None: None when the table has never been written.

    Raises:
        IoManifestError: If the file exists but is not a valid manifest.
    """
    mpath = manifest_path(settings, run_id, table_name)
    try:
        with open(mpath, encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as exc:
        raise IoManifestError(f"corrupt manifest at {mpath}: {exc}") from exc
    try:
        return TableManifest.from_json_obj(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise IoManifestError(f"corrupt manifest at {mpath}: {exc}") from exc


def write_manifest(
    settings: IoSettings, run_id: str, table_name: str, manifest: TableManifest
) -> None:
    """Replace manifest.json atomically (tmp write, fsync, rename)."""
    payload = json.dumps(manifest.to_json_obj(), indent=2).encode("utf-8")
    write_bytes_atomic(manifest_path(settings, run_id, table_name), payload)


def _describe_part(fpath: str) -> PartRecord | None:
    rows = pq.ParquetFile(fpath).metadata.num_rows
    if rows == 0:
        return None
    heights = pl.scan_parquet(fpath).select(
        pl.min("block_height").alias("lo"), pl.max("block_height").alias("hi")
    ).collect()
    return PartRecord(
        path=os.path.basename(fpath),
        rows=rows,
        bytes=os.path.getsize(fpath),
        height_min=int(heights["lo"][0]),
        height_max=int(heights["hi"][0]),
        created_at=_utc_now_iso(),
    )


def rebuild_manifest_from_fs(settings: IoSettings, run_id: str, table_name: str) -> TableManifest:
    """
    Rebuild a manifest from the part files on disk.

    Used after a crash between a part rename and its manifest update. Empty parts and
    leftover ``.tmp`` files are skipped.
    """
    manifest = empty_manifest(table_name, run_id)
    tdir = table_dir(settings, run_id, table_name)
    if not os.path.isdir(tdir):
        return manifest
    for name in sorted(os.listdir(tdir)):
        bucket_id = parse_bucket_dir(name)
        if bucket_id is None:
            continue
        bdir = bucket_dir(settings, run_id, table_name, bucket_id)
        for fn in sorted(os.listdir(bdir)):
            if not fn.endswith(".parquet"):
                continue
            part = _describe_part(os.path.join(bdir, fn))
            if part is not None:
                manifest.add_part(bucket_id, part)
    return manifest
