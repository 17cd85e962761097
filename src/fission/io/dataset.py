"""
Dataset facade for fission.io.

Binds IoSettings and a run id and exposes append/scan/read/current/manifest helpers plus
the run checkpoint. fission.core remains the source of truth for table names,
descriptors and schema versioning.
"""

from __future__ import annotations

from typing import Any

import polars as pl

from fission.core.grammar import TableName

from .checkpoint import Checkpoint, load_checkpoint, write_checkpoint
from .config import IoSettings
from .manifest import TableManifest, load_manifest, rebuild_manifest_from_fs, write_manifest
from .paths import validate_run_id
from .read import current as _current
from .read import empty_frame
from .read import read as _read
from .read import scan as _scan
from .write import append as _append


def _tname(table: TableName | str) -> str:
    return table.value if isinstance(table, TableName) else str(table)


class Dataset:
    """
    Facade bound to a specific IoSettings and run_id.

    Notes:
        - Writes are append-only and atomic per part; manifests are updated per append
          and can be rebuilt from the filesystem.
        - Construction performs no I/O.

    Raises:
        ValueError: If run_id contains characters unsafe for paths.
    """

    def __init__(self, settings: IoSettings, run_id: str) -> None:
        self.settings = settings
        self.run_id = validate_run_id(run_id)

    def __repr__(self) -> str:
        return f"Dataset(root_dir={self.settings.root_dir!r}, run_id={self.run_id!r})"

    # ---------------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------------
    def append(
        self,
        table: TableName | str,
        df: pl.DataFrame,
        *,
        validate_schema: bool = True,
    ) -> dict[str, Any]:
        """
        Append a frame to a canonical table (see fission.io.write.append).

        Raises:
            fission.io.errors.IoSchemaError: Schema validation failed.
            fission.io.errors.IoWriteError: Parquet write/rename failed.
            fission.io.errors.IoManifestError: Manifest write failed.
        """
        return _append(self.settings, self.run_id, table, df, validate_schema=validate_schema)

    # ---------------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------------
    def scan(self, table: TableName | str, where: dict[str, Any] | None = None) -> pl.LazyFrame:
        """
        Lazy scan over the table, pruned by {"height_min", "height_max"} when given.
        """
        return _scan(self.settings, self.run_id, table, where=where)

    def read(
        self,
        table: TableName | str,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> pl.DataFrame:
        return _read(self.settings, self.run_id, table, where=where, limit=limit)

    def read_or_empty(
        self, table: TableName | str, where: dict[str, Any] | None = None
    ) -> pl.DataFrame:
        """Like read(), but a table that was never written yields an empty frame."""
        if self.manifest(table) is None:
            return empty_frame(table)
        return self.read(table, where=where)

    def current(self, table: TableName | str, where: dict[str, Any] | None = None) -> pl.DataFrame:
        """
        Read a version-chained table with `is_current` derived per key.

        With a height_max filter this yields the state as of that height.
        """
        return _current(self.read(table, where=where), table)

    # ---------------------------------------------------------------------
    # Manifest
    # ---------------------------------------------------------------------
    def manifest(self, table: TableName | str) -> TableManifest | None:
        return load_manifest(self.settings, self.run_id, _tname(table))

    def rebuild_manifest(self, table: TableName | str) -> TableManifest:
        """
        Rebuild the manifest by scanning parquet parts under the table directory and
        write it atomically. Slower; a recovery path.
        """
        tname = _tname(table)
        m = rebuild_manifest_from_fs(self.settings, self.run_id, tname)
        write_manifest(self.settings, self.run_id, tname, m)
        return m

    # ---------------------------------------------------------------------
    # Checkpoint
    # ---------------------------------------------------------------------
    def checkpoint(self) -> Checkpoint | None:
        return load_checkpoint(self.settings, self.run_id)

    def write_checkpoint(self, checkpoint: Checkpoint) -> None:
        if checkpoint.run_id != self.run_id:
            raise ValueError(
                f"checkpoint run_id {checkpoint.run_id!r} does not match dataset {self.run_id!r}"
            )
        write_checkpoint(self.settings, checkpoint)
