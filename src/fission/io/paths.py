"""
Path and layout helpers for fission.io.

Layout (file protocol):
- <root>/runs/<run_id>/tables/<table_name>/bucket=001853/part-<UUID>.parquet
- <root>/runs/<run_id>/tables/<table_name>/manifest.json
- <root>/runs/<run_id>/checkpoint.json

A run is one indexing deployment (for example "pion-1"); its tables and checkpoint live
together so a replay can be resumed or discarded as a unit.

Partitioning: bucket = block_height // IoSettings.block_bucket_size, zero-padded to six
digits so directory listings sort by height.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Final

from .config import IoSettings

_BUCKET_PREFIX: Final[str] = "bucket="
_MANIFEST_NAME: Final[str] = "manifest.json"
_CHECKPOINT_NAME: Final[str] = "checkpoint.json"


def format_bucket_dir(bucket_id: int) -> str:
    """
    Format a bucket directory name as 'bucket=001853'.

    Raises:
        ValueError: If bucket_id < 0.
    """
    if bucket_id < 0:
        raise ValueError("bucket_id must be >= 0")
    return f"{_BUCKET_PREFIX}{bucket_id:06d}"


def parse_bucket_dir(name: str) -> int | None:
    """Inverse of format_bucket_dir; None for anything that is not a bucket dir."""
    if not name.startswith(_BUCKET_PREFIX):
        return None
    digits = name[len(_BUCKET_PREFIX) :]
    return int(digits) if digits.isdigit() else None


def run_root(settings: IoSettings, run_id: str) -> str:
    """Path "<root>/runs/<run_id>"."""
    return os.path.join(settings.root_dir, "runs", run_id)


def tables_root(settings: IoSettings, run_id: str) -> str:
    return os.path.join(run_root(settings, run_id), "tables")


def table_dir(settings: IoSettings, run_id: str, table_name: str) -> str:
    return os.path.join(tables_root(settings, run_id), table_name)


def manifest_path(settings: IoSettings, run_id: str, table_name: str) -> str:
    return os.path.join(table_dir(settings, run_id, table_name), _MANIFEST_NAME)


def checkpoint_path(settings: IoSettings, run_id: str) -> str:
    return os.path.join(run_root(settings, run_id), _CHECKPOINT_NAME)


def bucket_dir(settings: IoSettings, run_id: str, table_name: str, bucket_id: int) -> str:
    return os.path.join(table_dir(settings, run_id, table_name), format_bucket_dir(bucket_id))


@dataclass(slots=True, frozen=True)
class PartPaths:
    """
    Temporary and final file paths of one parquet part.

    Attributes:
        tmp_path (str): Path written first ("*.parquet.tmp").
        final_path (str): Path after the atomic rename ("*.parquet").
    """

    tmp_path: str
    final_path: str


def part_paths(
    settings: IoSettings, run_id: str, table_name: str, bucket_id: int, uuid_str: str
) -> PartPaths:
    base_dir = bucket_dir(settings, run_id, table_name, bucket_id)
    base_name = f"part-{uuid_str}.parquet"
    return PartPaths(
        tmp_path=os.path.join(base_dir, base_name + ".tmp"),
        final_path=os.path.join(base_dir, base_name),
    )


_RUN_ID_ALLOWED_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9._:-]+$")


def validate_run_id(run_id: str) -> str:
    """
    Validate that a run_id is safe for filesystem paths.

    Raises:
        ValueError: If run_id is empty or contains characters outside [A-Za-z0-9._:-].
    """
    s = run_id or ""
    if not s or not _RUN_ID_ALLOWED_RE.match(s) or s in (".", ".."):
        raise ValueError("run_id contains illegal characters; allowed pattern is [A-Za-z0-9._:-]+")
    return s

