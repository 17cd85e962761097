"""
Run checkpoint persisted next to a run's tables.

The checkpoint records how far the persisted tables are complete, so a restarted Indexer
can restore its ledgers and continue from the following block:

{
  "run_id": "pion-1",
  "sealed_height": 18539999,
  "last_tick_height": 18539999,
  "registry_fingerprint": "<sha256>",
  "schema_version": "0.1@2024-09-02",
  "updated_at": "ISO-8601"
}

The checkpoint is written atomically after the table appends of a flush, so it never
claims rows that are not on disk.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from fission.core.versioning import ensure_compatible, schema_version_tag

from .config import IoSettings
from .errors import IoManifestError
from .fs import write_bytes_atomic
from .paths import checkpoint_path


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(slots=True)
class Checkpoint:
    """
    Progress marker of a run.

    Attributes:
        run_id (str): Run identifier.
        sealed_height (int): Every version at or below this height is persisted.
        last_tick_height (int | None): Height of the last completed points tick.
        registry_fingerprint (str): TokenRegistry.fingerprint() of the run.
        schema_version (str): Schema version tag of the persisted tables.
        updated_at (str): ISO-8601 timestamp of the last write.
    """

    run_id: str
    sealed_height: int
    last_tick_height: int | None
    registry_fingerprint: str
    schema_version: str = field(default_factory=schema_version_tag)
    updated_at: str = field(default_factory=_utc_now_iso)


def load_checkpoint(settings: IoSettings, run_id: str) -> Checkpoint | None:
    """
    Load the run checkpoint if present.

    Raises:
        IoManifestError: If the file exists but is corrupt.
        VersionMismatch: If it was written under an incompatible schema version.
    """
    path = checkpoint_path(settings, run_id)
    if not os.path.exists(path):
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        cp = Checkpoint(
            run_id=str(data["run_id"]),
            sealed_height=int(data["sealed_height"]),
            last_tick_height=(
                None if data.get("last_tick_height") is None else int(data["last_tick_height"])
            ),
            registry_fingerprint=str(data["registry_fingerprint"]),
            schema_version=str(data["schema_version"]),
            updated_at=str(data.get("updated_at") or _utc_now_iso()),
        )
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise IoManifestError(f"corrupt checkpoint at {path}: {exc}") from exc
    ensure_compatible(cp.schema_version, what=f"checkpoint {path}")
    return cp


def write_checkpoint(settings: IoSettings, checkpoint: Checkpoint) -> None:
    """
    Persist the checkpoint atomically (tmp write → fsync → os.replace).

    Raises:
        IoManifestError: If the write fails.
    """
    path = checkpoint_path(settings, checkpoint.run_id)
    checkpoint.updated_at = _utc_now_iso()
    payload = json.dumps(asdict(checkpoint), indent=2).encode("utf-8")
    try:
        write_bytes_atomic(path, payload)
    except OSError as exc:
        raise IoManifestError(f"failed to write checkpoint {path}: {exc}") from exc
