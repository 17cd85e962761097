"""
fission.io — persistence layer for fission datasets.

## Responsibilities
- Materialize the canonical tables defined in fission.core.tables as append-only Parquet
  datasets (polars frames written through pyarrow).
- Guarantee atomic tmp→final renames, per-table manifests, block-height bucket
  partitioning and schema validation against fission.core descriptors.
- Persist the run checkpoint used to resume an interrupted replay.

## Public API
- IoSettings — configuration (env > TOML > defaults from fission.core.constants).
- Dataset — facade bound to a run supporting append/scan/read/current/manifest.
- Checkpoint — run progress marker.

## Examples
```python
import polars as pl
from fission.io import IoSettings, Dataset
from fission.core.grammar import TableName

ds = Dataset(IoSettings(root_dir="out"), run_id="pion-1")  # doctest: +SKIP
ds.append(TableName.POINTS_BALANCES, pl.DataFrame({  # doctest: +SKIP
    "block_height": [101], "address": ["X"], "balance": ["200"],
}))
ds.current(TableName.POINTS_BALANCES)  # doctest: +SKIP
```

## Notes
- Write path: tmp parquet → fsync → os.replace(tmp, final) on the same filesystem.
- Bucket dirs are zero-padded (bucket=001853).
"""

from __future__ import annotations

from .checkpoint import Checkpoint
from .config import IoSettings
from .dataset import Dataset

__all__ = [
    "IoSettings",
    "Dataset",
    "Checkpoint",
]
