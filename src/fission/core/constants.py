"""
fission core IO-facing defaults.

Defines partitioning, compression and indexing defaults consumed by downstream layers.
This module is zero-IO and uses only the Python standard library.

Notes:
    - Downstream writers/readers compute bucket as ``block_height // BLOCK_BUCKET_SIZE``.
    - Parquet/Arrow writers size row groups and set compression according to these values.
"""

from __future__ import annotations

__all__ = [
    "BLOCK_BUCKET_SIZE",
    "ROW_GROUP_SIZE",
    "COMPRESSION",
    "START_BLOCK",
    "FLUSH_EVERY_N_BLOCKS",
]

# Number of blocks grouped together for partitioning (bucket = block_height // BLOCK_BUCKET_SIZE).
BLOCK_BUCKET_SIZE: int = 10_000

# Target row group size for Parquet writes.
ROW_GROUP_SIZE: int = 128 * 1024

# Default compression codec for persisted tables.
COMPRESSION: str = "zstd"

# First block indexed on the pion-1 testnet deployment.
START_BLOCK: int = 18_538_216

# How many processed blocks the Indexer buffers before persisting sealed versions.
FLUSH_EVERY_N_BLOCKS: int = 100
