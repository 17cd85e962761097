"""Canonical descriptor for the 'mints' table (tokenfactory mint records per coin)."""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

MINTS_DESC = TableDescriptor(
    name=TableName.MINTS,
    columns={
        "bucket": "i64",
        "block_height": "i64",
        "block_time_seconds": "i64",
        "tx_hash": "str",
        "event_index": "i64",
        "recipient": "str",
        "denom": "str",
        "amount": "str",
    },
    partitioning=["bucket"],
    required=[
        "bucket",
        "block_height",
        "block_time_seconds",
        "event_index",
        "recipient",
        "denom",
        "amount",
    ],
    nullable=["tx_hash"],
    key=[],
    version=SCHEMA_V,
)
