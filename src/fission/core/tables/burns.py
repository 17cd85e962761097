"""Canonical descriptor for the 'burns' table (tokenfactory burn records per coin)."""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

BURNS_DESC = TableDescriptor(
    name=TableName.BURNS,
    columns={
        "bucket": "i64",
        "block_height": "i64",
        "block_time_seconds": "i64",
        "tx_hash": "str",
        "event_index": "i64",
        "sender": "str",
        "denom": "str",
        "amount": "str",
    },
    partitioning=["bucket"],
    required=[
        "bucket",
        "block_height",
        "block_time_seconds",
        "event_index",
        "sender",
        "denom",
        "amount",
    ],
    nullable=["tx_hash"],
    key=[],
    version=SCHEMA_V,
)
