"""Canonical descriptor for the 'token_balances' table.

Purpose:
- One immutable row per sealed balance version of an (address, denom) pair.

Schema:
- columns:
    bucket i64, block_height i64, address str, denom str, balance str
- required: all columns
- key: ["address","denom"]
- partitioning: ["bucket"]

Notes:
- `balance` is the signed arbitrary-precision balance rendered as a decimal string.
- `is_current` is not persisted; readers derive it as the highest block_height per key.
"""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

TOKEN_BALANCES_DESC = TableDescriptor(
    name=TableName.TOKEN_BALANCES,
    columns={
        "bucket": "i64",
        "block_height": "i64",
        "address": "str",
        "denom": "str",
        "balance": "str",
    },
    partitioning=["bucket"],
    required=["bucket", "block_height", "address", "denom", "balance"],
    nullable=[],
    key=["address", "denom"],
    version=SCHEMA_V,
)
