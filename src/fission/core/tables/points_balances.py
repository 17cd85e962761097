"""Canonical descriptor for the 'points_balances' table.

Purpose:
- One immutable row per points version of an address (sparse chain: only blocks with a
  nonzero accrual produce a row).

Schema:
- columns:
    bucket i64, block_height i64, address str, balance str
- key: ["address"]
- partitioning: ["bucket"]
"""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

POINTS_BALANCES_DESC = TableDescriptor(
    name=TableName.POINTS_BALANCES,
    columns={
        "bucket": "i64",
        "block_height": "i64",
        "address": "str",
        "balance": "str",
    },
    partitioning=["bucket"],
    required=["bucket", "block_height", "address", "balance"],
    nullable=[],
    key=["address"],
    version=SCHEMA_V,
)
