"""
Frozen table descriptors for fission canonical datasets (Parquet/Arrow-like).

Notes:
    - Descriptors declare column names/dtypes, partitioning, required/nullable
      columns, version-chain keys, and the pinned schema version.
    - Column names are lower_snake.
    - Partitioning is always ["bucket"]; IO layers compute bucket as
      block_height // BLOCK_BUCKET_SIZE.
    - Core is zero-IO (stdlib only); downstream IO (fission.io) materializes schemas.
"""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from .burns import BURNS_DESC
from .mints import MINTS_DESC
from .points_balances import POINTS_BALANCES_DESC
from .token_balances import TOKEN_BALANCES_DESC
from .transfers import TRANSFERS_DESC

__all__ = [
    "TableDescriptor",
    "TOKEN_BALANCES_DESC",
    "POINTS_BALANCES_DESC",
    "TRANSFERS_DESC",
    "MINTS_DESC",
    "BURNS_DESC",
    "get_table",
    "list_tables",
]


# Registry
_TABLES: dict[TableName, TableDescriptor] = {
    TOKEN_BALANCES_DESC.name: TOKEN_BALANCES_DESC,
    POINTS_BALANCES_DESC.name: POINTS_BALANCES_DESC,
    TRANSFERS_DESC.name: TRANSFERS_DESC,
    MINTS_DESC.name: MINTS_DESC,
    BURNS_DESC.name: BURNS_DESC,
}


def get_table(name: TableName) -> TableDescriptor:
    """
    Look up a table descriptor by canonical name.

    Args:
        name (TableName): Canonical table name.

    Returns:
        TableDescriptor: Descriptor for the requested table.
    """
    return _TABLES[name]


def list_tables() -> list[TableDescriptor]:
    """
    Return all registered table descriptors.

    Returns:
        list[TableDescriptor]: List of all descriptors in registry order.
    """
    return list(_TABLES.values())
