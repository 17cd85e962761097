"""
Frame validation against fission.core.tables descriptors.

A frame passes when:
- every required column is present and null-free;
- in strict mode no column falls outside the descriptor;
- each "i64"/"str" column casts cleanly to Int64/Utf8;
- token quantities ("balance", "amount") are base-10 integer strings, so values beyond
  64 bits survive the round trip through Parquet.
"""

from __future__ import annotations

import polars as pl

from fission.core.grammar import TableName
from fission.core.tables import TableDescriptor, get_table

from .errors import IoSchemaError

_DTYPES: dict[str, pl.DataType] = {"i64": pl.Int64(), "str": pl.Utf8()}
_QUANTITY_COLUMNS = ("balance", "amount")
_INTEGER_PATTERN = r"^-?[0-9]+$"


def _cast(df: pl.DataFrame, col: str, dtype_name: str) -> pl.DataFrame:
    target = _DTYPES.get(dtype_name)
    if target is None:
        raise IoSchemaError(f"unknown descriptor dtype {dtype_name!r} for column {col!r}")
    if df.schema[col] == target:
        return df
    try:
        return df.with_columns(pl.col(col).cast(target, strict=True))
    except pl.exceptions.PolarsError as exc:
        raise IoSchemaError(f"failed to cast column {col!r} to {target}: {exc}") from exc


def _check_quantities(df: pl.DataFrame) -> None:
    for col in _QUANTITY_COLUMNS:
        if col not in df.columns:
            continue
        bad = df.filter(
            pl.col(col).is_not_null() & ~pl.col(col).str.contains(_INTEGER_PATTERN)
        )
        if bad.height:
            sample = bad.get_column(col).head(3).to_list()
            raise IoSchemaError(f"column {col!r} must hold integer strings, got {sample!r}")


def validate_frame_against_descriptor(
    df: pl.DataFrame,
    desc: TableDescriptor,
    *,
    strict: bool = True,
) -> pl.DataFrame:
    """
    Validate a Polars DataFrame against a TableDescriptor.

    Args:
        df (pl.DataFrame): Frame to validate.
        desc (TableDescriptor): Canonical descriptor from fission.core.tables.
        strict (bool): Enforce exact column set (no extras) when True.

    Returns:
        pl.DataFrame: Frame with casts applied and columns in descriptor order
        (extras, when allowed, trail).

    Raises:
        IoSchemaError: On missing required columns, nulls in required columns, extras in
            strict mode, a failed cast, or a non-integer quantity.
    """
    missing = [c for c in desc.required if c not in df.columns]
    if missing:
        raise IoSchemaError(f"missing required columns: {missing!r}")
    if strict:
        allowed = set(desc.required) | set(desc.nullable)
        extras = [c for c in df.columns if c not in allowed]
        if extras:
            raise IoSchemaError(
                f"unexpected columns present: {extras!r} (allowed={sorted(allowed)!r})"
            )

    for col, dtype_name in desc.columns.items():
        if col in df.columns:
            df = _cast(df, col, dtype_name)

    nulls = [c for c in desc.required if df.get_column(c).null_count()]
    if nulls:
        raise IoSchemaError(f"required columns contain nulls: {nulls!r}")
    _check_quantities(df)

    ordered = [c for c in desc.columns if c in df.columns]
    return df.select(ordered + [c for c in df.columns if c not in desc.columns])


def validate_frame_for_table(
    df: pl.DataFrame,
    table: TableName | str,
    *,
    strict: bool = True,
) -> pl.DataFrame:
    """Validate a DataFrame against the descriptor registered for table."""
    tname = table.value if isinstance(table, TableName) else str(table)
    return validate_frame_against_descriptor(df, get_table(TableName(tname)), strict=strict)
