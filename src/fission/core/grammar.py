"""
Canonical fission grammar and helpers.

Defines token types, chain event types, version states, table names and the frozen table
descriptor, together with zero-IO validators/helpers used across the stack.

Responsibilities
- Define enums with lower_snake serialized values.
- Provide normalization helpers for enum-like strings (including the PascalCase spellings
  used by registry files, e.g. "StakedYield").
- Declare the TableDescriptor contract consumed by fission.io.

Design principles
-----------------
1) One naming standard:
   - Enum classes: PascalCase
   - Enum member names: UPPER_SNAKE (Python constants)
   - Enum serialized values (wire/Parquet): lower_snake
   - Fields & columns elsewhere: lower_snake

2) Version chains share one state machine:
   - OPEN (is_current=True) → CLOSED (is_current=False), exactly once, triggered by the
     creation of the next version for the same key. CLOSED is terminal.

Downstream usage
----------------
- `fission.core.schema` validators call `token_type_from_value`.
- `fission.chain.normalize` dispatches on `EventType`.
- Tests use `ensure_all_enum_values_lower_snake` to enforce naming invariants.

Examples
--------
>>> from fission.core.grammar import token_type_from_value, TokenType, to_lower_snake
>>> token_type_from_value("StakedYield") == TokenType.STAKED_YIELD
True
>>> to_lower_snake("LP")
'lp'
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from .errors import GrammarError
from .versioning import SchemaVersion

__all__ = [
    "TokenType",
    "EventType",
    "VersionState",
    "TableName",
    "TableDescriptor",
    # helpers/validators
    "is_lower_snake",
    "assert_lower_snake",
    "to_lower_snake",
    "token_type_from_value",
    "event_type_from_value",
    "ensure_all_enum_values_lower_snake",
]


# ============================================================================
# TOKENS
# ============================================================================


class TokenType(Enum):
    """
    Kind of tracked token. Principal/yield tokens are split from a yield-bearing asset;
    staked yield tokens are yield tokens deposited for staking; LP tokens are pool shares.
    """

    PRINCIPAL = "principal"
    YIELD = "yield"
    STAKED_YIELD = "staked_yield"
    LP = "lp"


# ============================================================================
# CHAIN EVENTS
# ============================================================================


class EventType(Enum):
    """
    Raw chain event types understood by the normalizer (bank + tokenfactory modules).
    """

    TRANSFER = "transfer"
    TF_MINT = "tf_mint"
    TF_BURN = "tf_burn"


# ============================================================================
# VERSION STATES
# ============================================================================


class VersionState(Enum):
    """State of a balance or points version (OPEN ⇔ is_current)."""

    OPEN = "open"
    CLOSED = "closed"


# ============================================================================
# TABLE NAMES (LOWER_SNAKE)
# ============================================================================


class TableName(Enum):
    """
    Canonical Parquet table names. Enforced by fission.io.
    """

    TOKEN_BALANCES = "token_balances"
    POINTS_BALANCES = "points_balances"
    TRANSFERS = "transfers"
    MINTS = "mints"
    BURNS = "burns"


@dataclass(frozen=True)
class TableDescriptor:
    """
    Frozen descriptor for a canonical fission table.

    Attributes:
        name (TableName): Canonical table identifier (lower_snake serialized).
        columns (dict[str, str]): Mapping of lower_snake column_name -> dtype
            where dtype ∈ {"i64","str"}.
        partitioning (list[str]): Partition columns (always ["bucket"]).
        required (list[str]): Columns that must exist and be populated (non-null).
        nullable (list[str]): Columns permitted to contain nulls.
        key (list[str]): Columns identifying one version chain (empty for event tables).
        version (SchemaVersion): Schema version pinned to fission.core.versioning.SCHEMA_V.

    Notes:
        - required ⊆ columns; (required ∪ nullable) ⊆ columns; required ∩ nullable = ∅
          are guarded by tests.
        - Arbitrary-precision integers (balances, amounts) use the "str" dtype.
    """

    name: TableName
    columns: dict[str, str]  # "i64","str"
    partitioning: list[str]  # always ["bucket"]
    required: list[str]
    nullable: list[str]
    key: list[str]
    version: SchemaVersion


# ============================================================================
# Helpers & Validators (zero I/O)
# ============================================================================

_LOWER_SNAKE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")
_CAMEL_BOUNDARY_RE: Final[re.Pattern[str]] = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def is_lower_snake(value: str) -> bool:
    """
    Check whether a string is lower_snake.

    Examples:
      >>> is_lower_snake("staked_yield")
      True
      >>> is_lower_snake("StakedYield")
      False
    """
    return bool(_LOWER_SNAKE_RE.match(value or ""))


def assert_lower_snake(value: str, what: str = "value") -> None:
    """
    Validate that a string is lower_snake.

    Raises:
      GrammarError: If value is not lower_snake.
    """
    if not is_lower_snake(value):
        raise GrammarError(f"{what} must be lower_snake (got: {value!r})")


def to_lower_snake(value: str) -> str:
    """
    Convert PascalCase/camelCase/kebab tokens to lower_snake.

    Args:
      value (str): Candidate token (e.g., "StakedYield", "staked-yield", "LP").

    Returns:
      str: lower_snake form (e.g., "staked_yield", "lp").
    """
    s = (value or "").strip().replace("-", "_").replace(" ", "_")
    s = _CAMEL_BOUNDARY_RE.sub("_", s)
    return s.lower()


def token_type_from_value(s: str) -> TokenType:
    """
    Parse a token type string into a TokenType.

    Accepts lower_snake values and the PascalCase spellings used by registry files.

    Raises:
      GrammarError: If s is not a known token type.
    """
    norm = to_lower_snake(s)
    try:
        return TokenType(norm)
    except ValueError as exc:
        allowed = sorted(t.value for t in TokenType)
        raise GrammarError(f"token type must be one of {allowed} (got {s!r})") from exc


def event_type_from_value(s: str) -> EventType | None:
    """
    Parse a raw chain event type, returning None for event types the indexer ignores.
    """
    try:
        return EventType((s or "").strip().lower())
    except ValueError:
        return None


def ensure_all_enum_values_lower_snake(enums: Iterable[type[Enum]]) -> None:
    """
    Assert that every enum member's value is lower_snake.

    Raises:
      AssertionError: If any enum member has a non-lower_snake value.

    Examples:
      >>> ensure_all_enum_values_lower_snake([TokenType, EventType, VersionState, TableName])
    """
    for E in enums:
        for m in E:
            if not is_lower_snake(m.value):
                raise AssertionError(
                    f"{E.__name__}.{m.name} has non-lower_snake value: {m.value!r}"
                )
