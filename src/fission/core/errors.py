"""
Core exception types raised by grammar validation, schema checks, and versioning.

Provides typed exceptions for core-domain failures:
- GrammarError for naming/normalization violations (e.g., unknown token type).
- SchemaError for schema-level constraints and cross-field rules.
- InvalidInput for structurally malformed deltas/ticks reaching the engine boundary.
- VersionMismatch for schema version or registry incompatibilities.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - Per-item skip conditions in the ledger (out-of-order deltas, consistency
      violations) are NOT exceptions; they are reported as structured outcomes
      (see fission.ledger.outcomes).

Examples:
    Catch a malformed delta at the engine boundary.

    >>> from fission.core.errors import InvalidInput
    >>> from fission.core.schema import parse_delta
    >>> try:
    ...     parse_delta({"block_height": 1, "address": "x"})
    ... except InvalidInput as e:
    ...     msg = str(e)
    >>> "balance delta" in msg
    True
"""

from __future__ import annotations

__all__ = [
    "SchemaError",
    "VersionMismatch",
    "GrammarError",
    "InvalidInput",
]


class SchemaError(ValueError):
    """Schema-level validation failure (shape, constraints, cross-field rules)."""


class VersionMismatch(RuntimeError):
    """Incompatible or unexpected schema version (or registry fingerprint) encountered."""


class GrammarError(ValueError):
    """Grammar/naming normalization failure (e.g., not lower_snake or invalid enum value)."""


class InvalidInput(SchemaError):
    """A balance delta or block tick is structurally malformed; no state may be mutated."""
