"""
Schema version metadata and helpers for fission tables and checkpoints.

Exposes the canonical schema version (SCHEMA_V) used across persisted artifacts and
provides compatibility checks plus the compact tag format embedded in Parquet key-value
metadata and run checkpoints. This module is zero-IO.

Notes:
    - Writers embed `schema_version_tag()` to tag produced artifacts.
    - Readers parse tags with `parse_schema_version_tag` and refuse incompatible data
      via `ensure_compatible` (raises VersionMismatch).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from .errors import VersionMismatch

SCHEMA_MAJOR_VERSION = 0
SCHEMA_MINOR_VERSION = 1


@dataclass(frozen=True)
class SchemaVersion:
    """
    Immutable semantic version with ISO release date for fission artifacts.

    Attributes:
        major (int): Non-negative major component signalling breaking changes.
        minor (int): Non-negative minor component for additive, non-breaking changes.
        date (str): ISO YYYY-MM-DD release date.

    Raises:
        ValueError: If any component is negative or the date is not ISO compliant.
    """

    major: int
    minor: int
    date: str  # ISO YYYY-MM-DD

    def __post_init__(self) -> None:
        if self.major < 0:
            raise ValueError(f"SchemaVersion major must be non-negative, got {self.major}")
        if self.minor < 0:
            raise ValueError(f"SchemaVersion minor must be non-negative, got {self.minor}")
        try:
            date.fromisoformat(self.date)
        except ValueError as exc:
            raise ValueError(
                f"SchemaVersion date must be ISO YYYY-MM-DD, got {self.date!r}"
            ) from exc


SCHEMA_V = SchemaVersion(SCHEMA_MAJOR_VERSION, SCHEMA_MINOR_VERSION, "2024-09-02")

_TAG_RE = re.compile(r"^(\d+)\.(\d+)@(\d{4}-\d{2}-\d{2})$")


def is_compatible(ver: SchemaVersion) -> bool:
    """
    Check whether a version matches the supported schema contract.

    Args:
        ver (SchemaVersion): Version descriptor to validate.

    Returns:
        bool: True if ver shares both the major and minor numbers with SCHEMA_V.

    Examples:
        >>> from fission.core.versioning import SCHEMA_V, is_compatible
        >>> is_compatible(SCHEMA_V)
        True
    """
    return ver.major == SCHEMA_V.major and ver.minor == SCHEMA_V.minor


def schema_version_tag(ver: SchemaVersion = SCHEMA_V) -> str:
    """
    Render a version as the compact tag stored in artifacts.

    Examples:
        >>> from fission.core.versioning import SchemaVersion, schema_version_tag
        >>> schema_version_tag(SchemaVersion(0, 1, "2024-09-02"))
        '0.1@2024-09-02'
    """
    return f"{ver.major}.{ver.minor}@{ver.date}"


def parse_schema_version_tag(tag: str) -> SchemaVersion:
    """
    Parse a tag produced by `schema_version_tag`.

    Raises:
        VersionMismatch: If the tag is not in "<major>.<minor>@<YYYY-MM-DD>" form.
    """
    m = _TAG_RE.match((tag or "").strip())
    if not m:
        raise VersionMismatch(f"malformed schema version tag: {tag!r}")
    return SchemaVersion(int(m.group(1)), int(m.group(2)), m.group(3))


def ensure_compatible(tag: str, what: str = "artifact") -> SchemaVersion:
    """
    Parse a tag and require compatibility with SCHEMA_V.

    Args:
        tag (str): Version tag read from an artifact.
        what (str): Label used in the error message.

    Returns:
        SchemaVersion: The parsed version.

    Raises:
        VersionMismatch: If the tag is malformed or incompatible.
    """
    ver = parse_schema_version_tag(tag)
    if not is_compatible(ver):
        raise VersionMismatch(
            f"{what} schema version {tag!r} is incompatible with {schema_version_tag()!r}"
        )
    return ver
