"""
Custom exceptions for the fission.io module.

Boundaries
- fission.core.errors (SchemaError, GrammarError, VersionMismatch) is raised by core
  validators and schema version checks.
- fission.io raises Io* errors for filesystem/writer/manifest/checkpoint concerns:
  - IoConfigError: invalid or unsupported configuration.
  - IoSchemaError: a frame failed validation against fission.core.tables descriptors.
  - IoWriteError: atomic write path failed (tmp write/fsync/rename).
  - IoManifestError: manifest or checkpoint load/write/rebuild errors.
"""

from __future__ import annotations


class IoError(Exception):
    """Base class for IO-layer failures, distinct from fission.core errors."""


class IoConfigError(IoError):
    """
    Raised when IO configuration is invalid or unsupported.

    Examples:
        - Block bucket size < 1
        - Unknown compression codec
    """


class IoSchemaError(IoError):
    """
    Raised when a DataFrame fails schema validation against a table descriptor.

    Notes:
        Scalar columns (i64, str) may be safely cast before this is raised.
    """


class IoWriteError(IoError):
    """
    Raised when an append/write operation fails to complete atomically.

    Notes:
        The write path is tmp parquet → fsync → os.replace(tmp, final). Temporary files
        are removed on a best-effort basis before this is raised.
    """


class IoManifestError(IoError):
    """Raised when a table manifest or run checkpoint is missing, corrupt, or inconsistent."""
