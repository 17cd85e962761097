"""
Configuration for the fission.io module.

Defines IoSettings, a frozen dataclass carrying runtime configuration for persistence and
replay. Defaults are sourced from fission.core.constants.

Precedence: environment (FISSION_IO_*) > TOML > defaults.

TOML search order when no explicit path is given:
    1) ./fission.toml (either an [io] table or top-level keys)
    2) ./pyproject.toml under [tool.fission.io]

Notes
- Partitioning: bucket = block_height // block_bucket_size.
- Compression applies to Parquet writes via pyarrow in fission.io.write.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

from fission.core.constants import BLOCK_BUCKET_SIZE as CORE_BLOCK_BUCKET_SIZE
from fission.core.constants import COMPRESSION as CORE_COMPRESSION
from fission.core.constants import FLUSH_EVERY_N_BLOCKS as CORE_FLUSH_EVERY_N_BLOCKS
from fission.core.constants import ROW_GROUP_SIZE as CORE_ROW_GROUP_SIZE

from .errors import IoConfigError

Compression = Literal["zstd", "lz4", "snappy"]

_COMPRESSIONS = ("zstd", "lz4", "snappy")


@dataclass(frozen=True)
class IoSettings:
    """
    Runtime settings for the fission.io layer and the replay driver.

    Attributes:
        root_dir (str): Root under which run data is stored.
        block_bucket_size (int): Number of blocks per partition bucket.
        row_group_size (int): Parquet row group size used for writes.
        compression (Literal["zstd","lz4","snappy"]): Parquet compression codec.
        strict_schema (bool): Reject columns outside a table descriptor when True.
        flush_every_n_blocks (int): Blocks processed between Indexer flushes (>= 1).
        start_block (int): Blocks below this height are ignored by the Indexer.

    Raises:
        IoConfigError: If a numeric setting is out of range or compression is unknown.

    Examples:
        >>> from fission.io import IoSettings
        >>> IoSettings(root_dir="out", block_bucket_size=100)  # doctest: +ELLIPSIS
        IoSettings(...)
    """

    root_dir: str = "out"
    block_bucket_size: int = CORE_BLOCK_BUCKET_SIZE
    row_group_size: int = CORE_ROW_GROUP_SIZE  # 128k
    compression: Compression = CORE_COMPRESSION  # type: ignore[assignment]
    strict_schema: bool = True
    flush_every_n_blocks: int = CORE_FLUSH_EVERY_N_BLOCKS
    start_block: int = 0

    def __post_init__(self) -> None:
        if self.block_bucket_size < 1:
            raise IoConfigError(f"block_bucket_size must be >= 1, got {self.block_bucket_size}")
        if self.row_group_size < 1:
            raise IoConfigError(f"row_group_size must be >= 1, got {self.row_group_size}")
        if self.flush_every_n_blocks < 1:
            raise IoConfigError(
                f"flush_every_n_blocks must be >= 1, got {self.flush_every_n_blocks}"
            )
        if self.start_block < 0:
            raise IoConfigError(f"start_block must be >= 0, got {self.start_block}")
        if self.compression not in _COMPRESSIONS:
            raise IoConfigError(
                f"compression must be one of {list(_COMPRESSIONS)}, got {self.compression!r}"
            )

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: IoSettings, cfg: dict[str, Any] | None) -> IoSettings:
        """Apply a loose config mapping onto IoSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base

        def _bool(v: Any) -> bool:
            if isinstance(v, bool):
                return v
            if isinstance(v, (int, float)):
                return bool(v)
            if isinstance(v, str):
                return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
            return False

        def _int(key: str) -> int:
            try:
                return int(cfg[key])
            except (TypeError, ValueError) as exc:
                raise IoConfigError(f"{key} must be an integer, got {cfg[key]!r}") from exc

        if "root_dir" in cfg and isinstance(cfg["root_dir"], str):
            s = replace(s, root_dir=cfg["root_dir"])

        for key in ("block_bucket_size", "row_group_size", "flush_every_n_blocks", "start_block"):
            if key in cfg:
                s = replace(s, **{key: _int(key)})

        if "compression" in cfg and isinstance(cfg["compression"], str):
            s = replace(s, compression=cfg["compression"].strip().lower())  # type: ignore[arg-type]

        if "strict_schema" in cfg:
            s = replace(s, strict_schema=_bool(cfg["strict_schema"]))

        return s

    @classmethod
    def from_env(cls, base: IoSettings | None = None, prefix: str = "FISSION_IO_") -> IoSettings:
        """
        Build IoSettings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - FISSION_IO_ROOT_DIR
            - FISSION_IO_BLOCK_BUCKET_SIZE
            - FISSION_IO_ROW_GROUP_SIZE
            - FISSION_IO_COMPRESSION ("zstd" | "lz4" | "snappy")
            - FISSION_IO_STRICT_SCHEMA (1/0/true/false/yes/no/on/off)
            - FISSION_IO_FLUSH_EVERY_N_BLOCKS
            - FISSION_IO_START_BLOCK
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in (
            "root_dir",
            "block_bucket_size",
            "row_group_size",
            "compression",
            "strict_schema",
            "flush_every_n_blocks",
            "start_block",
        ):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> IoSettings:
        """
        Build IoSettings from a TOML file; defaults when no file is present.

        Raises:
            IoConfigError: If a candidate file exists but is not valid TOML.
        """
        s = cls()

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "fission.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise IoConfigError(f"invalid TOML in {p}: {exc}") from exc
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("fission", {}).get("io", {}) if isinstance(tool, dict) else None
            elif isinstance(data.get("io"), dict):
                cfg = data["io"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> IoSettings:
        """
        Load IoSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search fission.toml then
                pyproject.toml in the working directory.
        """
        s = cls.from_toml(path)
        return cls.from_env(base=s)
