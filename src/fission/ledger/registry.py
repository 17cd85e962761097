"""
TokenRegistry — immutable configuration of tracked tokens and excluded addresses.

The registry is constructed once at startup (from code, a mapping, or a TOML file) and
injected into the ledgers; it is never ambient global state and never mutated.

TOML layout (``registry.toml`` or any file passed to ``from_toml``)::

    [registry]
    excluded_addresses = ["neutron1...minter", "neutron1...amm"]

    [[registry.tokens]]
    denom = "factory/neutron1.../P/240906/xyk/5m/wstETH/axlWETH"
    type = "Principal"
    multiplier = 1
    maturity = 1725638534
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from fission.core.errors import SchemaError
from fission.core.hashing import hash_mapping
from fission.core.schema import TokenDescriptor

__all__ = [
    "TokenRegistry",
    "PION1_REGISTRY",
    "MINTER_ADDRESS",
    "AMM_ADDRESS",
    "ROUTER_ADDRESS",
]


@dataclass(frozen=True)
class TokenRegistry:
    """
    Tracked token descriptors plus protocol-owned addresses that never accrue points.

    Attributes:
        descriptors (tuple[TokenDescriptor, ...]): Tracked tokens; denoms are unique.
        excluded_addresses (frozenset[str]): Addresses exempt from points accrual.

    Raises:
        SchemaError: If two descriptors share a denom.

    Examples:
        >>> from fission.ledger.registry import TokenRegistry
        >>> reg = TokenRegistry.from_mapping({
        ...     "excluded_addresses": ["amm"],
        ...     "tokens": [{"denom": "A", "type": "yield", "multiplier": 2, "maturity": 10}],
        ... })
        >>> reg.is_tracked("A"), reg.is_excluded("amm"), len(reg.unmatured(10))
        (True, True, 0)
    """

    descriptors: tuple[TokenDescriptor, ...] = ()
    excluded_addresses: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Normalize containers so callers may pass lists/sets.
        object.__setattr__(self, "descriptors", tuple(self.descriptors))
        object.__setattr__(self, "excluded_addresses", frozenset(self.excluded_addresses))
        seen: set[str] = set()
        for d in self.descriptors:
            if d.denom in seen:
                raise SchemaError(f"duplicate denom in token registry: {d.denom!r}")
            seen.add(d.denom)
        object.__setattr__(self, "_by_denom", {d.denom: d for d in self.descriptors})

    def __len__(self) -> int:
        return len(self.descriptors)

    def __iter__(self):
        return iter(self.descriptors)

    def get(self, denom: str) -> TokenDescriptor | None:
        return self._by_denom.get(denom)  # type: ignore[attr-defined]

    def is_tracked(self, denom: str) -> bool:
        return denom in self._by_denom  # type: ignore[attr-defined]

    def is_excluded(self, address: str) -> bool:
        return address in self.excluded_addresses

    def denoms(self) -> frozenset[str]:
        return frozenset(self._by_denom)  # type: ignore[attr-defined]

    def unmatured(self, block_time_seconds: int) -> list[TokenDescriptor]:
        """Descriptors still accruing at block_time_seconds (maturity strictly later)."""
        return [d for d in self.descriptors if not d.is_matured(block_time_seconds)]

    def fingerprint(self) -> str:
        """Stable SHA-256 over the canonical JSON form of the registry."""
        return hash_mapping(
            {
                "tokens": sorted(
                    (d.model_dump(mode="json") for d in self.descriptors),
                    key=lambda t: t["denom"],
                ),
                "excluded_addresses": sorted(self.excluded_addresses),
            }
        )

    # ---------------------------------------------------------------------
    # Loaders
    # ---------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> TokenRegistry:
        """
        Build a registry from a loose mapping with "tokens" and "excluded_addresses".

        Raises:
            SchemaError: On malformed token entries or duplicate denoms.
        """
        raw_tokens = cfg.get("tokens") or []
        if not isinstance(raw_tokens, list):
            raise SchemaError("registry 'tokens' must be a list of tables")
        descriptors: list[TokenDescriptor] = []
        for i, entry in enumerate(raw_tokens):
            if not isinstance(entry, Mapping):
                raise SchemaError(f"registry token #{i} must be a table, got {entry!r}")
            try:
                descriptors.append(TokenDescriptor.model_validate(dict(entry)))
            except ValidationError as exc:
                raise SchemaError(f"invalid registry token #{i}: {exc}") from exc
        excluded = cfg.get("excluded_addresses") or []
        if isinstance(excluded, str) or not isinstance(excluded, Iterable):
            raise SchemaError("registry 'excluded_addresses' must be a list of strings")
        return cls(descriptors=tuple(descriptors), excluded_addresses=frozenset(map(str, excluded)))

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str]) -> TokenRegistry:
        """
        Load a registry from a TOML file.

        Accepts either a top-level [registry] table or the keys at the document root.

        Raises:
            FileNotFoundError: If the file does not exist.
            SchemaError: On malformed content.
        """
        p = Path(path)
        with p.open("rb") as fh:
            try:
                data = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise SchemaError(f"invalid registry TOML {p}: {exc}") from exc
        cfg = data.get("registry", data)
        if not isinstance(cfg, dict):
            raise SchemaError(f"[registry] in {p} must be a table")
        return cls.from_mapping(cfg)


# ============================================================================
# pion-1 testnet deployment
# ============================================================================

MINTER_ADDRESS = "neutron1txq2q76veh5j0yxv308vr4etej996vvmnsux08ltl03jmwa27cjseldg28"
AMM_ADDRESS = "neutron16n4wghx4leskv95r48sx603vcg44ussrtuz9x4v4lah3vvnmlxeqzjl7vf"
ROUTER_ADDRESS = "neutron1a9vwa9t3np6wlcwhz4rfzyrkmuj8r389whyshh4ypm6l0s2pzkmqt224zg"

_PION1_SERIES = (
    ("240906", 1725638534),
    ("240913", 1726243334),
    ("241006", 1728230534),
)


def _pion1_tokens() -> tuple[TokenDescriptor, ...]:
    out: list[TokenDescriptor] = []
    for expiry, maturity in _PION1_SERIES:
        pool = f"{expiry}/xyk/5m/wstETH/axlWETH"
        for prefix, kind, token_type in (
            ("factory", "P", "principal"),
            ("factory", "Y", "yield"),
            ("staked-factory", "Y", "staked_yield"),
        ):
            out.append(
                TokenDescriptor(
                    denom=f"{prefix}/{MINTER_ADDRESS}/{kind}/{pool}",
                    type=token_type,
                    multiplier=1,
                    maturity_epoch_seconds=maturity,
                )
            )
    return tuple(out)


PION1_REGISTRY = TokenRegistry(
    descriptors=_pion1_tokens(),
    excluded_addresses=frozenset({MINTER_ADDRESS, AMM_ADDRESS, ROUTER_ADDRESS}),
)
