from __future__ import annotations

from pathlib import Path

import pytest

from fission.core.errors import SchemaError
from fission.core.grammar import TokenType
from fission.core.schema import TokenDescriptor
from fission.ledger import PION1_REGISTRY, TokenRegistry
from fission.ledger.registry import AMM_ADDRESS, MINTER_ADDRESS, ROUTER_ADDRESS


def test_from_toml_reads_registry_table(tmp_path: Path) -> None:
    p = tmp_path / "registry.toml"
    p.write_text(
        """
        [registry]
        excluded_addresses = ["amm"]

        [[registry.tokens]]
        denom = "A"
        type = "StakedYield"
        multiplier = 3
        maturity = 1725638534
        """
    )

    reg = TokenRegistry.from_toml(p)

    assert len(reg) == 1
    assert reg.get("A").type is TokenType.STAKED_YIELD
    assert reg.get("A").multiplier == 3
    assert reg.is_excluded("amm")
    assert reg.denoms() == frozenset({"A"})


def test_from_toml_accepts_root_level_keys(tmp_path: Path) -> None:
    p = tmp_path / "registry.toml"
    p.write_text('[[tokens]]\ndenom = "A"\ntype = "lp"\nmultiplier = 1\nmaturity = 5\n')
    assert TokenRegistry.from_toml(p).is_tracked("A")


def test_from_toml_invalid_content(tmp_path: Path) -> None:
    p = tmp_path / "registry.toml"
    p.write_text("tokens = [")
    with pytest.raises(SchemaError, match="invalid registry TOML"):
        TokenRegistry.from_toml(p)


@pytest.mark.parametrize(
    "cfg",
    [
        {"tokens": [{"denom": "A", "type": "bogus", "multiplier": 1, "maturity": 1}]},
        {"tokens": [{"denom": "A", "type": "yield", "multiplier": -1, "maturity": 1}]},
        {"tokens": [{"denom": "A", "type": "yield", "multiplier": 1}]},
        {"tokens": "A"},
        {"excluded_addresses": "amm"},
    ],
)
def test_from_mapping_rejects_malformed_entries(cfg) -> None:
    with pytest.raises(SchemaError):
        TokenRegistry.from_mapping(cfg)


def test_duplicate_denoms_are_rejected() -> None:
    d = TokenDescriptor(denom="A", type="yield", multiplier=1, maturity_epoch_seconds=1)
    with pytest.raises(SchemaError, match="duplicate denom"):
        TokenRegistry(descriptors=(d, d))


def test_unmatured_uses_strict_comparison() -> None:
    reg = TokenRegistry.from_mapping(
        {"tokens": [{"denom": "A", "type": "yield", "multiplier": 1, "maturity": 100}]}
    )
    assert [d.denom for d in reg.unmatured(99)] == ["A"]
    assert reg.unmatured(100) == []
    for t in (99, 100, 101):
        assert bool(reg.unmatured(t)) is not reg.get("A").is_matured(t)


def test_fingerprint_is_order_independent() -> None:
    tokens = [
        {"denom": "A", "type": "yield", "multiplier": 1, "maturity": 1},
        {"denom": "B", "type": "principal", "multiplier": 2, "maturity": 2},
    ]
    one = TokenRegistry.from_mapping({"tokens": tokens, "excluded_addresses": ["x", "y"]})
    two = TokenRegistry.from_mapping(
        {"tokens": list(reversed(tokens)), "excluded_addresses": ["y", "x"]}
    )
    changed = TokenRegistry.from_mapping({"tokens": tokens, "excluded_addresses": ["x"]})

    assert one.fingerprint() == two.fingerprint()
    assert one.fingerprint() != changed.fingerprint()


def test_pion1_registry_contents() -> None:
    assert len(PION1_REGISTRY) == 9
    assert PION1_REGISTRY.excluded_addresses == {MINTER_ADDRESS, AMM_ADDRESS, ROUTER_ADDRESS}
    types = [d.type for d in PION1_REGISTRY]
    assert types.count(TokenType.PRINCIPAL) == 3
    assert types.count(TokenType.YIELD) == 3
    assert types.count(TokenType.STAKED_YIELD) == 3
    assert all(d.multiplier == 1 for d in PION1_REGISTRY)
    assert {d.maturity_epoch_seconds for d in PION1_REGISTRY} == {
        1725638534,
        1726243334,
        1728230534,
    }
    assert PION1_REGISTRY.is_tracked(
        f"staked-factory/{MINTER_ADDRESS}/Y/240906/xyk/5m/wstETH/axlWETH"
    )
