import pytest

from fission.core.errors import GrammarError
from fission.core.grammar import (
    EventType,
    TableName,
    TokenType,
    VersionState,
    assert_lower_snake,
    ensure_all_enum_values_lower_snake,
    event_type_from_value,
    to_lower_snake,
    token_type_from_value,
)


def test_all_enum_values_are_lower_snake() -> None:
    ensure_all_enum_values_lower_snake([TokenType, EventType, VersionState, TableName])


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Principal", TokenType.PRINCIPAL),
        ("Yield", TokenType.YIELD),
        ("StakedYield", TokenType.STAKED_YIELD),
        ("staked-yield", TokenType.STAKED_YIELD),
        ("LP", TokenType.LP),
        ("lp", TokenType.LP),
    ],
)
def test_token_type_accepts_registry_spellings(raw: str, expected: TokenType) -> None:
    assert token_type_from_value(raw) is expected


def test_token_type_rejects_unknown() -> None:
    with pytest.raises(GrammarError, match="token type must be one of"):
        token_type_from_value("Bond")


def test_event_type_from_value_ignores_unknown_types() -> None:
    assert event_type_from_value("transfer") is EventType.TRANSFER
    assert event_type_from_value(" TF_MINT ") is EventType.TF_MINT
    assert event_type_from_value("coin_received") is None
    assert event_type_from_value("") is None


def test_lower_snake_helpers() -> None:
    assert to_lower_snake("StakedYield") == "staked_yield"
    assert to_lower_snake("token balances") == "token_balances"
    assert_lower_snake("points_balances")
    with pytest.raises(GrammarError):
        assert_lower_snake("PointsBalances", what="table")
