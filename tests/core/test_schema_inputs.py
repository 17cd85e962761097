import pytest
from pydantic import ValidationError

from fission.core.errors import InvalidInput
from fission.core.grammar import TokenType, VersionState
from fission.core.schema import (
    BalanceDelta,
    PointsBalanceRow,
    TokenBalanceRow,
    TokenDescriptor,
    TransferRow,
    parse_delta,
    parse_tick,
)


def test_parse_delta_accepts_decimal_strings() -> None:
    big = "123456789012345678901234567890"
    d = parse_delta({"block_height": 1, "address": "X", "denom": "A", "delta": f"-{big}"})
    assert d.delta == -int(big)
    assert parse_delta(d) is d


@pytest.mark.parametrize(
    "obj",
    [
        {"block_height": 1, "address": "X"},
        {"block_height": -1, "address": "X", "denom": "A", "delta": 1},
        {"block_height": 1, "address": "", "denom": "A", "delta": 1},
        {"block_height": 1, "address": "X", "denom": "A", "delta": "1e3"},
        {"block_height": 1, "address": "X", "denom": "A", "delta": 1.5},
        {"block_height": 1, "address": "X", "denom": "A", "delta": True},
        {"block_height": 1, "address": "X", "denom": "A", "delta": 1, "memo": "x"},
    ],
)
def test_parse_delta_rejects_malformed(obj) -> None:
    with pytest.raises(InvalidInput, match="malformed balance delta"):
        parse_delta(obj)


def test_parse_tick() -> None:
    tick = parse_tick({"block_height": 5, "block_time_seconds": 1725638534})
    assert tick.block_height == 5
    with pytest.raises(InvalidInput, match="malformed block tick"):
        parse_tick({"block_height": 5})


def test_balance_delta_is_frozen() -> None:
    d = BalanceDelta(block_height=1, address="X", denom="A", delta=1)
    with pytest.raises(ValidationError):
        d.delta = 2  # type: ignore[misc]


def test_token_descriptor_maturity_alias_and_type_normalization() -> None:
    d = TokenDescriptor.model_validate(
        {"denom": "A", "type": "StakedYield", "multiplier": "3", "maturity": 100}
    )
    assert d.type is TokenType.STAKED_YIELD
    assert d.multiplier == 3
    assert d.maturity_epoch_seconds == 100
    assert not d.is_matured(99)
    assert d.is_matured(100)


def test_version_rows_expose_state() -> None:
    open_row = TokenBalanceRow(address="X", denom="A", block_height=1, balance=-3, is_current=True)
    closed = PointsBalanceRow(address="X", block_height=1, balance="10", is_current=False)
    assert open_row.state is VersionState.OPEN
    assert closed.state is VersionState.CLOSED
    assert closed.balance == 10


def test_points_rows_reject_negative_balance() -> None:
    with pytest.raises(ValidationError):
        PointsBalanceRow(address="X", block_height=1, balance=-1, is_current=True)


def test_event_records_require_positive_amount() -> None:
    with pytest.raises(ValidationError):
        TransferRow(
            block_height=1,
            block_time_seconds=0,
            event_index=0,
            sender="a",
            recipient="b",
            denom="A",
            amount=0,
        )
