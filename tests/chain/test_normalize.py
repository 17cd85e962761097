from __future__ import annotations

import pytest

from fission.chain import Coin, Discard, Normalized, RawBlock, RawEvent, normalize_block
from fission.chain import normalize_event, parse_coins
from fission.core.grammar import EventType
from fission.core.schema import BurnRow, MintRow, TransferRow

PT = "factory/neutron1minter/P/240906/xyk/5m/wstETH/axlWETH"
SYT = "staked-factory/neutron1minter/Y/240906/xyk/5m/wstETH/axlWETH"


def _event(type_: str, attributes, **kw) -> RawEvent:
    return RawEvent(
        type=type_,
        attributes=attributes,
        block_height=kw.pop("block_height", 100),
        block_time_seconds=kw.pop("block_time_seconds", 600),
        **kw,
    )


def test_parse_coins() -> None:
    assert parse_coins(f"100{PT}, 5untrn,") == [Coin(PT, 100), Coin("untrn", 5)]
    assert parse_coins("") == []
    assert parse_coins(f"0{SYT}") == [Coin(SYT, 0)]


@pytest.mark.parametrize("bad", ["abc", "10", "-5untrn", "5 untrn", "1.5untrn", "5u"])
def test_parse_coins_rejects_malformed_entries(bad: str) -> None:
    with pytest.raises(ValueError, match="invalid coin string"):
        parse_coins(bad)


def test_transfer_yields_debit_credit_and_record() -> None:
    raw = _event(
        "transfer",
        {"sender": "alice", "recipient": "bob", "amount": f"40{PT}"},
        tx_hash="AB12",
        event_index=3,
    )

    out = normalize_event(raw)

    assert isinstance(out, Normalized)
    assert out.event_type is EventType.TRANSFER
    assert [(d.address, d.denom, d.delta, d.block_height) for d in out.deltas] == [
        ("alice", PT, -40, 100),
        ("bob", PT, 40, 100),
    ]
    assert out.records == (
        TransferRow(
            block_height=100,
            block_time_seconds=600,
            tx_hash="AB12",
            event_index=3,
            sender="alice",
            recipient="bob",
            denom=PT,
            amount=40,
        ),
    )


def test_multi_coin_transfer_yields_one_pair_per_coin() -> None:
    raw = _event("transfer", {"sender": "a", "recipient": "b", "amount": f"1{PT},2{SYT}"})
    out = normalize_event(raw)
    assert [d.delta for d in out.deltas] == [-1, 1, -2, 2]
    assert [r.denom for r in out.records] == [PT, SYT]


def test_mint_and_burn() -> None:
    mint = normalize_event(_event("tf_mint", {"mint_to_address": "bob", "amount": f"7{PT}"}))
    burn = normalize_event(_event("tf_burn", {"burn_from_address": "bob", "amount": f"3{PT}"}))

    assert [(d.address, d.delta) for d in mint.deltas] == [("bob", 7)]
    assert isinstance(mint.records[0], MintRow)
    assert [(d.address, d.delta) for d in burn.deltas] == [("bob", -3)]
    assert isinstance(burn.records[0], BurnRow)


def test_bytes_attributes_are_decoded() -> None:
    raw = _event(
        "transfer",
        [
            {"key": b"sender", "value": b"alice"},
            {"key": b"recipient", "value": b"bob"},
            {"key": b"amount", "value": f"5{PT}".encode()},
        ],
    )
    assert raw.attribute("sender") == "alice"
    assert [d.address for d in normalize_event(raw).deltas] == ["alice", "bob"]


def test_invalid_utf8_attribute_is_discarded() -> None:
    raw = _event(
        "transfer",
        [{"key": "sender", "value": b"\xff"}, {"key": "recipient", "value": "b"}],
    )
    out = normalize_event(raw)
    assert isinstance(out, Discard)
    assert "UTF-8" in out.reason


@pytest.mark.parametrize(
    "type_,attributes,reason",
    [
        ("transfer", {"sender": "a", "amount": f"1{PT}"}, "missing attributes"),
        ("tf_mint", {"amount": f"1{PT}"}, "missing attributes"),
        ("tf_burn", {"burn_from_address": "a"}, "missing attributes"),
        ("transfer", {"sender": "a", "recipient": "b", "amount": "lots"}, "invalid coin"),
        ("transfer", {"sender": "a", "recipient": "b", "amount": " , "}, "no coins"),
        ("coin_spent", {"spender": "a", "amount": f"1{PT}"}, "unsupported event type"),
    ],
)
def test_unusable_events_are_discarded(type_, attributes, reason) -> None:
    out = normalize_event(_event(type_, attributes, block_height=42))
    assert isinstance(out, Discard)
    assert reason in out.reason
    assert out.block_height == 42
    assert out.event_type == type_


def test_denom_filter_and_zero_amounts() -> None:
    raw = _event(
        "transfer", {"sender": "a", "recipient": "b", "amount": f"5untrn,0{SYT},2{PT}"}
    )

    out = normalize_event(raw, denoms={PT, SYT})
    assert [d.denom for d in out.deltas] == [PT, PT]

    only_untracked = _event("transfer", {"sender": "a", "recipient": "b", "amount": "5untrn"})
    dropped = normalize_event(only_untracked, denoms={PT})
    assert isinstance(dropped, Discard)
    assert dropped.reason == "no tracked coins"


def test_normalize_block_indexes_events() -> None:
    block = RawBlock.model_validate(
        {
            "block_height": 7,
            "block_time_seconds": 42,
            "events": [
                {"type": "message", "attributes": {"action": "send"}},
                {"type": "tf_mint", "attributes": {"mint_to_address": "x", "amount": f"1{PT}"}},
            ],
        }
    )

    tick, items = normalize_block(block)

    assert (tick.block_height, tick.block_time_seconds) == (7, 42)
    assert isinstance(items[0], Discard)
    assert items[1].records[0].event_index == 1
    assert items[1].deltas[0].block_height == 7
