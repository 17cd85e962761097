from __future__ import annotations

import pytest

from fission.core.errors import InvalidInput
from fission.ledger import BalanceLedger, Condition


def _conditions(result) -> list[Condition]:
    return [o.condition for o in result.outcomes]


def test_apply_creates_first_version(registry) -> None:
    ledger = BalanceLedger(registry)
    result = ledger.apply(100, "X", "A", 100)

    assert result.applied and result.created
    assert result.outcomes == []
    assert result.row.block_height == 100
    assert result.row.balance == 100
    assert result.row.is_current


def test_apply_same_height_coalesces_in_place(registry) -> None:
    ledger = BalanceLedger(registry)
    ledger.apply(100, "X", "A", 100)
    result = ledger.apply(100, "X", "A", -30)

    assert not result.created
    assert result.row.balance == 70
    assert [r.balance for r in ledger.history("X", "A")] == [70]


def test_apply_later_height_closes_and_opens(registry) -> None:
    ledger = BalanceLedger(registry)
    ledger.apply(100, "X", "A", 100)
    ledger.apply(102, "X", "A", -40)

    history = ledger.history("X", "A")
    assert [(r.block_height, r.balance, r.is_current) for r in history] == [
        (100, 100, False),
        (102, 60, True),
    ]


def test_apply_out_of_order_leaves_state_unchanged(registry) -> None:
    ledger = BalanceLedger(registry)
    ledger.apply(100, "X", "A", 100)
    ledger.apply(102, "X", "A", 5)
    before = ledger.history("X", "A")

    result = ledger.apply(101, "X", "A", 1)

    assert not result.applied
    assert _conditions(result) == [Condition.OUT_OF_ORDER_VERSION]
    assert result.outcomes[0].dropped
    assert ledger.history("X", "A") == before


def test_balance_equals_sum_of_applied_deltas(registry) -> None:
    ledger = BalanceLedger(registry)
    deltas = [(100, 10), (100, -3), (101, 25), (104, -2), (104, 7), (110, 1)]
    for height, delta in deltas:
        ledger.apply(height, "X", "A", delta)

    assert ledger.balance("X", "A") == sum(d for _, d in deltas)
    heights = [r.block_height for r in ledger.history("X", "A")]
    assert heights == sorted(set(heights))
    assert sum(r.is_current for r in ledger.history("X", "A")) == 1


def test_negative_balance_is_applied_and_flagged(registry) -> None:
    ledger = BalanceLedger(registry)
    result = ledger.apply(100, "X", "A", -5)

    assert result.applied
    assert result.row.balance == -5
    assert _conditions(result) == [Condition.NEGATIVE_BALANCE]
    assert not result.outcomes[0].dropped


def test_unknown_denom_is_kept_and_reported(registry) -> None:
    ledger = BalanceLedger(registry)
    result = ledger.apply(100, "X", "untrn", 5)

    assert result.applied
    assert _conditions(result) == [Condition.UNKNOWN_DENOM]
    assert ledger.balance("X", "untrn") == 5


def test_no_registry_means_no_unknown_denom_outcome() -> None:
    assert BalanceLedger().apply(1, "X", "anything", 1).outcomes == []


def test_balances_are_arbitrary_precision(registry) -> None:
    ledger = BalanceLedger(registry)
    big = 10**40
    ledger.apply(1, "X", "A", big)
    ledger.apply(2, "X", "A", big)
    assert ledger.balance("X", "A") == 2 * big


@pytest.mark.parametrize(
    "args",
    [
        ("100", "X", "A", 1),
        (100, "", "A", 1),
        (100, "X", None, 1),
        (100, "X", "A", 1.5),
        (100, "X", "A", True),
        (-1, "X", "A", 1),
    ],
)
def test_malformed_arguments_raise_invalid_input(registry, args) -> None:
    ledger = BalanceLedger(registry)
    with pytest.raises(InvalidInput):
        ledger.apply(*args)
    assert len(ledger) == 0


def test_current_balances_excludes_addresses(registry) -> None:
    ledger = BalanceLedger(registry)
    ledger.apply(100, "X", "A", 1)
    ledger.apply(100, "amm", "A", 50)
    ledger.apply(100, "Y", "B", 2)

    rows = ledger.current_balances("A", excluding_addresses={"amm"})
    assert [(r.address, r.balance) for r in rows] == [("X", 1)]
    assert ledger.current_balances("missing") == []


def test_as_of_and_current_queries(registry) -> None:
    ledger = BalanceLedger(registry)
    ledger.apply(100, "X", "A", 100)
    ledger.apply(102, "X", "A", -40)

    assert ledger.as_of("X", "A", 99) is None
    assert ledger.as_of("X", "A", 101).balance == 100
    assert not ledger.as_of("X", "A", 101).is_current
    assert ledger.as_of("X", "A", 500).is_current
    assert ledger.current("X", "A").balance == 60
    assert ledger.current("Y", "A") is None
    assert ledger.balance("Y", "A") == 0


def test_restore_rebuilds_denom_index(registry) -> None:
    source = BalanceLedger(registry)
    source.apply(100, "X", "A", 10)
    source.apply(101, "X", "A", 5)
    source.apply(101, "Y", "A", 3)

    restored = BalanceLedger(registry)
    assert restored.restore(source.rows()) == 3
    assert restored.balance("X", "A") == 15
    assert {r.address for r in restored.current_balances("A")} == {"X", "Y"}
    # Restored versions are already persisted.
    assert restored.sealed_rows(1_000) == []
