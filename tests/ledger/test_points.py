from __future__ import annotations

import pytest

from fission.core.errors import InvalidInput
from fission.ledger import BalanceLedger, Condition, PointsAccrualEngine


@pytest.fixture
def engine(registry):
    balances = BalanceLedger(registry)
    return balances, PointsAccrualEngine(registry, balances)


def test_end_to_end_accrual(engine) -> None:
    balances, points = engine
    balances.apply(100, "X", "A", 100)

    first = points.tick(101, 0)
    assert [(r.address, r.block_height, r.balance) for r in first.rows] == [("X", 101, 200)]

    balances.apply(102, "X", "A", -40)
    balances.apply(102, "Y", "A", 40)
    second = points.tick(103, 0)

    assert [(r.address, r.balance) for r in second.rows] == [("X", 320), ("Y", 80)]
    assert second.outcomes == []
    assert [(r.block_height, r.balance, r.is_current) for r in points.history("X")] == [
        (101, 200, False),
        (103, 320, True),
    ]


def test_accrual_sums_across_denoms(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "A", 3)
    balances.apply(10, "X", "B", 4)

    result = points.tick(11, 999)
    assert [(r.address, r.balance) for r in result.rows] == [("X", 3 * 2 + 4)]


def test_matured_tokens_stop_accruing(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "B", 4)

    assert points.tick(11, 999).rows[0].balance == 4
    # Maturity is exclusive: at t == maturity the token no longer accrues.
    result = points.tick(12, 1_000)
    assert result.rows == []
    assert result.matured == ["B"]
    assert points.points("X") == 4


def test_excluded_addresses_never_accrue(engine) -> None:
    balances, points = engine
    balances.apply(10, "amm", "A", 1_000)
    balances.apply(10, "X", "A", 1)

    result = points.tick(11, 0)
    assert [r.address for r in result.rows] == ["X"]
    assert points.current("amm") is None


def test_untracked_denom_does_not_accrue(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "untrn", 1_000)
    assert points.tick(11, 0).rows == []


def test_zero_total_keeps_chain_sparse(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "A", 5)
    points.tick(11, 0)
    balances.apply(12, "X", "A", -5)

    for h in range(13, 20):
        assert points.tick(h, 0).rows == []
    assert len(points.history("X")) == 1
    assert points.as_of("X", 18).balance == 10
    assert points.as_of("X", 18).block_height == 11
    assert points.as_of("X", 10) is None


def test_newer_balance_version_is_a_consistency_violation(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "A", 5)
    balances.apply(12, "Y", "A", 7)

    result = points.tick(12, 0)

    assert [o.condition for o in result.outcomes] == [Condition.CONSISTENCY_VIOLATION]
    assert result.outcomes[0].address == "Y"
    assert [(r.address, r.balance) for r in result.rows] == [("X", 10)]


def test_repeated_or_older_tick_is_rejected(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "A", 5)
    points.tick(11, 0)

    for h in (11, 5):
        result = points.tick(h, 0)
        assert result.rejected
        assert result.rows == []
    assert points.points("X") == 10
    assert points.last_tick_height == 11


def test_negative_totals_never_decrease_points(engine) -> None:
    balances, points = engine
    balances.apply(10, "X", "A", 5)
    points.tick(11, 0)
    balances.apply(12, "X", "A", -20)

    result = points.tick(13, 0)

    assert result.rows == []
    assert [o.condition for o in result.outcomes] == [Condition.NEGATIVE_BALANCE]
    assert points.points("X") == 10


def test_points_are_monotone_over_many_ticks(engine) -> None:
    balances, points = engine
    moves = {10: 5, 14: -3, 17: 9, 21: -11}
    for h in range(10, 25):
        points.tick(h, 0)
        if h in moves:
            balances.apply(h, "X", "A", moves[h])

    chain = points.history("X")
    assert all(a.balance <= b.balance for a, b in zip(chain, chain[1:]))
    assert all(a.block_height < b.block_height for a, b in zip(chain, chain[1:]))


def test_tick_rejects_malformed_arguments(engine) -> None:
    _, points = engine
    with pytest.raises(InvalidInput):
        points.tick("11", 0)
    with pytest.raises(InvalidInput):
        points.tick(11, None)
    assert points.last_tick_height is None


def test_restore_sets_last_tick_height(engine, registry) -> None:
    balances, points = engine
    balances.apply(10, "X", "A", 5)
    points.tick(11, 0)
    points.tick(12, 0)

    restored = PointsAccrualEngine(registry, BalanceLedger(registry))
    assert restored.restore(points.rows(), last_tick_height=15) == 2
    assert restored.last_tick_height == 15
    assert restored.points("X") == 20
    assert restored.tick(15, 0).rejected

    with pytest.raises(ValueError, match="newer than last tick"):
        PointsAccrualEngine(registry, BalanceLedger(registry)).restore(
            points.rows(), last_tick_height=11
        )
