"""
Structured outcomes reported by the ledger alongside its state changes.

Expected per-item skip conditions are never raised as exceptions. Every operation returns
a result carrying the (possibly empty) set of state changes plus zero or more Outcome
records; the surrounding pipeline decides whether a rate of anomalies should halt a run.

Conditions
- invalid_input: a delta or tick is structurally malformed; dropped, nothing mutated.
- out_of_order_version: a delta/tick targets a height older than the current version;
  dropped, nothing mutated.
- unknown_denom: a delta for a denom absent from the registry; applied, never accrues.
- consistency_violation: accrual observed a balance version at or after the tick height;
  that row's contribution is skipped.
- negative_balance: a debit drove a balance below zero; applied, flagged for observability.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from fission.core.schema import PointsBalanceRow, TokenBalanceRow

__all__ = [
    "Condition",
    "Outcome",
    "ApplyResult",
    "TickResult",
    "OutcomeStats",
]


class Condition(Enum):
    INVALID_INPUT = "invalid_input"
    OUT_OF_ORDER_VERSION = "out_of_order_version"
    UNKNOWN_DENOM = "unknown_denom"
    CONSISTENCY_VIOLATION = "consistency_violation"
    NEGATIVE_BALANCE = "negative_balance"


# Conditions where the offending item mutated nothing.
_DROPPED = frozenset(
    {
        Condition.INVALID_INPUT,
        Condition.OUT_OF_ORDER_VERSION,
        Condition.CONSISTENCY_VIOLATION,
    }
)

_LOG_LEVEL: dict[Condition, str] = {
    Condition.INVALID_INPUT: "ERROR",
    Condition.OUT_OF_ORDER_VERSION: "ERROR",
    Condition.CONSISTENCY_VIOLATION: "ERROR",
    Condition.NEGATIVE_BALANCE: "WARNING",
    Condition.UNKNOWN_DENOM: "DEBUG",
}


@dataclass(frozen=True, slots=True)
class Outcome:
    """
    One reported condition.

    Attributes:
        condition (Condition): What happened.
        block_height (int | None): Height of the offending item, when known.
        message (str): Human-readable detail.
        address (str | None): Address involved, if any.
        denom (str | None): Denom involved, if any.
    """

    condition: Condition
    block_height: int | None
    message: str
    address: str | None = None
    denom: str | None = None

    @property
    def dropped(self) -> bool:
        """True when the offending item was not applied."""
        return self.condition in _DROPPED

    def log(self) -> None:
        logger.bind(
            condition=self.condition.value,
            block_height=self.block_height,
            address=self.address,
            denom=self.denom,
        ).log(_LOG_LEVEL[self.condition], "{}: {}", self.condition.value, self.message)


@dataclass(slots=True)
class ApplyResult:
    """
    Result of BalanceLedger.apply.

    Attributes:
        row (TokenBalanceRow | None): The version created or updated; None if rejected.
        created (bool): True if a new version was opened (False when coalesced in place).
        outcomes (list[Outcome]): Conditions reported for this delta.
    """

    row: TokenBalanceRow | None
    created: bool = False
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.row is not None


@dataclass(slots=True)
class TickResult:
    """
    Result of PointsAccrualEngine.tick.

    Attributes:
        block_height (int): Tick height.
        rows (list[PointsBalanceRow]): New points versions (one per accruing address).
        matured (list[str]): Denoms skipped because they reached maturity.
        outcomes (list[Outcome]): Conditions reported during the tick.
    """

    block_height: int
    rows: list[PointsBalanceRow] = field(default_factory=list)
    matured: list[str] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def rejected(self) -> bool:
        """True when the whole tick was refused (no state changed)."""
        return any(o.condition is Condition.OUT_OF_ORDER_VERSION for o in self.outcomes)


class OutcomeStats:
    """Running per-condition counters kept by the Indexer."""

    def __init__(self) -> None:
        self._counts: Counter[Condition] = Counter()

    def record(self, outcomes: list[Outcome]) -> None:
        for o in outcomes:
            self._counts[o.condition] += 1

    def count(self, condition: Condition) -> int:
        return self._counts[condition]

    def as_dict(self) -> dict[str, int]:
        return {c.value: self._counts[c] for c in Condition}
