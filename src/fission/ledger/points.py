"""
PointsAccrualEngine — per-block points accrual over the balance ledger.

`tick(h, t)` reads the balance ledger's current rows for every token still unmatured at
time t and accrues `balance * multiplier` per address. Only rows whose version height is
at most h - 1 are used; a later row means the block ordering contract was broken and is
reported as CONSISTENCY_VIOLATION. Each address with a nonzero total gets one new points
version at h; everyone else keeps their last version (the chain is sparse).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from loguru import logger

from fission.core.errors import InvalidInput
from fission.core.schema import PointsBalanceRow

from .balances import BalanceLedger
from .outcomes import Condition, Outcome, TickResult
from .registry import TokenRegistry
from .store import Version, VersionLog

__all__ = ["PointsAccrualEngine"]


class PointsAccrualEngine:
    """
    Sparse, strictly increasing points chains per address.

    Args:
        registry (TokenRegistry): Tracked tokens and excluded addresses.
        balances (BalanceLedger): Ledger read (never written) during ticks.

    Examples:
        >>> from fission.ledger import BalanceLedger, PointsAccrualEngine, TokenRegistry
        >>> reg = TokenRegistry.from_mapping(
        ...     {"tokens": [{"denom": "A", "type": "yield", "multiplier": 2, "maturity": 10**12}]}
        ... )
        >>> balances = BalanceLedger(reg)
        >>> engine = PointsAccrualEngine(reg, balances)
        >>> _ = balances.apply(100, "X", "A", 100)
        >>> engine.tick(101, 0).rows[0].balance
        200
    """

    def __init__(self, registry: TokenRegistry, balances: BalanceLedger) -> None:
        self._registry = registry
        self._balances = balances
        self._log: VersionLog[str] = VersionLog()
        self._last_tick_height: int | None = None

    def __len__(self) -> int:
        return len(self._log)

    @property
    def last_tick_height(self) -> int | None:
        return self._last_tick_height

    # ---------------------------------------------------------------------
    # Mutation
    # ---------------------------------------------------------------------
    def tick(self, block_height: int, block_time_seconds: int) -> TickResult:
        """
        Accrue points for block_height from balances as of block_height - 1.

        A tick at or below the last ticked height is rejected whole
        (OUT_OF_ORDER_VERSION) so accrual never runs twice for a block.

        Raises:
            InvalidInput: If block_height or block_time_seconds is not an integer.
        """
        for name, value in (
            ("block_height", block_height),
            ("block_time_seconds", block_time_seconds),
        ):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidInput(f"{name} must be an integer, got {value!r}")
        if block_height < 0:
            raise InvalidInput(f"block_height must be >= 0, got {block_height}")

        result = TickResult(block_height=block_height)
        if self._last_tick_height is not None and block_height <= self._last_tick_height:
            outcome = Outcome(
                Condition.OUT_OF_ORDER_VERSION,
                block_height,
                f"tick at height {block_height} does not follow last tick {self._last_tick_height}",
            )
            outcome.log()
            result.outcomes.append(outcome)
            return result

        snapshot_height = block_height - 1
        excluded = self._registry.excluded_addresses
        totals: dict[str, int] = {}
        active = self._registry.unmatured(block_time_seconds)
        active_denoms = {d.denom for d in active}
        result.matured = [d.denom for d in self._registry if d.denom not in active_denoms]

        for descriptor in active:
            for row in self._balances.current_balances(descriptor.denom, excluded):
                if row.block_height > snapshot_height:
                    outcome = Outcome(
                        Condition.CONSISTENCY_VIOLATION,
                        block_height,
                        f"balance version at height {row.block_height} is newer than "
                        f"snapshot height {snapshot_height}",
                        address=row.address,
                        denom=row.denom,
                    )
                    outcome.log()
                    result.outcomes.append(outcome)
                    continue
                points = row.balance * descriptor.multiplier
                totals[row.address] = totals.get(row.address, 0) + points

        for address in sorted(totals):
            total = totals[address]
            if total == 0:
                continue
            if total < 0:
                # Only reachable through negative balances; points never decrease.
                outcome = Outcome(
                    Condition.NEGATIVE_BALANCE,
                    block_height,
                    f"negative points accrual {total} for {address} skipped",
                    address=address,
                )
                outcome.log()
                result.outcomes.append(outcome)
                continue
            previous = self._log.current(address)
            balance = (previous.balance if previous is not None else 0) + total
            version = self._log.open_version(address, block_height, balance)
            result.rows.append(self._row(address, version, True))

        self._last_tick_height = block_height
        logger.debug(
            "tick {} accrued points for {} addresses ({} tokens active)",
            block_height,
            len(result.rows),
            len(active),
        )
        return result

    def restore(
        self, rows: Iterable[PointsBalanceRow], last_tick_height: int | None = None
    ) -> int:
        """
        Load persisted points versions into an empty engine.

        Args:
            rows: Persisted points versions.
            last_tick_height: Height of the last completed tick; defaults to the highest
                restored version height.

        Returns:
            int: Number of versions restored.
        """
        rows = list(rows)
        n = self._log.restore((r.address, r.block_height, r.balance) for r in rows)
        highest = max((r.block_height for r in rows), default=None)
        if last_tick_height is None:
            last_tick_height = highest
        elif highest is not None and highest > last_tick_height:
            raise ValueError(
                f"restored points version at {highest} is newer than last tick {last_tick_height}"
            )
        self._last_tick_height = last_tick_height
        return n

    # ---------------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------------
    def current(self, address: str) -> PointsBalanceRow | None:
        version = self._log.current(address)
        return None if version is None else self._row(address, version, True)

    def points(self, address: str) -> int:
        """Current points of address, 0 if it never accrued."""
        version = self._log.current(address)
        return 0 if version is None else version.balance

    def history(self, address: str) -> list[PointsBalanceRow]:
        chain = self._log.history(address)
        last = len(chain) - 1
        return [self._row(address, v, i == last) for i, v in enumerate(chain)]

    def as_of(self, address: str, block_height: int) -> PointsBalanceRow | None:
        """Points in effect at block_height: the most recent version at or below it."""
        version = self._log.as_of(address, block_height)
        if version is None:
            return None
        return self._row(address, version, self._log.is_current(address, version))

    def rows(self) -> Iterator[PointsBalanceRow]:
        for address in self._log.keys():
            yield from self.history(address)

    def sealed_rows(self, height: int) -> list[PointsBalanceRow]:
        return [
            self._row(address, v, self._log.is_current(address, v))
            for address, v in self._log.sealed(height)
        ]

    def release_sealed(self, height: int) -> None:
        self._log.release_sealed(height)

    @staticmethod
    def _row(address: str, version: Version, is_current: bool) -> PointsBalanceRow:
        return PointsBalanceRow(
            address=address,
            block_height=version.block_height,
            balance=version.balance,
            is_current=is_current,
        )
