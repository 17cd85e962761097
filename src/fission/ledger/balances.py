"""
BalanceLedger — version-chained balances per (address, denom).

Every key holds an append-only chain of versions; the tail is the single current version.
`apply` implements the four placement cases:

1. no current version: open one at the delta's height with balance = delta;
2. current version at the same height: coalesce the delta into it in place;
3. current version at an earlier height: close it and open a new version carrying
   old balance + delta;
4. current version at a later height: reject with OUT_OF_ORDER_VERSION, state unchanged.

The ledger is denom-agnostic: deltas for untracked denoms are applied (and reported as
UNKNOWN_DENOM) but never contribute to points. Negative balances are applied and
reported as NEGATIVE_BALANCE.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator

from fission.core.errors import InvalidInput
from fission.core.schema import TokenBalanceRow
from fission.core.typing import BalanceKey

from .outcomes import ApplyResult, Condition, Outcome
from .registry import TokenRegistry
from .store import Version, VersionLog

__all__ = ["BalanceLedger"]


def _check_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    return value


def _check_str(name: str, value: object) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidInput(f"{name} must be a non-empty string, got {value!r}")
    return value


class BalanceLedger:
    """
    Per-(address, denom) balance chains with exactly one current version per key.

    Args:
        registry (TokenRegistry | None): Used only to flag deltas for untracked denoms.

    Examples:
        >>> from fission.ledger.balances import BalanceLedger
        >>> ledger = BalanceLedger()
        >>> ledger.apply(100, "X", "A", 100).row.balance
        100
        >>> ledger.apply(102, "X", "A", -40).row.balance
        60
        >>> [v.block_height for v in ledger.history("X", "A")]
        [100, 102]
    """

    def __init__(self, registry: TokenRegistry | None = None) -> None:
        self._registry = registry
        self._log: VersionLog[BalanceKey] = VersionLog()
        # denom -> addresses holding a chain for that denom
        self._by_denom: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self._log)

    @property
    def log(self) -> VersionLog[BalanceKey]:
        return self._log

    # ---------------------------------------------------------------------
    # Mutation
    # ---------------------------------------------------------------------
    def apply(self, block_height: int, address: str, denom: str, delta: int) -> ApplyResult:
        """
        Apply a signed delta to (address, denom) at block_height.

        Returns:
            ApplyResult: The created/updated row (None when rejected) plus outcomes.

        Raises:
            InvalidInput: If an argument is structurally malformed (nothing is mutated).
        """
        block_height = _check_int("block_height", block_height)
        if block_height < 0:
            raise InvalidInput(f"block_height must be >= 0, got {block_height}")
        address = _check_str("address", address)
        denom = _check_str("denom", denom)
        delta = _check_int("delta", delta)

        key = (address, denom)
        tail = self._log.current(key)
        outcomes: list[Outcome] = []

        if tail is not None and tail.block_height > block_height:
            outcome = Outcome(
                Condition.OUT_OF_ORDER_VERSION,
                block_height,
                f"delta at height {block_height} precedes current version at "
                f"{tail.block_height}",
                address=address,
                denom=denom,
            )
            outcome.log()
            return ApplyResult(row=None, outcomes=[outcome])

        if tail is None:
            version = self._log.open_version(key, block_height, delta)
            self._by_denom.setdefault(denom, set()).add(address)
            created = True
        elif tail.block_height == block_height:
            version = self._log.coalesce(key, tail.balance + delta)
            created = False
        else:
            version = self._log.open_version(key, block_height, tail.balance + delta)
            created = True

        if self._registry is not None and not self._registry.is_tracked(denom):
            outcomes.append(
                Outcome(
                    Condition.UNKNOWN_DENOM,
                    block_height,
                    f"denom {denom!r} is not tracked; balance kept, no points accrue",
                    address=address,
                    denom=denom,
                )
            )
        if version.balance < 0:
            outcomes.append(
                Outcome(
                    Condition.NEGATIVE_BALANCE,
                    block_height,
                    f"balance of {address} in {denom} is {version.balance}",
                    address=address,
                    denom=denom,
                )
            )
        for o in outcomes:
            o.log()
        return ApplyResult(row=self._row(key, version, True), created=created, outcomes=outcomes)

    def restore(self, rows: Iterable[TokenBalanceRow]) -> int:
        """
        Load persisted versions into an empty ledger.

        Returns:
            int: Number of versions restored.

        Raises:
            ValueError: If the ledger already holds versions or rows repeat a height.
        """
        rows = list(rows)
        n = self._log.restore(((r.address, r.denom), r.block_height, r.balance) for r in rows)
        for r in rows:
            self._by_denom.setdefault(r.denom, set()).add(r.address)
        return n

    # ---------------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------------
    def current_balances(
        self, denom: str, excluding_addresses: Collection[str] = ()
    ) -> list[TokenBalanceRow]:
        """
        Current rows for denom whose address is not excluded. No side effects.

        Each row carries its version height so callers can check snapshot consistency.
        """
        out: list[TokenBalanceRow] = []
        for address in self._by_denom.get(denom, ()):
            if address in excluding_addresses:
                continue
            key = (address, denom)
            version = self._log.current(key)
            if version is not None:
                out.append(self._row(key, version, True))
        return out

    def current(self, address: str, denom: str) -> TokenBalanceRow | None:
        key = (address, denom)
        version = self._log.current(key)
        return None if version is None else self._row(key, version, True)

    def balance(self, address: str, denom: str) -> int:
        """Current balance, 0 when the key was never touched."""
        version = self._log.current((address, denom))
        return 0 if version is None else version.balance

    def history(self, address: str, denom: str) -> list[TokenBalanceRow]:
        """Full chain for (address, denom), oldest first."""
        key = (address, denom)
        chain = self._log.history(key)
        last = len(chain) - 1
        return [self._row(key, v, i == last) for i, v in enumerate(chain)]

    def as_of(self, address: str, denom: str, block_height: int) -> TokenBalanceRow | None:
        """Version in effect at block_height (most recent version <= block_height)."""
        key = (address, denom)
        version = self._log.as_of(key, block_height)
        if version is None:
            return None
        return self._row(key, version, self._log.is_current(key, version))

    def rows(self) -> Iterator[TokenBalanceRow]:
        """Every version of every key."""
        for key in self._log.keys():
            yield from self.history(*key)

    def sealed_rows(self, sealed_height: int) -> list[TokenBalanceRow]:
        """Unpersisted versions at heights <= sealed_height, in creation order."""
        return [
            self._row(key, v, self._log.is_current(key, v))
            for key, v in self._log.sealed(sealed_height)
        ]

    def release_sealed(self, sealed_height: int) -> None:
        self._log.release_sealed(sealed_height)

    @staticmethod
    def _row(key: BalanceKey, version: Version, is_current: bool) -> TokenBalanceRow:
        address, denom = key
        return TokenBalanceRow(
            address=address,
            denom=denom,
            block_height=version.block_height,
            balance=version.balance,
            is_current=is_current,
        )
