"""
fission.ledger — the balance and points engine.

- TokenRegistry: immutable tracked-token configuration and excluded addresses.
- BalanceLedger: version-chained balances per (address, denom).
- PointsAccrualEngine: per-block points accrual into sparse per-address chains.
- Indexer: block driver with persistence (flush/resume) and outcome counters.

Per-item anomalies are reported as Outcome records (see `outcomes`), not exceptions.
"""

from __future__ import annotations

from .balances import BalanceLedger
from .indexer import BlockResult, Indexer
from .outcomes import ApplyResult, Condition, Outcome, OutcomeStats, TickResult
from .points import PointsAccrualEngine
from .registry import PION1_REGISTRY, TokenRegistry
from .store import Version, VersionLog

__all__ = [
    "ApplyResult",
    "BalanceLedger",
    "BlockResult",
    "Condition",
    "Indexer",
    "Outcome",
    "OutcomeStats",
    "PION1_REGISTRY",
    "PointsAccrualEngine",
    "TickResult",
    "TokenRegistry",
    "Version",
    "VersionLog",
]
