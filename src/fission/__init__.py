"""
fission — Balance and points ledgers derived from per-block token movements.

## Responsibilities
- Maintain a version-chained balance per (address, denom) from signed balance deltas.
- Accrue reward points per address on every block tick, weighted by per-token multipliers
  until each token's maturity.
- Persist sealed versions as append-only Parquet tables and resume from them.

## Packages
- fission.core — zero-IO contracts (enums, pydantic rows, table descriptors, errors, versioning).
- fission.ledger — TokenRegistry, BalanceLedger, PointsAccrualEngine and the block Indexer.
- fission.chain — decoding of raw transfer/mint/burn events into typed inputs.
- fission.io — Polars/Arrow IO layer (datasets, manifests, checkpoints, settings).

## Examples
```python
from fission.ledger import BalanceLedger, PointsAccrualEngine, TokenRegistry
from fission.core.schema import TokenDescriptor

registry = TokenRegistry(
    descriptors=(TokenDescriptor(denom="A", type="principal", multiplier=2,
                                 maturity_epoch_seconds=2_000_000_000),),
)
balances = BalanceLedger(registry)
points = PointsAccrualEngine(registry, balances)
balances.apply(100, "X", "A", 100)
points.tick(101, 1_725_000_000)
points.current("X").balance  # 200
```
"""

__version__ = "0.1.0"
