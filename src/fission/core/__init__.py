"""
Core package aggregator for fission contracts (grammar, schemas, tables, hashing, versioning).

## Contracts (single source of truth)
- Grammar — enums (token types, table names) and lower_snake normalization helpers.
- Schemas — typed pydantic models for inputs (deltas, ticks), version rows and event records.
- Tables — descriptors for IO backends to materialize datasets.
- Hashing — canonical JSON utilities (registry fingerprints).
- Versioning — schema version metadata embedded in persisted artifacts.

## Notes
- Zero‑IO policy: stdlib + pydantic only; no file/network IO.
- Naming policy: enum `.value` and field/column names are lower_snake.
- Balances and amounts are Python ints (arbitrary precision); IO layers store them as
  decimal strings.

## Downstream usage
- fission.ledger — consumes BalanceDelta/BlockTick and produces TokenBalanceRow/PointsBalanceRow.
- fission.chain — emits BalanceDelta and TransferRow/MintRow/BurnRow from raw events.
- fission.io — builds Parquet schemas/manifests from `tables` and validates frames.

## Examples
```python
from fission.core.grammar import TokenType, token_type_from_value
token_type_from_value("StakedYield") == TokenType.STAKED_YIELD  # True

from fission.core.schema import BalanceDelta
BalanceDelta(block_height=100, address="neutron1x", denom="A", delta=-40)
```
"""
