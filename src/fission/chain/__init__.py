"""
fission.chain — turning raw chain data into ledger inputs.

- `normalize` decodes bank transfer and tokenfactory mint/burn events into BalanceDelta
  inputs plus TransferRow/MintRow/BurnRow records.
- `source` reads blocks from JSON-lines files.
"""

from __future__ import annotations

from .normalize import (
    Coin,
    Discard,
    Normalized,
    RawBlock,
    RawEvent,
    normalize_block,
    normalize_event,
    parse_coins,
)
from .source import iter_blocks

__all__ = [
    "Coin",
    "Discard",
    "Normalized",
    "RawBlock",
    "RawEvent",
    "iter_blocks",
    "normalize_block",
    "normalize_event",
    "parse_coins",
]
