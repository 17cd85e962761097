"""
Lightweight typing aliases used across the ledger and the IO-facing surfaces.

This module contains no runtime logic and is zero-IO.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "BalanceKey",
    "JsonDict",
]

# (address, denom) identifies one balance chain.
BalanceKey = tuple[str, str]

JsonDict = dict[str, Any]
