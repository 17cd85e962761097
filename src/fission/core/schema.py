"""
Pydantic v2 models for ledger inputs, version rows, token configuration and chain event
records. Validators normalize enum-like strings via grammar helpers and coerce
arbitrary-precision integers (balances, amounts) from ints or decimal strings.

Responsibilities
- Define the canonical inputs consumed by the ledger: BalanceDelta and BlockTick.
- Define the version rows exposed by the ledgers: TokenBalanceRow and PointsBalanceRow.
- Define TokenDescriptor (registry entries) and Transfer/Mint/Burn event records.
- Provide `parse_delta` / `parse_tick` which turn malformed inputs into InvalidInput.

Style
- Zero-IO (stdlib + pydantic only).
- Google-style docstrings; row models list their table mapping under Notes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import InvalidInput
from .grammar import TokenType, VersionState, token_type_from_value

__all__ = [
    # Configuration
    "TokenDescriptor",
    # Inputs
    "BalanceDelta",
    "BlockTick",
    "parse_delta",
    "parse_tick",
    # Version rows
    "TokenBalanceRow",
    "PointsBalanceRow",
    # Event records
    "TransferRow",
    "MintRow",
    "BurnRow",
    "EventRecord",
]

_INT_STR_CHARS = frozenset("0123456789")


def _coerce_bigint(v: Any) -> Any:
    """
    Coerce decimal strings to Python ints so balances keep arbitrary precision.

    Booleans and non-integral floats are rejected; anything else is left for pydantic.
    """
    if isinstance(v, bool):
        raise ValueError("boolean is not a valid integer amount")
    if isinstance(v, str):
        s = v.strip()
        digits = s[1:] if s[:1] in ("+", "-") else s
        if not digits or not set(digits) <= _INT_STR_CHARS:
            raise ValueError(f"not a decimal integer: {v!r}")
        return int(s)
    if isinstance(v, float):
        if not v.is_integer():
            raise ValueError(f"amount must be integral, got {v!r}")
        return int(v)
    return v


# ============================================================================
# Configuration
# ============================================================================


class TokenDescriptor(BaseModel):
    """
    Tracked token descriptor (read-only for the engine's lifetime).

    Attributes:
        denom (str): Chain denom identifier (e.g., "factory/<minter>/P/240906/...").
        type (TokenType): Principal, yield, staked yield or LP token.
        multiplier (int): Non-negative weight applied to held balance per block.
        maturity_epoch_seconds (int): Epoch seconds at which accrual stops. Also accepted
            under the key "maturity".

    Raises:
        pydantic.ValidationError: On unknown token type, empty denom or negative multiplier.

    Examples:
        >>> from fission.core.schema import TokenDescriptor
        >>> TokenDescriptor(denom="A", type="StakedYield", multiplier=1, maturity=1725638534).type
        <TokenType.STAKED_YIELD: 'staked_yield'>
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    denom: str = Field(..., min_length=1)
    type: TokenType
    multiplier: int = Field(..., ge=0)
    maturity_epoch_seconds: int = Field(
        ..., validation_alias=AliasChoices("maturity_epoch_seconds", "maturity")
    )

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> TokenType:
        if isinstance(v, TokenType):
            return v
        return token_type_from_value(str(v))

    @field_validator("multiplier", mode="before")
    @classmethod
    def _coerce_multiplier(cls, v: Any) -> Any:
        return _coerce_bigint(v)

    def is_matured(self, block_time_seconds: int) -> bool:
        """True once block time reaches maturity; matured tokens never accrue again."""
        return block_time_seconds >= self.maturity_epoch_seconds


# ============================================================================
# Inputs
# ============================================================================


class BalanceDelta(BaseModel):
    """
    Signed change to one (address, denom) balance at a block height.

    Attributes:
        block_height (int): Height of the block carrying the movement (>= 0).
        address (str): Account address.
        denom (str): Token denom.
        delta (int): Signed amount; positive = credit, negative = debit.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    block_height: int = Field(..., ge=0)
    address: str = Field(..., min_length=1)
    denom: str = Field(..., min_length=1)
    delta: int

    @field_validator("delta", mode="before")
    @classmethod
    def _coerce_delta(cls, v: Any) -> Any:
        return _coerce_bigint(v)


class BlockTick(BaseModel):
    """
    Per-block tick driving points accrual.

    Attributes:
        block_height (int): Height being ticked; accrual reads balances through height - 1.
        block_time_seconds (int): Block timestamp in epoch seconds (compared to maturity).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    block_height: int = Field(..., ge=0)
    block_time_seconds: int


def parse_delta(obj: BalanceDelta | Mapping[str, Any]) -> BalanceDelta:
    """
    Validate a balance delta, raising InvalidInput on malformed input.

    Raises:
        InvalidInput: If required fields are missing or ill-typed.
    """
    if isinstance(obj, BalanceDelta):
        return obj
    try:
        return BalanceDelta.model_validate(dict(obj))
    except (ValidationError, TypeError, ValueError) as exc:
        raise InvalidInput(f"malformed balance delta {obj!r}: {exc}") from exc


def parse_tick(obj: BlockTick | Mapping[str, Any]) -> BlockTick:
    """
    Validate a block tick, raising InvalidInput on malformed input.

    Raises:
        InvalidInput: If required fields are missing or ill-typed.
    """
    if isinstance(obj, BlockTick):
        return obj
    try:
        return BlockTick.model_validate(dict(obj))
    except (ValidationError, TypeError, ValueError) as exc:
        raise InvalidInput(f"malformed block tick {obj!r}: {exc}") from exc


# ============================================================================
# Version rows
# ============================================================================


class TokenBalanceRow(BaseModel):
    """
    Balance of one (address, denom) pair as of one block height.

    Attributes:
        address (str): Account address.
        denom (str): Token denom.
        block_height (int): Height of this version.
        balance (int): Net sum of all deltas applied up to and including this version.
        is_current (bool): True for the single open version of the key.

    Notes:
        Table mappings: token_balances (see tables.TOKEN_BALANCES_DESC).
        balance may be negative; that is an upstream anomaly, not rejected here.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    address: str
    denom: str
    block_height: int = Field(..., ge=0)
    balance: int
    is_current: bool

    @field_validator("balance", mode="before")
    @classmethod
    def _coerce_balance(cls, v: Any) -> Any:
        return _coerce_bigint(v)

    @property
    def state(self) -> VersionState:
        return VersionState.OPEN if self.is_current else VersionState.CLOSED


class PointsBalanceRow(BaseModel):
    """
    Cumulative points of an address as of one block height.

    Attributes:
        address (str): Account address.
        block_height (int): Tick height that produced this version.
        balance (int): Non-negative, non-decreasing cumulative points.
        is_current (bool): True for the single open version of the address.

    Notes:
        Table mappings: points_balances (see tables.POINTS_BALANCES_DESC).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    address: str
    block_height: int = Field(..., ge=0)
    balance: int = Field(..., ge=0)
    is_current: bool

    @field_validator("balance", mode="before")
    @classmethod
    def _coerce_balance(cls, v: Any) -> Any:
        return _coerce_bigint(v)

    @property
    def state(self) -> VersionState:
        return VersionState.OPEN if self.is_current else VersionState.CLOSED


# ============================================================================
# Event records
# ============================================================================


class _EventRecordBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    block_height: int = Field(..., ge=0)
    block_time_seconds: int
    tx_hash: str | None = None
    event_index: int = Field(..., ge=0)
    denom: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> Any:
        return _coerce_bigint(v)


class TransferRow(_EventRecordBase):
    """
    One coin of a bank transfer event.

    Notes:
        Table mappings: transfers (see tables.TRANSFERS_DESC).
    """

    sender: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)


class MintRow(_EventRecordBase):
    """
    One coin of a tokenfactory mint event.

    Notes:
        Table mappings: mints (see tables.MINTS_DESC).
    """

    recipient: str = Field(..., min_length=1)


class BurnRow(_EventRecordBase):
    """
    One coin of a tokenfactory burn event.

    Notes:
        Table mappings: burns (see tables.BURNS_DESC).
    """

    sender: str = Field(..., min_length=1)


EventRecord = TransferRow | MintRow | BurnRow

