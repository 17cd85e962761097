"""
Event normalization: raw chain events → balance deltas and event records.

Supported event types
- transfer (bank): attributes sender, recipient, amount → debit sender, credit recipient.
- tf_mint (tokenfactory): attributes mint_to_address, amount → credit recipient.
- tf_burn (tokenfactory): attributes burn_from_address, amount → debit sender.

`amount` is a Cosmos coin list ("100factory/...,5untrn"); each coin becomes its own
delta pair and record. Attribute keys and values may arrive as bytes and are decoded as
UTF-8. Everything here is pure: a raw event maps to either Normalized or Discard.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from dataclasses import dataclass
from typing import Any, NamedTuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fission.core.grammar import EventType, event_type_from_value
from fission.core.schema import (
    BalanceDelta,
    BlockTick,
    BurnRow,
    EventRecord,
    MintRow,
    TransferRow,
)

__all__ = [
    "Coin",
    "parse_coins",
    "RawAttribute",
    "RawEventBody",
    "RawEvent",
    "RawBlock",
    "Normalized",
    "Discard",
    "normalize_event",
    "normalize_block",
]

# Same grammar as the Cosmos SDK coin regex (denoms are 3..128 chars).
_COIN_RE = re.compile(r"^(\d+)([a-zA-Z][a-zA-Z0-9/:._-]{2,127})$")


class Coin(NamedTuple):
    denom: str
    amount: int


def parse_coins(s: str) -> list[Coin]:
    """
    Parse a comma-separated Cosmos coin list.

    Raises:
        ValueError: If any non-empty entry is not "<amount><denom>".

    Examples:
        >>> parse_coins("100uatom, 5factory/neutron1abc/P")
        [Coin(denom='uatom', amount=100), Coin(denom='factory/neutron1abc/P', amount=5)]
        >>> parse_coins("")
        []
    """
    out: list[Coin] = []
    for part in s.split(","):
        part = part.strip()
        if not part:
            continue
        m = _COIN_RE.match(part)
        if m is None:
            raise ValueError(f"invalid coin string: {part!r}")
        out.append(Coin(denom=m.group(2), amount=int(m.group(1))))
    return out


def _decode(value: str | bytes | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


# ============================================================================
# Raw inputs
# ============================================================================


class RawAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str | bytes
    value: str | bytes | None = None


class RawEventBody(BaseModel):
    """An event as it appears inside a block (height/time come from the block)."""

    model_config = ConfigDict(frozen=True)

    type: str
    attributes: list[RawAttribute] = Field(default_factory=list)
    tx_hash: str | None = None
    event_index: int | None = Field(default=None, ge=0)

    @field_validator("attributes", mode="before")
    @classmethod
    def _attributes_from_mapping(cls, v: Any) -> Any:
        # Accept {"sender": "...", ...} as shorthand for a key/value list.
        if isinstance(v, dict):
            return [{"key": k, "value": val} for k, val in v.items()]
        return v


class RawEvent(RawEventBody):
    """
    A raw chain event with its block context.

    Attributes:
        type (str): Chain event type ("transfer", "tf_mint", "tf_burn", ...).
        attributes (list[RawAttribute]): Key/value attributes; bytes are decoded as UTF-8.
        block_height (int): Height of the block carrying the event.
        block_time_seconds (int): Block timestamp in epoch seconds.
        tx_hash (str | None): Transaction hash, when the event belongs to a transaction.
        event_index (int): Position of the event in its block.
    """

    block_height: int = Field(..., ge=0)
    block_time_seconds: int
    event_index: int = Field(default=0, ge=0)

    def attribute(self, key: str) -> str | None:
        """Value of the first attribute named key, decoded; None when absent."""
        for attr in self.attributes:
            if _decode(attr.key) == key:
                return _decode(attr.value)
        return None


class RawBlock(BaseModel):
    """A block with its events, as read from a block source."""

    model_config = ConfigDict(frozen=True)

    block_height: int = Field(..., ge=0)
    block_time_seconds: int
    events: list[RawEventBody] = Field(default_factory=list)

    def iter_events(self):
        for idx, body in enumerate(self.events):
            yield RawEvent(
                type=body.type,
                attributes=body.attributes,
                tx_hash=body.tx_hash,
                event_index=idx if body.event_index is None else body.event_index,
                block_height=self.block_height,
                block_time_seconds=self.block_time_seconds,
            )

    def tick(self) -> BlockTick:
        return BlockTick(
            block_height=self.block_height, block_time_seconds=self.block_time_seconds
        )


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True, slots=True)
class Normalized:
    """Deltas and records derived from one event (one record per tracked coin)."""

    event_type: EventType
    deltas: tuple[BalanceDelta, ...]
    records: tuple[EventRecord, ...]


@dataclass(frozen=True, slots=True)
class Discard:
    """An event that yields nothing, with the reason."""

    event_type: str
    reason: str
    block_height: int | None = None


def _discard(raw: RawEvent, reason: str, *, error: bool = True) -> Discard:
    level = "ERROR" if error else "DEBUG"
    logger.bind(block_height=raw.block_height, event_type=raw.type).log(
        level, "discarding {} event at block {}: {}", raw.type, raw.block_height, reason
    )
    return Discard(event_type=raw.type, reason=reason, block_height=raw.block_height)


# ============================================================================
# Normalization
# ============================================================================

# event type -> (sender attribute, recipient attribute); None where the side is absent
_PARTIES: dict[EventType, tuple[str | None, str | None]] = {
    EventType.TRANSFER: ("sender", "recipient"),
    EventType.TF_MINT: (None, "mint_to_address"),
    EventType.TF_BURN: ("burn_from_address", None),
}


def normalize_event(
    raw: RawEvent, denoms: Collection[str] | None = None
) -> Normalized | Discard:
    """
    Map one raw event to balance deltas and records.

    Args:
        raw (RawEvent): Event with block context.
        denoms (Collection[str] | None): When given, coins of other denoms are dropped.

    Returns:
        Normalized | Discard: Discard for unsupported types, missing attributes, malformed
        or empty coin lists, or when no coin survives the denom filter.
    """
    event_type = event_type_from_value(raw.type)
    if event_type is None:
        return _discard(raw, "unsupported event type", error=False)

    sender_key, recipient_key = _PARTIES[event_type]
    try:
        amount = raw.attribute("amount")
        sender = raw.attribute(sender_key) if sender_key else None
        recipient = raw.attribute(recipient_key) if recipient_key else None
    except UnicodeDecodeError as exc:
        return _discard(raw, f"attribute is not valid UTF-8: {exc}")

    missing = [
        k
        for k, v in (("amount", amount), (sender_key, sender), (recipient_key, recipient))
        if k is not None and not v
    ]
    if missing:
        return _discard(raw, f"missing attributes {missing}")

    try:
        coins = parse_coins(amount or "")
    except ValueError as exc:
        return _discard(raw, str(exc))
    if not coins:
        return _discard(raw, "no coins in amount")

    deltas: list[BalanceDelta] = []
    records: list[EventRecord] = []
    base = {
        "block_height": raw.block_height,
        "block_time_seconds": raw.block_time_seconds,
        "tx_hash": raw.tx_hash,
        "event_index": raw.event_index,
    }
    for coin in coins:
        if denoms is not None and coin.denom not in denoms:
            continue
        if coin.amount == 0:
            continue
        if sender is not None:
            deltas.append(
                BalanceDelta(
                    block_height=raw.block_height,
                    address=sender,
                    denom=coin.denom,
                    delta=-coin.amount,
                )
            )
        if recipient is not None:
            deltas.append(
                BalanceDelta(
                    block_height=raw.block_height,
                    address=recipient,
                    denom=coin.denom,
                    delta=coin.amount,
                )
            )
        if event_type is EventType.TRANSFER:
            records.append(
                TransferRow(
                    **base,
                    sender=sender,
                    recipient=recipient,
                    denom=coin.denom,
                    amount=coin.amount,
                )
            )
        elif event_type is EventType.TF_MINT:
            records.append(
                MintRow(**base, recipient=recipient, denom=coin.denom, amount=coin.amount)
            )
        else:
            records.append(BurnRow(**base, sender=sender, denom=coin.denom, amount=coin.amount))

    if not deltas:
        return _discard(raw, "no tracked coins", error=False)
    return Normalized(event_type=event_type, deltas=tuple(deltas), records=tuple(records))


def normalize_block(
    raw: RawBlock, denoms: Collection[str] | None = None
) -> tuple[BlockTick, list[Normalized | Discard]]:
    """Normalize every event of a block, returning the block's tick alongside."""
    return raw.tick(), [normalize_event(ev, denoms) for ev in raw.iter_events()]
