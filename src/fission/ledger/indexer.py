"""
Indexer — block driver tying the ledgers to the persistence layer.

Processing order for block h:

1. tick(h): accrue points from balances as of h - 1;
2. apply every balance delta of block h;
3. mark h sealed (no later input may touch heights <= h).

Sealed versions are immutable, so `flush` appends them to the dataset together with the
buffered transfer/mint/burn records and then writes the run checkpoint. `resume` loads
the persisted versions back into empty ledgers and continues after the sealed height.

Per-item problems never raise: they come back as Outcome records and are counted in
`stats`. Only configuration and IO failures propagate as exceptions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import polars as pl
from loguru import logger

from fission.core.errors import InvalidInput, VersionMismatch
from fission.core.grammar import TableName
from fission.core.typing import JsonDict
from fission.core.schema import (
    BalanceDelta,
    BlockTick,
    BurnRow,
    EventRecord,
    MintRow,
    PointsBalanceRow,
    TokenBalanceRow,
    TransferRow,
    parse_delta,
    parse_tick,
)
from fission.io.checkpoint import Checkpoint
from fission.io.dataset import Dataset
from fission.io.read import current as derive_current

from .balances import BalanceLedger
from .outcomes import ApplyResult, Condition, Outcome, OutcomeStats, TickResult
from .points import PointsAccrualEngine
from .registry import TokenRegistry

__all__ = ["Indexer", "BlockResult"]

_RECORD_TABLES: dict[type, TableName] = {
    TransferRow: TableName.TRANSFERS,
    MintRow: TableName.MINTS,
    BurnRow: TableName.BURNS,
}


@dataclass(slots=True)
class BlockResult:
    """
    Result of Indexer.process_block.

    Attributes:
        block_height (int): Height of the block.
        tick (TickResult | None): Points tick result; None when the block was refused.
        applied (list[ApplyResult]): One result per delta, in input order.
        outcomes (list[Outcome]): Every outcome raised while processing the block.
        skipped (bool): True when the block lies below the start block.
    """

    block_height: int
    tick: TickResult | None = None
    applied: list[ApplyResult] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def rejected(self) -> bool:
        return self.tick is None and not self.skipped


def _invalid(message: str, block_height: int | None = None) -> Outcome:
    outcome = Outcome(Condition.INVALID_INPUT, block_height, message)
    outcome.log()
    return outcome


class Indexer:
    """
    Single-writer driver owning a BalanceLedger and a PointsAccrualEngine.

    Args:
        registry (TokenRegistry): Tracked tokens and excluded addresses.
        dataset (Dataset | None): Persistence target; None keeps everything in memory.
        start_block (int): Blocks below this height are ignored.
        flush_every_n_blocks (int | None): Flush cadence of process_block; defaults to the
            dataset's IoSettings.flush_every_n_blocks. Ignored without a dataset.

    Examples:
        >>> from fission.ledger import Indexer, TokenRegistry
        >>> reg = TokenRegistry.from_mapping(
        ...     {"tokens": [{"denom": "A", "type": "yield", "multiplier": 2, "maturity": 10**12}]}
        ... )
        >>> ix = Indexer(reg)
        >>> delta = {"block_height": 100, "address": "X", "denom": "A", "delta": 100}
        >>> _ = ix.process_block(100, 0, [delta])
        >>> ix.process_block(101, 6, []).tick.rows[0].balance
        200
    """

    def __init__(
        self,
        registry: TokenRegistry,
        dataset: Dataset | None = None,
        start_block: int = 0,
        flush_every_n_blocks: int | None = None,
    ) -> None:
        self.registry = registry
        self.dataset = dataset
        self.start_block = start_block
        self.balances = BalanceLedger(registry)
        self.points = PointsAccrualEngine(registry, self.balances)
        self._outcomes = OutcomeStats()
        if flush_every_n_blocks is None and dataset is not None:
            flush_every_n_blocks = dataset.settings.flush_every_n_blocks
        self._flush_every = flush_every_n_blocks
        self._sealed_height: int | None = None
        self._persisted_height: int | None = None
        self._blocks_processed = 0
        self._blocks_since_flush = 0
        self._records: list[EventRecord] = []

    # ---------------------------------------------------------------------
    # Properties
    # ---------------------------------------------------------------------
    @property
    def sealed_height(self) -> int | None:
        """Highest height no further input may touch."""
        return self._sealed_height

    @property
    def persisted_height(self) -> int | None:
        """Sealed height recorded by the last checkpoint."""
        return self._persisted_height

    @property
    def stats(self) -> JsonDict:
        return {
            "blocks_processed": self._blocks_processed,
            "sealed_height": self._sealed_height,
            "persisted_height": self._persisted_height,
            "last_tick_height": self.points.last_tick_height,
            "balance_keys": len(self.balances),
            "points_addresses": len(self.points),
            "pending_records": len(self._records),
            "outcomes": self._outcomes.as_dict(),
        }

    def count(self, condition: Condition) -> int:
        return self._outcomes.count(condition)

    # ---------------------------------------------------------------------
    # Block driver
    # ---------------------------------------------------------------------
    def process_block(
        self,
        block_height: int,
        block_time_seconds: int,
        deltas: Iterable[BalanceDelta | Mapping[str, Any]] = (),
        records: Iterable[EventRecord] = (),
    ) -> BlockResult:
        """
        Tick block_height, apply its deltas, buffer its records and seal it.

        Deltas must carry block_height equal to the block's height; others are dropped as
        INVALID_INPUT. A block at or below the sealed height is refused whole
        (OUT_OF_ORDER_VERSION).
        """
        try:
            tick = parse_tick(
                {"block_height": block_height, "block_time_seconds": block_time_seconds}
            )
        except InvalidInput as exc:
            result = BlockResult(block_height=block_height, outcomes=[_invalid(str(exc))])
            self._outcomes.record(result.outcomes)
            return result

        result = BlockResult(block_height=tick.block_height)
        if tick.block_height < self.start_block:
            result.skipped = True
            return result
        if self._sealed_height is not None and tick.block_height <= self._sealed_height:
            outcome = Outcome(
                Condition.OUT_OF_ORDER_VERSION,
                tick.block_height,
                f"block {tick.block_height} is not after sealed height {self._sealed_height}",
            )
            outcome.log()
            result.outcomes.append(outcome)
            self._outcomes.record(result.outcomes)
            return result

        if self.points.last_tick_height == tick.block_height:
            # Already ticked through handle() before the block was sealed.
            result.tick = TickResult(block_height=tick.block_height)
        else:
            result.tick = self.points.tick(tick.block_height, tick.block_time_seconds)
        result.outcomes.extend(result.tick.outcomes)
        if result.tick.rejected:
            self._outcomes.record(result.outcomes)
            result.tick = None
            return result

        for raw in deltas:
            applied = self._apply(raw, expected_height=tick.block_height)
            result.applied.append(applied)
            result.outcomes.extend(applied.outcomes)
        for record in records:
            result.outcomes.extend(self.record(record))

        self._outcomes.record(result.outcomes)
        self._seal(tick.block_height)
        self._blocks_processed += 1
        self._blocks_since_flush += 1
        if (
            self.dataset is not None
            and self._flush_every is not None
            and self._blocks_since_flush >= self._flush_every
        ):
            self.flush()
        return result

    # ---------------------------------------------------------------------
    # Streaming entry points
    # ---------------------------------------------------------------------
    def handle(self, item: Any) -> ApplyResult | TickResult:
        """
        Route one streamed input: a BalanceDelta, a BlockTick, or a raw mapping.

        A mapping carrying "delta" is a balance delta; one carrying "block_time_seconds"
        is a tick. Ticks seal every height below them.
        """
        if isinstance(item, Mapping):
            if "delta" in item:
                return self._record_outcomes(self._apply(item))
            if "block_time_seconds" in item:
                try:
                    item = parse_tick(item)
                except InvalidInput as exc:
                    outcome = _invalid(str(exc))
                    return self._record_outcomes(ApplyResult(row=None, outcomes=[outcome]))
            else:
                outcome = _invalid(f"unrecognized input {dict(item)!r}")
                return self._record_outcomes(ApplyResult(row=None, outcomes=[outcome]))
        if isinstance(item, BlockTick):
            tick = self.points.tick(item.block_height, item.block_time_seconds)
            if not tick.rejected:
                self._seal(item.block_height - 1)
            self._outcomes.record(tick.outcomes)
            return tick
        if isinstance(item, BalanceDelta):
            return self._record_outcomes(self._apply(item))
        outcome = _invalid(f"unsupported input type {type(item).__name__}")
        return self._record_outcomes(ApplyResult(row=None, outcomes=[outcome]))

    def record(self, row: EventRecord) -> list[Outcome]:
        """
        Buffer a transfer/mint/burn record for the next flush.

        Without a dataset nothing is ever flushed, so records are checked and dropped.
        """
        if type(row) not in _RECORD_TABLES:
            return [_invalid(f"unsupported record type {type(row).__name__}")]
        if self._sealed_height is not None and row.block_height <= self._sealed_height:
            outcome = Outcome(
                Condition.OUT_OF_ORDER_VERSION,
                row.block_height,
                f"record at height {row.block_height} is not after sealed height "
                f"{self._sealed_height}",
            )
            outcome.log()
            return [outcome]
        if self.dataset is not None:
            self._records.append(row)
        return []

    def _record_outcomes(self, result: ApplyResult) -> ApplyResult:
        self._outcomes.record(result.outcomes)
        return result

    def _apply(
        self, raw: BalanceDelta | Mapping[str, Any], expected_height: int | None = None
    ) -> ApplyResult:
        try:
            delta = parse_delta(raw)
        except InvalidInput as exc:
            return ApplyResult(row=None, outcomes=[_invalid(str(exc))])
        if expected_height is not None and delta.block_height != expected_height:
            outcome = _invalid(
                f"delta at height {delta.block_height} delivered with block {expected_height}",
                delta.block_height,
            )
            return ApplyResult(row=None, outcomes=[outcome])
        if self._sealed_height is not None and delta.block_height <= self._sealed_height:
            outcome = Outcome(
                Condition.OUT_OF_ORDER_VERSION,
                delta.block_height,
                f"delta at height {delta.block_height} targets sealed height "
                f"{self._sealed_height}",
                address=delta.address,
                denom=delta.denom,
            )
            outcome.log()
            return ApplyResult(row=None, outcomes=[outcome])
        return self.balances.apply(delta.block_height, delta.address, delta.denom, delta.delta)

    def _seal(self, height: int) -> None:
        if self._sealed_height is None or height > self._sealed_height:
            self._sealed_height = height

    # ---------------------------------------------------------------------
    # Persistence
    # ---------------------------------------------------------------------
    def flush(self) -> dict[str, int]:
        """
        Append sealed versions and buffered records, then write the checkpoint.

        Balance versions are written through the sealed height and points versions
        through the last completed tick. Each table's pending rows are released only
        after its append succeeds, so a failed flush can be retried without losing or
        repeating rows.

        Returns:
            dict[str, int]: Rows written per table (empty without a dataset or when
            nothing is sealed yet).

        Raises:
            fission.io.errors.IoError: If an append or the checkpoint write fails.
        """
        dataset = self.dataset
        if dataset is None or self._sealed_height is None:
            return {}
        sealed = self._sealed_height
        ticked = self.points.last_tick_height
        written: dict[str, int] = {}

        summary = dataset.append(
            TableName.TOKEN_BALANCES, _token_frame(self.balances.sealed_rows(sealed))
        )
        self.balances.release_sealed(sealed)
        written[TableName.TOKEN_BALANCES.value] = summary["rows"]

        points_rows = [] if ticked is None else self.points.sealed_rows(ticked)
        summary = dataset.append(TableName.POINTS_BALANCES, _points_frame(points_rows))
        if ticked is not None:
            self.points.release_sealed(ticked)
        written[TableName.POINTS_BALANCES.value] = summary["rows"]

        for cls, table in _RECORD_TABLES.items():
            ready = [r for r in self._records if type(r) is cls and r.block_height <= sealed]
            summary = dataset.append(table, _record_frame(ready))
            self._records = [
                r for r in self._records if type(r) is not cls or r.block_height > sealed
            ]
            written[table.value] = summary["rows"]

        dataset.write_checkpoint(
            Checkpoint(
                run_id=dataset.run_id,
                sealed_height=sealed,
                last_tick_height=ticked,
                registry_fingerprint=self.registry.fingerprint(),
            )
        )
        self._persisted_height = sealed
        self._blocks_since_flush = 0
        logger.info("flushed through height {}: {}", sealed, written)
        return written

    def resume(self) -> Checkpoint | None:
        """
        Restore both ledgers from the dataset's checkpoint.

        Balance rows above the checkpoint's sealed height and points rows above its last
        tick height (left by an interrupted flush) are ignored; they are rewritten when
        those blocks are processed again.

        Returns:
            Checkpoint | None: The checkpoint resumed from, or None for a fresh run.

        Raises:
            ValueError: If there is no dataset or the ledgers already hold state.
            VersionMismatch: If the checkpoint was written with a different registry.
        """
        if self.dataset is None:
            raise ValueError("resume requires a dataset")
        if len(self.balances) or len(self.points):
            raise ValueError("resume requires empty ledgers")
        cp = self.dataset.checkpoint()
        if cp is None:
            logger.info("no checkpoint for run {}; starting fresh", self.dataset.run_id)
            return None
        fingerprint = self.registry.fingerprint()
        if cp.registry_fingerprint != fingerprint:
            raise VersionMismatch(
                f"run {cp.run_id!r} was indexed with registry {cp.registry_fingerprint[:12]}, "
                f"current registry is {fingerprint[:12]}"
            )

        ticked = cp.sealed_height if cp.last_tick_height is None else cp.last_tick_height
        token_df = _read_current(self.dataset, TableName.TOKEN_BALANCES, cp.sealed_height)
        points_df = _read_current(self.dataset, TableName.POINTS_BALANCES, ticked)
        n_tokens = self.balances.restore(
            TokenBalanceRow(
                address=r["address"],
                denom=r["denom"],
                block_height=r["block_height"],
                balance=r["balance"],
                is_current=r["is_current"],
            )
            for r in token_df.iter_rows(named=True)
        )
        n_points = self.points.restore(
            (
                PointsBalanceRow(
                    address=r["address"],
                    block_height=r["block_height"],
                    balance=r["balance"],
                    is_current=r["is_current"],
                )
                for r in points_df.iter_rows(named=True)
            ),
            last_tick_height=cp.last_tick_height,
        )
        self._sealed_height = cp.sealed_height
        self._persisted_height = cp.sealed_height
        logger.info(
            "resumed run {} at sealed height {} ({} balance versions, {} points versions)",
            cp.run_id,
            cp.sealed_height,
            n_tokens,
            n_points,
        )
        return cp


# -------------------------------------------------------------------------
# Frame builders
# -------------------------------------------------------------------------


def _read_current(dataset: Dataset, table: TableName, height_max: int) -> pl.DataFrame:
    frame = dataset.read_or_empty(table, where={"height_max": height_max})
    return derive_current(frame, table)


def _token_frame(rows: list[TokenBalanceRow]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "block_height": [r.block_height for r in rows],
            "address": [r.address for r in rows],
            "denom": [r.denom for r in rows],
            "balance": [str(r.balance) for r in rows],
        },
        schema={
            "block_height": pl.Int64,
            "address": pl.Utf8,
            "denom": pl.Utf8,
            "balance": pl.Utf8,
        },
    )


def _points_frame(rows: list[PointsBalanceRow]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "block_height": [r.block_height for r in rows],
            "address": [r.address for r in rows],
            "balance": [str(r.balance) for r in rows],
        },
        schema={"block_height": pl.Int64, "address": pl.Utf8, "balance": pl.Utf8},
    )


def _record_frame(rows: list[EventRecord]) -> pl.DataFrame:
    if not rows:
        return pl.DataFrame()
    data = [r.model_dump() for r in rows]
    for d in data:
        d["amount"] = str(d["amount"])
    schema: dict[str, Any] = {
        "block_height": pl.Int64,
        "block_time_seconds": pl.Int64,
        "tx_hash": pl.Utf8,
        "event_index": pl.Int64,
        "denom": pl.Utf8,
        "amount": pl.Utf8,
    }
    for extra in ("sender", "recipient"):
        if extra in data[0]:
            schema[extra] = pl.Utf8
    return pl.DataFrame(data, schema=schema)
