from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, replace

import polars as pl
from loguru import logger

from fission.chain import Normalized, iter_blocks, normalize_block
from fission.core.errors import SchemaError, VersionMismatch
from fission.core.grammar import TableName
from fission.core.tables import get_table
from fission.io import Dataset, IoSettings
from fission.io.errors import IoError
from fission.ledger import PION1_REGISTRY, Indexer, TokenRegistry
from fission.log import setup_logging

DEFAULT_RUN_ID = "pion-1"


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=str, default=None, help="TOML settings file.")
    p.add_argument("--root-dir", type=str, default=None, help="Override IoSettings.root_dir.")
    p.add_argument("--run-id", type=str, default=DEFAULT_RUN_ID, help="Run identifier.")
    p.add_argument("--log-level", type=str, default="INFO", help="Log level (DEBUG, INFO, ...).")
    p.add_argument("--log-file", type=str, default=None, help="Also log to this file.")


def _settings(args: argparse.Namespace) -> IoSettings:
    settings = IoSettings.load(args.config)
    if args.root_dir:
        settings = replace(settings, root_dir=args.root_dir)
    return settings


def _registry(path: str | None) -> TokenRegistry:
    if not path:
        return PION1_REGISTRY
    return TokenRegistry.from_toml(path)


def _cmd_replay(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog="fission replay",
        description="Replay a JSONL block file into the balance and points tables.",
    )
    p.add_argument("--blocks", type=str, required=True, help="Path to a JSONL block file.")
    p.add_argument(
        "--registry",
        type=str,
        default=None,
        help="Registry TOML ([registry] table). Defaults to the pion-1 deployment.",
    )
    p.add_argument("--start-block", type=int, default=None, help="Override the start block.")
    p.add_argument("--no-resume", action="store_true", help="Ignore an existing checkpoint.")
    p.add_argument(
        "--all-denoms",
        action="store_true",
        help="Track balances of every denom, not only registry denoms.",
    )
    _add_common(p)
    args = p.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    settings = _settings(args)
    registry = _registry(args.registry)
    start_block = settings.start_block if args.start_block is None else args.start_block
    dataset = Dataset(settings, args.run_id)
    indexer = Indexer(registry, dataset=dataset, start_block=start_block)

    if not args.no_resume:
        cp = indexer.resume()
        if cp is not None:
            start_block = max(start_block, cp.sealed_height + 1)

    denoms = None if args.all_denoms else registry.denoms()
    logger.info("replaying {} into run {} from block {}", args.blocks, args.run_id, start_block)
    for raw in iter_blocks(args.blocks, start_block=start_block):
        tick, items = normalize_block(raw, denoms)
        normalized = [n for n in items if isinstance(n, Normalized)]
        indexer.process_block(
            tick.block_height,
            tick.block_time_seconds,
            [d for n in normalized for d in n.deltas],
            [r for n in normalized for r in n.records],
        )
    indexer.flush()

    print(json.dumps(indexer.stats, indent=2))
    return 0


def _cmd_show(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="fission show", description="Show a persisted table.")
    p.add_argument(
        "--table",
        type=str,
        default=TableName.POINTS_BALANCES.value,
        choices=[t.value for t in TableName],
        help="Table to show.",
    )
    p.add_argument("--address", type=str, default=None, help="Only rows for this address.")
    p.add_argument("--as-of", type=int, default=None, help="Block height for point-in-time state.")
    p.add_argument("--history", action="store_true", help="Show every version, not only current.")
    p.add_argument("--n", type=int, default=20, help="Rows to display.")
    p.add_argument("--checkpoint", action="store_true", help="Print the run checkpoint instead.")
    _add_common(p)
    args = p.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    dataset = Dataset(_settings(args), args.run_id)
    if args.checkpoint:
        cp = dataset.checkpoint()
        if cp is None:
            print(f"No checkpoint for run {args.run_id!r}", file=sys.stderr)
            return 1
        print(json.dumps(asdict(cp), indent=2))
        return 0

    table = TableName(args.table)
    if dataset.manifest(table) is None:
        print(f"Table {table.value!r} has no rows in run {args.run_id!r}", file=sys.stderr)
        return 1
    cp = dataset.checkpoint()
    # Rows above the checkpoint belong to an unfinished flush.
    height_max = cp.sealed_height if cp is not None else None
    if args.as_of is not None:
        height_max = args.as_of if height_max is None else min(height_max, args.as_of)
    where = {"height_max": height_max}

    if get_table(table).key:
        df = dataset.current(table, where=where)
        if not args.history:
            df = df.filter(pl.col("is_current"))
    else:
        df = dataset.read(table, where=where)
    if args.address is not None:
        cols = [c for c in ("address", "sender", "recipient") if c in df.columns]
        df = df.filter(pl.any_horizontal([pl.col(c) == args.address for c in cols]))
    with pl.Config(tbl_rows=args.n, fmt_str_lengths=80):
        print(df.head(args.n))
    return 0


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fission", description="fission points indexer CLI.")
    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("replay", help="Replay blocks into the ledgers and persist them.")
    sub.add_parser("show", help="Show persisted balances, points or event records.")
    return p


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        build_argparser().print_help()
        return
    cmd, rest = argv[0], argv[1:]
    try:
        if cmd == "replay":
            code = _cmd_replay(rest)
        elif cmd == "show":
            code = _cmd_show(rest)
        else:
            print(f"Unknown command: {cmd}", file=sys.stderr)
            code = 2
    except (IoError, SchemaError, VersionMismatch, FileNotFoundError, ValueError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
