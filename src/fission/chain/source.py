"""
JSON-lines block source.

Each non-blank line holds one block::

    {"block_height": 18538216, "block_time_seconds": 1725000000,
     "events": [{"type": "transfer", "tx_hash": "AB12...",
                 "attributes": {"sender": "neutron1...", "recipient": "neutron1...",
                                "amount": "100factory/neutron1.../P/240906/..."}}]}

Attributes may also be given as a list of {"key": ..., "value": ...} pairs, as they
appear in node RPC responses.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from fission.core.errors import InvalidInput

from .normalize import RawBlock

__all__ = ["iter_blocks"]


def iter_blocks(path: str | os.PathLike[str], start_block: int = 0) -> Iterator[RawBlock]:
    """
    Yield blocks from a JSONL file, skipping blocks below start_block.

    Blocks must appear in strictly increasing height order.

    Raises:
        FileNotFoundError: If path does not exist.
        InvalidInput: On a malformed line or a height that does not increase. A block
            source cannot skip blocks without breaking ordering, so these are fatal.
    """
    p = Path(path)
    last: int | None = None
    with p.open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                block = RawBlock.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as exc:
                raise InvalidInput(f"{p}:{lineno}: malformed block: {exc}") from exc
            if last is not None and block.block_height <= last:
                raise InvalidInput(
                    f"{p}:{lineno}: block {block.block_height} does not follow block {last}"
                )
            last = block.block_height
            if block.block_height < start_block:
                continue
            yield block
