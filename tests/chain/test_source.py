from __future__ import annotations

import json
from pathlib import Path

import pytest

from fission.chain import iter_blocks
from fission.core.errors import InvalidInput


def _write_blocks(path: Path, blocks: list[dict], extra: str = "") -> Path:
    path.write_text("\n".join(json.dumps(b) for b in blocks) + "\n" + extra)
    return path


def test_iter_blocks_reads_jsonl(tmp_path: Path) -> None:
    p = _write_blocks(
        tmp_path / "blocks.jsonl",
        [
            {"block_height": 1, "block_time_seconds": 10, "events": []},
            {
                "block_height": 2,
                "block_time_seconds": 16,
                "events": [
                    {
                        "type": "transfer",
                        "tx_hash": "AA",
                        "attributes": [{"key": "sender", "value": "a"}],
                    }
                ],
            },
        ],
        extra="\n\n",
    )

    blocks = list(iter_blocks(p))

    assert [b.block_height for b in blocks] == [1, 2]
    assert blocks[1].events[0].tx_hash == "AA"
    assert next(blocks[1].iter_events()).attribute("sender") == "a"


def test_iter_blocks_honours_start_block(tmp_path: Path) -> None:
    p = _write_blocks(
        tmp_path / "blocks.jsonl",
        [{"block_height": h, "block_time_seconds": h} for h in (5, 6, 7)],
    )
    assert [b.block_height for b in iter_blocks(p, start_block=6)] == [6, 7]


def test_iter_blocks_rejects_non_increasing_heights(tmp_path: Path) -> None:
    p = _write_blocks(
        tmp_path / "blocks.jsonl",
        [{"block_height": h, "block_time_seconds": 0} for h in (5, 5)],
    )
    with pytest.raises(InvalidInput, match=":2: block 5 does not follow block 5"):
        list(iter_blocks(p))


@pytest.mark.parametrize("line", ["{not json", '{"block_height": -1, "block_time_seconds": 0}'])
def test_iter_blocks_rejects_malformed_lines(tmp_path: Path, line: str) -> None:
    p = tmp_path / "blocks.jsonl"
    p.write_text(line + "\n")
    with pytest.raises(InvalidInput, match=":1: malformed block"):
        list(iter_blocks(p))


def test_iter_blocks_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        list(iter_blocks(tmp_path / "nope.jsonl"))
