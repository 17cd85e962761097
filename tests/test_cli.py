from __future__ import annotations

import argparse
import json
from pathlib import Path

import pytest
from loguru import logger

from fission.cli import _settings, main

PT = "factory/neutron1minter/P/240906/xyk/5m/wstETH/axlWETH"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("FISSION_IO_ROOT_DIR", "FISSION_IO_FLUSH_EVERY_N_BLOCKS", "FISSION_IO_START_BLOCK"):
        monkeypatch.delenv(key, raising=False)
    yield
    logger.remove()


def _registry(tmp_path: Path) -> Path:
    p = tmp_path / "registry.toml"
    p.write_text(
        f"""
[registry]
excluded_addresses = ["amm"]

[[registry.tokens]]
denom = "{PT}"
type = "Principal"
multiplier = 2
maturity = 4000000000
"""
    )
    return p


def _blocks(tmp_path: Path, heights=(100, 101, 102, 103)) -> Path:
    events = {
        100: [{"type": "tf_mint", "attributes": {"mint_to_address": "X", "amount": f"100{PT}"}}],
        102: [
            {
                "type": "transfer",
                "tx_hash": "AB",
                "attributes": {"sender": "X", "recipient": "Y", "amount": f"40{PT},3untrn"},
            }
        ],
    }
    p = tmp_path / "blocks.jsonl"
    p.write_text(
        "\n".join(
            json.dumps(
                {"block_height": h, "block_time_seconds": h * 6, "events": events.get(h, [])}
            )
            for h in heights
        )
        + "\n"
    )
    return p


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def _replay_args(tmp_path: Path, blocks: Path) -> list[str]:
    return [
        "replay",
        "--blocks",
        str(blocks),
        "--registry",
        str(_registry(tmp_path)),
        "--root-dir",
        str(tmp_path / "out"),
        "--run-id",
        "test",
        "--log-level",
        "WARNING",
    ]


def test_replay_and_show(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)

    assert _run(_replay_args(tmp_path, _blocks(tmp_path))) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["sealed_height"] == 103
    assert stats["persisted_height"] == 103
    assert stats["blocks_processed"] == 4

    code = _run(
        ["show", "--root-dir", str(tmp_path / "out"), "--run-id", "test", "--log-level", "ERROR"]
    )
    assert code == 0
    out = capsys.readouterr().out
    # X: 200 at 101, 200 at 102, 60 * 2 at 103.
    assert "520" in out
    assert "80" in out

    show_cp = ["show", "--root-dir", str(tmp_path / "out"), "--run-id", "test", "--checkpoint"]
    assert _run(show_cp) == 0
    cp = json.loads(capsys.readouterr().out)
    assert cp["sealed_height"] == 103


def test_replay_resumes_after_checkpoint(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    assert _run(_replay_args(tmp_path, _blocks(tmp_path, heights=(100, 101)))) == 0
    capsys.readouterr()

    assert _run(_replay_args(tmp_path, _blocks(tmp_path))) == 0
    stats = json.loads(capsys.readouterr().out)
    # Blocks 100 and 101 are skipped on resume.
    assert stats["blocks_processed"] == 2
    assert stats["outcomes"]["out_of_order_version"] == 0
    assert stats["sealed_height"] == 103


def test_replay_missing_blocks_file(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    assert _run(_replay_args(tmp_path, tmp_path / "missing.jsonl")) == 1
    assert "[ERROR]" in capsys.readouterr().err


def test_show_unknown_table_rows(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    code = _run(["show", "--root-dir", str(tmp_path / "empty"), "--table", "burns"])
    assert code == 1
    assert "no rows" in capsys.readouterr().err


def test_unknown_command(capsys) -> None:
    assert _run(["frobnicate"]) == 2
    assert "Unknown command" in capsys.readouterr().err


def test_no_arguments_prints_help(capsys) -> None:
    main([])
    assert "replay" in capsys.readouterr().out


def test_root_dir_override_keeps_file_settings(tmp_path: Path) -> None:
    cfg = tmp_path / "fission.toml"
    cfg.write_text("[io]\nblock_bucket_size = 7\nflush_every_n_blocks = 3\nstrict_schema = false\n")

    settings = _settings(argparse.Namespace(config=str(cfg), root_dir=str(tmp_path / "out")))

    assert settings.root_dir == str(tmp_path / "out")
    assert settings.block_bucket_size == 7
    assert settings.flush_every_n_blocks == 3
    assert settings.strict_schema is False
