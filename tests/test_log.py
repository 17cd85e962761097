from __future__ import annotations

from pathlib import Path

from loguru import logger

from fission.log import setup_logging


def test_setup_logging_writes_file_sink(tmp_path: Path) -> None:
    log_file = tmp_path / "fission.log"
    setup_logging("debug", log_file)
    try:
        logger.debug("hello from block {}", 42)
    finally:
        logger.remove()

    assert "hello from block 42" in log_file.read_text(encoding="utf-8")


def test_setup_logging_filters_below_level(tmp_path: Path) -> None:
    log_file = tmp_path / "fission.log"
    setup_logging("WARNING", log_file)
    try:
        logger.info("quiet")
        logger.warning("loud")
    finally:
        logger.remove()

    text = log_file.read_text(encoding="utf-8")
    assert "loud" in text
    assert "quiet" not in text
