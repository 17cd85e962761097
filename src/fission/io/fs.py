"""
Local filesystem primitives for fission.io.

Everything persisted goes through a temporary sibling and ``os.replace``; readers see
either the previous file or the complete new one.
"""

from __future__ import annotations

import os


def tmp_sibling(path: str) -> str:
    return path + ".tmp"


def fsync_path(path: str) -> None:
    """Fsync a file by path (for files written by pyarrow)."""
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def write_bytes_atomic(path: str, payload: bytes) -> None:
    """
    Replace ``path`` with ``payload`` atomically, creating parent directories.

    Raises:
        OSError: On any filesystem failure; the temporary file is removed.
    """
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp = tmp_sibling(path)
    try:
        with open(tmp, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except OSError:
        remove_quietly(tmp)
        raise


def remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
