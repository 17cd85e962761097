"""
Append-only version log shared by the balance and points ledgers.

Each key owns a chain of frozen Version entries ordered by strictly increasing block
height. The tail entry is the single OPEN (current) version; every earlier entry is
CLOSED and never changes again. Closing happens only by appending the next version, so
"exactly one current version per key" holds by construction.

The log also keeps a creation journal of (key, block_height) in creation order. The
Indexer reads it to persist versions once their block is sealed and releases the
entries only after the rows are stored.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

__all__ = ["Version", "VersionLog"]

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True, slots=True)
class Version:
    """One immutable (block_height, balance) entry of a chain."""

    block_height: int
    balance: int


class VersionLog(Generic[K]):
    """
    Per-key append-only chains of Version entries with an implicit current pointer.

    Notes:
        - `open_version` appends (closing the previous tail).
        - `coalesce` replaces the OPEN tail at the same height; CLOSED entries are never
          rewritten.
        - Heights passed to `open_version` must be strictly greater than the tail's height;
          callers check ordering first and report violations as outcomes.
    """

    def __init__(self) -> None:
        self._chains: dict[K, list[Version]] = {}
        self._heights: dict[K, list[int]] = {}
        self._journal: list[tuple[K, int]] = []

    def __len__(self) -> int:
        return len(self._chains)

    def __contains__(self, key: object) -> bool:
        return key in self._chains

    def keys(self) -> Iterator[K]:
        return iter(self._chains)

    def current(self, key: K) -> Version | None:
        chain = self._chains.get(key)
        return chain[-1] if chain else None

    def history(self, key: K) -> tuple[Version, ...]:
        return tuple(self._chains.get(key, ()))

    def as_of(self, key: K, block_height: int) -> Version | None:
        """Most recent version with height <= block_height, or None."""
        heights = self._heights.get(key)
        if not heights:
            return None
        idx = bisect_right(heights, block_height)
        if idx == 0:
            return None
        return self._chains[key][idx - 1]

    def is_current(self, key: K, version: Version) -> bool:
        return self.current(key) is version

    def open_version(self, key: K, block_height: int, balance: int) -> Version:
        """Append a new OPEN version, closing the previous tail (if any)."""
        tail = self.current(key)
        if tail is not None and block_height <= tail.block_height:
            raise ValueError(
                f"version height {block_height} must exceed current height {tail.block_height}"
            )
        version = Version(block_height=block_height, balance=balance)
        self._chains.setdefault(key, []).append(version)
        self._heights.setdefault(key, []).append(block_height)
        self._journal.append((key, block_height))
        return version

    def coalesce(self, key: K, balance: int) -> Version:
        """Replace the OPEN tail with the same height and a new balance."""
        chain = self._chains.get(key)
        if not chain:
            raise KeyError(key)
        version = Version(block_height=chain[-1].block_height, balance=balance)
        chain[-1] = version
        return version

    # ---------------------------------------------------------------------
    # Persistence support
    # ---------------------------------------------------------------------
    def sealed(self, sealed_height: int) -> list[tuple[K, Version]]:
        """
        Versions created since the last release whose height <= sealed_height.

        Entries are returned in creation order and stay in the journal until
        `release_sealed` is called for the same height. A sealed version's balance can
        no longer change because coalescing only applies within the version's own block.
        """
        out: list[tuple[K, Version]] = []
        for key, height in self._journal:
            if height > sealed_height:
                continue
            version = self.as_of(key, height)
            if version is not None and version.block_height == height:
                out.append((key, version))
        return out

    def release_sealed(self, sealed_height: int) -> None:
        """Forget journal entries at heights <= sealed_height (they are persisted)."""
        self._journal = [(k, h) for k, h in self._journal if h > sealed_height]

    def restore(self, entries: Iterable[tuple[K, int, int]]) -> int:
        """
        Load persisted (key, block_height, balance) entries into empty chains.

        Entries may arrive in any order; they are sorted per key. Restored entries are
        already persisted and are not added to the journal.

        Returns:
            int: Number of versions restored.

        Raises:
            ValueError: If the log is not empty or a key has duplicate heights.
        """
        if self._chains:
            raise ValueError("restore requires an empty version log")
        grouped: dict[K, list[Version]] = {}
        n = 0
        for key, height, balance in entries:
            grouped.setdefault(key, []).append(Version(block_height=height, balance=balance))
            n += 1
        for key, chain in grouped.items():
            chain.sort(key=lambda v: v.block_height)
            heights = [v.block_height for v in chain]
            if len(set(heights)) != len(heights):
                raise ValueError(f"duplicate version heights for key {key!r}")
            self._chains[key] = chain
            self._heights[key] = heights
        return n
