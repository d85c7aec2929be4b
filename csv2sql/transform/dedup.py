from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import xxhash

"""Duplicate squashing within a single batch.

Two policies, both optional and composable (applied in this order in one pass):

- squash-all-per-batch: drop any row already seen earlier in the same batch
- squash-consecutive: drop a row identical to the previously *kept* row

Known limitation: the scope is one batch. Duplicates that straddle a batch
boundary are never detected; a larger batch size widens the window.
Squashing also runs before the row shape check, so with ``--ignore-errors``
the rows ``A, <bad row>, A`` keep both ``A`` rows under squash-consecutive:
the bad row separates them here and is only dropped afterwards.
Keys are 64-bit xxHash values, so a (very unlikely) collision drops a row.
"""

__all__ = [
    "DuplicatePolicy",
    "duplicate_key",
    "squash_duplicates",
]

# ASCII unit separator; keeps ["ab", "c"] and ["a", "bc"] apart
FIELD_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class DuplicatePolicy:
    squash_consecutive: bool = False
    squash_all: bool = False

    @property
    def active(self) -> bool:
        return self.squash_consecutive or self.squash_all


def duplicate_key(row: Sequence[str]) -> int:
    """Content hash of a row's concatenated field values."""
    return xxhash.xxh64(FIELD_SEPARATOR.join(row).encode("utf-8")).intdigest()


def squash_duplicates(rows: Sequence[Sequence[str]], policy: DuplicatePolicy) -> list[Sequence[str]]:
    """Return the rows of one batch that survive the duplicate policy, order preserved."""
    if not policy.active:
        return list(rows)

    kept: list[Sequence[str]] = []
    seen: set[int] = set()
    last_key: int | None = None
    for row in rows:
        key = duplicate_key(row)
        if policy.squash_all:
            if key in seen:
                continue
            seen.add(key)
        if policy.squash_consecutive and last_key is not None and key == last_key:
            continue
        last_key = key
        kept.append(row)
    return kept
