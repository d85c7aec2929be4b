from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

"""SQL dialects for the insert-or-ignore statement.

Each dialect knows how to spell "skip rows that hit a unique/primary key
conflict" and how to write the n-th positional placeholder (1-based).
"""

__all__ = [
    "Dialect",
    "MYSQL",
    "POSTGRESQL",
    "SQLITE",
    "SCHEMES",
    "dialect_for_scheme",
]


@dataclass(frozen=True)
class Dialect:
    name: str
    insert_clause: str  # e.g. "INSERT IGNORE INTO"
    conflict_clause: str  # appended after VALUES (empty if the verb handles it)
    placeholder: Callable[[int], str]


MYSQL = Dialect(
    name="mysql",
    insert_clause="INSERT IGNORE INTO",
    conflict_clause="",
    placeholder=lambda n: "?",
)

SQLITE = Dialect(
    name="sqlite",
    insert_clause="INSERT OR IGNORE INTO",
    conflict_clause="",
    placeholder=lambda n: "?",
)

# PREPARE ... AS は $n 形式のパラメータ番号
POSTGRESQL = Dialect(
    name="postgresql",
    insert_clause="INSERT INTO",
    conflict_clause=" ON CONFLICT DO NOTHING",
    placeholder=lambda n: f"${n}",
)

SCHEMES: dict[str, Dialect] = {
    "mysql": MYSQL,
    "postgres": POSTGRESQL,
    "postgresql": POSTGRESQL,
    "sqlite": SQLITE,
}


def dialect_for_scheme(scheme: str) -> Dialect:
    try:
        return SCHEMES[scheme.lower()]
    except KeyError:
        raise ValueError(
            f"unsupported database scheme '{scheme}' (expected one of: {', '.join(sorted(SCHEMES))})"
        ) from None
