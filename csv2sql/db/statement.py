from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from csv2sql.db.dialects import MYSQL, Dialect
from csv2sql.transform.columns import ColumnTransform

"""Multi-row INSERT statement builder.

One statement per batch:

    INSERT IGNORE INTO t (id, name) VALUES (?, ?), (?, ?)

Values are always bound positionally (row-major, column order); only the table
and column names are written into the SQL text.
"""

__all__ = [
    "RowShapeError",
    "Statement",
    "build_insert_statement",
]


class RowShapeError(Exception):
    """Raised in strict mode when a row's field count differs from the header."""

    def __init__(self, index: int, expected: int, got: int, row: Sequence[str]) -> None:
        preview = list(row[:5])
        super().__init__(
            f"row {index + 1} of batch has {got} fields, header has {expected}: {preview}"
        )
        self.index = index
        self.expected = expected
        self.got = got


@dataclass(frozen=True)
class Statement:
    sql: str
    args: tuple[str, ...]
    row_count: int  # VALUES グループ数
    skipped_rows: int = 0  # permissive モードで列数不一致により除外した行

    @property
    def is_empty(self) -> bool:
        """True when no value group was produced; such a statement must not be executed."""
        return self.row_count == 0


def build_insert_statement(
    table: str,
    transform: ColumnTransform,
    rows: Sequence[Sequence[str]],
    *,
    dialect: Dialect = MYSQL,
    strict: bool = True,
) -> Statement:
    """Build the INSERT statement and flattened args for one (filtered) batch.

    Parameters
    ----------
    table: 対象テーブル名 (設定で検証済み)
    transform: 固定済みの Effective Header と除外位置
    rows: dedup 後の行
    dialect: placeholder / conflict 句の方言
    strict: True なら列数不一致で RowShapeError、False ならその行をスキップ

    Row width is checked against the *raw* header width, before ignored
    positions are removed.
    """
    raw_width = transform.raw_width
    args: list[str] = []
    groups: list[str] = []
    skipped = 0

    for index, row in enumerate(rows):
        if len(row) != raw_width:
            if strict:
                raise RowShapeError(index, raw_width, len(row), row)
            skipped += 1
            continue
        values = transform.project(row)
        start = len(args)
        placeholders = ", ".join(dialect.placeholder(start + i + 1) for i in range(len(values)))
        groups.append(f"({placeholders})")
        args.extend(values)

    sql = f"{dialect.insert_clause} {table} ({', '.join(transform.columns)}) VALUES"
    if groups:
        sql += " " + ", ".join(groups) + dialect.conflict_clause

    return Statement(sql=sql, args=tuple(args), row_count=len(groups), skipped_rows=skipped)
