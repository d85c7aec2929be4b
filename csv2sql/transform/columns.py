from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

"""Column transformer: ignore / remap applied to the header once.

Positions to drop are resolved against the *raw* header a single time and then
reused for every data row; rows are never re-inspected by name. Remapping only
renames header columns, values are untouched.
"""

__all__ = [
    "ColumnTransform",
    "ColumnTransformError",
    "transform_header",
]

logger = logging.getLogger(__name__)

# 引用符なしで SQL に書ける列名 (Unicode 文字可)
COLUMN_NAME_RE = re.compile(r"[^\W\d]\w*")


class ColumnTransformError(Exception):
    """Raised when the header cannot be turned into a usable column list."""


@dataclass(frozen=True)
class ColumnTransform:
    """Effective header plus the raw positions dropped from every row."""
    raw_header: tuple[str, ...]
    columns: tuple[str, ...]  # Effective Header (ignore/remap 適用後)
    dropped: frozenset[int]  # raw header 上の位置

    @property
    def raw_width(self) -> int:
        return len(self.raw_header)

    @property
    def width(self) -> int:
        return len(self.columns)

    def project(self, row: Sequence[str]) -> list[str]:
        """Return the row's fields without the dropped positions, in position order."""
        if not self.dropped:
            return list(row)
        return [value for pos, value in enumerate(row) if pos not in self.dropped]


def transform_header(
    raw_header: Sequence[str],
    ignore_columns: Sequence[str] = (),
    remap_columns: Mapping[str, str] | None = None,
) -> ColumnTransform:
    """Build the effective header from the raw header.

    Parameters
    ----------
    raw_header: 元ファイルのヘッダ行 (列名の並び)
    ignore_columns: 除外する列名。remap にも指定されていても除外が優先
    remap_columns: 列名の置換表 (old -> new)。ヘッダのみに適用

    Raises
    ------
    ColumnTransformError: every column was ignored, or an effective name
        is not a plain identifier
    """
    ignore = set(ignore_columns)
    remap = dict(remap_columns or {})

    columns: list[str] = []
    dropped: set[int] = set()
    for pos, name in enumerate(raw_header):
        if name in ignore:
            dropped.add(pos)
            continue
        columns.append(remap.get(name, name))

    present = set(raw_header)
    unknown_ignore = sorted(ignore - present)
    if unknown_ignore:
        logger.warning(f"ignore-columns not found in header: {unknown_ignore}")
    unknown_remap = sorted(set(remap) - present)
    if unknown_remap:
        logger.warning(f"remap-columns not found in header: {unknown_remap}")

    if not columns:
        raise ColumnTransformError(
            f"no columns left after ignoring {sorted(ignore)} from header {list(raw_header)}"
        )

    invalid = [name for name in columns if not COLUMN_NAME_RE.fullmatch(name)]
    if invalid:
        raise ColumnTransformError(
            f"column names cannot be used unquoted: {invalid} (rename them with --remap-columns)"
        )

    return ColumnTransform(
        raw_header=tuple(raw_header),
        columns=tuple(columns),
        dropped=frozenset(dropped),
    )
