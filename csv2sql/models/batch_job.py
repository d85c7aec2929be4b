from __future__ import annotations

from dataclasses import dataclass

from csv2sql.db.statement import Statement

"""BatchJob model: one dispatched unit of work for a batch insert worker."""

__all__ = [
    "BatchJob",
]


@dataclass(frozen=True)
class BatchJob:
    """A built statement plus where its rows came from.

    first_record / last_record are 1-based data record numbers (header
    excluded) spanning the rows read for this batch, including rows later
    squashed or skipped.
    """
    batch_id: int  # 1-based, dispatch order
    statement: Statement
    first_record: int
    last_record: int

    @property
    def row_count(self) -> int:
        return self.statement.row_count
