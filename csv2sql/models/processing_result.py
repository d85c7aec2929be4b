from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

"""Processing result models for a csv2sql run.

RunResult carries everything the SUMMARY line and the exit code need.
"""


@dataclass(frozen=True)
class RunResult:
    """Aggregated results of one import run."""
    completed_batches: int  # 完了バッチ数 (失敗含む)
    failed_batches: int  # 実行エラーになったバッチ数
    rows_read: int  # 読み込んだデータ行数 (ヘッダ除く)
    rows_sent: int  # INSERT 文に載せた行数
    failed_rows: int  # 失敗バッチに含まれていた行数
    skipped_rows: int  # 列数不一致でスキップした行数
    squashed_rows: int  # 重複として除外した行数
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # (rows_sent - failed_rows) / elapsed
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
    error_log_path: Path | None = None

    @property
    def inserted_rows(self) -> int:
        """Rows sent in batches that executed successfully.

        INSERT IGNORE may still have skipped some of them on key conflicts.
        """
        return self.rows_sent - self.failed_rows


class BatchStatsAccumulator:
    """Accumulates per-batch execution times and derives summary statistics."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
