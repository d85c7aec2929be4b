from __future__ import annotations

from ..models.processing_result import RunResult

"""SUMMARY line rendering.

Format:
SUMMARY batches={completed} failed_batches={failed} rows={sent} skipped_rows={skipped}
squashed_rows={squashed} elapsed_sec={elapsed} throughput_rps={throughput}
"""


def _format_number(value: float) -> str:
    # 整数値は小数点なし、極小値は指数表記を避ける
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return str(round(value, 3))


def render_summary_line(result: RunResult) -> str:
    """Render the SUMMARY line for a finished run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = RunResult(
        ...     completed_batches=4, failed_batches=0, rows_read=1000, rows_sent=1000,
        ...     failed_rows=0, skipped_rows=0, squashed_rows=0, start_time=start,
        ...     end_time=end, elapsed_seconds=2.0, throughput_rows_per_sec=500.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY batches=4 failed_batches=0 rows=1000 skipped_rows=0 squashed_rows=0 elapsed_sec=2 throughput_rps=500'
    """
    return (
        f"SUMMARY batches={result.completed_batches} "
        f"failed_batches={result.failed_batches} "
        f"rows={result.rows_sent} "
        f"skipped_rows={result.skipped_rows} "
        f"squashed_rows={result.squashed_rows} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
