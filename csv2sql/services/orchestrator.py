from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path

from ..config.loader import ImportConfig
from ..db.batch_insert import insert_batch
from ..db.connection import Database
from ..db.statement import RowShapeError, build_insert_statement
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.batch_job import BatchJob
from ..models.processing_result import BatchStatsAccumulator, RunResult
from ..reader.delimited import DelimitedReader, ReaderError
from ..transform.columns import ColumnTransform, ColumnTransformError, transform_header
from ..transform.dedup import DuplicatePolicy, squash_duplicates
from .governor import Completion, ConnectionGovernor
from .progress import StatusReporter

logger = logging.getLogger(__name__)

"""Pipeline driver.

One thread reads and builds, strictly in input order:

    read header -> transform once
    loop: read B rows -> squash -> build INSERT -> acquire slot -> submit worker
    drain (wait until every slot is back) -> SUMMARY

Workers complete in any order. Fatal errors (unreadable input, decode error,
strict row shape, prepare failure) abort the run with ProcessingError; in-flight
workers are not drained on that path.
"""


class ProcessingError(Exception):
    """Fatal error that aborts the whole run."""
    pass


class _FailureTally:
    """Failed-batch figures; only touched from the governor's accounting thread."""

    def __init__(self, source: str, error_log: ErrorLogBuffer) -> None:
        self.source = source
        self.error_log = error_log
        self.batch_stats = BatchStatsAccumulator()
        self.failed_rows = 0

    def __call__(self, completion: Completion) -> None:
        self.batch_stats.add_batch_time(completion.metrics.elapsed_seconds)
        if completion.error is None:
            return
        job = completion.job
        self.failed_rows += job.row_count
        self.error_log.append(
            ErrorRecord.create(
                file=self.source,
                batch=job.batch_id,
                first_record=job.first_record,
                last_record=job.last_record,
                error_type="BATCH_INSERT_ERROR",
                db_message=completion.error,
            )
        )


def _raise_if_fatal(governor: ConnectionGovernor) -> None:
    err = governor.fatal_error
    if err is not None:
        raise ProcessingError(f"batch insert aborted: {err}") from err


def run_import(config: ImportConfig, database: Database) -> RunResult:
    """Import ``config.file`` into ``config.table`` through ``database``.

    Args:
        config: validated import configuration
        database: open database handle (pool sized to config.concurrency)

    Returns:
        RunResult with counters and timings

    Raises:
        ProcessingError: for fatal errors that abort the run
    """
    start_time = datetime.now(UTC)
    source = Path(config.file)
    error_log = ErrorLogBuffer(Path(config.error_log_dir))
    tally = _FailureTally(source.name, error_log)

    policy = DuplicatePolicy(
        squash_consecutive=config.squash_consecutive_duplicates,
        squash_all=config.squash_all_duplicates_per_batch,
    )
    governor = ConnectionGovernor(config.concurrency, on_completion=tally)
    executor = ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix="csv2sql-insert")

    transform: ColumnTransform | None = None
    batch_id = 0
    rows_read = 0
    rows_sent = 0
    skipped_rows = 0
    squashed_rows = 0

    governor.start()
    try:
        with DelimitedReader(source, delimiter=config.delimiter, encoding=config.encoding) as reader, \
                StatusReporter(governor, interval=config.status_interval):
            header = reader.read_record()
            if header is not None:
                transform = transform_header(header, config.ignore_columns, config.remap_columns)
                logger.info(f"columns: {', '.join(transform.columns)}")
                if transform.dropped:
                    logger.info(f"ignored positions: {sorted(transform.dropped)}")

            while transform is not None:
                rows = reader.read_batch(config.batch_size)
                if not rows:
                    break
                first_record = rows_read + 1
                rows_read += len(rows)

                kept = squash_duplicates(rows, policy)
                squashed_rows += len(rows) - len(kept)

                try:
                    statement = build_insert_statement(
                        config.table,
                        transform,
                        kept,
                        dialect=database.dialect,
                        strict=not config.ignore_errors,
                    )
                except RowShapeError as e:
                    raise ProcessingError(f"records {first_record}-{rows_read}: {e}") from e
                skipped_rows += statement.skipped_rows

                # 全行が除外された場合は空 VALUES になるので送らない
                if statement.is_empty:
                    continue

                governor.acquire()
                _raise_if_fatal(governor)
                batch_id += 1
                rows_sent += statement.row_count
                job = BatchJob(
                    batch_id=batch_id,
                    statement=statement,
                    first_record=first_record,
                    last_record=rows_read,
                )
                executor.submit(insert_batch, database, job, governor)

            governor.drain()
        _raise_if_fatal(governor)
    except ReaderError as e:
        executor.shutdown(wait=False, cancel_futures=True)
        raise ProcessingError(f"read failed: {e}") from e
    except ColumnTransformError as e:
        executor.shutdown(wait=False, cancel_futures=True)
        raise ProcessingError(f"header: {e}") from e
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    governor.stop()

    counters = governor.snapshot()
    logger.debug(f"max concurrent connections: {governor.max_held}")

    # Flush error log once; a failed flush must not hide the run result
    error_log_path = None
    try:
        error_log_path = error_log.flush()
    except OSError as e:
        logger.warning(f"error log flush failed: {e}")
    if error_log_path is not None:
        logger.info(f"failed batches written to {error_log_path}")

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    inserted = rows_sent - tally.failed_rows
    throughput_rps = inserted / elapsed_seconds if elapsed_seconds > 0 else 0.0
    _, avg_batch, p95_batch = tally.batch_stats.get_stats()

    return RunResult(
        completed_batches=counters.completed,
        failed_batches=counters.failed,
        rows_read=rows_read,
        rows_sent=rows_sent,
        failed_rows=tally.failed_rows,
        skipped_rows=skipped_rows,
        squashed_rows=squashed_rows,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput_rps,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
        error_log_path=error_log_path,
    )
