from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from csv2sql.db.connection import BatchInsertError, Database
from csv2sql.models.batch_job import BatchJob
from csv2sql.services.governor import Completion, ConnectionGovernor

"""Batch insert worker.

Each batch prepares its own statement on its own pooled connection; concurrent
workers never share statement state.

Outcome handling:
- execute failure (BatchInsertError): logged with batch id and in-flight
  connection count; the run continues
- prepare failure or anything unexpected: carried to the governor as fatal;
  the driver aborts the run
Completion is reported on every path, so the slot is always released.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "insert_batch",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single batch insert."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # prepare + execute
    start_time: float  # time.time()
    end_time: float  # time.time()


def insert_batch(database: Database, job: BatchJob, governor: ConnectionGovernor) -> Completion:
    """Prepare and execute one batch, then report completion to the governor.

    Never raises: every outcome travels through the returned (and reported)
    Completion.
    """
    error: str | None = None
    fatal: BaseException | None = None
    start_time = time.time()
    try:
        with database.prepare(job.statement.sql) as prepared:
            prepared.execute(job.statement.args)
    except BatchInsertError as e:
        error = str(e)
        held = governor.snapshot().held
        logger.warning(f"batch {job.batch_id} ({held} conns): {error}")
    except Exception as e:
        fatal = e
    finally:
        end_time = time.time()
        completion = Completion(
            job=job,
            metrics=BatchMetrics(
                batch_size=job.row_count,
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            ),
            error=error,
            fatal=fatal,
        )
        governor.complete(completion)
    return completion
