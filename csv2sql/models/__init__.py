"""Domain models for the csv2sql importer."""

from .batch_job import BatchJob
from .error_record import ErrorRecord
from .processing_result import BatchStatsAccumulator, RunResult

__all__ = [
    "BatchJob",
    "ErrorRecord",
    # Result models
    "BatchStatsAccumulator",
    "RunResult",
]
