from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the failed-batch error log.

One record per batch whose INSERT failed at execution time. The record range
(first_record / last_record) refers to 1-based data record numbers in the
source file (header excluded), so a failed batch can be re-extracted and
retried by hand.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source file being imported
        batch: Batch id (1-based, dispatch order)
        first_record: First data record number covered by the batch
        last_record: Last data record number covered by the batch
        error_type: Error classification in UPPER_SNAKE_CASE format
        db_message: Database error message
    """
    timestamp: str  # ISO8601 UTC
    file: str
    batch: int
    first_record: int
    last_record: int
    error_type: str  # UPPER_SNAKE
    db_message: str

    @staticmethod
    def create(
        file: str,
        batch: int,
        first_record: int,
        last_record: int,
        error_type: str,
        db_message: str,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            batch=batch,
            first_record=first_record,
            last_record=last_record,
            error_type=error_type,
            db_message=db_message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to a single JSON Lines entry (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
