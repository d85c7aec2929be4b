from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from csv2sql.db.batch_insert import BatchMetrics
    from csv2sql.models.batch_job import BatchJob

"""Connection governor: admission control + completion accounting.

- A bounded queue pre-filled with C permits; the driver takes one per batch
  before dispatching a worker and blocks while none is free.
- Workers never touch shared counters. They post a Completion to a single
  event queue; one accounting thread consumes it, updates the run counters and
  only then hands the permit back.

Invariant: held <= C at all times. `held` is incremented by the accounting
thread after a permit has been taken and decremented before it is returned.
"""

__all__ = [
    "Completion",
    "RunCounters",
    "ConnectionGovernor",
]

logger = logging.getLogger(__name__)

_ACQUIRED = object()
_STOP = object()


@dataclass(frozen=True)
class Completion:
    """Outcome of one batch insert worker."""
    job: BatchJob
    metrics: BatchMetrics
    error: str | None = None  # 実行エラー (非致命)
    fatal: BaseException | None = None  # prepare 失敗など (致命)


@dataclass(frozen=True)
class RunCounters:
    held: int  # 使用中の接続スロット
    completed: int  # 完了バッチ数 (失敗含む)
    failed: int  # 実行エラーのバッチ数


class ConnectionGovernor:
    """Bounds in-flight batch inserts to ``concurrency`` and accounts completions."""

    def __init__(
        self,
        concurrency: int,
        on_completion: Callable[[Completion], None] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be > 0, got {concurrency}")
        self.concurrency = concurrency
        self._on_completion = on_completion
        self._permits: queue.Queue[bool] = queue.Queue(maxsize=concurrency)
        for _ in range(concurrency):
            self._permits.put_nowait(True)
        self._events: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        # 以下は accounting thread のみが更新する
        self._held = 0
        self._max_held = 0
        self._completed = 0
        self._failed = 0
        self.fatal_error: BaseException | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._account, name="csv2sql-accounting", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the accounting thread after it has processed every queued event."""
        if self._thread is None:
            return
        self._events.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def acquire(self) -> None:
        """Block until a connection slot is free, then take it."""
        self._permits.get()
        self._events.put(_ACQUIRED)

    def complete(self, completion: Completion) -> None:
        """Report a finished worker. The slot is released by the accounting thread."""
        self._events.put(completion)

    def drain(self) -> None:
        """Block until every slot is free again (all dispatched workers accounted)."""
        for _ in range(self.concurrency):
            self._permits.get()
        for _ in range(self.concurrency):
            self._permits.put_nowait(True)

    def snapshot(self) -> RunCounters:
        """Unlocked read of the counters; advisory, for status display."""
        return RunCounters(held=self._held, completed=self._completed, failed=self._failed)

    @property
    def max_held(self) -> int:
        """Highest number of simultaneously held slots seen so far."""
        return self._max_held

    def _account(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                return
            if event is _ACQUIRED:
                self._held += 1
                if self._held > self._max_held:
                    self._max_held = self._held
                continue
            self._settle(event)

    def _settle(self, completion: Completion) -> None:
        try:
            self._held -= 1
            self._completed += 1
            if completion.error is not None:
                self._failed += 1
            if completion.fatal is not None and self.fatal_error is None:
                self.fatal_error = completion.fatal
            if self._on_completion is not None:
                self._on_completion(completion)
        except Exception as e:
            logger.error(f"completion accounting failed for batch {completion.job.batch_id}: {e}")
            if self.fatal_error is None:
                self.fatal_error = e
        finally:
            self._permits.put_nowait(True)
